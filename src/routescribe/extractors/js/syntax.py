from __future__ import annotations

from functools import lru_cache
from typing import Iterator, Optional

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

# Each dialect is a grammar; TSX covers type annotations, JSX and decorators.
_DIALECT_LOADERS = {
    "javascript": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
}

_DIALECT_ORDER = {
    ".ts": ("typescript", "tsx", "javascript"),
    ".mts": ("typescript", "tsx", "javascript"),
    ".cts": ("typescript", "tsx", "javascript"),
    ".tsx": ("tsx", "typescript", "javascript"),
    ".jsx": ("javascript", "tsx"),
}
_DEFAULT_ORDER = ("javascript", "tsx", "typescript")

STATEMENT_CONTAINERS = frozenset({"program", "statement_block", "class_body", "switch_case", "switch_default"})


@lru_cache(maxsize=None)
def _parser(dialect: str) -> Parser:
    return Parser(Language(_DIALECT_LOADERS[dialect]()))


def dialects_for(extension: Optional[str]) -> tuple[str, ...]:
    return _DIALECT_ORDER.get((extension or "").lower(), _DEFAULT_ORDER)


def parse_source(source: bytes, extension: Optional[str] = None) -> tuple[Optional[Tree], Optional[str]]:
    """
    Try each dialect in turn; return the first tree without syntax errors and
    the dialect name, or (None, None) when every grammar rejects the file.
    """
    for dialect in dialects_for(extension):
        tree = _parser(dialect).parse(source)
        if not tree.root_node.has_error:
            return tree, dialect
    return None, None


def iter_nodes(root: Node, node_type: str) -> Iterator[Node]:
    """Pre-order walk yielding nodes of node_type in source order."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == node_type:
            yield node
        stack.extend(reversed(node.children))


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="ignore")


def enclosing_statement(node: Node) -> Node:
    current = node
    while current.parent is not None and current.parent.type not in STATEMENT_CONTAINERS:
        current = current.parent
    return current


def leading_block_comment(node: Node, source: bytes) -> Optional[str]:
    """
    Text of the /* ... */ comment that sits directly above the statement
    containing node (only whitespace in between) on a line of its own, or None.
    """
    stmt = enclosing_statement(node)
    prev = stmt.prev_sibling
    if prev is None or prev.type != "comment":
        return None
    text = node_text(prev, source)
    if not text.startswith("/*"):
        return None
    if stmt.start_point[0] - prev.end_point[0] > 1:
        return None
    # a comment sharing a line with the statement before it trails that statement
    before = prev.prev_sibling
    if before is not None and before.end_point[0] == prev.start_point[0]:
        return None
    return text
