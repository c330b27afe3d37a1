from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

from tree_sitter import Node

from routescribe.config import ScanConfig
from routescribe.domain.models import Diagnostic, ExtractResult, PathParameter, Route
from routescribe.extractors.js.syntax import iter_nodes, leading_block_comment, node_text, parse_source
from routescribe.repo.scanner import read_source

logger = logging.getLogger(__name__)

_HTTP_METHOD_ATTRS = {
    "get": "GET",
    "post": "POST",
    "put": "PUT",
    "patch": "PATCH",
    "delete": "DELETE",
    "head": "HEAD",
    "options": "OPTIONS",
    "all": "ALL",
}

# objects that issue requests rather than declare routes
_HTTP_CLIENT_OBJECTS = frozenset({"axios", "http", "https", "request", "superagent", "got", "fetch", "ky"})

_FUNCTION_NODES = frozenset({"arrow_function", "function_expression", "function"})
_REFERENCE_NODES = frozenset({"identifier", "member_expression"})

_PARAM_COLON = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")
_PARAM_BRACE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
_BLANK_LINES = re.compile(r"\n(?:[ \t]*\n)+")
_DESCRIPTION_TAG = re.compile(r"@description\s+(.+)")


def extract_routes_from_source(source: str, file_path: str = "", extension: Optional[str] = None) -> ExtractResult:
    """
    Parse JS/TS source and extract routes declared through fluent calls like:
      app.get('/users', handler)
      router.post(`/items/${id}`, auth, async (req, res) => { ... })
    Uses tree-sitter only; never executes the code and never raises.
    """
    data = source.encode("utf-8")
    if extension is None and file_path:
        extension = Path(file_path).suffix

    tree, dialect = parse_source(data, extension)
    if tree is None:
        logger.warning("Could not parse %s, no routes extracted", file_path or "<source>")
        return ExtractResult(
            routes=[],
            diagnostics=[
                Diagnostic(
                    stage="extract",
                    code="parse-error",
                    message="syntax error in every supported dialect",
                    path=file_path or None,
                )
            ],
        )

    routes: list[Route] = []
    for call in iter_nodes(tree.root_node, "call_expression"):
        route = _parse_route_call(call, data, file_path)
        if route is not None:
            routes.append(route)

    logger.debug("%s: %d routes (%s)", file_path or "<source>", len(routes), dialect)
    return ExtractResult(routes=routes, diagnostics=[])


def extract_routes_from_file(path: Path, config: ScanConfig | None = None) -> ExtractResult:
    """Extract from a file on disk; files over the size ceiling are reported, not truncated."""
    config = config or ScanConfig()
    max_bytes = config.effective_max_file_size()
    try:
        size = path.stat().st_size
    except OSError as e:
        logger.warning("Could not read %s: %s", path, e)
        return ExtractResult(
            diagnostics=[Diagnostic(stage="extract", code="unreadable", message=str(e), path=str(path))]
        )
    if size > max_bytes:
        logger.warning("Skipping %s: %d bytes exceeds the %d byte limit", path, size, max_bytes)
        return ExtractResult(
            diagnostics=[
                Diagnostic(
                    stage="extract",
                    code="oversized",
                    message=f"{size} bytes exceeds the {max_bytes} byte limit",
                    path=str(path),
                )
            ]
        )

    source = read_source(str(path), max_bytes)
    if source is None:
        return ExtractResult(
            diagnostics=[Diagnostic(stage="extract", code="unreadable", message="could not read file", path=str(path))]
        )
    return extract_routes_from_source(source, file_path=str(path.resolve()), extension=path.suffix)


def _parse_route_call(call: Node, source: bytes, file_path: str) -> Optional[Route]:
    """
    Recognize calls of form:
      <identifier>.<verb>(<path literal>, ...middleware, <handler>)
    Returns None for anything else.
    """
    callee = call.child_by_field_name("function")
    if callee is None or callee.type != "member_expression":
        return None

    obj = callee.child_by_field_name("object")
    prop = callee.child_by_field_name("property")
    if obj is None or prop is None or obj.type != "identifier":
        return None
    if node_text(obj, source) in _HTTP_CLIENT_OBJECTS:
        return None

    method = _HTTP_METHOD_ATTRS.get(node_text(prop, source))
    if method is None:
        return None

    args_node = call.child_by_field_name("arguments")
    if args_node is None:
        return None
    args = [a for a in args_node.named_children if a.type != "comment"]
    # a bare app.get('setting') is a settings lookup, not a route
    if len(args) < 2:
        return None

    path = _route_path(args[0], source)
    if path is None:
        return None

    handler = args[-1]
    if handler.type not in _FUNCTION_NODES and handler.type not in _REFERENCE_NODES:
        return None

    handler_source = None
    handler_name = None
    handler_params: tuple[str, ...] = ()
    is_async = False
    if handler.type in _FUNCTION_NODES:
        handler_source = _clean_source(node_text(handler, source))
        handler_params = _function_params(handler, source)
        is_async = any(c.type == "async" for c in handler.children)
    else:
        handler_name = node_text(handler, source)

    middleware = tuple(
        m for m in (_middleware_name(a, source) for a in args[1:-1]) if m is not None
    )

    comment = leading_block_comment(call, source)

    return Route(
        method=method,
        path=path,
        parameters=path_parameters(path),
        middleware=middleware,
        handler_source=handler_source,
        handler_name=handler_name,
        handler_params=handler_params,
        is_async=is_async,
        source_file=file_path,
        leading_comment=description_from_comment(comment) if comment else None,
        line=call.start_point[0] + 1,
    )


def _route_path(node: Node, source: bytes) -> Optional[str]:
    if node.type == "string":
        path = node_text(node, source)[1:-1]
        starts_ok = path.startswith("/") or path.startswith("*")
    elif node.type == "template_string":
        path, starts_with_expr = _render_template(node, source)
        starts_ok = path.startswith("/") or path.startswith("*") or starts_with_expr
    else:
        return None

    if not starts_ok:
        return None
    return path


def _render_template(node: Node, source: bytes) -> tuple[str, bool]:
    # `/users/${id}/posts` -> /users/:param0/posts
    parts: list[str] = []
    pos = node.start_byte + 1
    index = 0
    starts_with_expr = False
    for child in node.children:
        if child.type != "template_substitution":
            continue
        literal = source[pos:child.start_byte].decode("utf-8", errors="ignore")
        if index == 0 and not literal:
            starts_with_expr = True
        parts.append(literal)
        parts.append(f":param{index}")
        index += 1
        pos = child.end_byte
    parts.append(source[pos:node.end_byte - 1].decode("utf-8", errors="ignore"))
    return "".join(parts), starts_with_expr


def _function_params(fn: Node, source: bytes) -> tuple[str, ...]:
    single = fn.child_by_field_name("parameter")
    if single is not None:
        return (node_text(single, source),)

    params = fn.child_by_field_name("parameters")
    if params is None:
        return ()

    names = []
    for p in params.named_children:
        if p.type == "comment":
            continue
        names.append(_param_name(p, source))
    return tuple(names)


def _param_name(node: Node, source: bytes) -> str:
    # TS wraps parameters: required_parameter(pattern: identifier, type: ...)
    if node.type in ("required_parameter", "optional_parameter"):
        pattern = node.child_by_field_name("pattern")
        if pattern is not None:
            return _param_name(pattern, source)
    if node.type == "assignment_pattern":
        left = node.child_by_field_name("left")
        if left is not None:
            return _param_name(left, source)
    if node.type == "rest_pattern":
        inner = node.named_children[0] if node.named_children else None
        if inner is not None:
            return "..." + _param_name(inner, source)
    return node_text(node, source)


def _middleware_name(node: Node, source: bytes) -> Optional[str]:
    if node.type in _REFERENCE_NODES:
        return node_text(node, source)
    if node.type == "call_expression":
        fn = node.child_by_field_name("function")
        if fn is not None:
            return f"{node_text(fn, source)}()"
    return None


def _clean_source(text: str) -> str:
    return _BLANK_LINES.sub("\n", text.strip())


def path_parameters(path: str) -> tuple[PathParameter, ...]:
    seen: set[str] = set()
    out: list[PathParameter] = []
    tokens = [(m.start(), m.group(1)) for m in _PARAM_COLON.finditer(path)]
    tokens += [(m.start(), m.group(1)) for m in _PARAM_BRACE.finditer(path)]
    for _, name in sorted(tokens):
        if name in seen:
            continue
        seen.add(name)
        out.append(PathParameter(name=name))
    return tuple(out)


def description_from_comment(comment: str) -> Optional[str]:
    body = comment.strip()
    if body.startswith("/*"):
        body = body[2:]
    if body.endswith("*/"):
        body = body[:-2]

    m = _DESCRIPTION_TAG.search(body)
    if m:
        return m.group(1).strip().rstrip("*").strip() or None

    for line in body.splitlines():
        line = line.strip().lstrip("*").strip()
        if line and not line.startswith("@"):
            return line
    return None
