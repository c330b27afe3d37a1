from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import reduce
from typing import Iterable, Optional

from routescribe.config import ScanConfig
from routescribe.domain.models import CandidateFile, Classification
from routescribe.repo.scanner import read_source

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameworkSignature:
    id: str
    import_patterns: tuple[re.Pattern, ...]
    route_patterns: tuple[re.Pattern, ...]
    import_weight: float = 0.8
    route_weight: float = 0.6


@dataclass(frozen=True)
class FrameworkScore:
    framework: str
    score: float
    route_occurrences: int
    detected_patterns: tuple[str, ...]


def _compile(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p) for p in patterns)


_VERB_CALLS = (r"\.get\s*\(", r"\.post\s*\(", r"\.put\s*\(", r"\.patch\s*\(", r"\.delete\s*\(")

_REGISTRY: dict[str, FrameworkSignature] = {}


def register_framework(signature: FrameworkSignature) -> None:
    _REGISTRY[signature.id] = signature


def registered_frameworks() -> list[str]:
    return list(_REGISTRY)


register_framework(
    FrameworkSignature(
        id="express",
        import_patterns=_compile(
            r"require\s*\(\s*['\"`]express['\"`]\s*\)",
            r"import.*from\s+['\"`]express['\"`]",
            r"import\s+express\s+from",
        ),
        route_patterns=_compile(
            *_VERB_CALLS,
            r"\.all\s*\(",
            r"\.use\s*\(",
            r"app\.(get|post|put|patch|delete|all|use)\s*\(",
            r"router\.(get|post|put|patch|delete|all|use)\s*\(",
        ),
        import_weight=0.8,
        route_weight=0.6,
    )
)
register_framework(
    FrameworkSignature(
        id="fastify",
        import_patterns=_compile(
            r"require\s*\(\s*['\"`]fastify['\"`]\s*\)",
            r"import.*from\s+['\"`]fastify['\"`]",
        ),
        route_patterns=_compile(
            *_VERB_CALLS,
            r"fastify\.(get|post|put|patch|delete)\s*\(",
            r"\.register\s*\(",
        ),
        import_weight=0.9,
        route_weight=0.7,
    )
)
register_framework(
    FrameworkSignature(
        id="koa",
        import_patterns=_compile(
            r"require\s*\(\s*['\"`]koa['\"`]\s*\)",
            r"require\s*\(\s*['\"`]@?koa/router['\"`]\s*\)",
            r"import.*from\s+['\"`]koa['\"`]",
            r"import.*from\s+['\"`]@?koa/router['\"`]",
        ),
        route_patterns=_compile(
            *_VERB_CALLS,
            r"router\.(get|post|put|patch|delete)\s*\(",
        ),
        import_weight=0.9,
        route_weight=0.6,
    )
)

GENERIC_API_PATTERNS = _compile(
    r"['\"`]/api/",
    r"['\"`]/v\d+/",
    r"['\"`]/users?/",
    r"['\"`]/auth/",
    r"['\"`]/login",
    r"['\"`]/register",
    r"['\"`]/logout",
    r"res\.json\s*\(",
    r"res\.send\s*\(",
    r"response\.json\s*\(",
    r"reply\.send\s*\(",
    r"ctx\.body\s*=",
)

TEST_INDICATORS = _compile(
    r"\bdescribe\s*\(",
    r"\bit\s*\(\s*['\"`]",
    r"\btest\s*\(\s*['\"`]",
    r"\bexpect\s*\(",
    r"\bbeforeEach\s*\(",
    r"\bafterEach\s*\(",
    r"\bbeforeAll\s*\(",
    r"\bafterAll\s*\(",
    r"\bjest\.",
    r"\bsinon\.",
    r"require\s*\(\s*['\"`]chai['\"`]\s*\)|from\s+['\"`]chai['\"`]",
    r"require\s*\(\s*['\"`]supertest['\"`]\s*\)|from\s+['\"`]supertest['\"`]",
)

_MANIFEST_NAME_VERSION = re.compile(r"['\"]name['\"]\s*:[\s\S]*['\"]version['\"]\s*:")
_MANIFEST_KEYS = re.compile(r"['\"](dependencies|devDependencies|peerDependencies|scripts)['\"]\s*:\s*\{")
_OBJECT_LITERAL_FILE = re.compile(r"^\s*(\{|module\.exports\s*=\s*\{|export\s+default\s+\{)")

BUILD_TOOL_KEYWORDS = _compile(
    r"\bwebpack\b",
    r"\brollup\b",
    r"\bbabel\b",
    r"\beslint\b",
    r"\bvite\b",
    r"\bpresets\s*:",
    r"\bplugins\s*:",
    r"\bloaders?\b",
    r"\bentry\s*:",
    r"\boutput\s*:",
    r"\bdevServer\b",
)

MIN_FRAMEWORK_SCORE = 0.5
GENERIC_FALLBACK_THRESHOLD = 2


def looks_like_test(content: str) -> bool:
    hits = sum(1 for p in TEST_INDICATORS if p.search(content))
    return hits >= 2


def looks_like_config(content: str) -> bool:
    if _OBJECT_LITERAL_FILE.search(content) and (
        _MANIFEST_NAME_VERSION.search(content) or _MANIFEST_KEYS.search(content)
    ):
        return True
    keywords = sum(1 for p in BUILD_TOOL_KEYWORDS if p.search(content))
    return keywords >= 3


def score_framework(content: str, signature: FrameworkSignature) -> FrameworkScore:
    score = 0.0
    route_occurrences = 0
    detected: list[str] = []

    if any(p.search(content) for p in signature.import_patterns):
        score += signature.import_weight
        detected.append(f"{signature.id}_import")

    for pattern in signature.route_patterns:
        n = len(pattern.findall(content))
        if n:
            route_occurrences += n
            # diminishing returns past three repetitions
            score += signature.route_weight * min(n, 3)
            if f"{signature.id}_routes" not in detected:
                detected.append(f"{signature.id}_routes")

    api_hits = sum(1 for p in GENERIC_API_PATTERNS if p.search(content))
    if api_hits:
        score += min(api_hits * 0.1, 0.3)
        detected.append("api_patterns")

    return FrameworkScore(
        framework=signature.id,
        score=score,
        route_occurrences=route_occurrences,
        detected_patterns=tuple(detected),
    )


def _pick_best(best: Optional[FrameworkScore], current: FrameworkScore) -> Optional[FrameworkScore]:
    # strict '>' keeps the framework examined first on ties
    if current.score <= 0:
        return best
    if best is None or current.score > best.score:
        return current
    return best


def classify_content(content: str, frameworks: Iterable[str] | None = None, path: str = "") -> Classification:
    """
    Two tiers: framework-specific scoring, then a framework-agnostic count of
    API-shaped indicators when no framework clears.
    """
    if looks_like_test(content):
        return _rejected(path, "test-file")
    if looks_like_config(content):
        return _rejected(path, "config-file")

    ids = list(frameworks) if frameworks is not None else registered_frameworks()
    scores = [score_framework(content, _REGISTRY[fid]) for fid in ids if fid in _REGISTRY]
    best = reduce(_pick_best, scores, None)

    if best is not None:
        has_routes = best.route_occurrences > 0 or best.score > MIN_FRAMEWORK_SCORE
        if has_routes:
            return Classification(
                path=path,
                framework=best.framework,
                confidence=min(best.score, 1.0),
                route_occurrences=best.route_occurrences,
                has_routes=True,
                detected_patterns=best.detected_patterns,
            )

    generic = sum(len(p.findall(content)) for p in GENERIC_API_PATTERNS)
    if generic > GENERIC_FALLBACK_THRESHOLD:
        return Classification(
            path=path,
            framework="unknown",
            confidence=min(generic * 0.1, 0.5),
            route_occurrences=generic,
            has_routes=True,
            detected_patterns=("generic_routes",),
        )

    if best is not None:
        return Classification(
            path=path,
            framework=best.framework,
            confidence=min(best.score, 1.0),
            route_occurrences=best.route_occurrences,
            has_routes=False,
            reason="no-routes",
            detected_patterns=best.detected_patterns,
        )
    return _rejected(path, "no-routes")


def classify_file(
    candidate: CandidateFile | str, config: ScanConfig | None = None
) -> tuple[Classification, Optional[str]]:
    """Classify a file on disk. Returns the classification and the text that was read."""
    config = config or ScanConfig()
    path = candidate.path if isinstance(candidate, CandidateFile) else str(candidate)
    content = read_source(path, config.effective_max_file_size())
    if content is None:
        return _rejected(path, "unreadable"), None
    classification = classify_content(content, config.frameworks, path=path)
    logger.debug(
        "classified %s framework=%s confidence=%.2f routes=%d",
        path,
        classification.framework,
        classification.confidence,
        classification.route_occurrences,
    )
    return classification, content


def _rejected(path: str, reason: str) -> Classification:
    return Classification(
        path=path,
        framework=None,
        confidence=0.0,
        route_occurrences=0,
        has_routes=False,
        reason=reason,
    )
