from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "ALL"]

HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "ALL")
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


@dataclass(frozen=True)
class Diagnostic:
    """A warning record produced by a stage instead of raising."""

    stage: str                  # walk | classify | extract | synthesize | assemble
    code: str                   # e.g. unreadable-dir, test-file, parse-error
    message: str
    path: Optional[str] = None
    level: str = "warning"


@dataclass(frozen=True)
class CandidateFile:
    path: str
    size: int
    extension: str


@dataclass(frozen=True)
class Classification:
    path: str
    framework: Optional[str]    # registered id, "unknown" or None
    confidence: float
    route_occurrences: int
    has_routes: bool
    reason: Optional[str] = None
    detected_patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class PathParameter:
    name: str
    location: str = "path"
    type: str = "string"
    required: bool = True


@dataclass(frozen=True)
class Route:
    method: str
    path: str                   # framework syntax, e.g. /users/:id
    parameters: tuple[PathParameter, ...] = ()
    middleware: tuple[str, ...] = ()
    handler_source: Optional[str] = None
    handler_name: Optional[str] = None
    handler_params: tuple[str, ...] = ()
    is_async: bool = False
    source_file: str = ""
    leading_comment: Optional[str] = None
    line: int = 0

    @property
    def has_id_param(self) -> bool:
        return bool(self.parameters)


class Parameter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    location: str = Field(default="path", alias="in")
    type: str = "string"
    required: bool = True
    description: str = ""


class Examples(BaseModel):
    request: Any = Field(default_factory=dict)
    response: Any = Field(default_factory=dict)


class Analysis(BaseModel):
    """Documentation payload for a single route. Always fully populated."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    summary: str
    description: str
    tags: list[str] = Field(default_factory=list)
    parameters: list[Parameter] = Field(default_factory=list)
    request_schema: Optional[dict[str, Any]] = Field(default=None, alias="requestSchema")
    response_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object"}, alias="responseSchema")
    status_codes: dict[str, str] = Field(default_factory=lambda: {"200": "Success"}, alias="statusCodes")
    examples: Examples = Field(default_factory=Examples)


@dataclass(frozen=True)
class RouteAnalysis:
    route: Route
    analysis: Analysis
    strategy: str = "template"  # template | generative


@dataclass(frozen=True)
class ExtractResult:
    routes: list[Route] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
