from __future__ import annotations

import re

from routescribe.domain.models import BODY_METHODS, Analysis, Examples, Parameter, Route

_VERSION_SEGMENT = re.compile(r"^v\d+$", re.IGNORECASE)
_ES_ENDINGS = ("s", "x", "z", "ch", "sh")


def _is_param_segment(seg: str) -> bool:
    return seg.startswith(":") or (seg.startswith("{") and seg.endswith("}")) or seg == "*"


def static_segments(path: str) -> list[str]:
    return [seg for seg in path.split("/") if seg and not _is_param_segment(seg)]


def resource_token(path: str) -> str:
    """Last non-parameter segment of a route path, e.g. /users/:id -> users."""
    segments = static_segments(path)
    return segments[-1] if segments else "resource"


def pluralize(word: str) -> str:
    lowered = word.lower()
    if lowered.endswith("s"):
        return word
    if lowered.endswith("y") and len(word) > 1 and lowered[-2] not in "aeiou":
        return word[:-1] + "ies"
    if lowered.endswith(_ES_ENDINGS):
        return word + "es"
    return word + "s"


def singularize(word: str) -> str:
    lowered = word.lower()
    if lowered.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if lowered.endswith(("sses", "xes", "zes", "ches", "shes")):
        return word[:-2]
    if lowered.endswith("s") and not lowered.endswith("ss") and len(word) > 1:
        return word[:-1]
    return word


def infer_tag(path: str) -> str:
    for seg in static_segments(path):
        if seg.lower() == "api" or _VERSION_SEGMENT.match(seg):
            continue
        return seg[:1].upper() + seg[1:]
    return "API"


def default_summary(route: Route) -> str:
    resource = resource_token(route.path)
    one = singularize(resource)
    summaries = {
        "GET": f"Get {one}" if route.has_id_param else f"List {pluralize(resource)}",
        "POST": f"Create {one}",
        "PUT": f"Update {one}",
        "PATCH": f"Update {one}",
        "DELETE": f"Delete {one}",
    }
    return summaries.get(route.method, f"{route.method} {resource}")


def default_description(route: Route) -> str:
    resource = resource_token(route.path)
    one = singularize(resource)
    descriptions = {
        "GET": f"Retrieve a specific {one} by ID" if route.has_id_param else f"Retrieve a list of {pluralize(resource)}",
        "POST": f"Create a new {one}",
        "PUT": f"Update an existing {one}",
        "PATCH": f"Partially update an existing {one}",
        "DELETE": f"Delete a {one}",
    }
    return descriptions.get(route.method, f"Perform {route.method} operation on {resource}")


def default_request_schema(route: Route) -> dict | None:
    if route.method not in BODY_METHODS:
        return None
    return {
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Name field"},
            "id": {"type": "string", "description": "Identifier"},
        },
        "required": ["name"],
    }


def _item_schema() -> dict:
    return {
        "type": "object",
        "properties": {
            "id": {"type": "string", "description": "Unique identifier"},
            "name": {"type": "string", "description": "Name"},
            "createdAt": {"type": "string", "format": "date-time"},
        },
    }


def is_collection_get(route: Route) -> bool:
    return route.method == "GET" and not route.has_id_param


def default_response_schema(route: Route) -> dict:
    if is_collection_get(route):
        return {"type": "array", "items": _item_schema()}
    return _item_schema()


def default_status_codes(route: Route) -> dict[str, str]:
    codes: dict[str, str] = {}
    if route.method == "POST":
        codes["201"] = "Created successfully"
    elif route.method == "DELETE":
        codes["204"] = "Deleted successfully"
    else:
        codes["200"] = "Success"
    codes["400"] = "Bad request"
    if route.has_id_param:
        codes["404"] = "Not found"
    codes["500"] = "Internal server error"
    return codes


def default_parameters(route: Route) -> list[Parameter]:
    return [
        Parameter(
            name=p.name,
            location=p.location,
            type=p.type,
            required=p.required,
            description=f"{p.name} identifier",
        )
        for p in route.parameters
    ]


def default_examples(route: Route) -> Examples:
    request = {"name": "Example name"} if route.method in BODY_METHODS else {}
    if is_collection_get(route):
        response = [{"id": "1", "name": "Example item"}]
    else:
        response = {"id": "1", "name": "Example item"}
    return Examples(request=request, response=response)


def template_analysis(route: Route) -> Analysis:
    """Deterministic analysis built from the verb and the shape of the path."""
    return Analysis(
        summary=default_summary(route),
        description=route.leading_comment or default_description(route),
        tags=[infer_tag(route.path)],
        parameters=default_parameters(route),
        request_schema=default_request_schema(route),
        response_schema=default_response_schema(route),
        status_codes=default_status_codes(route),
        examples=default_examples(route),
    )
