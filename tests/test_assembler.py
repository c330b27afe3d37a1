import pytest

from routescribe.config import SpecInfo
from routescribe.domain.models import Route, RouteAnalysis
from routescribe.extractors.js.chunker import path_parameters
from routescribe.spec.assembler import assemble_spec, normalize_path, operation_id
from routescribe.spec.render import render_spec
from routescribe.synth.templates import template_analysis


def pair(method: str, path: str, source_file: str = "src/app.js", line: int = 1, **kw) -> RouteAnalysis:
    r = Route(method=method, path=path, parameters=path_parameters(path), source_file=source_file, line=line, **kw)
    return RouteAnalysis(route=r, analysis=template_analysis(r))


def resolve(doc: dict, ref: dict) -> dict:
    name = ref["$ref"].rsplit("/", 1)[-1]
    return doc["components"]["schemas"][name]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("/users/:id", "/users/{id}"),
        ("users/<id>", "/users/{id}"),
        ("//a//b/", "/a/b"),
        ("/", "/"),
        ("/files/{name}", "/files/{name}"),
    ],
)
def test_normalize_path(raw, expected):
    assert normalize_path(raw) == expected


def test_operation_id():
    assert operation_id("GET", "/users/{id}") == "get_users_by_id"
    assert operation_id("POST", "/") == "post_root"
    assert operation_id("DELETE", "/api/v1/order-items/{itemId}") == "delete_api_v1_order_items_by_itemid"


def test_collection_get_documents_array_response():
    spec = assemble_spec([pair("GET", "/users")])
    doc = spec.document

    op = doc["paths"]["/users"]["get"]
    assert op["summary"] == "List users"
    assert op["parameters"] == []
    schema = resolve(doc, op["responses"]["200"]["content"]["application/json"]["schema"])
    assert schema["type"] == "array"


def test_get_by_id_has_required_path_param_and_404():
    doc = assemble_spec([pair("GET", "/users/:id")]).document

    op = doc["paths"]["/users/{id}"]["get"]
    assert [(p["name"], p["in"], p["required"]) for p in op["parameters"]] == [("id", "path", True)]
    assert "404" in op["responses"]
    assert "requestBody" not in op


def test_identical_request_schemas_are_shared():
    doc = assemble_spec([pair("POST", "/users"), pair("PUT", "/users/:id")]).document

    post_ref = doc["paths"]["/users"]["post"]["requestBody"]["content"]["application/json"]["schema"]
    put_ref = doc["paths"]["/users/{id}"]["put"]["requestBody"]["content"]["application/json"]["schema"]
    assert post_ref == put_ref
    request_schemas = [name for name in doc["components"]["schemas"] if name.endswith("Request")]
    assert request_schemas == ["UserRequest"]


def test_sibling_verbs_share_one_path_item():
    doc = assemble_spec(
        [pair("DELETE", "/users/:id"), pair("GET", "/users/:id"), pair("PUT", "/users/:id")]
    ).document

    assert list(doc["paths"]) == ["/users/{id}"]
    assert list(doc["paths"]["/users/{id}"]) == ["get", "put", "delete"]
    assert "content" not in doc["paths"]["/users/{id}"]["delete"]["responses"]["204"]


def test_duplicate_operation_keeps_last_and_reports():
    first = pair("GET", "/users", source_file="a.js", line=3)
    second = pair("GET", "/users", source_file="b.js", line=9)
    spec = assemble_spec([first, second])

    assert spec.document["paths"]["/users"]["get"]["x-source"] == "b.js:9"
    assert [d.code for d in spec.diagnostics] == ["duplicate-operation"]
    assert spec.summary.total_routes == 2


def test_all_expands_without_overriding_explicit_verbs():
    doc = assemble_spec([pair("ALL", "/health"), pair("GET", "/health", line=5)]).document

    item = doc["paths"]["/health"]
    assert list(item) == ["get", "put", "post", "delete", "patch"]
    assert item["get"]["x-source"] == "src/app.js:5"
    assert item["post"]["x-source"] == "src/app.js:1"


def test_document_metadata_and_extensions():
    info = SpecInfo(title="Shop", version="2.0.0", description="Shop API", base_url="https://shop.test")
    spec = assemble_spec(
        [pair("GET", "/products"), pair("POST", "/orders", middleware=("auth",))],
        info=info,
        frameworks=["express", "express", "koa"],
    )
    doc = spec.document

    assert doc["openapi"] == "3.0.3"
    assert doc["info"] == {"title": "Shop", "version": "2.0.0", "description": "Shop API"}
    assert doc["servers"][0]["url"] == "https://shop.test"
    assert doc["x-totalRoutes"] == 2
    assert doc["x-frameworksDetected"] == ["express", "koa"]
    assert doc["x-httpMethodCounts"] == {"GET": 1, "POST": 1}
    assert doc["x-categoryCounts"] == {"Orders": 1, "Products": 1}
    assert {t["name"]: t["description"] for t in doc["tags"]} == {
        "Orders": "Order management operations",
        "Products": "Product catalog operations",
    }
    assert doc["paths"]["/orders"]["post"]["x-middleware"] == ["auth"]


def test_unknown_tag_gets_generic_description():
    doc = assemble_spec([pair("GET", "/widgets")]).document
    assert doc["tags"] == [{"name": "Widgets", "description": "Widgets operations"}]


def test_assembly_is_deterministic():
    pairs = [pair("GET", "/b"), pair("POST", "/a"), pair("GET", "/a/:id")]
    one = render_spec(assemble_spec(pairs).document, "json")
    two = render_spec(assemble_spec(list(reversed(pairs))).document, "json")
    assert one == two
    assert list(assemble_spec(pairs).document["paths"]) == ["/a", "/a/{id}", "/b"]
