import asyncio
import json

from routescribe.config import GenerativeSettings
from routescribe.domain.models import Route
from routescribe.extractors.js.chunker import path_parameters
from routescribe.synth.generative import GenerativeSynthesizer, build_prompt, merge_analysis
from routescribe.synth.templates import template_analysis

FAST = GenerativeSettings(api_key="test", backoff_seconds=0, timeout_s=5)


class FakeClient:
    """Replays canned answers; exceptions in the list are raised."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = 0
        self.prompts = []

    async def complete(self, system: str, user: str) -> str:
        self.calls += 1
        self.prompts.append(user)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class SlowClient:
    async def complete(self, system: str, user: str) -> str:
        await asyncio.sleep(10)
        return "{}"


def route(method: str, path: str, **kw) -> Route:
    return Route(method=method, path=path, parameters=path_parameters(path), **kw)


def test_build_prompt_includes_route_details():
    r = route(
        "POST",
        "/users/:id/roles",
        middleware=("auth",),
        handler_source="async (req, res) => { res.status(201).json({}) }",
    )
    prompt = build_prompt(r)
    assert "Method: POST" in prompt
    assert "Path: /users/:id/roles" in prompt
    assert "Middleware: auth" in prompt
    assert "res.status(201)" in prompt


def test_build_prompt_without_source():
    assert "No code available" in build_prompt(route("GET", "/users", handler_name="listUsers"))


def test_generative_result_refines_template():
    payload = {
        "summary": "List all active users",
        "description": "Returns users that are not archived",
        "tags": ["Accounts"],
        "responseSchema": {"type": "array", "items": {"type": "object", "properties": {"email": {"type": "string"}}}},
        "statusCodes": {"200": "OK", "401": "Unauthorized"},
        "examples": {"request": {}, "response": [{"email": "a@b.c"}]},
    }
    client = FakeClient(["```json\n" + json.dumps(payload) + "\n```"])
    outcome = asyncio.run(GenerativeSynthesizer(client, FAST).synthesize(route("GET", "/users")))

    a = outcome.analysis
    assert outcome.strategy == "generative"
    assert a.summary == "List all active users"
    assert a.tags == ["Accounts"]
    assert a.status_codes == {"200": "OK", "401": "Unauthorized"}
    assert a.response_schema["items"]["properties"]["email"] == {"type": "string"}
    assert a.request_schema is None
    assert client.calls == 1


def test_invalid_fields_fall_back_to_template_values():
    r = route("DELETE", "/users/:id")
    payload = {
        "summary": "",
        "tags": "Users",
        "requestSchema": {"type": "object"},
        "responseSchema": [],
        "statusCodes": {"ok": "nope"},
        "parameters": [{"name": "force", "in": "query", "required": False}, "garbage"],
    }
    baseline = template_analysis(r)
    merged = merge_analysis(payload, baseline, r)

    assert merged.summary == baseline.summary
    assert merged.tags == baseline.tags
    assert merged.request_schema is None
    assert merged.response_schema == baseline.response_schema
    assert merged.status_codes == baseline.status_codes
    assert [(p.name, p.location) for p in merged.parameters] == [("force", "query"), ("id", "path")]


def test_retries_then_succeeds():
    client = FakeClient([TimeoutError("slow"), "not json at all", '{"summary": "Create a user account"}'])
    outcome = asyncio.run(GenerativeSynthesizer(client, FAST).synthesize(route("POST", "/users")))
    assert client.calls == 3
    assert outcome.analysis.summary == "Create a user account"
    assert outcome.analysis.request_schema == template_analysis(route("POST", "/users")).request_schema


def test_timeouts_on_every_attempt_fall_back_to_template():
    r = route("GET", "/users/:id")
    client = FakeClient([asyncio.TimeoutError(), asyncio.TimeoutError(), asyncio.TimeoutError()])
    outcome = asyncio.run(GenerativeSynthesizer(client, FAST).synthesize(r))

    assert client.calls == 3
    assert outcome.analysis == template_analysis(r)
    assert outcome.strategy == "template"
    assert [d.code for d in outcome.diagnostics] == ["generative-fallback"]


def test_slow_service_is_cut_off_by_timeout():
    settings = GenerativeSettings(api_key="test", backoff_seconds=0, timeout_s=0.01, max_attempts=2)
    r = route("GET", "/users")
    outcome = asyncio.run(GenerativeSynthesizer(SlowClient(), settings).synthesize(r))
    assert outcome.analysis == template_analysis(r)
