from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from openai import APIError, AsyncOpenAI
from pydantic import ValidationError

from routescribe.config import GenerativeSettings
from routescribe.domain.models import BODY_METHODS, Analysis, Diagnostic, Examples, Parameter, Route
from routescribe.errors import AnalysisParseError
from routescribe.synth.repair import parse_analysis_payload
from routescribe.synth.templates import template_analysis

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert API documentation generator. You MUST respond with ONLY a valid JSON object, no markdown, no explanations, no backticks.

Your response must be a single JSON object in this exact format:
{
  "summary": "Brief description",
  "description": "Detailed description",
  "requestSchema": {
    "type": "object",
    "properties": {},
    "required": []
  },
  "responseSchema": {
    "type": "object",
    "properties": {}
  },
  "parameters": [],
  "tags": ["TagName"],
  "examples": {
    "request": {},
    "response": {}
  },
  "statusCodes": {
    "200": "Success description"
  }
}

CRITICAL: Return ONLY the JSON object. No text before or after. No markdown formatting."""

_STATUS_CODE = re.compile(r"^[1-5]\d\d$")


class CompletionClient(Protocol):
    async def complete(self, system: str, user: str) -> str: ...


class OpenAICompatibleClient:
    """Chat-completions client for any OpenAI-compatible endpoint (Groq by default)."""

    def __init__(self, settings: GenerativeSettings):
        self.settings = settings
        self._client = AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout_s,
            max_retries=0,  # retries are ours
        )

    async def complete(self, system: str, user: str) -> str:
        cc = await self._client.chat.completions.create(
            model=self.settings.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )
        text = (cc.choices[0].message.content or "") if cc.choices else ""
        return text.strip()


def build_prompt(route: Route) -> str:
    lines = [
        "Analyze this API route:",
        "",
        f"Method: {route.method}",
        f"Path: {route.path}",
    ]
    if route.parameters:
        lines.append("Path parameters: " + ", ".join(p.name for p in route.parameters))
    if route.middleware:
        lines.append("Middleware: " + ", ".join(route.middleware))
    if route.leading_comment:
        lines.append(f"Source comment: {route.leading_comment}")
    if route.handler_name:
        lines.append(f"Handler reference: {route.handler_name}")
    lines += [
        "Handler Code:",
        route.handler_source or "No code available",
        "",
        "Generate API documentation focusing on:",
        "1. What this endpoint actually does",
        "2. Expected request format",
        "3. Response format",
        "4. HTTP status codes used",
        "5. Realistic examples",
        "",
        "Return analysis as JSON only.",
    ]
    return "\n".join(lines)


def _nonempty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _parameters(value: Any) -> Optional[list[Parameter]]:
    if not isinstance(value, list):
        return None
    out = []
    for item in value:
        if not isinstance(item, dict):
            continue
        try:
            out.append(Parameter.model_validate(item))
        except ValidationError:
            continue
    return out


def _status_codes(value: Any) -> Optional[dict[str, str]]:
    if not isinstance(value, dict):
        return None
    out = {}
    for code, desc in value.items():
        code = str(code).strip()
        if _STATUS_CODE.match(code) and isinstance(desc, str) and desc.strip():
            out[code] = desc.strip()
    return out or None


def merge_analysis(payload: dict[str, Any], baseline: Analysis, route: Route) -> Analysis:
    """
    Refine the template baseline with whatever fields of the model payload
    are valid. The result is always complete.
    """
    summary = _nonempty_str(payload.get("summary")) or baseline.summary
    description = _nonempty_str(payload.get("description")) or baseline.description

    tags = payload.get("tags")
    if isinstance(tags, list) and tags and all(isinstance(t, str) and t.strip() for t in tags):
        tags = [t.strip() for t in tags]
    else:
        tags = list(baseline.tags)

    parameters = _parameters(payload.get("parameters"))
    if parameters is None:
        parameters = list(baseline.parameters)
    names = {p.name for p in parameters}
    for p in baseline.parameters:
        if p.name not in names:
            parameters.append(p)

    request_schema = payload.get("requestSchema", baseline.request_schema)
    if not isinstance(request_schema, dict) or not request_schema:
        request_schema = baseline.request_schema
    if route.method not in BODY_METHODS:
        request_schema = None

    response_schema = payload.get("responseSchema")
    if not isinstance(response_schema, dict) or not response_schema:
        response_schema = baseline.response_schema

    status_codes = _status_codes(payload.get("statusCodes")) or dict(baseline.status_codes)

    examples = baseline.examples
    raw_examples = payload.get("examples")
    if isinstance(raw_examples, dict):
        examples = Examples(
            request=raw_examples.get("request", baseline.examples.request),
            response=raw_examples.get("response", baseline.examples.response),
        )

    return Analysis(
        summary=summary,
        description=description,
        tags=tags,
        parameters=parameters,
        request_schema=request_schema,
        response_schema=response_schema,
        status_codes=status_codes,
        examples=examples,
    )


@dataclass(frozen=True)
class SynthesisOutcome:
    analysis: Analysis
    strategy: str
    diagnostics: list[Diagnostic] = field(default_factory=list)


class TemplateSynthesizer:
    strategy = "template"

    async def synthesize(self, route: Route) -> SynthesisOutcome:
        return SynthesisOutcome(analysis=template_analysis(route), strategy=self.strategy)


class GenerativeSynthesizer:
    """
    Ask the completion service for an analysis; retry with linear backoff,
    then fall back to the template analysis. Never raises.
    """

    strategy = "generative"

    def __init__(self, client: CompletionClient, settings: GenerativeSettings | None = None):
        self.client = client
        self.settings = settings or GenerativeSettings()

    async def _attempt(self, route: Route, baseline: Analysis) -> Analysis:
        text = await asyncio.wait_for(
            self.client.complete(SYSTEM_PROMPT, build_prompt(route)),
            timeout=self.settings.timeout_s,
        )
        payload = parse_analysis_payload(text)
        return merge_analysis(payload, baseline, route)

    async def synthesize(self, route: Route) -> SynthesisOutcome:
        baseline = template_analysis(route)
        last_error: Optional[Exception] = None

        for attempt in range(1, self.settings.max_attempts + 1):
            try:
                analysis = await self._attempt(route, baseline)
                return SynthesisOutcome(analysis=analysis, strategy=self.strategy)
            except (APIError, TimeoutError, asyncio.TimeoutError, OSError, AnalysisParseError) as e:
                last_error = e
                logger.debug(
                    "Analysis attempt %d/%d failed for %s %s: %s",
                    attempt,
                    self.settings.max_attempts,
                    route.method,
                    route.path,
                    e,
                )
            if attempt < self.settings.max_attempts:
                await asyncio.sleep(self.settings.backoff_seconds * attempt)

        logger.warning("AI analysis failed for %s %s, using template: %s", route.method, route.path, last_error)
        return SynthesisOutcome(
            analysis=baseline,
            strategy="template",
            diagnostics=[
                Diagnostic(
                    stage="synthesize",
                    code="generative-fallback",
                    message=f"{route.method} {route.path}: {last_error}",
                    path=route.source_file or None,
                )
            ],
        )
