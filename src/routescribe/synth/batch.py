from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from routescribe.domain.models import Diagnostic, Route, RouteAnalysis
from routescribe.synth.generative import SynthesisOutcome
from routescribe.synth.templates import template_analysis

logger = logging.getLogger(__name__)


class Synthesizer(Protocol):
    strategy: str

    async def synthesize(self, route: Route) -> SynthesisOutcome: ...


@dataclass(frozen=True)
class BatchResult:
    results: list[RouteAnalysis] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)


def _cancelled(route: Route) -> SynthesisOutcome:
    return SynthesisOutcome(
        analysis=template_analysis(route),
        strategy="template",
        diagnostics=[
            Diagnostic(
                stage="synthesize",
                code="cancelled",
                message=f"{route.method} {route.path}: run stopped before analysis",
                path=route.source_file or None,
                level="info",
            )
        ],
    )


async def synthesize_routes(
    routes: Sequence[Route],
    synthesizer: Synthesizer,
    batch_size: int = 3,
    request_delay: float = 0.5,
    batch_delay: float = 1.0,
    stop_event: Optional[asyncio.Event] = None,
) -> BatchResult:
    """
    Analyze routes in small batches. Requests inside a batch are staggered by
    request_delay; batches are separated by batch_delay. Results keep the
    order of `routes`. Once stop_event is set no new request is issued and the
    remaining routes get template analyses.
    """
    outcomes: list[Optional[SynthesisOutcome]] = [None] * len(routes)

    async def run_one(slot: int, offset: int) -> None:
        if offset and request_delay:
            await asyncio.sleep(request_delay * offset)
        route = routes[slot]
        if stop_event is not None and stop_event.is_set():
            outcomes[slot] = _cancelled(route)
            return
        try:
            outcomes[slot] = await synthesizer.synthesize(route)
        except Exception as e:
            logger.exception("Synthesizer crashed on %s %s", route.method, route.path)
            outcomes[slot] = SynthesisOutcome(
                analysis=template_analysis(route),
                strategy="template",
                diagnostics=[
                    Diagnostic(
                        stage="synthesize",
                        code="synthesizer-error",
                        message=f"{route.method} {route.path}: {e}",
                        path=route.source_file or None,
                    )
                ],
            )

    for start in range(0, len(routes), batch_size):
        if stop_event is not None and stop_event.is_set():
            break
        batch = range(start, min(start + batch_size, len(routes)))
        await asyncio.gather(*(run_one(slot, i) for i, slot in enumerate(batch)))
        logger.debug("analyzed routes %d-%d of %d", batch.start + 1, batch.stop, len(routes))
        if batch.stop < len(routes) and batch_delay:
            await asyncio.sleep(batch_delay)

    results: list[RouteAnalysis] = []
    diagnostics: list[Diagnostic] = []
    for route, outcome in zip(routes, outcomes):
        if outcome is None:
            outcome = _cancelled(route)
        results.append(RouteAnalysis(route=route, analysis=outcome.analysis, strategy=outcome.strategy))
        diagnostics.extend(outcome.diagnostics)
    return BatchResult(results=results, diagnostics=diagnostics)


def template_results(routes: Sequence[Route]) -> BatchResult:
    """Synchronous template-only path, no event loop needed."""
    return BatchResult(
        results=[RouteAnalysis(route=r, analysis=template_analysis(r)) for r in routes]
    )
