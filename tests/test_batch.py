import asyncio

from routescribe.domain.models import Route
from routescribe.synth.batch import synthesize_routes, template_results
from routescribe.synth.generative import SynthesisOutcome
from routescribe.synth.templates import template_analysis


class RecordingSynthesizer:
    strategy = "generative"

    def __init__(self, delays=None, fail_on=()):
        self.delays = delays or {}
        self.fail_on = set(fail_on)
        self.seen = []

    async def synthesize(self, route: Route) -> SynthesisOutcome:
        self.seen.append(route.path)
        await asyncio.sleep(self.delays.get(route.path, 0))
        if route.path in self.fail_on:
            raise RuntimeError("boom")
        analysis = template_analysis(route).model_copy(update={"summary": f"AI {route.path}"})
        return SynthesisOutcome(analysis=analysis, strategy=self.strategy)


def routes(n: int) -> list[Route]:
    return [Route(method="GET", path=f"/r{i}") for i in range(n)]


def test_results_keep_input_order():
    rs = routes(7)
    synth = RecordingSynthesizer(delays={"/r0": 0.03, "/r1": 0.01})
    result = asyncio.run(synthesize_routes(rs, synth, batch_size=3, request_delay=0, batch_delay=0))

    assert [ra.route.path for ra in result.results] == [r.path for r in rs]
    assert [ra.analysis.summary for ra in result.results] == [f"AI {r.path}" for r in rs]
    assert sorted(synth.seen) == sorted(r.path for r in rs)


def test_one_failure_does_not_affect_siblings():
    rs = routes(3)
    synth = RecordingSynthesizer(fail_on={"/r1"})
    result = asyncio.run(synthesize_routes(rs, synth, request_delay=0, batch_delay=0))

    assert result.results[0].analysis.summary == "AI /r0"
    assert result.results[1].analysis == template_analysis(rs[1])
    assert result.results[1].strategy == "template"
    assert result.results[2].analysis.summary == "AI /r2"
    assert [d.code for d in result.diagnostics] == ["synthesizer-error"]


def test_stop_event_prevents_new_requests():
    rs = routes(5)
    synth = RecordingSynthesizer()

    async def go():
        stop = asyncio.Event()
        stop.set()
        return await synthesize_routes(rs, synth, stop_event=stop, request_delay=0, batch_delay=0)

    result = asyncio.run(go())
    assert synth.seen == []
    assert len(result.results) == 5
    assert all(ra.analysis == template_analysis(ra.route) for ra in result.results)
    assert {d.code for d in result.diagnostics} == {"cancelled"}


def test_stop_after_first_batch():
    rs = routes(6)

    class StopAfterFirst(RecordingSynthesizer):
        def __init__(self, stop):
            super().__init__()
            self.stop = stop

        async def synthesize(self, route):
            outcome = await super().synthesize(route)
            self.stop.set()
            return outcome

    async def go():
        stop = asyncio.Event()
        synth = StopAfterFirst(stop)
        result = await synthesize_routes(rs, synth, batch_size=3, request_delay=0, batch_delay=0, stop_event=stop)
        return synth, result

    synth, result = asyncio.run(go())
    assert synth.seen == ["/r0", "/r1", "/r2"]
    assert [ra.strategy for ra in result.results] == ["generative"] * 3 + ["template"] * 3


def test_template_results_are_synchronous():
    rs = routes(2)
    result = template_results(rs)
    assert [ra.analysis for ra in result.results] == [template_analysis(r) for r in rs]
    assert result.diagnostics == []
