from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from routescribe.config import GenerativeSettings, ScanConfig, SpecInfo
from routescribe.domain.models import Classification, Diagnostic, Route, RouteAnalysis
from routescribe.errors import ConfigError
from routescribe.extractors.js.chunker import extract_routes_from_source
from routescribe.repo.framework_detector import classify_file, registered_frameworks
from routescribe.repo.scanner import scan_source_files
from routescribe.spec.assembler import SpecDocument, assemble_spec
from routescribe.synth.batch import synthesize_routes, template_results
from routescribe.synth.generative import CompletionClient, GenerativeSynthesizer, OpenAICompatibleClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryResult:
    files_scanned: int
    candidate_files: list[str]
    classifications: list[Classification]
    routes: list[Route]
    diagnostics: list[Diagnostic] = field(default_factory=list)
    # frameworks of files that produced at least one route
    frameworks: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ScanResult:
    spec: SpecDocument
    files_scanned: int
    candidate_files: list[str]
    classifications: list[Classification]
    routes: list[Route]
    analyses: list[RouteAnalysis]
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def frameworks(self) -> list[str]:
        return self.spec.summary.frameworks_detected

    def skipped_summary(self) -> dict[str, int]:
        """How many files were skipped, per reason."""
        counts = Counter(
            c.reason for c in self.classifications if not c.has_routes and c.reason
        )
        counts.update(
            d.code for d in self.diagnostics if d.stage in ("walk", "extract") and d.code != "max-files"
        )
        return dict(sorted(counts.items()))


def validate_run(repo_path: Path, config: ScanConfig, settings: Optional[GenerativeSettings] = None,
                 client: Optional[CompletionClient] = None) -> Path:
    """Raise ConfigError for anything that would make the run meaningless."""
    repo_path = Path(repo_path).expanduser()
    if not repo_path.exists():
        raise ConfigError(f"Repo path does not exist: {repo_path}")
    if not repo_path.is_dir():
        raise ConfigError(f"Repo path is not a directory: {repo_path}")

    unknown = [f for f in config.frameworks if f not in registered_frameworks()]
    if unknown:
        raise ConfigError(f"Unknown framework(s): {', '.join(unknown)}")

    if config.ai_enabled and client is None and not (settings and settings.api_key):
        raise ConfigError("GROQ_API_KEY is required for AI analysis (or disable AI)")
    return repo_path.resolve()


def _rel(path: str, root: Path) -> str:
    return os.path.relpath(path, str(root)).replace(os.sep, "/")


def discover_routes(repo_path: Path, config: ScanConfig | None = None) -> DiscoveryResult:
    """Walk, classify and extract. No synthesis."""
    config = config or ScanConfig()
    repo_path = validate_run(repo_path, config.model_copy(update={"ai_enabled": False}))

    walk = scan_source_files(repo_path, config)
    diagnostics: list[Diagnostic] = list(walk.diagnostics)
    classifications: list[Classification] = []
    candidates: list[str] = []
    routes: list[Route] = []
    frameworks: list[str] = []

    for candidate in walk.files:
        classification, content = classify_file(candidate, config)
        classifications.append(classification)
        if not classification.has_routes or content is None:
            continue

        rel_path = _rel(candidate.path, repo_path)
        candidates.append(rel_path)
        extracted = extract_routes_from_source(content, file_path=rel_path, extension=candidate.extension)
        diagnostics.extend(extracted.diagnostics)
        routes.extend(extracted.routes)
        if extracted.routes and classification.framework is not None:
            frameworks.append(classification.framework)

    logger.info(
        "%d files scanned, %d candidate files, %d routes", len(walk.files), len(candidates), len(routes)
    )
    return DiscoveryResult(
        files_scanned=len(walk.files),
        candidate_files=candidates,
        classifications=classifications,
        routes=routes,
        diagnostics=diagnostics,
        frameworks=frameworks,
    )


async def run_scan_async(
    repo_path: Path,
    config: ScanConfig | None = None,
    info: SpecInfo | None = None,
    settings: Optional[GenerativeSettings] = None,
    client: Optional[CompletionClient] = None,
    stop_event: Optional[asyncio.Event] = None,
    handle_interrupts: bool = False,
) -> ScanResult:
    config = config or ScanConfig()
    if config.ai_enabled and settings is None:
        settings = GenerativeSettings.from_env()
    validate_run(repo_path, config, settings, client)

    if handle_interrupts:
        stop_event = stop_event or asyncio.Event()
        _stop_on_interrupt(stop_event)

    found = discover_routes(repo_path, config)
    diagnostics = list(found.diagnostics)

    if config.ai_enabled and found.routes:
        settings = settings or GenerativeSettings()
        synthesizer = GenerativeSynthesizer(client or OpenAICompatibleClient(settings), settings)
        batch = await synthesize_routes(
            found.routes,
            synthesizer,
            batch_size=settings.batch_size,
            request_delay=settings.request_delay,
            batch_delay=settings.batch_delay,
            stop_event=stop_event,
        )
    else:
        batch = template_results(found.routes)
    diagnostics.extend(batch.diagnostics)

    spec = assemble_spec(batch.results, info=info, frameworks=found.frameworks)
    diagnostics.extend(spec.diagnostics)

    return ScanResult(
        spec=spec,
        files_scanned=found.files_scanned,
        candidate_files=found.candidate_files,
        classifications=found.classifications,
        routes=found.routes,
        analyses=batch.results,
        diagnostics=diagnostics,
    )


def run_scan(
    repo_path: Path,
    config: ScanConfig | None = None,
    info: SpecInfo | None = None,
    settings: Optional[GenerativeSettings] = None,
    client: Optional[CompletionClient] = None,
    stop_event: Optional[asyncio.Event] = None,
    handle_interrupts: bool = False,
) -> ScanResult:
    return asyncio.run(
        run_scan_async(
            repo_path,
            config,
            info=info,
            settings=settings,
            client=client,
            stop_event=stop_event,
            handle_interrupts=handle_interrupts,
        )
    )


def _stop_on_interrupt(stop_event: asyncio.Event) -> None:
    # in-flight requests finish; no new ones are issued
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop_event.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("signal handlers not supported here, Ctrl+C aborts immediately")
