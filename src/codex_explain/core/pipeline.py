"""One incremental analysis run, from discovery to the new cache snapshot."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from codex_explain.core.cache import (
    default_cache_path,
    explanation_cache_key,
    merge_external_results,
    read_cache,
    should_recompute,
    write_cache,
)
from codex_explain.core.changelog import build_changelog
from codex_explain.core.discovery import discover_files
from codex_explain.core.git import build_source_url
from codex_explain.core.graph import FileRelations, build_dependency_edges, build_graph, resolve_import_target
from codex_explain.core.identity import build_entities
from codex_explain.core.ports.explainer import ExplanationProvider
from codex_explain.core.ports.extractor import EntityExtractor
from codex_explain.core.retry import RetryPolicy, call_with_retry
from codex_explain.errors import ExtractionError
from codex_explain.models import (
    CacheSnapshot,
    ChangelogRecord,
    DependencyEdge,
    DependencyGraph,
    Entity,
    EntityMetadata,
    Explanation,
    ExplanationStatus,
    ExternalResult,
    FileRecord,
    FileSummary,
    RunError,
)

logger = logging.getLogger(__name__)

FAILED_EXPLANATION_TEXT = "Explanation unavailable due to provider error."

ProgressCallback = Callable[[int, int, Entity], None]


@dataclass(frozen=True)
class RunOptions:
    force: bool = False
    max_graph_nodes: int = 50
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    cache_path: Path | None = None
    repo_url: str | None = None
    branch: str = "main"


@dataclass
class RunResult:
    files: list[FileRecord]
    file_summaries: list[FileSummary]
    entities: list[Entity]
    changelog: ChangelogRecord
    edges: list[DependencyEdge]
    graph: DependencyGraph
    errors: list[RunError]
    snapshot: CacheSnapshot

    @property
    def failed_count(self) -> int:
        return sum(1 for entity in self.entities if entity.explanation.status == "failed")

    @property
    def cached_count(self) -> int:
        return sum(1 for entity in self.entities if entity.explanation.status == "cached")

    @property
    def routes(self) -> list[Entity]:
        return [entity for entity in self.entities if entity.kind == "route"]


def _extract_file(
    extractor: EntityExtractor,
    record: FileRecord,
    known_paths: Sequence[str],
    options: RunOptions,
) -> tuple[list[Entity], FileSummary]:
    try:
        extraction = extractor.extract(record.content, record.path)
    except ExtractionError:
        raise
    except Exception as exc:
        raise ExtractionError(record.path, str(exc)) from exc

    entities = build_entities(record.path, extraction.entities)
    for entity in entities:
        entity.source_url = build_source_url(
            options.repo_url, options.branch, entity.file_path, entity.span.start_line, entity.span.end_line
        )
    summary = FileSummary(
        path=record.path,
        imports=[resolve_import_target(record.path, target, known_paths) for target in extraction.imports],
        exports=extraction.exports,
        source_url=build_source_url(options.repo_url, options.branch, record.path),
    )
    return entities, summary


async def _explain_entity(
    entity: Entity,
    provider: ExplanationProvider,
    policy: RetryPolicy,
) -> tuple[ExternalResult, RunError | None]:
    metadata = EntityMetadata.from_entity(entity)
    try:
        text = await call_with_retry(functools.partial(provider.explain, metadata), policy)
    except Exception as exc:
        message = str(exc) or type(exc).__name__
        logger.warning("Explanation failed for %s in %s: %s", entity.name, entity.file_path, message)
        result = ExternalResult(text=FAILED_EXPLANATION_TEXT, status="failed", error_message=message)
        error = RunError(scope="llm", message=message, entity_id=entity.id, file_path=entity.file_path)
        return result, error
    return ExternalResult(text=text, status="ok"), None


async def run_explain(
    root: Path,
    include: Sequence[str],
    exclude: Sequence[str],
    extractor: EntityExtractor,
    provider: ExplanationProvider,
    options: RunOptions | None = None,
    on_progress: ProgressCallback | None = None,
) -> RunResult:
    """Analyze ``root`` and explain entities whose cached explanation is stale or missing.

    Provider failures are recorded per entity and never abort the run;
    discovery, extraction and cache-write failures do.
    """
    options = options or RunOptions()
    cache_path = options.cache_path or default_cache_path(root)

    files = discover_files(root, include, exclude)
    file_hashes = {record.path: record.digest for record in files}
    known_paths = [record.path for record in files]

    entities: list[Entity] = []
    summaries: list[FileSummary] = []
    for record in files:
        file_entities, summary = _extract_file(extractor, record, known_paths, options)
        entities.extend(file_entities)
        summaries.append(summary)

    previous = read_cache(cache_path)
    previous_results = previous.external_results if previous else {}
    current_results: dict[str, ExternalResult] = {}
    errors: list[RunError] = []
    recomputed = 0

    for index, entity in enumerate(entities, start=1):
        if on_progress is not None:
            on_progress(index, len(entities), entity)
        key = explanation_cache_key(entity.content_digest, provider.model_id, provider.prompt_version)
        cached = current_results.get(key) or previous_results.get(key)

        if cached is not None and not should_recompute(entity, file_hashes, previous, options.force):
            status: ExplanationStatus = "failed" if cached.status == "failed" else "cached"
            entity.explanation = Explanation(text=cached.text, status=status, error_message=cached.error_message)
            current_results[key] = cached
            continue

        result, error = await _explain_entity(entity, provider, options.retry_policy)
        recomputed += 1
        entity.explanation = Explanation(text=result.text, status=result.status, error_message=result.error_message)
        current_results[key] = result
        if error is not None:
            errors.append(error)

    entity_hashes = {entity.id: entity.content_digest for entity in entities}
    changelog = build_changelog(entity_hashes, previous)
    edges = build_dependency_edges(FileRelations(summary.path, summary.imports) for summary in summaries)
    graph = build_graph(known_paths, edges, options.max_graph_nodes)

    snapshot = write_cache(
        cache_path,
        file_hashes,
        entities,
        merge_external_results(previous, current_results),
        extras={"model": provider.model_id, "promptVersion": provider.prompt_version},
    )

    logger.info(
        "Analyzed %d file(s), %d entities: %d explained, %d from cache, %d failed",
        len(files),
        len(entities),
        recomputed,
        len(entities) - recomputed,
        len(errors),
    )
    return RunResult(
        files=files,
        file_summaries=summaries,
        entities=entities,
        changelog=changelog,
        edges=edges,
        graph=graph,
        errors=errors,
        snapshot=snapshot,
    )
