"""Durable snapshot of file hashes, entity hashes and explanation results.

The snapshot is read once when a run starts and replaced once when it ends.
Nothing here locks the file: concurrent runs on one tree must be serialized
by the caller.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from codex_explain.core.hashing import canonical_json_digest, composite_digest
from codex_explain.errors import CacheWriteError
from codex_explain.models import CacheSnapshot, Entity, ExternalResult, LastSuccessfulSnapshot

logger = logging.getLogger(__name__)

CACHE_DIR = ".explain"
CACHE_FILE = "cache.json"
CACHE_VERSION = 1


def default_cache_path(root: str | Path) -> Path:
    return Path(root) / CACHE_DIR / CACHE_FILE


def explanation_cache_key(content_digest: str, model: str, prompt_version: str) -> str:
    return composite_digest(content_digest, model, prompt_version)


def read_cache(path: str | Path) -> CacheSnapshot | None:
    """Load the previous snapshot; a missing or unusable file reads as no snapshot."""
    cache_path = Path(path)
    if not cache_path.exists():
        return None

    try:
        raw = cache_path.read_text(encoding="utf-8")
        snapshot = CacheSnapshot.model_validate_json(raw)
    except (OSError, UnicodeDecodeError, ValidationError) as exc:
        logger.warning("Ignoring unreadable cache %s: %s", cache_path, exc)
        return None

    if snapshot.version != CACHE_VERSION:
        logger.warning(
            "Ignoring cache %s with schema version %s (expected %s)", cache_path, snapshot.version, CACHE_VERSION
        )
        return None
    return snapshot


def should_recompute(
    entity: Entity,
    current_file_hashes: Mapping[str, str],
    previous: CacheSnapshot | None,
    force: bool = False,
) -> bool:
    """Decide whether an entity needs a fresh explanation.

    A changed file invalidates every entity in it, even ones whose own bytes
    are unchanged, since extracted spans can shift after unrelated edits.
    """
    if force or previous is None:
        return True

    previous_file_hash = previous.file_hashes.get(entity.file_path)
    if previous_file_hash is None or previous_file_hash != current_file_hashes.get(entity.file_path):
        return True

    return previous.entity_hashes.get(entity.id) != entity.content_digest


def merge_external_results(
    previous: CacheSnapshot | None,
    current: Mapping[str, ExternalResult],
) -> dict[str, ExternalResult]:
    merged: dict[str, ExternalResult] = dict(previous.external_results) if previous else {}
    merged.update(current)
    return merged


def _dump_results(results: Mapping[str, ExternalResult]) -> dict[str, Any]:
    return {key: result.model_dump(mode="json", by_alias=True) for key, result in results.items()}


def write_cache(
    path: str | Path,
    file_hashes: Mapping[str, str],
    entities: Sequence[Entity],
    external_results: Mapping[str, ExternalResult],
    extras: Mapping[str, Any] | None = None,
) -> CacheSnapshot:
    """Replace the snapshot file with the state of the current run.

    The current entities become the baseline the next run's changelog is
    computed against.
    """
    entity_hashes = {entity.id: entity.content_digest for entity in entities}
    snapshot_digest = canonical_json_digest(
        {
            "fileHashes": dict(file_hashes),
            "entityHashes": entity_hashes,
            "externalResults": _dump_results(external_results),
        }
    )
    snapshot = CacheSnapshot(
        version=CACHE_VERSION,
        snapshot_digest=snapshot_digest,
        generated_at=datetime.now(timezone.utc).isoformat(),
        file_hashes=dict(file_hashes),
        entity_hashes=entity_hashes,
        external_results=dict(external_results),
        extras=dict(extras or {}),
        last_successful_snapshot=LastSuccessfulSnapshot(
            entity_hashes=entity_hashes,
            entity_ids=list(dict.fromkeys(entity.id for entity in entities)),
        ),
    )

    cache_path = Path(path)
    payload = json.dumps(snapshot.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)
    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=cache_path.parent, prefix=f".{cache_path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(temp_name, cache_path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise CacheWriteError(f"Cannot write cache {cache_path}: {exc}") from exc

    logger.debug("Wrote cache snapshot %s (%d entities)", cache_path, len(entity_hashes))
    return snapshot
