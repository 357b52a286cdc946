"""Tests for the changelog builder."""

from __future__ import annotations

from codex_explain.core.changelog import build_changelog
from codex_explain.models import CacheSnapshot, LastSuccessfulSnapshot


def _previous(entity_hashes: dict[str, str]) -> CacheSnapshot:
    return CacheSnapshot(
        version=1,
        snapshot_digest="x",
        generated_at="2024-01-01T00:00:00+00:00",
        entity_hashes=entity_hashes,
        last_successful_snapshot=LastSuccessfulSnapshot(
            entity_hashes=entity_hashes,
            entity_ids=list(entity_hashes),
        ),
    )


def test_first_run_reports_everything_added() -> None:
    changelog = build_changelog({"e1": "h1", "e2": "h2", "e3": "h3"}, None)

    assert changelog.added_entities == ["e1", "e2", "e3"]
    assert changelog.removed_entities == []
    assert changelog.changed_entities == []
    assert changelog.summary_text == "Initial snapshot: 3 entities analyzed."


def test_snapshot_without_baseline_counts_as_first_run() -> None:
    previous = CacheSnapshot(version=1, snapshot_digest="x", generated_at="t")
    changelog = build_changelog({"e1": "h1"}, previous)
    assert changelog.summary_text == "Initial snapshot: 1 entities analyzed."


def test_unchanged_run_is_empty() -> None:
    changelog = build_changelog({"e1": "h1"}, _previous({"e1": "h1"}))

    assert changelog.added_entities == []
    assert changelog.removed_entities == []
    assert changelog.changed_entities == []
    assert changelog.summary_text == "Changed since last successful run: +0 / -0 / ~0"


def test_edit_shows_as_add_and_remove() -> None:
    changelog = build_changelog({"e1": "h1", "e2-new": "h2b"}, _previous({"e1": "h1", "e2": "h2"}))

    assert changelog.added_entities == ["e2-new"]
    assert changelog.removed_entities == ["e2"]
    assert changelog.changed_entities == []
    assert changelog.summary_text == "Changed since last successful run: +1 / -1 / ~0"


def test_same_id_with_new_digest_is_changed() -> None:
    changelog = build_changelog({"e1": "h1-new"}, _previous({"e1": "h1"}))

    assert changelog.added_entities == []
    assert changelog.removed_entities == []
    assert changelog.changed_entities == ["e1"]


def test_removed_follows_previous_order() -> None:
    changelog = build_changelog({}, _previous({"b": "1", "a": "2", "c": "3"}))
    assert changelog.removed_entities == ["b", "a", "c"]


def test_added_follows_current_order() -> None:
    changelog = build_changelog({"z": "1", "y": "2", "keep": "3"}, _previous({"keep": "3"}))
    assert changelog.added_entities == ["z", "y"]
