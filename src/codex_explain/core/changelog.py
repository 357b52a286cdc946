from collections.abc import Mapping

from codex_explain.models import CacheSnapshot, ChangelogRecord


def build_changelog(current_entity_hashes: Mapping[str, str], previous: CacheSnapshot | None) -> ChangelogRecord:
    """Diff the current entity ids against the last successful run.

    Ids embed the entity source, so an edit shows up as one addition plus one
    removal. ``changed`` only fills when an id survives with a different
    recorded digest.
    """
    baseline = previous.last_successful_snapshot if previous else None
    if baseline is None:
        added = list(current_entity_hashes)
        return ChangelogRecord(
            added_entities=added,
            removed_entities=[],
            changed_entities=[],
            summary_text=f"Initial snapshot: {len(added)} entities analyzed.",
        )

    previous_hashes = baseline.entity_hashes
    previous_ids = list(dict.fromkeys([*baseline.entity_ids, *previous_hashes]))
    previous_id_set = set(previous_ids)

    added = [entity_id for entity_id in current_entity_hashes if entity_id not in previous_id_set]
    removed = [entity_id for entity_id in previous_ids if entity_id not in current_entity_hashes]
    changed = [
        entity_id
        for entity_id, content_digest in current_entity_hashes.items()
        if entity_id in previous_hashes and previous_hashes[entity_id] != content_digest
    ]

    return ChangelogRecord(
        added_entities=added,
        removed_entities=removed,
        changed_entities=changed,
        summary_text=f"Changed since last successful run: +{len(added)} / -{len(removed)} / ~{len(changed)}",
    )
