from collections import Counter
from collections.abc import Iterable

from codex_explain.core.hashing import composite_digest, digest
from codex_explain.models import Entity, RawEntity, Span


def make_entity_id(file_path: str, name: str, kind: str, span: Span, raw_source: str) -> str:
    return composite_digest(file_path, name, kind, span.start_line, span.end_line, raw_source)


def _synthetic_base_name(raw: RawEntity) -> str:
    if raw.role:
        return raw.role
    return f"<anonymous {raw.kind}>"


def _assign_names(raw_entities: list[RawEntity]) -> list[str]:
    """Give anonymous constructs a deterministic name; repeats get a ``#n`` suffix."""
    bases = [raw.name or _synthetic_base_name(raw) for raw in raw_entities]
    anonymous_totals = Counter(base for base, raw in zip(bases, raw_entities, strict=True) if not raw.name)
    seen: Counter[str] = Counter()
    names: list[str] = []
    for base, raw in zip(bases, raw_entities, strict=True):
        if raw.name or anonymous_totals[base] == 1:
            names.append(base)
            continue
        seen[base] += 1
        names.append(f"{base} #{seen[base]}")
    return names


def build_entities(file_path: str, raw_entities: Iterable[RawEntity]) -> list[Entity]:
    """Turn extractor output for one file into identified entities, in extractor order.

    Members of a container (methods of a class) take the container's exported
    flag. Byte-identical duplicates of the same declaration share an id.
    """
    raws = list(raw_entities)
    names = _assign_names(raws)

    exported_by_container: dict[str, bool] = {}
    for raw, name in zip(raws, names, strict=True):
        if raw.container is None:
            exported_by_container.setdefault(name, raw.exported)

    entities: list[Entity] = []
    for raw, name in zip(raws, names, strict=True):
        exported = raw.exported
        if raw.container is not None:
            exported = exported_by_container.get(raw.container, raw.exported)
        entities.append(
            Entity(
                id=make_entity_id(file_path, name, raw.kind, raw.span, raw.raw_source),
                file_path=file_path,
                name=name,
                kind=raw.kind,
                exported=exported,
                span=raw.span,
                signature=raw.signature,
                content_digest=digest(raw.raw_source),
                raw_source=raw.raw_source,
            )
        )
    return entities
