from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EntityKind = Literal[
    "function",
    "class",
    "method",
    "component",
    "interface",
    "type",
    "enum",
    "const",
    "route",
    "module",
]

ExplanationStatus = Literal["ok", "failed", "cached"]
ErrorScope = Literal["config", "discovery", "parse", "llm", "cache"]


class CamelModel(BaseModel):
    """Base for records serialized with camelCase keys (cache file, report)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileRecord(CamelModel):
    path: str
    digest: str
    absolute_path: str = Field(default="", exclude=True)
    content: str = Field(default="", exclude=True, repr=False)


class Span(CamelModel):
    start_line: int
    end_line: int


class RawEntity(BaseModel):
    """Extractor output for one declaration, before identity assignment."""

    name: str | None
    kind: EntityKind
    exported: bool = False
    span: Span
    raw_source: str
    signature: str | None = None
    container: str | None = None
    role: str | None = None


class ExtractionResult(BaseModel):
    entities: list[RawEntity] = Field(default_factory=list)
    imports: list[str] = Field(default_factory=list)
    exports: list[str] = Field(default_factory=list)


class Explanation(CamelModel):
    text: str = ""
    status: ExplanationStatus = "ok"
    error_message: str | None = None


class ExternalResult(CamelModel):
    text: str
    status: Literal["ok", "failed"]
    error_message: str | None = None


class Entity(CamelModel):
    id: str
    file_path: str
    name: str
    kind: EntityKind
    exported: bool
    span: Span
    signature: str | None = None
    content_digest: str
    raw_source: str = Field(repr=False)
    explanation: Explanation = Field(default_factory=Explanation)
    source_url: str = ""


class EntityMetadata(BaseModel):
    """What an explanation provider gets to see about an entity."""

    file_path: str
    kind: EntityKind
    name: str
    exported: bool
    signature: str | None = None
    snippet: str

    @classmethod
    def from_entity(cls, entity: Entity) -> "EntityMetadata":
        return cls(
            file_path=entity.file_path,
            kind=entity.kind,
            name=entity.name,
            exported=entity.exported,
            signature=entity.signature,
            snippet=entity.raw_source,
        )


class LastSuccessfulSnapshot(CamelModel):
    entity_hashes: dict[str, str] = Field(default_factory=dict)
    entity_ids: list[str] = Field(default_factory=list)


class CacheSnapshot(CamelModel):
    version: int
    snapshot_digest: str
    generated_at: str
    file_hashes: dict[str, str] = Field(default_factory=dict)
    entity_hashes: dict[str, str] = Field(default_factory=dict)
    external_results: dict[str, ExternalResult] = Field(default_factory=dict)
    extras: dict[str, Any] = Field(default_factory=dict)
    last_successful_snapshot: LastSuccessfulSnapshot | None = None


class ChangelogRecord(CamelModel):
    added_entities: list[str]
    removed_entities: list[str]
    changed_entities: list[str]
    summary_text: str


class DependencyEdge(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")


class DependencyGraph(CamelModel):
    nodes: list[str]
    edges: list[DependencyEdge]
    truncated: bool
    omitted_node_count: int


class FileSummary(CamelModel):
    path: str
    imports: list[str] = Field(default_factory=list)
    exports: list[str] = Field(default_factory=list)
    source_url: str = ""


class RunError(CamelModel):
    scope: ErrorScope
    message: str
    entity_id: str | None = None
    file_path: str | None = None
