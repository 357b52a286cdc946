from typing import Protocol

from codex_explain.models import EntityMetadata


class ExplanationProvider(Protocol):
    model_id: str
    prompt_version: str

    async def explain(self, metadata: EntityMetadata) -> str: ...
