from typing import Protocol

from codex_explain.models import ExtractionResult


class EntityExtractor(Protocol):
    def extract(self, content: str, file_path: str) -> ExtractionResult: ...
