"""Shared fixtures and helpers for tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from codex_explain.models import EntityMetadata

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# FakeProvider: in-process explanation provider
# ---------------------------------------------------------------------------


class FakeProvider:
    """Records every request; ``fail_on`` names entities whose requests raise."""

    def __init__(
        self,
        model_id: str = "fake-model",
        prompt_version: str = "v1",
        fail_on: Callable[[EntityMetadata], bool] | None = None,
    ) -> None:
        self.model_id = model_id
        self.prompt_version = prompt_version
        self.fail_on = fail_on
        self.calls: list[EntityMetadata] = []

    async def explain(self, metadata: EntityMetadata) -> str:
        self.calls.append(metadata)
        if self.fail_on is not None and self.fail_on(metadata):
            raise RuntimeError(f"provider rejected {metadata.name}")
        return f"{metadata.kind} {metadata.name} explained"

    @property
    def explained_names(self) -> list[str]:
        return [call.name for call in self.calls]


def write_tree(root: Path, files: dict[str, str]) -> Path:
    for rel, content in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return root


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    """A small mixed Python/TypeScript project."""
    return write_tree(
        tmp_path,
        {
            "app/__init__.py": "",
            "app/service.py": (
                "from app.util import slugify\n"
                "\n"
                "\n"
                "def create(title: str) -> str:\n"
                "    return slugify(title)\n"
                "\n"
                "\n"
                "class Store:\n"
                "    def save(self, item):\n"
                "        return item\n"
            ),
            "app/util.py": "def slugify(value: str) -> str:\n    return value.lower().replace(' ', '-')\n",
            "web/api.ts": (
                "import { helper } from './helper';\n"
                "\n"
                "export function handle(input: string): string {\n"
                "  return helper(input);\n"
                "}\n"
            ),
            "web/helper.ts": "export const helper = (value: string) => value.trim();\n",
            "web/api.test.ts": "import { handle } from './api';\n",
            "README.md": "# sample\n",
        },
    )
