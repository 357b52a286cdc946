"""Tests for the watchfiles watcher adapter."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from codex_explain.core.discovery import PathMatcher
from codex_explain.watcher.watchfiles_adapter import WatchfilesWatcher

MATCHER = PathMatcher(["**/*.{py,ts}"], ["**/*.test.ts"])


def _watcher(root: Path, callback: AsyncMock) -> WatchfilesWatcher:
    return WatchfilesWatcher(root, MATCHER, callback, ignore_dirs=[".explain", "explain-output"])


class TestRelevantPaths:
    def test_selected_source_file(self, tmp_path: Path) -> None:
        assert _watcher(tmp_path, AsyncMock())._relevant(str(tmp_path / "src" / "a.py")) == "src/a.py"

    def test_excluded_file(self, tmp_path: Path) -> None:
        assert _watcher(tmp_path, AsyncMock())._relevant(str(tmp_path / "a.test.ts")) is None

    def test_unselected_extension(self, tmp_path: Path) -> None:
        assert _watcher(tmp_path, AsyncMock())._relevant(str(tmp_path / "readme.md")) is None

    def test_ignored_directory(self, tmp_path: Path) -> None:
        assert _watcher(tmp_path, AsyncMock())._relevant(str(tmp_path / "explain-output" / "x.py")) is None

    def test_outside_root(self, tmp_path: Path) -> None:
        assert _watcher(tmp_path / "inner", AsyncMock())._relevant(str(tmp_path / "other.py")) is None


class TestWatchfilesWatcher:
    def test_implements_protocol(self, tmp_path: Path) -> None:
        from codex_explain.core.ports.watcher import SourceWatcher

        watcher: SourceWatcher = _watcher(tmp_path, AsyncMock())
        assert watcher.root == tmp_path
        assert hasattr(watcher, "wait")

    @pytest.mark.asyncio
    async def test_start_creates_task(self, tmp_path: Path) -> None:
        watcher = _watcher(tmp_path, AsyncMock())

        with patch("codex_explain.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _empty_async_iter()
            await watcher.start()
            assert watcher._task is not None
            await watcher.stop()
            assert watcher._task is None

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self, tmp_path: Path) -> None:
        await _watcher(tmp_path, AsyncMock()).stop()

    @pytest.mark.asyncio
    async def test_wait_without_start_returns(self, tmp_path: Path) -> None:
        await _watcher(tmp_path, AsyncMock()).wait()

    @pytest.mark.asyncio
    async def test_double_start_is_noop(self, tmp_path: Path) -> None:
        watcher = _watcher(tmp_path, AsyncMock())

        with patch("codex_explain.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _empty_async_iter()
            await watcher.start()
            task1 = watcher._task
            await watcher.start()
            assert watcher._task is task1
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_callback_receives_selected_relative_paths(self, tmp_path: Path) -> None:
        callback = AsyncMock()
        watcher = _watcher(tmp_path, callback)
        changes = {
            (1, str(tmp_path / "src" / "a.py")),
            (2, str(tmp_path / "notes.txt")),
            (1, str(tmp_path / "web" / "b.ts")),
            (2, str(tmp_path / ".explain" / "cache.py")),
        }

        with patch("codex_explain.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _single_change_iter(changes)
            await watcher.start()
            await asyncio.sleep(0.05)
            await watcher.stop()

        callback.assert_called_once()
        assert callback.call_args[0][0] == {"src/a.py", "web/b.ts"}

    @pytest.mark.asyncio
    async def test_callback_not_called_for_irrelevant_only(self, tmp_path: Path) -> None:
        callback = AsyncMock()
        watcher = _watcher(tmp_path, callback)
        changes = {(1, str(tmp_path / "readme.txt")), (2, str(tmp_path / ".explain" / "cache.json"))}

        with patch("codex_explain.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _single_change_iter(changes)
            await watcher.start()
            await asyncio.sleep(0.05)
            await watcher.stop()

        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_stop_watching(self, tmp_path: Path) -> None:
        callback = AsyncMock(side_effect=[RuntimeError("boom"), None])
        watcher = _watcher(tmp_path, callback)
        batches = [{(1, str(tmp_path / "a.py"))}, {(1, str(tmp_path / "b.py"))}]

        with patch("codex_explain.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _batches_iter(batches)
            await watcher.start()
            await asyncio.sleep(0.05)
            await watcher.stop()

        assert callback.await_count == 2


async def _empty_async_iter() -> AsyncIterator[Any]:
    """Async iterator that never yields, just blocks until cancelled."""
    try:
        await asyncio.sleep(3600)
    except asyncio.CancelledError:
        return
    yield  # make it an async generator  # pragma: no cover


async def _single_change_iter(changes: set[tuple[int, str]]) -> AsyncIterator[set[tuple[int, str]]]:
    """Async iterator that yields one set of changes then blocks."""
    yield changes
    try:
        await asyncio.sleep(3600)
    except asyncio.CancelledError:
        return


async def _batches_iter(batches: list[set[tuple[int, str]]]) -> AsyncIterator[set[tuple[int, str]]]:
    for batch in batches:
        yield batch
    try:
        await asyncio.sleep(3600)
    except asyncio.CancelledError:
        return
