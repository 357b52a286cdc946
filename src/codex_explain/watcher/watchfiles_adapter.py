from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine, Iterable
from pathlib import Path
from typing import Any

from watchfiles import awatch

from codex_explain.core.discovery import PathMatcher

logger = logging.getLogger(__name__)


class WatchfilesWatcher:
    """Watch a source tree and hand batches of selected, changed paths to a callback.

    Implements the ``SourceWatcher`` protocol. Paths are reported relative to
    ``root`` with forward slashes; changes under ``ignore_dirs`` are dropped.
    """

    def __init__(
        self,
        root: str | Path,
        matcher: PathMatcher,
        on_change: Callable[[set[str]], Coroutine[Any, Any, None]],
        ignore_dirs: Iterable[str] = (),
    ) -> None:
        self.root = Path(root)
        self._matcher = matcher
        self._on_change = on_change
        self._ignore_prefixes = tuple(d.strip("/") + "/" for d in ignore_dirs if d.strip("/"))
        self._task: asyncio.Task[None] | None = None

    def _relevant(self, changed: str) -> str | None:
        try:
            rel = Path(changed).resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError:
            return None
        if rel.startswith(self._ignore_prefixes):
            return None
        return rel if self._matcher.matches(rel) else None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._watch())
        logger.info("Watcher started for %s", self.root)

    async def wait(self) -> None:
        if self._task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Watcher stopped for %s", self.root)

    async def _watch(self) -> None:
        async for changes in awatch(self.root):
            paths = {rel for _, p in changes if (rel := self._relevant(p)) is not None}
            if not paths:
                continue
            logger.info("Detected changes in %d file(s)", len(paths))
            try:
                await self._on_change(paths)
            except Exception:
                logger.exception("Error in watcher callback")
