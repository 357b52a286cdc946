from pathlib import Path
from typing import Protocol


class SourceWatcher(Protocol):
    """Reports batches of changed source files under a root directory."""

    root: Path

    async def start(self) -> None: ...

    async def wait(self) -> None: ...

    async def stop(self) -> None: ...
