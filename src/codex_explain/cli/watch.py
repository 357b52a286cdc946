import asyncio
import contextlib
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from codex_explain.cli.run import ensure_api_key, execute_run, fail, setup_logging
from codex_explain.config import ConfigOverrides, ExplainConfig, load_config
from codex_explain.core.cache import CACHE_DIR
from codex_explain.core.discovery import PathMatcher
from codex_explain.errors import ExplainError
from codex_explain.watcher.watchfiles_adapter import WatchfilesWatcher

console = Console()


def _ignored_dirs(root: Path, config: ExplainConfig, json_path: Path | None) -> list[str]:
    ignored = [CACHE_DIR, config.output]
    if json_path is not None:
        with contextlib.suppress(ValueError):
            ignored.append(json_path.resolve().parent.relative_to(root).as_posix())
    return ignored


async def _watch(root: Path, config: ExplainConfig, json_path: Path | None) -> None:
    await execute_run(root, config, json_path=json_path)

    async def on_change(paths: set[str]) -> None:
        console.print(f"[cyan]Changed[/cyan] {', '.join(sorted(paths))}")
        try:
            await execute_run(root, config, json_path=json_path)
        except ExplainError as exc:
            console.print(f"[red]error:[/red] {exc}")

    watcher = WatchfilesWatcher(
        root,
        PathMatcher(config.include, config.exclude),
        on_change,
        ignore_dirs=_ignored_dirs(root, config, json_path),
    )
    await watcher.start()
    console.print(f"[green]Watching[/green] {root} (Ctrl+C to stop)")
    try:
        await watcher.wait()
    finally:
        await watcher.stop()


def watch(
    root: Annotated[Path, typer.Argument(help="Repository root to watch.")] = Path("."),
    config: Annotated[Path | None, typer.Option("--config", help="Path to .explainrc.json.")] = None,
    output: Annotated[str | None, typer.Option(help="Output directory, relative to the root.")] = None,
    json_path: Annotated[Path | None, typer.Option("--json", help="Where to write the JSON report.")] = None,
    base_url: Annotated[str | None, typer.Option(help="OpenAI-compatible API base URL.")] = None,
    model: Annotated[str | None, typer.Option(help="Model used for explanations.")] = None,
    api_key: Annotated[str | None, typer.Option(help="API key for the LLM provider.")] = None,
    no_prompt: Annotated[bool, typer.Option("--no-prompt", help="Never prompt for a missing API key.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
) -> None:
    """Run once, then re-run incrementally whenever selected sources change."""
    setup_logging(verbose)
    root = root.resolve()
    overrides = ConfigOverrides(config_path=config, output=output, base_url=base_url, model=model, api_key=api_key)
    try:
        loaded, _ = load_config(root, overrides)
        loaded = ensure_api_key(loaded, root, no_prompt)
        asyncio.run(_watch(root, loaded, json_path))
    except ExplainError as exc:
        raise fail(exc) from exc
    except KeyboardInterrupt:
        console.print("Stopped.")
