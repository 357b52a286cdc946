from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from codex_explain.cli.run import fail
from codex_explain.core.init import run_init
from codex_explain.errors import ExplainError

console = Console()


def init(
    root: Annotated[Path, typer.Argument(help="Repository root to initialize.")] = Path("."),
    config: Annotated[Path | None, typer.Option("--config", help="Where to write the config file.")] = None,
    output: Annotated[str | None, typer.Option(help="Output directory, relative to the root.")] = None,
    base_url: Annotated[str | None, typer.Option(help="OpenAI-compatible API base URL.")] = None,
    model: Annotated[str | None, typer.Option(help="Model used for explanations.")] = None,
    api_key: Annotated[str | None, typer.Option(help="API key to store in <root>/.env.")] = None,
) -> None:
    """Write a starter .explainrc.json and optionally store the API key."""
    root = root.resolve()
    try:
        result = run_init(root, config_path=config, output=output, base_url=base_url, model=model, api_key=api_key)
    except ExplainError as exc:
        raise fail(exc) from exc

    console.print(f"[green]Initialized[/green] config at {result.config_path}")
    if result.env_path is not None:
        console.print(f"[green]Saved[/green] EXPLAIN_API_KEY to {result.env_path}")
    console.print(f"Next: codex-explain run {root}")
