import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from codex_explain.config import API_KEY_ENV, ConfigOverrides, ExplainConfig, load_config
from codex_explain.core.git import get_git_metadata, infer_repo_url
from codex_explain.core.init import store_api_key
from codex_explain.core.pipeline import RunOptions, RunResult, run_explain
from codex_explain.errors import ConfigError, ExplainError
from codex_explain.extract.treesitter import TreeSitterExtractor
from codex_explain.llm.openai_provider import OpenAIExplainer
from codex_explain.models import Entity
from codex_explain.render.json_report import build_report, write_json_report

console = Console()
logger = logging.getLogger(__name__)

REPORT_FILE = "report.json"


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # keep HTTP client chatter out of --verbose output
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def fail(exc: ExplainError) -> typer.Exit:
    console.print(f"[red]fatal:[/red] {exc}")
    return typer.Exit(1)


def ensure_api_key(config: ExplainConfig, root: Path, no_prompt: bool) -> ExplainConfig:
    """Prompt for a missing API key, optionally saving it to ``<root>/.env``."""
    if config.llm.api_key:
        return config
    if no_prompt or not sys.stdin.isatty():
        raise ConfigError(f"Missing LLM API key. Use --api-key, {API_KEY_ENV}, or run interactively.")

    key = typer.prompt(f"Enter {API_KEY_ENV}", hide_input=True).strip()
    if not key:
        raise ConfigError("No API key entered")
    if typer.confirm(f"Save key to {root / '.env'}?", default=False):
        store_api_key(root, key)
    return config.model_copy(update={"llm": config.llm.model_copy(update={"api_key": key})})


def report_path(root: Path, config: ExplainConfig, json_path: Path | None) -> Path:
    if json_path is not None:
        return json_path.resolve()
    return (root / config.output / REPORT_FILE).resolve()


async def execute_run(
    root: Path,
    config: ExplainConfig,
    force: bool = False,
    json_path: Path | None = None,
) -> RunResult:
    """Run the pipeline once and write the JSON report."""
    repo_url = config.repo_url or infer_repo_url(root)
    git = get_git_metadata(root)
    logger.debug(
        "repo=%s branch=%s commit=%s linkMode=%s", root, git.branch, git.commit, "remote" if repo_url else "local"
    )

    provider = OpenAIExplainer(api_key=config.llm.api_key, base_url=config.llm.base_url, model=config.llm.model)
    options = RunOptions(
        force=force,
        max_graph_nodes=config.graph.max_nodes,
        repo_url=repo_url,
        branch=git.branch,
    )
    try:
        with console.status("Analyzing sources...") as status:

            def on_progress(index: int, total: int, entity: Entity) -> None:
                status.update(f"Explaining {index}/{total}: {entity.file_path} {entity.name}")

            result = await run_explain(
                root,
                config.include,
                config.exclude,
                TreeSitterExtractor(),
                provider,
                options,
                on_progress=on_progress,
            )
    finally:
        await provider.close()

    target = report_path(root, config, json_path)
    try:
        write_json_report(target, build_report(result, config, root, git, repo_url))
    except OSError as exc:
        raise ExplainError(f"Cannot write report {target}: {exc}") from exc

    console.print(
        f"[green]Done[/green] files={len(result.files)} entities={len(result.entities)} "
        f"routes={len(result.routes)} cached={result.cached_count} failed={result.failed_count} "
        f"new_errors={len(result.errors)} json={target}"
    )
    console.print(f"[cyan]Changelog[/cyan] {result.changelog.summary_text}")
    if result.graph.truncated:
        console.print(f"[yellow]Graph truncated[/yellow]: {result.graph.omitted_node_count} file(s) omitted")
    return result


def run(
    root: Annotated[Path, typer.Argument(help="Repository root to analyze.")] = Path("."),
    config: Annotated[Path | None, typer.Option("--config", help="Path to .explainrc.json.")] = None,
    output: Annotated[str | None, typer.Option(help="Output directory, relative to the root.")] = None,
    json_path: Annotated[Path | None, typer.Option("--json", help="Where to write the JSON report.")] = None,
    force: Annotated[bool, typer.Option("--force", help="Ignore cached explanations.")] = False,
    max_graph_nodes: Annotated[int | None, typer.Option(min=0, help="Maximum dependency graph nodes.")] = None,
    base_url: Annotated[str | None, typer.Option(help="OpenAI-compatible API base URL.")] = None,
    model: Annotated[str | None, typer.Option(help="Model used for explanations.")] = None,
    api_key: Annotated[str | None, typer.Option(help="API key for the LLM provider.")] = None,
    no_prompt: Annotated[bool, typer.Option("--no-prompt", help="Never prompt for a missing API key.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
) -> None:
    """Explain the code entities of a repository, reusing cached explanations."""
    setup_logging(verbose)
    root = root.resolve()
    overrides = ConfigOverrides(
        config_path=config,
        output=output,
        base_url=base_url,
        model=model,
        api_key=api_key,
        max_graph_nodes=max_graph_nodes,
    )
    try:
        loaded, _ = load_config(root, overrides)
        loaded = ensure_api_key(loaded, root, no_prompt)
        asyncio.run(execute_run(root, loaded, force=force, json_path=json_path))
    except ExplainError as exc:
        raise fail(exc) from exc
