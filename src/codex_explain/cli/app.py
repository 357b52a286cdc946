import typer

from codex_explain.cli.init import init
from codex_explain.cli.run import run
from codex_explain.cli.watch import watch

app = typer.Typer(
    name="codex-explain",
    help="Codex Explain CLI: incremental, cached explanations of a codebase.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command("run")(run)
app.command("init")(init)
app.command("watch")(watch)


def main() -> None:
    app()
