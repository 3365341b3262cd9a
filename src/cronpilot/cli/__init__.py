"""cronpilot CLI interface."""

import typer
from rich.console import Console

# CLI App
app = typer.Typer(
    name="cronpilot",
    help="Minute-resolution cron scheduling for long-running Python processes.",
    no_args_is_help=True,
)

# Console for rich output
console = Console()

# Import commands to register them
from cronpilot.cli.commands import explain, next_cmd, serve, validate  # noqa: E402, F401


@app.command()
def version() -> None:
    """Show cronpilot version."""
    from cronpilot import __version__

    console.print(f"cronpilot v{__version__}")


if __name__ == "__main__":
    app()
