"""CLI commands for cronpilot."""

# Import command modules to register them with the app
# These imports have side effects (register commands via @app.command())
from cronpilot.cli.commands import (
    explain,
    next_cmd,
    serve,
    validate,
)

__all__ = ["explain", "next_cmd", "serve", "validate"]
