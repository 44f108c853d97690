"""Custom Click group with automatic help display on errors.

This module provides a custom Click Group class that automatically
displays contextual help when syntax errors occur.
"""

from typing import Any

import click


class ProbeCacheGroup(click.Group):
    """Click group that shows the failing command's help on usage errors."""

    def invoke(self, ctx: click.Context) -> Any:
        """Invoke the subcommand; on a usage error print the error and its help."""
        try:
            return super().invoke(ctx)
        except (
            click.exceptions.UsageError,
            click.exceptions.BadParameter,
            click.exceptions.MissingParameter,
        ) as e:
            click.echo(f"Error: {e.format_message()}", err=True)

            # Get the most specific context for help (the subcommand context if available)
            error_ctx = e.ctx if e.ctx is not None else ctx

            click.echo("", err=True)
            click.echo(error_ctx.get_help(), err=True)

            error_ctx.exit(e.exit_code)
            return None
