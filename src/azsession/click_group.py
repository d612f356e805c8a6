"""Custom Click group with automatic help display on errors.

Usage errors print the message followed by the help of the command that
failed. Exits go through ctx.exit() so the same group can be driven
from the interactive shell with standalone_mode=False.
"""

from typing import Any

import click


class AzsessionGroup(click.Group):
    """Click group that auto-displays contextual help on usage errors."""

    def invoke(self, ctx: click.Context) -> Any:
        """Invoke subcommand, showing its help when arguments are wrong."""
        try:
            return super().invoke(ctx)
        except (
            click.exceptions.BadParameter,
            click.exceptions.MissingParameter,
            click.exceptions.NoSuchOption,
            click.exceptions.BadOptionUsage,
        ) as e:
            click.echo(f"Error: {e.format_message()}", err=True)

            # Prefer the subcommand context so its help is shown
            error_ctx = e.ctx if e.ctx else ctx
            click.echo("")
            click.echo(error_ctx.get_help())
            error_ctx.exit(e.exit_code)
            return None

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        """Show group help when the command is not found."""
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as e:
            click.echo(f"Error: {e.format_message()}", err=True)
            click.echo("")
            click.echo(ctx.get_help())
            ctx.exit(1)
            return None, None, []


__all__ = ["AzsessionGroup"]
