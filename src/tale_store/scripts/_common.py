"""Shared pieces of the command-line entry points."""

from __future__ import annotations

import logging

import click

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_REFUSED = 2


class TaleCommand(click.Command):
    """Click command whose usage errors exit with status 1.

    Status 2 is reserved for a refused overwrite or a failed verification.
    """

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as e:
            e.exit_code = EXIT_FAILURE
            raise


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
