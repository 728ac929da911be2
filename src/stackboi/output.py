"""User-facing output helpers."""

import click


def user_output(message: str = "", nl: bool = True) -> None:
    """Print a message meant for the user, routed to stderr.

    Stdout stays reserved for renderable data (status trees), so progress and
    error chatter never ends up in a pipe.
    """
    click.echo(message, err=True, nl=nl)
