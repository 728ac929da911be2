import logging

import click

from stackboi.cli.commands.abort import abort_cmd
from stackboi.cli.commands.add import add_cmd
from stackboi.cli.commands.init import init_cmd
from stackboi.cli.commands.new import new_cmd
from stackboi.cli.commands.pr import pr_cmd
from stackboi.cli.commands.status import status_cmd
from stackboi.cli.commands.sync import sync_cmd
from stackboi.cli.commands.view import view_cmd
from stackboi.core.context import create_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="stackboi")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Keep stacks of dependent git branches in sync after merges."""
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s - %(levelname)s - %(message)s")

    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        ctx.obj = create_context()


cli.add_command(init_cmd)
cli.add_command(new_cmd)
cli.add_command(add_cmd)
cli.add_command(pr_cmd)
cli.add_command(status_cmd)
cli.add_command(sync_cmd)
cli.add_command(abort_cmd)
cli.add_command(view_cmd)


def main() -> None:
    """CLI entry point used by the `stackboi` console script."""
    cli()
