import click

from stackboi.cli.ensure import Ensure
from stackboi.core.context import StackboiContext
from stackboi.core.monitor import StackMonitor
from stackboi.core.sync_engine import SyncCoordinator
from stackboi.tui.app import StackboiApp


@click.command("view")
@click.pass_obj
def view_cmd(ctx: StackboiContext) -> None:
    """Open the interactive stack viewer.

    Polls GitHub for merged PRs and offers to sync the stack when one lands.
    """
    Ensure.repo_root(ctx)
    Ensure.stack_set(ctx)

    monitor = StackMonitor(ctx, SyncCoordinator(ctx))
    app = StackboiApp(ctx, monitor)
    ctx.tui_runner.run(app)
