import click

from stackboi.cli.ensure import Ensure, fail
from stackboi.core.context import StackboiContext
from stackboi.core.sync_engine import abort_sync
from stackboi.output import user_output


@click.command("abort")
@click.option("--restore", metavar="BRANCH", help="Branch to check out after aborting")
@click.pass_obj
def abort_cmd(ctx: StackboiContext, restore: str | None) -> None:
    """Abort a sync that stopped on conflicts.

    .stackboi.json is left untouched; the merged branch stays in its stack
    until a sync completes.
    """
    repo_root = Ensure.repo_root(ctx)
    Ensure.invariant(ctx.git.is_rebase_in_progress(repo_root), "No rebase in progress")

    try:
        abort_sync(ctx, restore)
    except RuntimeError as e:
        fail(str(e))

    user_output(click.style("✓", fg="green") + " Rebase aborted")
    current = ctx.git.get_current_branch(repo_root)
    if current is not None:
        user_output(f"  On branch {current}")
