import click

from stackboi.cli.ensure import Ensure, fail
from stackboi.core.context import StackboiContext
from stackboi.core.errors import StackOperationError
from stackboi.core.stack_ops import add_branch
from stackboi.output import user_output


@click.command("add")
@click.argument("branch", required=False)
@click.pass_obj
def add_cmd(ctx: StackboiContext, branch: str | None) -> None:
    """Add BRANCH to the current stack, right above the current branch."""
    Ensure.stack_set(ctx)

    if branch is None:
        branch = click.prompt("Branch name")

    try:
        added = add_branch(ctx, branch)
    except (StackOperationError, RuntimeError) as e:
        fail(str(e))

    position = added.stack.position_of(branch)
    user_output(
        click.style("✓", fg="green")
        + f" Added {click.style(branch, fg='cyan')} to {click.style(added.stack.name, bold=True)}"
        + f" on top of {added.parent} ({position.position}/{position.total})"
    )
