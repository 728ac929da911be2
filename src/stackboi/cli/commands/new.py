import click

from stackboi.cli.ensure import Ensure, fail
from stackboi.core.context import StackboiContext
from stackboi.core.errors import StackOperationError
from stackboi.core.stack_ops import create_stack
from stackboi.output import user_output


@click.command("new")
@click.argument("branch", required=False)
@click.option("--base", help="Branch the stack is built on (default: current branch)")
@click.pass_obj
def new_cmd(ctx: StackboiContext, branch: str | None, base: str | None) -> None:
    """Start a new stack with BRANCH as its first branch."""
    Ensure.stack_set(ctx)

    if branch is None:
        branch = click.prompt("Branch name")

    try:
        stack = create_stack(ctx, branch, base=base)
    except (StackOperationError, RuntimeError) as e:
        fail(str(e))

    user_output(
        click.style("✓", fg="green")
        + f" Created stack {click.style(stack.name, bold=True)} on {stack.base_branch}"
    )
    user_output(f"  Switched to new branch {click.style(branch, fg='cyan')}")
