import click

from stackboi.cli.ensure import Ensure, fail
from stackboi.cli.render import render_events
from stackboi.core.context import StackboiContext
from stackboi.core.stack_ops import CreatePRError, CreatePRSuccess, create_stack_pr
from stackboi.output import user_output


@click.command("pr")
@click.argument("branch", required=False)
@click.option("--draft", is_flag=True, help="Create the PR as a draft")
@click.option("--no-browser", is_flag=True, help="Do not open the new PR in the browser")
@click.pass_obj
def pr_cmd(ctx: StackboiContext, branch: str | None, draft: bool, no_browser: bool) -> None:
    """Open a GitHub PR for BRANCH (default: current branch) onto its parent.

    The PR gets a `stack:N/M` label and a stack overview in its body.
    """
    Ensure.stack_set(ctx)

    result = render_events(create_stack_pr(ctx, branch, draft=draft, open_browser=not no_browser))
    match result:
        case CreatePRError(message=message):
            fail(message)
        case CreatePRSuccess() as created:
            user_output(
                click.style("✓", fg="green")
                + f" Created PR #{created.pr_number}: {created.title}"
            )
            user_output(f"  Base: {created.base}  Label: {created.label}")
            if created.url:
                user_output(f"  {created.url}")
