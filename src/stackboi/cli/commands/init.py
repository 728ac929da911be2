import click

from stackboi.cli.ensure import Ensure, fail
from stackboi.core.context import StackboiContext
from stackboi.core.errors import StackOperationError
from stackboi.core.init_ops import add_to_gitignore, check_git_version, create_default_config
from stackboi.core.metadata_store import CONFIG_FILENAME, MetadataStore
from stackboi.output import user_output


@click.command("init")
@click.option(
    "--gitignore/--no-gitignore",
    default=None,
    help=f"Add {CONFIG_FILENAME} to .gitignore without asking",
)
@click.pass_obj
def init_cmd(ctx: StackboiContext, gitignore: bool | None) -> None:
    """Set up stackboi in the current repository.

    Checks that git supports `rebase --update-refs`, writes the default
    .stackboi.json and enables git rerere so repeated conflicts resolve
    themselves on later syncs.
    """
    repo_root = Ensure.repo_root(ctx)

    try:
        version = check_git_version(ctx.git)
    except StackOperationError as e:
        fail(str(e))
    user_output(click.style("✓", fg="green") + f" Git {version}")

    if ctx.github.check_auth_status():
        user_output(click.style("✓", fg="green") + " GitHub CLI authenticated")
    else:
        user_output(
            click.style("⚠️", fg="yellow")
            + " GitHub CLI not authenticated. Run 'gh auth login' to enable PR features."
        )

    store = MetadataStore(repo_root)
    Ensure.invariant(
        not store.exists(),
        f"{CONFIG_FILENAME} already exists. stackboi is already initialized.",
    )

    default_branch = ctx.git.detect_default_branch(repo_root)
    stack_set = create_default_config(default_branch)
    store.save(stack_set)
    user_output(
        click.style("✓", fg="green")
        + f" Created {CONFIG_FILENAME} (default base branch: {default_branch})"
    )

    rerere = stack_set.settings.rerere
    try:
        ctx.git.configure_rerere(repo_root, enabled=rerere.enabled, autoupdate=rerere.auto_apply)
    except RuntimeError as e:
        fail(f"Could not configure git rerere: {e}")
    user_output(click.style("✓", fg="green") + " Enabled git rerere")

    if gitignore is None:
        gitignore = click.confirm(f"Add {CONFIG_FILENAME} to .gitignore?", default=True)
    if gitignore:
        if add_to_gitignore(repo_root):
            user_output(click.style("✓", fg="green") + f" Added {CONFIG_FILENAME} to .gitignore")
        else:
            user_output(f"  {CONFIG_FILENAME} is already in .gitignore")

    user_output()
    user_output("Next: create a stack with " + click.style("stackboi new <branch>", bold=True))
