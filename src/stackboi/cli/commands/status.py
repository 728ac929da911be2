import click
from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from stackboi.cli.ensure import Ensure
from stackboi.core.context import StackboiContext
from stackboi.core.models import StackSnapshot
from stackboi.core.remote_status import collect_stack_snapshots
from stackboi.display import PR_STATUS_STYLES, SYNC_STATUS_GLYPHS, SYNC_STATUS_STYLES, pr_badge
from stackboi.output import user_output


def _build_tree(snapshot: StackSnapshot, current_branch: str | None) -> Tree:
    stack = snapshot.stack
    tree = Tree(
        Text.assemble((stack.name, "bold"), (f"  (base: {stack.base_branch})", "dim")),
        guide_style="dim",
    )
    for info in snapshot.branches:
        marker = ("● ", "bold cyan") if info.name == current_branch else ("  ", "")
        tree.add(
            Text.assemble(
                (SYNC_STATUS_GLYPHS[info.sync_status], SYNC_STATUS_STYLES[info.sync_status]),
                " ",
                marker,
                (info.name, "bold" if info.name == current_branch else ""),
                "  ",
                (pr_badge(info), PR_STATUS_STYLES[info.pr_status]),
            )
        )
    return tree


@click.command("status")
@click.pass_obj
def status_cmd(ctx: StackboiContext) -> None:
    """Show every stack with PR state and sync status per branch.

    ✓ up to date  ↑ needs push  ↓ needs rebase  ✗ conflicts  ⟲ pending sync  ? unknown
    """
    repo_root = Ensure.repo_root(ctx)
    stack_set = Ensure.stack_set(ctx)

    authenticated = ctx.github.check_auth_status()
    if not authenticated:
        user_output(
            click.style("⚠️", fg="yellow")
            + " GitHub CLI not authenticated; PR states are not shown."
        )

    if not stack_set.stacks:
        user_output("No stacks yet. Create one with 'stackboi new <branch>'.")
        return

    snapshots = collect_stack_snapshots(
        ctx.git, ctx.github, repo_root, stack_set, gh_authenticated=authenticated
    )
    current = ctx.git.get_current_branch(repo_root)

    # Trees go to stdout so they can be piped
    console = Console()
    for snapshot in snapshots:
        console.print(_build_tree(snapshot, current))

    count = ctx.git.count_rerere_resolutions(repo_root)
    user_output(click.style(f"rerere: {count} trained resolution(s)", dim=True))
