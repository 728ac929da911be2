"""One-shot sync of a stack after one of its PRs was merged."""

import click

from stackboi.cli.ensure import Ensure, fail
from stackboi.cli.render import render_sync_events
from stackboi.core.context import StackboiContext
from stackboi.core.merge_detector import build_merged_event
from stackboi.core.models import MergedEvent, SyncStatus
from stackboi.core.pr_metadata import PRMetadataUpdateResult, update_pr_metadata_after_sync
from stackboi.core.sync_engine import (
    SyncConflicts,
    SyncCoordinator,
    SyncFailed,
    SyncSucceeded,
)
from stackboi.display import conflict_instructions
from stackboi.output import user_output


def _report_success(outcome: SyncSucceeded) -> None:
    user_output(
        click.style("✓", fg="green")
        + f" Synced {click.style(outcome.stack.name, bold=True)}"
        + f" after {outcome.merged_branch} was merged"
    )
    for path in outcome.auto_resolved_files:
        user_output(f"  auto-resolved by rerere: {path}")
    if outcome.restored_branch is not None:
        user_output(f"  On branch {outcome.restored_branch}")

    to_push = [
        branch
        for branch, status in outcome.branch_statuses.items()
        if status in (SyncStatus.NEEDS_PUSH, SyncStatus.CONFLICTS)
    ]
    if to_push:
        user_output("  Push the rebased branches when ready:")
        for branch in to_push:
            user_output(f"    git push --force-with-lease origin {branch}")


def _report_pr_updates(results: list[PRMetadataUpdateResult]) -> None:
    for result in results:
        changes = [
            name
            for name, changed in (
                ("base", result.updated_base),
                ("label", result.updated_label),
                ("body", result.updated_body),
            )
            if changed
        ]
        if result.success and not result.errors:
            detail = ", ".join(changes) if changes else "no PR"
            user_output(click.style("  ✓", fg="green") + f" {result.branch_name}: {detail}")
            continue
        color = "yellow" if result.success else "red"
        user_output(click.style("  ✗", fg=color) + f" {result.branch_name}")
        for error in result.errors:
            user_output(f"      {error}")


def _merged_event(ctx: StackboiContext, branch: str, *, resume: bool) -> MergedEvent:
    repo_root = Ensure.repo_root(ctx)
    stack_set = Ensure.stack_set(ctx)
    stack = stack_set.find_stack_by_branch(branch)
    if stack is None or not stack.contains(branch):
        fail(f"Branch '{branch}' is not part of any stack")

    if resume:
        # The PR was verified before the sync stopped on conflicts
        pr = ctx.github.get_pr_for_branch(repo_root, branch)
        return build_merged_event(stack, branch, pr.number if pr is not None else 0)

    Ensure.gh_authenticated(ctx)
    pr = Ensure.not_none(
        ctx.github.get_pr_for_branch(repo_root, branch), f"No PR found for branch '{branch}'"
    )
    Ensure.invariant(
        pr.state == "MERGED", f"PR #{pr.number} for '{branch}' is {pr.state.lower()}, not merged"
    )
    return build_merged_event(stack, branch, pr.number)


@click.command("sync")
@click.argument("branch")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.option(
    "--continue",
    "resume",
    is_flag=True,
    help="Resume a sync that stopped on conflicts, after resolving them",
)
@click.option("--no-pr-update", is_flag=True, help="Leave PR bases, labels and bodies alone")
@click.option(
    "--restore",
    "restore_branch",
    metavar="BRANCH",
    help="Branch to check out when the sync finishes (default: the current branch)",
)
@click.pass_obj
def sync_cmd(
    ctx: StackboiContext,
    branch: str,
    yes: bool,
    resume: bool,
    no_pr_update: bool,
    restore_branch: str | None,
) -> None:
    """Rebase the stack above merged BRANCH onto its base and drop BRANCH.

    All descendants are rebased in one `git rebase --update-refs` run. Conflicts
    rerere has seen before are resolved automatically; anything else stops the
    sync with the rebase left open for you to resolve. When resuming, pass
    --restore with the branch the first run started on to end up back there.
    """
    event = _merged_event(ctx, branch, resume=resume)

    if not resume and not yes:
        children = ", ".join(event.child_branches) if event.child_branches else "none"
        user_output(f"PR #{event.pr_number} ({branch}) was merged.")
        user_output(f"  Branches to rebase: {children}")
        if not click.confirm(f"Sync {event.stack_name} now?", default=True):
            user_output("Sync cancelled.")
            return

    coordinator = SyncCoordinator(ctx)
    outcome = render_sync_events(
        coordinator.run(event, resume=resume, original_branch=restore_branch)
    )

    match outcome:
        case SyncFailed(message=message):
            fail(message)
        case SyncConflicts() as conflicts:
            user_output()
            user_output(click.style("Conflicts need manual resolution:", fg="yellow", bold=True))
            for path in conflicts.conflicted_files:
                user_output(f"  {click.style(path, fg='red')}")
            if conflicts.auto_resolved_files:
                user_output("Auto-resolved by rerere:")
                for path in conflicts.auto_resolved_files:
                    user_output(f"  {click.style(path, fg='green')}")
            user_output()
            for line in conflict_instructions(branch, conflicts.original_branch):
                user_output(line)
            raise SystemExit(1)
        case SyncSucceeded() as succeeded:
            _report_success(succeeded)
            if no_pr_update or not succeeded.stack.branches:
                return
            # Every remaining label total changed, not only the rebased branches
            user_output("Updating PRs...")
            repo_root = Ensure.repo_root(ctx)
            results = update_pr_metadata_after_sync(
                ctx.github,
                repo_root,
                succeeded.stack,
                succeeded.stack.branches,
                statuses=None,
            )
            _report_pr_updates(results)
