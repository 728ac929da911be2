"""Classify how a local branch relates to its upstream counterpart."""

from pathlib import Path

from stackboi.core.models import SyncStatus
from stackboi.gateway.git.abc import Git


def classify_branch(git: Git, cwd: Path, branch: str, *, remote: str = "origin") -> SyncStatus:
    """Determine the sync status of a branch against `<remote>/<branch>`.

    Checks run in priority order: a missing upstream or uncommitted work on the
    checked-out branch means the branch needs a push before anything else.
    Refs are resolved by their full names so a local branch whose name looks
    like a remote ref is never mistaken for one.
    """
    remote_sha = git.resolve_ref(cwd, f"refs/remotes/{remote}/{branch}")
    if remote_sha is None:
        return SyncStatus.NEEDS_PUSH

    if git.get_current_branch(cwd) == branch and git.has_uncommitted_changes(cwd):
        return SyncStatus.NEEDS_PUSH

    local_sha = git.resolve_ref(cwd, f"refs/heads/{branch}")
    if local_sha is None:
        return SyncStatus.UNKNOWN

    if local_sha == remote_sha:
        return SyncStatus.UP_TO_DATE

    merge_base = git.get_merge_base(cwd, local_sha, remote_sha)
    if merge_base == remote_sha:
        return SyncStatus.NEEDS_PUSH
    if merge_base == local_sha:
        return SyncStatus.NEEDS_REBASE
    return SyncStatus.CONFLICTS


def classify_branches(
    git: Git, cwd: Path, branches: tuple[str, ...] | list[str], *, remote: str = "origin"
) -> dict[str, SyncStatus]:
    return {branch: classify_branch(git, cwd, branch, remote=remote) for branch in branches}
