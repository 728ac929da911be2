"""Fetch PR state for tracked branches from GitHub.

One `gh pr view` runs per branch; the calls are independent so they fan out
on a thread pool and are collected back into a single mapping.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from stackboi.core.branch_state import classify_branch
from stackboi.core.models import BranchInfo, PRStatus, StackSet, StackSnapshot
from stackboi.gateway.git.abc import Git
from stackboi.gateway.github.abc import GitHub
from stackboi.gateway.github.types import PullRequestInfo

logger = logging.getLogger(__name__)

_MAX_WORKERS = 8


@dataclass(frozen=True)
class RemotePRStatus:
    pr_number: int | None
    pr_status: PRStatus


NO_PR = RemotePRStatus(pr_number=None, pr_status=PRStatus.NONE)

_STATE_TO_STATUS = {
    "OPEN": PRStatus.OPEN,
    "MERGED": PRStatus.MERGED,
    "CLOSED": PRStatus.CLOSED,
}


def pr_status_from_info(pr: PullRequestInfo | None) -> RemotePRStatus:
    """Map a gh PR summary onto a PRStatus; the draft flag wins over the state."""
    if pr is None:
        return NO_PR
    if pr.is_draft:
        return RemotePRStatus(pr_number=pr.number, pr_status=PRStatus.DRAFT)
    return RemotePRStatus(
        pr_number=pr.number,
        pr_status=_STATE_TO_STATUS.get(pr.state, PRStatus.NONE),
    )


def _fetch_one(github: GitHub, repo_root: Path, branch: str) -> RemotePRStatus:
    try:
        return pr_status_from_info(github.get_pr_for_branch(repo_root, branch))
    except RuntimeError as e:
        # "no PR yet" and a failed lookup look the same to the poller
        logger.debug("PR lookup for %s failed: %s", branch, e)
        return NO_PR


def fetch_pr_statuses(
    github: GitHub, repo_root: Path, branches: list[str]
) -> dict[str, RemotePRStatus]:
    """Fetch PR number and status for every branch in parallel."""
    if not branches:
        return {}

    workers = min(_MAX_WORKERS, len(branches))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            branch: executor.submit(_fetch_one, github, repo_root, branch) for branch in branches
        }
        return {branch: future.result() for branch, future in futures.items()}


def tracked_branches(stack_set: StackSet) -> list[str]:
    return [branch for stack in stack_set.stacks for branch in stack.branches]


def collect_stack_snapshots(
    git: Git,
    github: GitHub,
    repo_root: Path,
    stack_set: StackSet,
    *,
    gh_authenticated: bool,
) -> tuple[StackSnapshot, ...]:
    """Build a full snapshot of every stack: PR state plus local sync status.

    Without gh authentication every branch reports no PR.
    """
    if gh_authenticated:
        statuses = fetch_pr_statuses(github, repo_root, tracked_branches(stack_set))
    else:
        statuses = {}

    snapshots: list[StackSnapshot] = []
    for stack in stack_set.stacks:
        infos = []
        for branch in stack.branches:
            remote = statuses.get(branch, NO_PR)
            infos.append(
                BranchInfo(
                    name=branch,
                    pr_number=remote.pr_number,
                    pr_status=remote.pr_status,
                    sync_status=classify_branch(git, repo_root, branch),
                )
            )
        snapshots.append(StackSnapshot(stack=stack, branches=tuple(infos)))
    return tuple(snapshots)
