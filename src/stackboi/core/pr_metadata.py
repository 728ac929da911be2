"""Keep stack PRs on GitHub consistent with the local stack.

Each PR of a stack carries three pieces of stack metadata: its base branch
(the branch below it in the stack), a `stack:{position}/{total}` label and a
stack overview block in its body. After a sync removes a branch, all three
may be stale for every branch that was above it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from stackboi.core.models import STACK_LABEL_PREFIX, PRStatus, Stack, stack_label
from stackboi.core.remote_status import NO_PR, RemotePRStatus, fetch_pr_statuses
from stackboi.gateway.github.abc import GitHub

logger = logging.getLogger(__name__)

STACK_BLOCK_START = "<!-- stackboi:stack -->"
STACK_BLOCK_END = "<!-- /stackboi:stack -->"
STACK_LABEL_COLOR = "5319E7"
FOOTER = "_Created with [stackboi](https://github.com/stackboi/stackboi)_"


@dataclass(frozen=True)
class PRMetadataUpdateResult:
    """Outcome of refreshing one branch's PR.

    success is False only when the base branch could not be retargeted; label
    and body failures are listed in errors without failing the branch.
    """

    branch_name: str
    success: bool
    updated_base: bool = False
    updated_label: bool = False
    updated_body: bool = False
    errors: tuple[str, ...] = ()


def generate_stack_visualization(
    stack: Stack, current_branch: str, statuses: dict[str, RemotePRStatus]
) -> str:
    """Render the stack overview shown in every PR body of the stack."""
    lines = [STACK_BLOCK_START, "### Stack Overview", "", "```", f"{stack.base_branch} (base)"]
    for index, branch in enumerate(stack.branches):
        prefix = "└─" if index == len(stack.branches) - 1 else "├─"
        remote = statuses.get(branch, NO_PR)
        pr_info = ""
        if remote.pr_number is not None and remote.pr_status != PRStatus.NONE:
            pr_info = f" [#{remote.pr_number} {remote.pr_status.value}]"
        marker = " ◀ this PR" if branch == current_branch else ""
        lines.append(f"{prefix} {branch}{pr_info}{marker}")
    lines.extend(["```", "", FOOTER, STACK_BLOCK_END])
    return "\n".join(lines)


def replace_stack_block(body: str, block: str) -> str:
    """Swap the stack block in a PR body, appending it if the body has none."""
    start = body.find(STACK_BLOCK_START)
    if start != -1:
        end = body.find(STACK_BLOCK_END, start)
        if end != -1:
            return body[:start] + block + body[end + len(STACK_BLOCK_END) :]
    if not body.strip():
        return block
    return f"{body.rstrip()}\n\n{block}"


def ensure_stack_label(github: GitHub, repo_root: Path, position: int, total: int) -> str:
    label = stack_label(position, total)
    github.ensure_label(
        repo_root,
        label,
        description=f"Branch {position} of {total} in stack",
        color=STACK_LABEL_COLOR,
    )
    return label


def _update_one(
    github: GitHub,
    repo_root: Path,
    stack: Stack,
    branch: str,
    statuses: dict[str, RemotePRStatus],
) -> PRMetadataUpdateResult:
    details = github.get_pr_details(repo_root, branch)
    if details is None:
        return PRMetadataUpdateResult(branch_name=branch, success=True)

    success = True
    updated_base = False
    updated_label = False
    updated_body = False
    errors: list[str] = []

    new_base = stack.parent_of(branch)
    if details.base_ref_name and details.base_ref_name != new_base:
        try:
            github.update_pr_base(repo_root, branch, new_base)
            updated_base = True
        except RuntimeError as e:
            success = False
            errors.append(f"Failed to update base branch: {e}")

    position = stack.position_of(branch)
    try:
        for old_label in details.labels:
            if old_label.startswith(STACK_LABEL_PREFIX) and old_label != position.label:
                github.remove_label(repo_root, branch, old_label)
        ensure_stack_label(github, repo_root, position.position, position.total)
        if position.label not in details.labels:
            github.add_label(repo_root, branch, position.label)
        updated_label = True
    except RuntimeError as e:
        errors.append(f"Failed to update stack label: {e}")

    block = generate_stack_visualization(stack, branch, statuses)
    try:
        github.update_pr_body(repo_root, branch, replace_stack_block(details.body, block))
        updated_body = True
    except RuntimeError as e:
        errors.append(f"Failed to update PR body: {e}")

    for error in errors:
        logger.warning("PR for %s: %s", branch, error)

    return PRMetadataUpdateResult(
        branch_name=branch,
        success=success,
        updated_base=updated_base,
        updated_label=updated_label,
        updated_body=updated_body,
        errors=tuple(errors),
    )


def update_pr_metadata_after_sync(
    github: GitHub,
    repo_root: Path,
    stack: Stack,
    affected_branches: tuple[str, ...] | list[str],
    *,
    statuses: dict[str, RemotePRStatus] | None,
) -> list[PRMetadataUpdateResult]:
    """Refresh base, label and stack block of every affected branch's PR.

    Args:
        github: GitHub gateway
        repo_root: Repository root gh runs in
        stack: The stack after the sync
        affected_branches: Branches whose PRs may be stale
        statuses: PR statuses for the visualization; fetched when None

    Returns:
        One result per affected branch, in order
    """
    if not github.check_auth_status():
        return [
            PRMetadataUpdateResult(
                branch_name=branch,
                success=False,
                errors=("GitHub CLI not authenticated. Run 'gh auth login' first.",),
            )
            for branch in affected_branches
        ]

    if statuses is None:
        statuses = fetch_pr_statuses(github, repo_root, list(stack.branches))

    return [
        _update_one(github, repo_root, stack, branch, statuses)
        for branch in affected_branches
    ]
