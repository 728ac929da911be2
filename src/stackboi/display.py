"""Glyphs and labels shared by `stackboi status` and `stackboi view`."""

from stackboi.core.models import BranchInfo, PRStatus, SyncStatus

SYNC_STATUS_GLYPHS: dict[SyncStatus, str] = {
    SyncStatus.UP_TO_DATE: "✓",
    SyncStatus.NEEDS_PUSH: "↑",
    SyncStatus.NEEDS_REBASE: "↓",
    SyncStatus.CONFLICTS: "✗",
    SyncStatus.PENDING_SYNC: "⟲",
    SyncStatus.UNKNOWN: "?",
}

# rich style names
SYNC_STATUS_STYLES: dict[SyncStatus, str] = {
    SyncStatus.UP_TO_DATE: "green",
    SyncStatus.NEEDS_PUSH: "yellow",
    SyncStatus.NEEDS_REBASE: "yellow",
    SyncStatus.CONFLICTS: "red",
    SyncStatus.PENDING_SYNC: "cyan",
    SyncStatus.UNKNOWN: "dim",
}

PR_STATUS_STYLES: dict[PRStatus, str] = {
    PRStatus.OPEN: "green",
    PRStatus.DRAFT: "dim",
    PRStatus.MERGED: "magenta",
    PRStatus.CLOSED: "red",
    PRStatus.NONE: "dim",
}


def pr_badge(info: BranchInfo) -> str:
    """`#12 open`, or `no PR` when the branch has none."""
    if info.pr_number is None or info.pr_status == PRStatus.NONE:
        return "no PR"
    return f"#{info.pr_number} {info.pr_status.value}"


def conflict_instructions(branch: str, original_branch: str | None) -> list[str]:
    """Steps shown when a sync stops on conflicts rerere could not resolve."""
    restore = f" --restore {original_branch}" if original_branch is not None else ""
    return [
        "Resolve the conflicts in your editor, then stage the files:",
        "  git add <files>",
        "Resume the sync (rerere records your resolution for next time):",
        f"  stackboi sync {branch} --continue{restore}",
        "Or give up and restore your branch:",
        f"  stackboi abort{restore}",
    ]
