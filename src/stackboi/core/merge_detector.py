"""Detect merged PRs between two polls and queue the resulting sync work."""

from collections import deque
from dataclasses import dataclass, replace

from stackboi.core.models import (
    BranchInfo,
    MergedEvent,
    PRStatus,
    Stack,
    StackSnapshot,
    SyncStatus,
)
from stackboi.core.remote_status import RemotePRStatus

_MERGEABLE_FROM = (PRStatus.OPEN, PRStatus.DRAFT)


@dataclass(frozen=True)
class MergeDetection:
    """Result of applying one poll to the previous snapshots.

    Attributes:
        updated: Snapshots with the fresh PR numbers and statuses applied
        has_changes: True if any branch's PR number or status changed
        merged_events: One event per branch that went from open/draft to merged
    """

    updated: tuple[StackSnapshot, ...]
    has_changes: bool
    merged_events: tuple[MergedEvent, ...]


def build_merged_event(stack: Stack, branch: str, pr_number: int) -> MergedEvent:
    return MergedEvent(
        branch_name=branch,
        pr_number=pr_number,
        child_branches=stack.children_of(branch),
        stack_name=stack.name,
    )


def detect_merges(
    previous: tuple[StackSnapshot, ...], statuses: dict[str, RemotePRStatus]
) -> MergeDetection:
    """Apply fresh PR statuses and find open/draft -> merged transitions.

    Branches missing from statuses keep their previous state. A branch that
    was already merged never produces another event, which makes repeated
    polls idempotent.
    """
    has_changes = False
    events: list[MergedEvent] = []
    updated: list[StackSnapshot] = []

    for snapshot in previous:
        infos: list[BranchInfo] = []
        for info in snapshot.branches:
            fresh = statuses.get(info.name)
            if fresh is None:
                infos.append(info)
                continue

            if fresh.pr_number != info.pr_number or fresh.pr_status != info.pr_status:
                has_changes = True

            if (
                info.pr_status in _MERGEABLE_FROM
                and fresh.pr_status == PRStatus.MERGED
                and fresh.pr_number is not None
            ):
                events.append(build_merged_event(snapshot.stack, info.name, fresh.pr_number))

            infos.append(replace(info, pr_number=fresh.pr_number, pr_status=fresh.pr_status))
        updated.append(replace(snapshot, branches=tuple(infos)))

    return MergeDetection(
        updated=tuple(updated), has_changes=has_changes, merged_events=tuple(events)
    )


def mark_pending_sync(
    snapshots: tuple[StackSnapshot, ...], branches: tuple[str, ...]
) -> tuple[StackSnapshot, ...]:
    """Flag branches whose sync the operator postponed."""
    pending = set(branches)
    return tuple(
        replace(
            snapshot,
            branches=tuple(
                replace(info, sync_status=SyncStatus.PENDING_SYNC) if info.name in pending else info
                for info in snapshot.branches
            ),
        )
        for snapshot in snapshots
    )


class MergeQueue:
    """FIFO of merge events waiting for operator confirmation.

    Only the head of the queue is surfaced at a time. Events are keyed by
    (stack_name, branch_name); a key already queued is ignored.
    """

    def __init__(self) -> None:
        self._events: deque[MergedEvent] = deque()

    def __len__(self) -> int:
        return len(self._events)

    @property
    def current(self) -> MergedEvent | None:
        return self._events[0] if self._events else None

    def push(self, events: tuple[MergedEvent, ...] | list[MergedEvent]) -> int:
        """Queue events, returning how many were new."""
        queued = {(event.stack_name, event.branch_name) for event in self._events}
        added = 0
        for event in events:
            key = (event.stack_name, event.branch_name)
            if key in queued:
                continue
            self._events.append(event)
            queued.add(key)
            added += 1
        return added

    def dismiss_current(self) -> MergedEvent | None:
        """Drop the head event without syncing it."""
        return self._events.popleft() if self._events else None

    def take_current(self) -> MergedEvent | None:
        """Remove the head event so it can be synced."""
        return self._events.popleft() if self._events else None

    def refresh_stack(self, stack: Stack) -> None:
        """Recompute queued events of a stack whose topology just changed.

        Events for branches no longer in the stack are dropped; the rest get
        their child branches recomputed against the new order.
        """
        refreshed: deque[MergedEvent] = deque()
        for event in self._events:
            if event.stack_name != stack.name:
                refreshed.append(event)
            elif stack.contains(event.branch_name):
                refreshed.append(build_merged_event(stack, event.branch_name, event.pr_number))
        self._events = refreshed
