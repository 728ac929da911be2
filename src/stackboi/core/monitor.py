"""Polling loop state behind `stackboi view`.

StackMonitor owns the latest StackSnapshots and the queue of merges waiting
for confirmation. The TUI calls poll() from its interval timer and hands
confirmed merges to the SyncCoordinator.
"""

import logging
import threading
from dataclasses import dataclass, replace

from stackboi.core.context import StackboiContext
from stackboi.core.merge_detector import MergeQueue, detect_merges, mark_pending_sync
from stackboi.core.metadata_store import MetadataStore
from stackboi.core.models import MergedEvent, StackSet, StackSnapshot
from stackboi.core.remote_status import (
    RemotePRStatus,
    collect_stack_snapshots,
    fetch_pr_statuses,
)
from stackboi.core.sync_engine import SyncCoordinator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollResult:
    has_changes: bool
    new_events: int


class StackMonitor:
    """Tracks stack state between polls and queues detected merges.

    poll(), refresh() and sync_finished() run on executor threads; every state
    transition holds one lock.
    """

    def __init__(self, ctx: StackboiContext, coordinator: SyncCoordinator) -> None:
        if ctx.repo_root is None:
            raise ValueError("StackMonitor requires a repository root")
        self._ctx = ctx
        self._repo_root = ctx.repo_root
        self._coordinator = coordinator
        self._store = MetadataStore(ctx.repo_root)
        self._queue = MergeQueue()
        self._stack_set = StackSet()
        self._snapshots: tuple[StackSnapshot, ...] = ()
        self._pending: set[str] = set()
        self._gh_authenticated = False
        self._lock = threading.Lock()

    @property
    def snapshots(self) -> tuple[StackSnapshot, ...]:
        return self._snapshots

    @property
    def stack_set(self) -> StackSet:
        return self._stack_set

    @property
    def queue(self) -> MergeQueue:
        return self._queue

    @property
    def coordinator(self) -> SyncCoordinator:
        return self._coordinator

    @property
    def gh_authenticated(self) -> bool:
        return self._gh_authenticated

    @property
    def poll_interval_seconds(self) -> float:
        return self._stack_set.settings.effective_poll_interval_ms / 1000

    def load(self) -> tuple[StackSnapshot, ...]:
        """Initial load: read the config, check gh auth and build full snapshots.

        Raises:
            StackboiConfigError: If `.stackboi.json` is missing or invalid
        """
        with self._lock:
            self._stack_set = self._store.load()
            self._gh_authenticated = self._ctx.github.check_auth_status()
            self._snapshots = self._collect()
            return self._snapshots

    def refresh(self) -> PollResult:
        """Reload config and rebuild every snapshot, still detecting merges.

        PR statuses seen before the refresh count as the previous state, so a
        merge that happened since the last poll is not lost.
        """
        with self._lock:
            previous = {info.name: info for snap in self._snapshots for info in snap.branches}
            self._stack_set = self._store.load()
            fresh = self._collect()

            baseline = tuple(
                replace(
                    snap,
                    branches=tuple(
                        replace(
                            info,
                            pr_number=previous[info.name].pr_number,
                            pr_status=previous[info.name].pr_status,
                        )
                        if info.name in previous
                        else info
                        for info in snap.branches
                    ),
                )
                for snap in fresh
            )
            statuses = {
                info.name: RemotePRStatus(pr_number=info.pr_number, pr_status=info.pr_status)
                for snap in fresh
                for info in snap.branches
            }
            detection = detect_merges(baseline, statuses)
            added = self._queue.push(detection.merged_events)
            self._snapshots = fresh
            return PollResult(has_changes=True, new_events=added)

    def poll(self) -> PollResult:
        """Fetch PR statuses and queue newly merged branches.

        Branches of the stack being synced are skipped; their snapshot keeps
        its previous state until the sync finishes.
        """
        if not self._gh_authenticated:
            return PollResult(has_changes=False, new_events=0)

        with self._lock:
            syncing = self._coordinator.syncing_stack
            branches = [
                branch
                for stack in self._stack_set.stacks
                if stack.name != syncing
                for branch in stack.branches
            ]
            statuses = fetch_pr_statuses(self._ctx.github, self._repo_root, branches)
            detection = detect_merges(self._snapshots, statuses)
            added = self._queue.push(detection.merged_events)
            self._snapshots = detection.updated
        if added:
            logger.info("Detected %d merged branch(es)", added)
        return PollResult(has_changes=detection.has_changes or added > 0, new_events=added)

    def dismiss_current(self) -> MergedEvent | None:
        """Postpone the current merge; its descendants are shown as pending sync."""
        with self._lock:
            event = self._queue.dismiss_current()
            if event is not None:
                self._pending.update(event.child_branches)
                self._snapshots = mark_pending_sync(self._snapshots, event.child_branches)
            return event

    def take_current(self) -> MergedEvent | None:
        with self._lock:
            return self._queue.take_current()

    def sync_finished(self, stack_name: str) -> None:
        """Reload after a successful sync of stack_name."""
        with self._lock:
            self._stack_set = self._store.load()
            stack = self._stack_set.find_stack(stack_name)
            if stack is not None:
                self._pending.difference_update(stack.branches)
                self._queue.refresh_stack(stack)
            self._snapshots = self._collect()

    def _collect(self) -> tuple[StackSnapshot, ...]:
        snapshots = collect_stack_snapshots(
            self._ctx.git,
            self._ctx.github,
            self._repo_root,
            self._stack_set,
            gh_authenticated=self._gh_authenticated,
        )
        if self._pending:
            snapshots = mark_pending_sync(snapshots, tuple(self._pending))
        return snapshots
