"""Tests for merge detection between polls and the merge queue."""

from stackboi.core.merge_detector import (
    MergeQueue,
    build_merged_event,
    detect_merges,
    mark_pending_sync,
)
from stackboi.core.models import (
    BranchInfo,
    MergedEvent,
    PRStatus,
    Stack,
    StackSnapshot,
    SyncStatus,
)
from stackboi.core.remote_status import RemotePRStatus
from tests.test_utils.builders import make_stack


def _snapshot(
    stack: Stack, statuses: dict[str, tuple[int | None, PRStatus]] | None = None
) -> StackSnapshot:
    infos = []
    for branch in stack.branches:
        number, status = (statuses or {}).get(branch, (None, PRStatus.NONE))
        infos.append(
            BranchInfo(
                name=branch, pr_number=number, pr_status=status, sync_status=SyncStatus.UP_TO_DATE
            )
        )
    return StackSnapshot(stack=stack, branches=tuple(infos))


STACK = make_stack("feature-a", "feature-b", "feature-c")


def test_open_to_merged_emits_event_with_descendants() -> None:
    previous = (_snapshot(STACK, {"feature-a": (1, PRStatus.OPEN)}),)

    detection = detect_merges(previous, {"feature-a": RemotePRStatus(1, PRStatus.MERGED)})

    assert detection.has_changes
    assert detection.merged_events == (
        MergedEvent(
            branch_name="feature-a",
            pr_number=1,
            child_branches=("feature-b", "feature-c"),
            stack_name="stack-feature-a",
        ),
    )
    updated = detection.updated[0].branch("feature-a")
    assert updated is not None and updated.pr_status == PRStatus.MERGED


def test_draft_to_merged_emits_event() -> None:
    previous = (_snapshot(STACK, {"feature-c": (3, PRStatus.DRAFT)}),)

    detection = detect_merges(previous, {"feature-c": RemotePRStatus(3, PRStatus.MERGED)})

    assert [event.branch_name for event in detection.merged_events] == ["feature-c"]
    assert detection.merged_events[0].child_branches == ()


def test_repeated_polls_are_idempotent() -> None:
    previous = (_snapshot(STACK, {"feature-a": (1, PRStatus.OPEN)}),)
    statuses = {"feature-a": RemotePRStatus(1, PRStatus.MERGED)}

    first = detect_merges(previous, statuses)
    second = detect_merges(first.updated, statuses)

    assert len(first.merged_events) == 1
    assert second.merged_events == ()
    assert not second.has_changes


def test_closed_or_unknown_to_merged_does_not_fire() -> None:
    previous = (_snapshot(STACK, {"feature-a": (1, PRStatus.CLOSED)}),)

    detection = detect_merges(
        previous,
        {
            "feature-a": RemotePRStatus(1, PRStatus.MERGED),
            "feature-b": RemotePRStatus(2, PRStatus.MERGED),
        },
    )

    assert detection.merged_events == ()
    assert detection.has_changes


def test_merged_without_number_does_not_fire() -> None:
    previous = (_snapshot(STACK, {"feature-a": (1, PRStatus.OPEN)}),)

    detection = detect_merges(previous, {"feature-a": RemotePRStatus(None, PRStatus.MERGED)})

    assert detection.merged_events == ()


def test_branches_missing_from_statuses_keep_previous_state() -> None:
    previous = (_snapshot(STACK, {"feature-b": (2, PRStatus.OPEN)}),)

    detection = detect_merges(previous, {})

    assert detection.updated == previous
    assert not detection.has_changes


def test_build_merged_event_uses_stack_order() -> None:
    event = build_merged_event(STACK, "feature-b", 7)

    assert event.child_branches == ("feature-c",)
    assert event.stack_name == STACK.name


def test_mark_pending_sync_only_touches_named_branches() -> None:
    snapshots = (_snapshot(STACK),)

    marked = mark_pending_sync(snapshots, ("feature-b", "feature-c"))

    statuses = [info.sync_status for info in marked[0].branches]
    assert statuses == [SyncStatus.UP_TO_DATE, SyncStatus.PENDING_SYNC, SyncStatus.PENDING_SYNC]


def test_queue_is_fifo_and_deduplicated() -> None:
    queue = MergeQueue()
    first = build_merged_event(STACK, "feature-a", 1)
    second = build_merged_event(make_stack("feature-x"), "feature-x", 9)

    assert queue.push([first, second]) == 2
    assert queue.push([first]) == 0

    assert len(queue) == 2
    assert queue.current == first
    assert queue.take_current() == first
    assert queue.current == second
    assert queue.dismiss_current() == second
    assert queue.current is None
    assert queue.take_current() is None


def test_refresh_stack_recomputes_children_and_drops_removed_branches() -> None:
    queue = MergeQueue()
    queue.push(
        [build_merged_event(STACK, "feature-a", 1), build_merged_event(STACK, "feature-b", 2)]
    )

    queue.refresh_stack(STACK.without_branch("feature-a"))

    assert len(queue) == 1
    event = queue.current
    assert event is not None
    assert event.branch_name == "feature-b"
    assert event.child_branches == ("feature-c",)
