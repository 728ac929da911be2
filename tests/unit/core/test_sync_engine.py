"""Tests for the sync state machine, abort and the single-owner coordinator."""

from collections.abc import Iterable
from pathlib import Path

import pytest

from stackboi.core.context import StackboiContext, context_for_test
from stackboi.core.errors import SyncInProgressError
from stackboi.core.merge_detector import build_merged_event
from stackboi.core.models import (
    MergedEvent,
    Settings,
    SyncRun,
    SyncState,
    SyncStatus,
)
from stackboi.core.sync_engine import (
    SyncConflicts,
    SyncCoordinator,
    SyncEvent,
    SyncFailed,
    SyncOutcome,
    SyncSucceeded,
    abort_sync,
    execute_sync,
)
from stackboi.events import CompletionEvent
from stackboi.gateway.git.fake import FakeGit, RebaseStop
from tests.test_utils.builders import FEATURE_BRANCHES, load_stacks, make_stack, write_stacks

STACK = make_stack("feature-a", "feature-b", "feature-c")


def _drain(events: Iterable[SyncEvent]) -> tuple[list[SyncRun], SyncOutcome]:
    runs: list[SyncRun] = []
    outcome: SyncOutcome | None = None
    for event in events:
        if isinstance(event, CompletionEvent):
            assert outcome is None, "more than one completion"
            outcome = event.result
        else:
            runs.append(event)
    assert outcome is not None, "no completion"
    return runs, outcome


def _setup(
    tmp_path: Path,
    *,
    current_branch: str = "feature-b",
    settings: Settings | None = None,
    **git_kwargs,
) -> tuple[StackboiContext, FakeGit]:
    write_stacks(tmp_path, STACK, settings=settings)
    git = FakeGit(
        repository_root=tmp_path,
        current_branch=current_branch,
        local_branches=FEATURE_BRANCHES,
        **git_kwargs,
    )
    return context_for_test(git=git), git


def _merged(branch: str) -> MergedEvent:
    return build_merged_event(STACK, branch, 1)


def test_clean_sync_rebases_from_tip_and_removes_merged_branch(tmp_path: Path) -> None:
    ctx, git = _setup(tmp_path)

    runs, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert [run.state for run in runs] == [
        SyncState.IDLE,
        SyncState.FETCHING,
        SyncState.REBASING,
        SyncState.SUCCESS,
    ]
    assert git.fetched_remotes == ["origin"]
    assert git.rebase_onto_calls == [("origin/main", "feature-c")]
    assert isinstance(outcome, SyncSucceeded)
    assert outcome.stack.branches == ("feature-b", "feature-c")
    assert outcome.restored_branch == "feature-b"
    assert git.get_current_branch(tmp_path) == "feature-b"
    assert git.deleted_branches == ["feature-a"]
    assert load_stacks(tmp_path).stacks[0].branches == ("feature-b", "feature-c")


def test_merged_tip_skips_rebase(tmp_path: Path) -> None:
    ctx, git = _setup(tmp_path)

    _, outcome = _drain(execute_sync(ctx, _merged("feature-c")))

    assert isinstance(outcome, SyncSucceeded)
    assert git.rebase_onto_calls == []
    assert git.fetched_remotes == ["origin"]
    assert outcome.stack.branches == ("feature-a", "feature-b")


def test_restores_first_descendant_when_merged_branch_was_checked_out(tmp_path: Path) -> None:
    ctx, git = _setup(tmp_path, current_branch="feature-a")

    _, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.restored_branch == "feature-b"
    assert git.deleted_branches == ["feature-a"]


def test_restores_base_when_nothing_was_stacked_on_top(tmp_path: Path) -> None:
    ctx, git = _setup(tmp_path, current_branch="feature-c")

    _, outcome = _drain(execute_sync(ctx, _merged("feature-c")))

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.restored_branch == "main"


def test_auto_resolved_conflicts_converge(tmp_path: Path) -> None:
    stops = [
        RebaseStop(replayed_files=("a.py",)),
        RebaseStop(replayed_files=("b.py",)),
        RebaseStop(replayed_files=("c.py",)),
    ]
    ctx, git = _setup(tmp_path, rebase_stops=stops)

    runs, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.auto_resolved_files == ("a.py", "b.py", "c.py")
    assert git.rebase_continue_count == len(stops)
    assert git.staged_files == ["a.py", "b.py", "c.py"]
    assert sum(run.state == SyncState.CHECKING_CONFLICTS for run in runs) == len(stops)
    assert runs[-1].state == SyncState.SUCCESS


def test_replayed_files_left_unmerged_are_staged_before_continuing(tmp_path: Path) -> None:
    stops = [
        RebaseStop(replayed_files=("a.py",), autoupdate=False),
        RebaseStop(replayed_files=("a.py", "b.py"), autoupdate=False),
    ]
    ctx, git = _setup(tmp_path, rebase_stops=stops)

    _, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.auto_resolved_files == ("a.py", "b.py")
    assert git.staged_files == ["a.py", "a.py", "b.py"]
    assert git.rebase_continue_count == 2


def test_replayed_files_are_staged_even_when_others_need_the_user(tmp_path: Path) -> None:
    stops = [RebaseStop(unmerged_files=("x.py",), replayed_files=("y.py",), autoupdate=False)]
    ctx, git = _setup(tmp_path, rebase_stops=stops)

    _, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncConflicts)
    assert outcome.conflicted_files == ("x.py",)
    assert outcome.auto_resolved_files == ("y.py",)
    assert git.staged_files == ["y.py"]
    assert git.get_unmerged_files(tmp_path) == ["x.py"]


def test_resume_carries_on_through_replayed_conflicts(tmp_path: Path) -> None:
    stops = [RebaseStop(unmerged_files=("x.py",)), RebaseStop(replayed_files=("y.py",))]
    ctx, git = _setup(tmp_path, current_branch="feature-c", rebase_stops=stops)
    _, first = _drain(execute_sync(ctx, _merged("feature-a")))
    assert isinstance(first, SyncConflicts)
    assert first.original_branch == "feature-c"

    git.stage_files(tmp_path, ["x.py"])
    _, outcome = _drain(
        execute_sync(
            ctx, _merged("feature-a"), resume=True, original_branch=first.original_branch
        )
    )

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.auto_resolved_files == ("y.py",)
    assert outcome.restored_branch == "feature-c"
    assert git.get_current_branch(tmp_path) == "feature-c"


def test_unresolved_conflict_awaits_user_and_keeps_rebase_open(tmp_path: Path) -> None:
    stops = [RebaseStop(unmerged_files=("x.py",), replayed_files=("y.py",))]
    ctx, git = _setup(tmp_path, rebase_stops=stops)
    before = (tmp_path / ".stackboi.json").read_bytes()

    runs, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert outcome == SyncConflicts(
        conflicted_files=("x.py",),
        auto_resolved_files=("y.py",),
        original_branch="feature-b",
        tip_branch="feature-c",
    )
    assert runs[-1].state == SyncState.AWAITING_USER
    assert runs[-1].conflicted_files == ("x.py",)
    assert git.is_rebase_in_progress(tmp_path)
    assert git.rebase_abort_count == 0
    assert (tmp_path / ".stackboi.json").read_bytes() == before


def test_resume_after_manual_resolution_finishes_without_refetching(tmp_path: Path) -> None:
    stops = [RebaseStop(unmerged_files=("x.py",))]
    ctx, git = _setup(tmp_path, rebase_stops=stops)
    _, first = _drain(execute_sync(ctx, _merged("feature-a")))
    assert isinstance(first, SyncConflicts)

    git.stage_files(tmp_path, ["x.py"])
    _, outcome = _drain(
        execute_sync(ctx, _merged("feature-a"), resume=True, original_branch="feature-b")
    )

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.restored_branch == "feature-b"
    assert git.fetched_remotes == ["origin"]
    assert len(git.rebase_onto_calls) == 1
    assert load_stacks(tmp_path).stacks[0].branches == ("feature-b", "feature-c")


def test_resume_without_original_branch_restores_first_descendant(tmp_path: Path) -> None:
    stops = [RebaseStop(unmerged_files=("x.py",))]
    ctx, git = _setup(tmp_path, rebase_stops=stops)
    _drain(execute_sync(ctx, _merged("feature-a")))
    git.stage_files(tmp_path, ["x.py"])

    _, outcome = _drain(execute_sync(ctx, _merged("feature-a"), resume=True))

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.restored_branch == "feature-b"


def test_non_conflict_failure_aborts_and_restores(tmp_path: Path) -> None:
    stops = [RebaseStop(has_conflicts=False, message="pre-rebase hook refused")]
    ctx, git = _setup(tmp_path, rebase_stops=stops)
    before = (tmp_path / ".stackboi.json").read_bytes()

    runs, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncFailed)
    assert "pre-rebase hook refused" in outcome.message
    assert runs[-1].state == SyncState.ERROR
    assert git.rebase_abort_count == 1
    assert git.get_current_branch(tmp_path) == "feature-b"
    assert (tmp_path / ".stackboi.json").read_bytes() == before


def test_conflict_without_files_aborts(tmp_path: Path) -> None:
    ctx, git = _setup(tmp_path, rebase_stops=[RebaseStop()])

    _, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncFailed)
    assert "no conflicted files" in outcome.message
    assert git.rebase_abort_count == 1


def test_continue_that_does_not_advance_aborts(tmp_path: Path) -> None:
    stops = [RebaseStop(replayed_files=("a.py",), stalls_on_continue=True)]
    ctx, git = _setup(tmp_path, rebase_stops=stops)

    _, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncFailed)
    assert "stalled" in outcome.message
    assert git.rebase_continue_count == 1
    assert git.rebase_abort_count == 1
    assert git.get_current_branch(tmp_path) == "feature-b"


def test_fetch_failure_is_an_error_without_rebasing(tmp_path: Path) -> None:
    ctx, git = _setup(tmp_path, fetch_raises=RuntimeError("network unreachable"))

    runs, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncFailed)
    assert "network unreachable" in outcome.message
    assert [run.state for run in runs] == [SyncState.IDLE, SyncState.FETCHING, SyncState.ERROR]
    assert git.rebase_onto_calls == []
    assert load_stacks(tmp_path).stacks[0].branches == STACK.branches


def test_unknown_stack_fails(tmp_path: Path) -> None:
    ctx, git = _setup(tmp_path)
    event = build_merged_event(make_stack("feature-x"), "feature-x", 5)

    _, outcome = _drain(execute_sync(ctx, event))

    assert isinstance(outcome, SyncFailed)
    assert "stack-feature-x" in outcome.message
    assert git.fetched_remotes == []


def test_missing_config_fails(tmp_path: Path) -> None:
    git = FakeGit(repository_root=tmp_path, current_branch="feature-b")
    ctx = context_for_test(git=git)

    _, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncFailed)
    assert "stackboi init" in outcome.message


def test_branch_deletion_failure_is_not_an_error(tmp_path: Path) -> None:
    ctx, git = _setup(tmp_path, delete_branch_raises=RuntimeError("not fully merged"))

    _, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncSucceeded)
    assert "feature-a" in git.local_branches


def test_surviving_branches_are_classified(tmp_path: Path) -> None:
    ctx, _ = _setup(tmp_path, remote_refs={"origin/feature-b": "sha-b"})

    _, outcome = _drain(execute_sync(ctx, _merged("feature-a")))

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.branch_statuses == {
        "feature-b": SyncStatus.UP_TO_DATE,
        "feature-c": SyncStatus.NEEDS_PUSH,
    }


def test_abort_restores_original_branch_without_touching_metadata(tmp_path: Path) -> None:
    stops = [RebaseStop(unmerged_files=("x.py",))]
    ctx, git = _setup(tmp_path, rebase_stops=stops)
    before = (tmp_path / ".stackboi.json").read_bytes()
    _, outcome = _drain(execute_sync(ctx, _merged("feature-a")))
    assert isinstance(outcome, SyncConflicts)

    abort_sync(ctx, outcome.original_branch)

    assert not git.is_rebase_in_progress(tmp_path)
    assert git.get_current_branch(tmp_path) == "feature-b"
    assert (tmp_path / ".stackboi.json").read_bytes() == before


def test_abort_without_rebase_raises(tmp_path: Path) -> None:
    ctx, _ = _setup(tmp_path)

    with pytest.raises(RuntimeError, match="no rebase in progress"):
        abort_sync(ctx, "feature-b")


def test_coordinator_rejects_second_sync_until_first_finishes(tmp_path: Path) -> None:
    ctx, _ = _setup(tmp_path)
    coordinator = SyncCoordinator(ctx)

    events = coordinator.run(_merged("feature-a"))

    assert coordinator.is_syncing
    assert coordinator.syncing_stack == STACK.name
    with pytest.raises(SyncInProgressError, match=STACK.name):
        coordinator.run(_merged("feature-b"))

    _, outcome = _drain(events)

    assert isinstance(outcome, SyncSucceeded)
    assert not coordinator.is_syncing
    assert coordinator.syncing_stack is None


def test_coordinator_releases_claim_when_stream_is_closed(tmp_path: Path) -> None:
    ctx, _ = _setup(tmp_path)
    coordinator = SyncCoordinator(ctx)

    events = coordinator.run(_merged("feature-a"))
    next(iter(events))
    events.close()

    assert not coordinator.is_syncing
