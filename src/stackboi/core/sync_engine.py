"""Synchronize a stack after one of its branches was merged upstream.

The engine fetches origin, rebases every descendant of the merged branch onto
the updated base in a single `git rebase --update-refs` run from the tip of the
stack, lets rerere resolve whatever conflicts it has seen before, and finally
drops the merged branch from the stack.

execute_sync() is a generator: it yields one SyncRun per state transition and
finishes with a CompletionEvent carrying a SyncOutcome. Git failures never
escape as exceptions; they become a SyncFailed outcome.
"""

import logging
from collections.abc import Generator, Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path

from stackboi.core.branch_state import classify_branches
from stackboi.core.context import StackboiContext
from stackboi.core.errors import StackboiConfigError, SyncInProgressError
from stackboi.core.metadata_store import MetadataStore
from stackboi.core.models import MergedEvent, Stack, SyncRun, SyncState, SyncStatus
from stackboi.events import CompletionEvent
from stackboi.gateway.git.abc import Git, RebaseResult

logger = logging.getLogger(__name__)

REMOTE = "origin"


@dataclass(frozen=True)
class SyncSucceeded:
    """The stack was rebased and the merged branch removed from it.

    Attributes:
        merged_branch: Branch that was merged upstream
        stack: The stack as saved after removing merged_branch
        restored_branch: Branch checked out at the end, None if the checkout failed
        auto_resolved_files: Files rerere resolved along the way
        branch_statuses: Sync status of every remaining branch after the rebase
    """

    merged_branch: str
    stack: Stack
    restored_branch: str | None
    auto_resolved_files: tuple[str, ...] = ()
    branch_statuses: dict[str, SyncStatus] = field(default_factory=dict)


@dataclass(frozen=True)
class SyncConflicts:
    """The rebase stopped on conflicts rerere could not resolve.

    The rebase is left in progress so the user can resolve the files and
    resume, or abort and return to original_branch.
    """

    conflicted_files: tuple[str, ...]
    auto_resolved_files: tuple[str, ...]
    original_branch: str | None
    tip_branch: str


@dataclass(frozen=True)
class SyncFailed:
    message: str


SyncOutcome = SyncSucceeded | SyncConflicts | SyncFailed
SyncEvent = SyncRun | CompletionEvent[SyncOutcome]


def _abort_and_restore(git: Git, repo_root: Path, original_branch: str | None) -> None:
    """Best-effort rollback: abort any open rebase, then go back to original_branch."""
    if git.is_rebase_in_progress(repo_root):
        try:
            git.rebase_abort(repo_root)
        except RuntimeError as e:
            logger.warning("Could not abort rebase: %s", e)
    if original_branch is not None:
        try:
            git.checkout_branch(repo_root, original_branch)
        except RuntimeError as e:
            logger.warning("Could not restore branch %s: %s", original_branch, e)


def _restore_target(
    git: Git, repo_root: Path, stack: Stack, event: MergedEvent, original_branch: str | None
) -> str:
    """Branch to leave checked out after a successful sync.

    The branch the user started on, unless that was the merged branch (or is
    unknown or gone), in which case the first surviving descendant, or the
    stack's base when nothing was stacked on top.
    """
    if (
        original_branch is not None
        and original_branch != event.branch_name
        and git.branch_exists(repo_root, original_branch)
    ):
        return original_branch
    if event.child_branches:
        return event.child_branches[0]
    return stack.base_branch


def execute_sync(
    ctx: StackboiContext,
    event: MergedEvent,
    *,
    resume: bool = False,
    original_branch: str | None = None,
) -> Generator[SyncEvent, None, None]:
    """Run the sync state machine for one merged branch.

    Args:
        ctx: Application context (git gateway and repository root)
        event: The merge to process
        resume: Continue a rebase that previously stopped on conflicts; skips
            the fetch and the checkout of the tip branch
        original_branch: Branch to restore afterwards. Defaults to the branch
            checked out now, or to nothing when resuming.

    Yields:
        SyncRun snapshots, then exactly one CompletionEvent
    """
    git = ctx.git
    run = SyncRun(
        state=SyncState.IDLE,
        message=f"Syncing stack after {event.branch_name} was merged",
        merged_branch=event.branch_name,
        child_branches=event.child_branches,
    )
    yield run

    if ctx.repo_root is None:
        message = "Not in a git repository"
        yield replace(run, state=SyncState.ERROR, message=message, error=message)
        yield CompletionEvent(SyncFailed(message))
        return
    repo_root = ctx.repo_root

    store = MetadataStore(repo_root)
    try:
        stack_set = store.load()
    except StackboiConfigError as e:
        yield replace(run, state=SyncState.ERROR, message=str(e), error=str(e))
        yield CompletionEvent(SyncFailed(str(e)))
        return

    stack = stack_set.find_stack(event.stack_name)
    if stack is None:
        message = f"Stack '{event.stack_name}' not found in {store.path.name}"
        yield replace(run, state=SyncState.ERROR, message=message, error=message)
        yield CompletionEvent(SyncFailed(message))
        return

    if not resume and original_branch is None:
        original_branch = git.get_current_branch(repo_root)

    if not resume:
        run = replace(
            run, state=SyncState.FETCHING, message=f"Fetching latest changes from {REMOTE}"
        )
        yield run
        try:
            git.fetch(repo_root, REMOTE)
        except RuntimeError as e:
            message = f"Failed to fetch from {REMOTE}: {e}"
            yield replace(run, state=SyncState.ERROR, message=message, error=message)
            yield CompletionEvent(SyncFailed(message))
            return

    auto_resolved: list[str] = []

    if event.child_branches:
        tip = event.child_branches[-1]
        onto = f"{REMOTE}/{stack.base_branch}"

        result: RebaseResult
        if resume:
            run = replace(
                run, state=SyncState.REBASING, message="Continuing rebase", current_branch=tip
            )
            yield run
            if git.is_rebase_in_progress(repo_root):
                result = git.rebase_continue(repo_root)
            else:
                # The user already finished the rebase by hand
                result = RebaseResult(success=True, has_conflicts=False, message="")
        else:
            run = replace(
                run,
                state=SyncState.REBASING,
                message=f"Rebasing {tip} onto {onto}",
                current_branch=tip,
            )
            yield run
            try:
                git.checkout_branch(repo_root, tip)
            except RuntimeError as e:
                message = f"Failed to check out {tip}: {e}"
                yield replace(run, state=SyncState.ERROR, message=message, error=message)
                yield CompletionEvent(SyncFailed(message))
                return
            result = git.rebase_update_refs(repo_root, onto)

        while not result.success:
            if not result.has_conflicts:
                _abort_and_restore(git, repo_root, original_branch)
                message = f"Rebase failed: {result.message}"
                yield replace(run, state=SyncState.ERROR, message=message, error=message)
                yield CompletionEvent(SyncFailed(message))
                return

            run = replace(run, state=SyncState.CHECKING_CONFLICTS, message="Checking conflicts")
            yield run

            resolved_now = list(result.rerere_resolved_files)
            auto_resolved.extend(f for f in resolved_now if f not in auto_resolved)
            # Without rerere.autoupdate the replayed files are still unmerged in the index
            if resolved_now:
                logger.info("rerere resolved %s", ", ".join(resolved_now))
                git.stage_files(repo_root, resolved_now)
            unresolved = [f for f in git.get_unmerged_files(repo_root) if f not in resolved_now]

            if unresolved:
                conflicted = tuple(
                    f for f in git.get_conflicted_files(repo_root) if f not in resolved_now
                ) or tuple(unresolved)
                run = replace(
                    run,
                    state=SyncState.AWAITING_USER,
                    message=f"{len(unresolved)} file(s) need manual resolution",
                    conflicted_files=conflicted,
                    auto_resolved_files=tuple(auto_resolved),
                )
                yield run
                yield CompletionEvent(
                    SyncConflicts(
                        conflicted_files=conflicted,
                        auto_resolved_files=tuple(auto_resolved),
                        original_branch=original_branch,
                        tip_branch=tip,
                    )
                )
                return

            if not resolved_now:
                _abort_and_restore(git, repo_root, original_branch)
                message = "Rebase stopped on a conflict but no conflicted files were reported"
                yield replace(run, state=SyncState.ERROR, message=message, error=message)
                yield CompletionEvent(SyncFailed(message))
                return

            step_before = git.get_rebase_step(repo_root)

            run = replace(
                run,
                state=SyncState.REBASING,
                message=f"Auto-resolved {len(resolved_now)} file(s), continuing rebase",
                auto_resolved_files=tuple(auto_resolved),
            )
            yield run
            result = git.rebase_continue(repo_root)

            if not result.success and git.get_rebase_step(repo_root) == step_before:
                _abort_and_restore(git, repo_root, original_branch)
                message = f"Rebase stalled after auto-resolving conflicts: {result.message}"
                yield replace(run, state=SyncState.ERROR, message=message, error=message)
                yield CompletionEvent(SyncFailed(message))
                return

    target = _restore_target(git, repo_root, stack, event, original_branch)
    restored: str | None = target
    try:
        git.checkout_branch(repo_root, target)
    except RuntimeError as e:
        logger.warning("Could not check out %s after sync: %s", target, e)
        restored = None

    updated_stack = stack.without_branch(event.branch_name)
    try:
        store.save(stack_set.with_stack(updated_stack))
    except OSError as e:
        message = f"Rebase succeeded but {store.path.name} could not be written: {e}"
        yield replace(run, state=SyncState.ERROR, message=message, error=message)
        yield CompletionEvent(SyncFailed(message))
        return

    if git.branch_exists(repo_root, event.branch_name):
        try:
            git.delete_branch(repo_root, event.branch_name)
        except RuntimeError as e:
            logger.debug("Keeping local branch %s: %s", event.branch_name, e)

    statuses = classify_branches(git, repo_root, updated_stack.branches, remote=REMOTE)

    yield replace(
        run,
        state=SyncState.SUCCESS,
        message=f"Removed {event.branch_name} from {stack.name}",
        current_branch=restored,
        auto_resolved_files=tuple(auto_resolved),
    )
    yield CompletionEvent(
        SyncSucceeded(
            merged_branch=event.branch_name,
            stack=updated_stack,
            restored_branch=restored,
            auto_resolved_files=tuple(auto_resolved),
            branch_statuses=statuses,
        )
    )


def abort_sync(ctx: StackboiContext, original_branch: str | None) -> None:
    """Abort a rebase left open by a conflicted sync and return to original_branch.

    Never touches `.stackboi.json`: the merged branch stays in its stack until a
    sync completes.

    Raises:
        RuntimeError: If no rebase is in progress or git refuses to abort
    """
    if ctx.repo_root is None:
        raise RuntimeError("Not in a git repository")
    ctx.git.rebase_abort(ctx.repo_root)
    if original_branch is not None:
        ctx.git.checkout_branch(ctx.repo_root, original_branch)


class SyncCoordinator:
    """Single owner of the working tree.

    Only one sync may be outstanding at a time; pollers consult syncing_stack
    to leave the stack being rebased alone.
    """

    def __init__(self, ctx: StackboiContext) -> None:
        self._ctx = ctx
        self._active: MergedEvent | None = None

    @property
    def is_syncing(self) -> bool:
        return self._active is not None

    @property
    def syncing_stack(self) -> str | None:
        return self._active.stack_name if self._active is not None else None

    def run(
        self,
        event: MergedEvent,
        *,
        resume: bool = False,
        original_branch: str | None = None,
    ) -> Iterator[SyncEvent]:
        """Claim the working tree and return the sync's event stream.

        The claim is released once the returned iterator is exhausted or closed.

        Raises:
            SyncInProgressError: If another sync has not finished yet
        """
        if self._active is not None:
            raise SyncInProgressError(
                f"Already syncing stack '{self._active.stack_name}' "
                f"(merged branch {self._active.branch_name})"
            )
        self._active = event
        return self._drive(event, resume=resume, original_branch=original_branch)

    def _drive(
        self, event: MergedEvent, *, resume: bool, original_branch: str | None
    ) -> Iterator[SyncEvent]:
        try:
            yield from execute_sync(
                self._ctx, event, resume=resume, original_branch=original_branch
            )
        finally:
            self._active = None
