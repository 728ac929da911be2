"""Data model for stacks, their settings and the ephemeral state of a sync.

Persisted types (StackSet, Stack, Settings, RerereSettings) mirror the
`.stackboi.json` file; everything else lives only for the duration of a
command or a TUI session.
"""

from dataclasses import dataclass, field, replace
from enum import Enum

SCHEMA_VERSION = 1
DEFAULT_POLL_INTERVAL_MS = 30_000
MIN_POLL_INTERVAL_MS = 5_000
STACK_LABEL_PREFIX = "stack:"


class PRStatus(Enum):
    OPEN = "open"
    MERGED = "merged"
    CLOSED = "closed"
    DRAFT = "draft"
    NONE = "none"


class SyncStatus(Enum):
    UP_TO_DATE = "up-to-date"
    NEEDS_PUSH = "needs-push"
    NEEDS_REBASE = "needs-rebase"
    CONFLICTS = "conflicts"
    PENDING_SYNC = "pending-sync"
    UNKNOWN = "unknown"


class SyncState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    REBASING = "rebasing"
    CHECKING_CONFLICTS = "checking-conflicts"
    AWAITING_USER = "awaiting-user"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class StackPosition:
    """1-based position of a branch within its stack."""

    position: int
    total: int

    @property
    def label(self) -> str:
        return stack_label(self.position, self.total)


def stack_label(position: int, total: int) -> str:
    """Name of the PR label that marks a branch's place in its stack."""
    return f"{STACK_LABEL_PREFIX}{position}/{total}"


@dataclass(frozen=True)
class Stack:
    """An ordered chain of branches built on a base branch.

    branches[0] is based on base_branch and every later branch is based on
    the one before it.
    """

    name: str
    base_branch: str
    branches: tuple[str, ...]

    def contains(self, branch: str) -> bool:
        return branch in self.branches

    def parent_of(self, branch: str) -> str:
        """Branch the given branch is based on.

        The first branch, and any branch not in the stack, is based on base_branch.
        """
        if branch not in self.branches:
            return self.base_branch
        index = self.branches.index(branch)
        if index == 0:
            return self.base_branch
        return self.branches[index - 1]

    def position_of(self, branch: str) -> StackPosition:
        return StackPosition(position=self.branches.index(branch) + 1, total=len(self.branches))

    def children_of(self, branch: str) -> tuple[str, ...]:
        """Every branch stacked (directly or transitively) on top of branch."""
        if branch not in self.branches:
            return ()
        return self.branches[self.branches.index(branch) + 1 :]

    def without_branch(self, branch: str) -> "Stack":
        return replace(self, branches=tuple(b for b in self.branches if b != branch))

    def with_branch_after(self, anchor: str, branch: str) -> "Stack":
        """Insert branch right after anchor; an anchor outside the stack means the front."""
        if anchor in self.branches:
            index = self.branches.index(anchor) + 1
        else:
            index = 0
        return replace(self, branches=(*self.branches[:index], branch, *self.branches[index:]))


@dataclass(frozen=True)
class RerereSettings:
    enabled: bool = True
    # persisted as "autoupdate": stage files rerere resolved
    auto_apply: bool = True


@dataclass(frozen=True)
class Settings:
    rerere: RerereSettings = field(default_factory=RerereSettings)
    default_base_branch: str = "main"
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS

    @property
    def effective_poll_interval_ms(self) -> int:
        return max(self.poll_interval_ms, MIN_POLL_INTERVAL_MS)


@dataclass(frozen=True)
class StackSet:
    """Everything stored in `.stackboi.json`."""

    stacks: tuple[Stack, ...] = ()
    settings: Settings = field(default_factory=Settings)
    version: int = SCHEMA_VERSION

    def find_stack(self, name: str) -> Stack | None:
        for stack in self.stacks:
            if stack.name == name:
                return stack
        return None

    def find_stack_by_branch(self, branch: str) -> Stack | None:
        """Stack that tracks branch, or else the first stack based on it."""
        for stack in self.stacks:
            if branch in stack.branches:
                return stack
        for stack in self.stacks:
            if stack.base_branch == branch:
                return stack
        return None

    def with_stack(self, updated: Stack) -> "StackSet":
        return replace(
            self,
            stacks=tuple(updated if stack.name == updated.name else stack for stack in self.stacks),
        )

    def add_stack(self, stack: Stack) -> "StackSet":
        return replace(self, stacks=(*self.stacks, stack))


@dataclass(frozen=True)
class BranchInfo:
    name: str
    pr_number: int | None
    pr_status: PRStatus
    sync_status: SyncStatus


@dataclass(frozen=True)
class StackSnapshot:
    """A stack together with the last known state of each of its branches."""

    stack: Stack
    branches: tuple[BranchInfo, ...]

    def branch(self, name: str) -> BranchInfo | None:
        for info in self.branches:
            if info.name == name:
                return info
        return None


@dataclass(frozen=True)
class MergedEvent:
    """A tracked branch whose PR was merged upstream.

    child_branches is the exact suffix of the stack after branch_name, in order.
    """

    branch_name: str
    pr_number: int
    child_branches: tuple[str, ...]
    stack_name: str


@dataclass(frozen=True)
class SyncRun:
    """Snapshot of a sync at one state transition."""

    state: SyncState
    message: str
    merged_branch: str
    child_branches: tuple[str, ...]
    current_branch: str | None = None
    conflicted_files: tuple[str, ...] = ()
    auto_resolved_files: tuple[str, ...] = ()
    error: str | None = None
