"""High-level git operations interface.

This module provides a clean abstraction over git subprocess calls, making the
sync engine testable without a real repository.

Architecture:
- Git: Abstract base class defining the interface
- RealGit: Production implementation using subprocess
- FakeGit: In-memory implementation for tests
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RebaseResult:
    """Result of a rebase step (start or continue).

    Attributes:
        success: True if the rebase finished without stopping
        has_conflicts: True if git stopped on a conflicting commit; the rebase is
            left in progress in that case
        message: Combined git output when the step failed, empty otherwise
        rerere_resolved_files: Files rerere rewrote from a recorded resolution at
            this stop, as git reported them ("Resolved/Staged '<path>' using
            previous resolution."). They are staged only if rerere.autoupdate is on.
    """

    success: bool
    has_conflicts: bool
    message: str
    rerere_resolved_files: tuple[str, ...] = ()


class Git(ABC):
    """Abstract interface for git operations.

    All implementations (real and fake) must implement this interface.
    Query methods return None or False for "not there"; mutation methods raise
    RuntimeError when git fails.
    """

    # ============================================================================
    # Repository queries
    # ============================================================================

    @abstractmethod
    def is_inside_work_tree(self, cwd: Path) -> bool:
        """Check whether cwd is inside a git work tree."""
        ...

    @abstractmethod
    def get_repository_root(self, cwd: Path) -> Path:
        """Get the repository root directory (git rev-parse --show-toplevel)."""
        ...

    @abstractmethod
    def get_version(self) -> str | None:
        """Raw output of `git --version`, or None if git cannot be run."""
        ...

    @abstractmethod
    def detect_default_branch(self, cwd: Path) -> str:
        """Default branch of origin (refs/remotes/origin/HEAD), falling back to "main"."""
        ...

    # ============================================================================
    # Branch and ref queries
    # ============================================================================

    @abstractmethod
    def get_current_branch(self, cwd: Path) -> str | None:
        """Get the checked-out branch name, or None on detached HEAD."""
        ...

    @abstractmethod
    def branch_exists(self, cwd: Path, branch: str) -> bool:
        """Check whether a local branch (refs/heads/<branch>) exists."""
        ...

    @abstractmethod
    def resolve_ref(self, cwd: Path, ref: str) -> str | None:
        """Resolve a ref to its commit hash, or None if it does not exist."""
        ...

    @abstractmethod
    def get_merge_base(self, cwd: Path, ref_a: str, ref_b: str) -> str | None:
        """Best common ancestor of two refs, or None if there is none."""
        ...

    @abstractmethod
    def has_uncommitted_changes(self, cwd: Path) -> bool:
        """Check for staged, modified or untracked files (git status --porcelain)."""
        ...

    @abstractmethod
    def get_first_commit_subject(self, cwd: Path, parent: str, branch: str) -> str | None:
        """Subject of the oldest commit in parent..branch, or None if there is none."""
        ...

    # ============================================================================
    # Branch mutations
    # ============================================================================

    @abstractmethod
    def fetch(self, cwd: Path, remote: str) -> None:
        """Fetch a named remote.

        Raises:
            RuntimeError: If the fetch fails
        """
        ...

    @abstractmethod
    def checkout_branch(self, cwd: Path, branch: str) -> None:
        """Check out an existing branch.

        Raises:
            RuntimeError: If the checkout fails
        """
        ...

    @abstractmethod
    def create_branch(self, cwd: Path, branch: str) -> None:
        """Create a branch from HEAD and check it out (git checkout -b)."""
        ...

    @abstractmethod
    def delete_branch(self, cwd: Path, branch: str) -> None:
        """Delete a merged local branch (git branch -d).

        Raises:
            RuntimeError: If git refuses (unmerged, checked out, missing)
        """
        ...

    # ============================================================================
    # Rebase
    # ============================================================================

    @abstractmethod
    def rebase_update_refs(self, cwd: Path, onto: str) -> RebaseResult:
        """Rebase the current branch onto a ref with `--update-refs`.

        Every branch pointing at a commit being rewritten is moved along with it,
        so rebasing the tip of a stack rebases the whole stack at once.
        """
        ...

    @abstractmethod
    def rebase_continue(self, cwd: Path) -> RebaseResult:
        """Continue an in-progress rebase (git rebase --continue)."""
        ...

    @abstractmethod
    def rebase_abort(self, cwd: Path) -> None:
        """Abort an in-progress rebase.

        Raises:
            RuntimeError: If no rebase is in progress
        """
        ...

    @abstractmethod
    def is_rebase_in_progress(self, cwd: Path) -> bool:
        """Check for .git/rebase-merge or .git/rebase-apply."""
        ...

    @abstractmethod
    def get_rebase_step(self, cwd: Path) -> int | None:
        """Index of the commit the in-progress rebase is replaying, None if idle."""
        ...

    # ============================================================================
    # Conflicts and rerere
    # ============================================================================

    @abstractmethod
    def get_unmerged_files(self, cwd: Path) -> list[str]:
        """Files git still marks unmerged in the index (git diff --diff-filter=U).

        With rerere.autoupdate off this includes files rerere already rewrote
        from a recorded resolution.
        """
        ...

    @abstractmethod
    def get_conflicted_files(self, cwd: Path) -> list[str]:
        """Files with a conflict status code in git status (UU, AA, DU, UD)."""
        ...

    @abstractmethod
    def stage_files(self, cwd: Path, files: list[str]) -> None:
        """Stage files (git add)."""
        ...

    @abstractmethod
    def count_rerere_resolutions(self, cwd: Path) -> int:
        """Number of trained resolutions in the rerere cache (rr-cache entries)."""
        ...

    @abstractmethod
    def configure_rerere(self, cwd: Path, *, enabled: bool, autoupdate: bool) -> None:
        """Set rerere.enabled and rerere.autoupdate in the repository config."""
        ...
