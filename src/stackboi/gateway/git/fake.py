"""Fake git operations for testing.

FakeGit is an in-memory implementation that accepts pre-configured state
in its constructor. Construct instances directly with keyword arguments.
"""

from dataclasses import dataclass
from pathlib import Path

from stackboi.gateway.git.abc import Git, RebaseResult


@dataclass(frozen=True)
class RebaseStop:
    """One point where a scripted rebase stops.

    Mirrors what git reports at a conflicting commit: rerere rewrites the files
    it has a recorded resolution for and names them in the rebase output; with
    autoupdate off those files stay unmerged in the index until staged.

    Attributes:
        unmerged_files: Files left with conflict markers at this stop
        replayed_files: Files rerere resolved from a recorded resolution
        autoupdate: Value of rerere.autoupdate; if False, replayed_files are also
            reported unmerged until staged
        has_conflicts: False simulates a non-conflict failure (e.g. a hook error)
        stalls_on_continue: If True, continue fails again at the same step even when
            nothing is left unmerged
        message: Output git prints when stopping
    """

    unmerged_files: tuple[str, ...] = ()
    replayed_files: tuple[str, ...] = ()
    autoupdate: bool = True
    has_conflicts: bool = True
    stalls_on_continue: bool = False
    message: str = "CONFLICT (content): Merge conflict"


class FakeGit(Git):
    """In-memory fake implementation of git operations.

    State Management:
    -----------------
    This fake maintains mutable state to simulate git's stateful behavior:
    checkouts move the current branch, scripted rebases walk through their
    stops, staging clears unmerged files at the current stop.

    Constructor Injection:
    ---------------------
    - local_branches: branch name -> commit hash
    - remote_refs: remote ref (e.g. "origin/feature") -> commit hash
    - merge_bases: (ref_a, ref_b) -> merge base hash (looked up in both orders)
    - rebase_stops: stops the next rebase walks through; empty means a clean rebase
    - fetch_raises / checkout_raises / delete_branch_raises: failures to inject

    Mutation Tracking:
    -----------------
    Read-only properties expose fetches, checkouts, created and deleted branches,
    rebase start/continue/abort calls and staged files.
    """

    def __init__(
        self,
        *,
        repository_root: Path = Path("/repo"),
        inside_work_tree: bool = True,
        version: str | None = "git version 2.43.0",
        default_branch: str = "main",
        current_branch: str | None = None,
        local_branches: dict[str, str] | None = None,
        remote_refs: dict[str, str] | None = None,
        merge_bases: dict[tuple[str, str], str] | None = None,
        uncommitted_changes: bool = False,
        first_commit_subjects: dict[str, str] | None = None,
        rebase_stops: list[RebaseStop] | None = None,
        rerere_resolution_count: int = 0,
        fetch_raises: Exception | None = None,
        checkout_raises: dict[str, Exception] | None = None,
        delete_branch_raises: Exception | None = None,
    ) -> None:
        self._repository_root = repository_root
        self._inside_work_tree = inside_work_tree
        self._version = version
        self._default_branch = default_branch
        self._current_branch = current_branch
        self._local_branches = dict(local_branches or {})
        self._remote_refs = dict(remote_refs or {})
        self._merge_bases = dict(merge_bases or {})
        self._uncommitted_changes = uncommitted_changes
        self._first_commit_subjects = dict(first_commit_subjects or {})
        self._rebase_stops = list(rebase_stops or [])
        self._rerere_resolution_count = rerere_resolution_count
        self._fetch_raises = fetch_raises
        self._checkout_raises = dict(checkout_raises or {})
        self._delete_branch_raises = delete_branch_raises

        if current_branch is not None and current_branch not in self._local_branches:
            self._local_branches[current_branch] = f"sha-{current_branch}"

        # Rebase state
        self._rebase_in_progress = False
        self._rebase_index = 0
        self._rebase_started_on: str | None = None
        self._staged_at_stop: set[str] = set()

        # Mutation tracking
        self._fetched_remotes: list[str] = []
        self._checked_out_branches: list[str] = []
        self._created_branches: list[str] = []
        self._deleted_branches: list[str] = []
        self._rebase_onto_calls: list[tuple[str, str | None]] = []
        self._rebase_continue_count = 0
        self._rebase_abort_count = 0
        self._staged_files: list[str] = []
        self._rerere_config: tuple[bool, bool] | None = None

    # ============================================================================
    # Repository queries
    # ============================================================================

    def is_inside_work_tree(self, cwd: Path) -> bool:
        return self._inside_work_tree

    def get_repository_root(self, cwd: Path) -> Path:
        return self._repository_root

    def get_version(self) -> str | None:
        return self._version

    def detect_default_branch(self, cwd: Path) -> str:
        return self._default_branch

    # ============================================================================
    # Branch and ref queries
    # ============================================================================

    def get_current_branch(self, cwd: Path) -> str | None:
        return self._current_branch

    def branch_exists(self, cwd: Path, branch: str) -> bool:
        return branch in self._local_branches

    def resolve_ref(self, cwd: Path, ref: str) -> str | None:
        if ref.startswith("refs/heads/"):
            return self._local_branches.get(ref.removeprefix("refs/heads/"))
        if ref.startswith("refs/remotes/"):
            return self._remote_refs.get(ref.removeprefix("refs/remotes/"))
        if ref in self._local_branches:
            return self._local_branches[ref]
        return self._remote_refs.get(ref)

    def get_merge_base(self, cwd: Path, ref_a: str, ref_b: str) -> str | None:
        if (ref_a, ref_b) in self._merge_bases:
            return self._merge_bases[(ref_a, ref_b)]
        return self._merge_bases.get((ref_b, ref_a))

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        return self._uncommitted_changes

    def get_first_commit_subject(self, cwd: Path, parent: str, branch: str) -> str | None:
        return self._first_commit_subjects.get(branch)

    # ============================================================================
    # Branch mutations
    # ============================================================================

    def fetch(self, cwd: Path, remote: str) -> None:
        if self._fetch_raises is not None:
            raise self._fetch_raises
        self._fetched_remotes.append(remote)

    def checkout_branch(self, cwd: Path, branch: str) -> None:
        if branch in self._checkout_raises:
            raise self._checkout_raises[branch]
        if branch not in self._local_branches:
            raise RuntimeError(f"Failed to checkout branch '{branch}': pathspec did not match")
        self._current_branch = branch
        self._checked_out_branches.append(branch)

    def create_branch(self, cwd: Path, branch: str) -> None:
        if branch in self._local_branches:
            raise RuntimeError(f"Failed to create branch '{branch}': already exists")
        head = self._local_branches.get(self._current_branch or "", "sha-head")
        self._local_branches[branch] = head
        self._current_branch = branch
        self._created_branches.append(branch)

    def delete_branch(self, cwd: Path, branch: str) -> None:
        if self._delete_branch_raises is not None:
            raise self._delete_branch_raises
        if branch == self._current_branch:
            raise RuntimeError(f"Failed to delete branch '{branch}': checked out")
        self._local_branches.pop(branch, None)
        self._deleted_branches.append(branch)

    # ============================================================================
    # Rebase
    # ============================================================================

    def _stop_result(self) -> RebaseResult:
        stop = self._rebase_stops[self._rebase_index]
        replayed = stop.replayed_files if stop.has_conflicts else ()
        verb = "Staged" if stop.autoupdate else "Resolved"
        lines = [stop.message]
        lines.extend(f"{verb} '{path}' using previous resolution." for path in replayed)
        return RebaseResult(
            success=False,
            has_conflicts=stop.has_conflicts,
            message="\n".join(lines),
            rerere_resolved_files=replayed,
        )

    def _finish_rebase(self) -> RebaseResult:
        self._rebase_in_progress = False
        self._rebase_stops = []
        self._rebase_index = 0
        self._staged_at_stop = set()
        return RebaseResult(success=True, has_conflicts=False, message="")

    def rebase_update_refs(self, cwd: Path, onto: str) -> RebaseResult:
        self._rebase_onto_calls.append((onto, self._current_branch))
        if not self._rebase_stops:
            return RebaseResult(success=True, has_conflicts=False, message="")
        self._rebase_in_progress = True
        self._rebase_index = 0
        self._rebase_started_on = self._current_branch
        self._staged_at_stop = set()
        return self._stop_result()

    def rebase_continue(self, cwd: Path) -> RebaseResult:
        self._rebase_continue_count += 1
        if not self._rebase_in_progress:
            return RebaseResult(
                success=False, has_conflicts=False, message="No rebase in progress?"
            )

        stop = self._rebase_stops[self._rebase_index]
        if self.get_unmerged_files(cwd) or stop.stalls_on_continue:
            return self._stop_result()

        self._rebase_index += 1
        self._staged_at_stop = set()
        if self._rebase_index >= len(self._rebase_stops):
            return self._finish_rebase()
        return self._stop_result()

    def rebase_abort(self, cwd: Path) -> None:
        if not self._rebase_in_progress:
            raise RuntimeError("Failed to abort rebase: no rebase in progress")
        self._rebase_abort_count += 1
        self._current_branch = self._rebase_started_on
        self._finish_rebase()

    def is_rebase_in_progress(self, cwd: Path) -> bool:
        return self._rebase_in_progress

    def get_rebase_step(self, cwd: Path) -> int | None:
        if not self._rebase_in_progress:
            return None
        return self._rebase_index + 1

    # ============================================================================
    # Conflicts and rerere
    # ============================================================================

    def get_unmerged_files(self, cwd: Path) -> list[str]:
        if not self._rebase_in_progress:
            return []
        stop = self._rebase_stops[self._rebase_index]
        unmerged = list(stop.unmerged_files)
        if not stop.autoupdate:
            unmerged.extend(f for f in stop.replayed_files if f not in unmerged)
        return [f for f in unmerged if f not in self._staged_at_stop]

    def get_conflicted_files(self, cwd: Path) -> list[str]:
        return self.get_unmerged_files(cwd)

    def stage_files(self, cwd: Path, files: list[str]) -> None:
        self._staged_files.extend(files)
        self._staged_at_stop.update(files)

    def count_rerere_resolutions(self, cwd: Path) -> int:
        return self._rerere_resolution_count

    def configure_rerere(self, cwd: Path, *, enabled: bool, autoupdate: bool) -> None:
        self._rerere_config = (enabled, autoupdate)

    # ============================================================================
    # Mutation Tracking Properties
    # ============================================================================

    @property
    def fetched_remotes(self) -> list[str]:
        return list(self._fetched_remotes)

    @property
    def checked_out_branches(self) -> list[str]:
        """Branches passed to checkout_branch(), in call order."""
        return list(self._checked_out_branches)

    @property
    def created_branches(self) -> list[str]:
        return list(self._created_branches)

    @property
    def deleted_branches(self) -> list[str]:
        return list(self._deleted_branches)

    @property
    def rebase_onto_calls(self) -> list[tuple[str, str | None]]:
        """(onto, branch checked out at the time) for each rebase_update_refs() call."""
        return list(self._rebase_onto_calls)

    @property
    def rebase_continue_count(self) -> int:
        return self._rebase_continue_count

    @property
    def rebase_abort_count(self) -> int:
        return self._rebase_abort_count

    @property
    def staged_files(self) -> list[str]:
        return list(self._staged_files)

    @property
    def rerere_config(self) -> tuple[bool, bool] | None:
        """(enabled, autoupdate) from the last configure_rerere() call."""
        return self._rerere_config

    @property
    def local_branches(self) -> dict[str, str]:
        return dict(self._local_branches)
