"""Production implementation of git operations using subprocess."""

import re
import subprocess
from pathlib import Path

from stackboi.gateway.git.abc import Git, RebaseResult
from stackboi.subprocess_utils import copied_env_for_git_subprocess, run_subprocess_with_context

_CONFLICT_STATUS_CODES = ("UU", "AA", "DU", "UD", "AU", "UA", "DD")

# rerere prints one of these per path it rewrote from a recorded resolution:
# "Resolved" when rerere.autoupdate is off, "Staged" when it is on
_RERERE_REPLAY_PATTERN = re.compile(
    r"^(?:Resolved|Staged) '(.+)' using previous resolution\.$", re.MULTILINE
)


def _split_lines(output: str) -> list[str]:
    return [line for line in output.strip().split("\n") if line]


def parse_rerere_replays(output: str) -> tuple[str, ...]:
    """Paths rerere resolved from its cache, in the order git reported them."""
    paths: list[str] = []
    for path in _RERERE_REPLAY_PATTERN.findall(output):
        if path not in paths:
            paths.append(path)
    return tuple(paths)


class RealGit(Git):
    """Production implementation using the git CLI.

    Queries run with check=False and interpret the exit code; mutations go through
    run_subprocess_with_context and raise RuntimeError on failure.
    """

    def _run(self, cwd: Path | None, *args: str) -> subprocess.CompletedProcess[str]:
        """Run a git query that is allowed to fail."""
        return subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=False,
            env=copied_env_for_git_subprocess(),
        )

    def _run_rebase(self, cwd: Path, *args: str) -> subprocess.CompletedProcess[str]:
        """Run a rebase step with untranslated output so rerere messages can be parsed."""
        env = copied_env_for_git_subprocess()
        env["LC_ALL"] = "C"
        return subprocess.run(
            ["git", "rebase", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=False,
            env=env,
        )

    def _git_dir(self, cwd: Path) -> Path | None:
        result = self._run(cwd, "rev-parse", "--git-dir")
        if result.returncode != 0:
            return None
        git_dir = Path(result.stdout.strip())
        if not git_dir.is_absolute():
            git_dir = cwd / git_dir
        return git_dir

    def _git_common_dir(self, cwd: Path) -> Path | None:
        result = self._run(cwd, "rev-parse", "--git-common-dir")
        if result.returncode != 0:
            return None
        common_dir = Path(result.stdout.strip())
        if not common_dir.is_absolute():
            common_dir = cwd / common_dir
        return common_dir

    def _rebase_step_result(
        self, cwd: Path, result: subprocess.CompletedProcess[str]
    ) -> RebaseResult:
        if result.returncode == 0:
            return RebaseResult(success=True, has_conflicts=False, message="")

        output = f"{result.stdout}\n{result.stderr}".strip()
        has_conflicts = (
            "CONFLICT" in output
            or "could not apply" in output
            or len(self.get_unmerged_files(cwd)) > 0
        )
        return RebaseResult(
            success=False,
            has_conflicts=has_conflicts,
            message=output,
            rerere_resolved_files=parse_rerere_replays(output),
        )

    # ============================================================================
    # Repository queries
    # ============================================================================

    def is_inside_work_tree(self, cwd: Path) -> bool:
        result = self._run(cwd, "rev-parse", "--is-inside-work-tree")
        return result.returncode == 0 and result.stdout.strip() == "true"

    def get_repository_root(self, cwd: Path) -> Path:
        result = run_subprocess_with_context(
            ["git", "rev-parse", "--show-toplevel"],
            operation_context="get repository root",
            cwd=cwd,
        )
        return Path(result.stdout.strip())

    def get_version(self) -> str | None:
        try:
            result = self._run(None, "--version")
        except FileNotFoundError:
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def detect_default_branch(self, cwd: Path) -> str:
        result = self._run(cwd, "symbolic-ref", "refs/remotes/origin/HEAD")
        if result.returncode == 0:
            return result.stdout.strip().removeprefix("refs/remotes/origin/")
        return "main"

    # ============================================================================
    # Branch and ref queries
    # ============================================================================

    def get_current_branch(self, cwd: Path) -> str | None:
        result = self._run(cwd, "branch", "--show-current")
        if result.returncode != 0:
            return None
        branch = result.stdout.strip()
        return branch if branch else None

    def branch_exists(self, cwd: Path, branch: str) -> bool:
        result = self._run(cwd, "show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
        return result.returncode == 0

    def resolve_ref(self, cwd: Path, ref: str) -> str | None:
        result = self._run(cwd, "rev-parse", "--verify", "--quiet", ref)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def get_merge_base(self, cwd: Path, ref_a: str, ref_b: str) -> str | None:
        result = self._run(cwd, "merge-base", ref_a, ref_b)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        result = self._run(cwd, "status", "--porcelain")
        if result.returncode != 0:
            return False
        return bool(result.stdout.strip())

    def get_first_commit_subject(self, cwd: Path, parent: str, branch: str) -> str | None:
        result = self._run(cwd, "log", f"{parent}..{branch}", "--format=%s", "--reverse")
        if result.returncode != 0:
            return None
        subjects = _split_lines(result.stdout)
        return subjects[0] if subjects else None

    # ============================================================================
    # Branch mutations
    # ============================================================================

    def fetch(self, cwd: Path, remote: str) -> None:
        run_subprocess_with_context(
            ["git", "fetch", remote],
            operation_context=f"fetch from remote '{remote}'",
            cwd=cwd,
            env=copied_env_for_git_subprocess(),
        )

    def checkout_branch(self, cwd: Path, branch: str) -> None:
        run_subprocess_with_context(
            ["git", "checkout", branch],
            operation_context=f"checkout branch '{branch}'",
            cwd=cwd,
        )

    def create_branch(self, cwd: Path, branch: str) -> None:
        run_subprocess_with_context(
            ["git", "checkout", "-b", branch],
            operation_context=f"create branch '{branch}'",
            cwd=cwd,
        )

    def delete_branch(self, cwd: Path, branch: str) -> None:
        run_subprocess_with_context(
            ["git", "branch", "-d", branch],
            operation_context=f"delete branch '{branch}'",
            cwd=cwd,
        )

    # ============================================================================
    # Rebase
    # ============================================================================

    def rebase_update_refs(self, cwd: Path, onto: str) -> RebaseResult:
        result = self._run_rebase(cwd, "--update-refs", onto)
        return self._rebase_step_result(cwd, result)

    def rebase_continue(self, cwd: Path) -> RebaseResult:
        result = self._run_rebase(cwd, "--continue")
        return self._rebase_step_result(cwd, result)

    def rebase_abort(self, cwd: Path) -> None:
        run_subprocess_with_context(
            ["git", "rebase", "--abort"],
            operation_context="abort rebase",
            cwd=cwd,
        )

    def is_rebase_in_progress(self, cwd: Path) -> bool:
        git_dir = self._git_dir(cwd)
        if git_dir is None:
            return False
        return (git_dir / "rebase-merge").exists() or (git_dir / "rebase-apply").exists()

    def get_rebase_step(self, cwd: Path) -> int | None:
        git_dir = self._git_dir(cwd)
        if git_dir is None:
            return None
        for step_file in (git_dir / "rebase-merge" / "msgnum", git_dir / "rebase-apply" / "next"):
            if step_file.exists():
                content = step_file.read_text(encoding="utf-8").strip()
                if content.isdigit():
                    return int(content)
        return None

    # ============================================================================
    # Conflicts and rerere
    # ============================================================================

    def get_unmerged_files(self, cwd: Path) -> list[str]:
        result = self._run(cwd, "diff", "--name-only", "--diff-filter=U")
        if result.returncode != 0:
            return []
        return _split_lines(result.stdout)

    def get_conflicted_files(self, cwd: Path) -> list[str]:
        result = self._run(cwd, "status", "--porcelain")
        if result.returncode != 0:
            return []
        conflicted: list[str] = []
        for line in _split_lines(result.stdout):
            if line[:2] in _CONFLICT_STATUS_CODES:
                conflicted.append(line[3:])
        return conflicted

    def stage_files(self, cwd: Path, files: list[str]) -> None:
        if not files:
            return
        run_subprocess_with_context(
            ["git", "add", "--", *files],
            operation_context="stage resolved files",
            cwd=cwd,
        )

    def count_rerere_resolutions(self, cwd: Path) -> int:
        common_dir = self._git_common_dir(cwd)
        if common_dir is None:
            return 0
        rr_cache = common_dir / "rr-cache"
        if not rr_cache.is_dir():
            return 0
        return sum(1 for entry in rr_cache.iterdir() if (entry / "postimage").exists())

    def configure_rerere(self, cwd: Path, *, enabled: bool, autoupdate: bool) -> None:
        for key, value in (("rerere.enabled", enabled), ("rerere.autoupdate", autoupdate)):
            run_subprocess_with_context(
                ["git", "config", key, "true" if value else "false"],
                operation_context=f"set {key}",
                cwd=cwd,
            )
