"""End-to-end sync against real git repositories.

A bare repository plays origin; merges are simulated by pushing a stack
branch onto origin/main. GitHub stays faked.
"""

import shutil
import subprocess
from pathlib import Path

import pytest

from stackboi.core.context import StackboiContext, context_for_test
from stackboi.core.init_ops import MIN_GIT_VERSION, parse_git_version
from stackboi.core.merge_detector import build_merged_event
from stackboi.core.sync_engine import SyncConflicts, SyncSucceeded, abort_sync, execute_sync
from stackboi.events import CompletionEvent
from stackboi.gateway.git.real import RealGit
from tests.test_utils.builders import load_stacks, make_stack, write_stacks


def _git_supports_update_refs() -> bool:
    if shutil.which("git") is None:
        return False
    version = parse_git_version(RealGit().get_version() or "")
    return version is not None and (version.major, version.minor) >= MIN_GIT_VERSION


pytestmark = pytest.mark.skipif(
    not _git_supports_update_refs(), reason="requires git with rebase --update-refs"
)

STACK = make_stack("feature-a", "feature-b", "feature-c")


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, encoding="utf-8", check=True
    )
    return result.stdout.strip()


def _commit(cwd: Path, filename: str, content: str, message: str) -> None:
    (cwd / filename).write_text(content, encoding="utf-8")
    _git(cwd, "add", filename)
    _git(cwd, "commit", "-m", message)


def _is_ancestor(cwd: Path, ancestor: str, descendant: str) -> bool:
    result = subprocess.run(
        ["git", "merge-base", "--is-ancestor", ancestor, descendant], cwd=cwd, check=False
    )
    return result.returncode == 0


@pytest.fixture
def work_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Clone of a bare origin holding main plus the feature-a/b/c stack."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for key in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(key, "Test User")
    for key in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(key, "test@example.com")
    monkeypatch.setenv("GIT_EDITOR", "true")

    origin = tmp_path / "origin.git"
    _git(tmp_path, "init", "--bare", "-b", "main", str(origin))
    _git(tmp_path, "clone", str(origin), "work")
    work = tmp_path / "work"

    _git(work, "symbolic-ref", "HEAD", "refs/heads/main")
    _commit(work, ".gitignore", ".stackboi.json\n", "Ignore stackboi config")
    _commit(work, "shared.txt", "original\n", "Add shared file")
    _git(work, "push", "-u", "origin", "main")

    _git(work, "checkout", "-b", "feature-a")
    _commit(work, "a.txt", "a\n", "Add a")
    _git(work, "checkout", "-b", "feature-b")
    _commit(work, "shared.txt", "from feature-b\n", "Change shared file")
    _git(work, "checkout", "-b", "feature-c")
    _commit(work, "c.txt", "c\n", "Add c")
    _git(work, "checkout", "feature-b")

    write_stacks(work, STACK)
    return work


def _run_sync(ctx: StackboiContext) -> SyncSucceeded | SyncConflicts:
    outcome = None
    for event in execute_sync(ctx, build_merged_event(STACK, "feature-a", 1)):
        if isinstance(event, CompletionEvent):
            outcome = event.result
    assert isinstance(outcome, SyncSucceeded | SyncConflicts), outcome
    return outcome


def _push_upstream_edit(cwd: Path) -> None:
    """Merge feature-a into origin/main together with a competing edit of shared.txt."""
    _git(cwd, "checkout", "-b", "upstream-edit", "feature-a")
    _commit(cwd, "shared.txt", "from upstream\n", "Upstream edit")
    _git(cwd, "push", "origin", "upstream-edit:main")
    _git(cwd, "checkout", "feature-b")


def test_sync_after_merge_rebases_whole_stack(work_repo: Path) -> None:
    _git(work_repo, "push", "origin", "feature-a:main")
    ctx = context_for_test(git=RealGit(), cwd=work_repo, repo_root=work_repo)

    outcome = _run_sync(ctx)

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.restored_branch == "feature-b"
    assert _git(work_repo, "branch", "--show-current") == "feature-b"
    assert _is_ancestor(work_repo, "origin/main", "feature-b")
    assert _is_ancestor(work_repo, "feature-b", "feature-c")
    assert _git(work_repo, "branch", "--list", "feature-a") == ""
    assert load_stacks(work_repo).stacks[0].branches == ("feature-b", "feature-c")


def test_sync_stops_on_conflict_and_abort_restores(work_repo: Path) -> None:
    _push_upstream_edit(work_repo)
    feature_c_before = _git(work_repo, "rev-parse", "feature-c")
    ctx = context_for_test(git=RealGit(), cwd=work_repo, repo_root=work_repo)

    outcome = _run_sync(ctx)

    assert isinstance(outcome, SyncConflicts)
    assert outcome.conflicted_files == ("shared.txt",)
    assert outcome.original_branch == "feature-b"
    assert ctx.git.is_rebase_in_progress(work_repo)

    abort_sync(ctx, outcome.original_branch)

    assert not ctx.git.is_rebase_in_progress(work_repo)
    assert _git(work_repo, "branch", "--show-current") == "feature-b"
    assert _git(work_repo, "rev-parse", "feature-c") == feature_c_before
    assert load_stacks(work_repo).stacks[0].branches == STACK.branches


def _rebase_step(cwd: Path, *args: str) -> bool:
    result = subprocess.run(
        ["git", "rebase", *args], cwd=cwd, capture_output=True, text=True, check=False
    )
    return result.returncode == 0


def _train_rerere(cwd: Path, resolutions: list[str], *, autoupdate: bool) -> None:
    """Resolve the stack's rebase onto origin/main by hand so rerere records each
    resolution, then put every stack branch back where it was."""
    _git(cwd, "config", "rerere.enabled", "true")
    _git(cwd, "config", "rerere.autoupdate", "true" if autoupdate else "false")
    before = {branch: _git(cwd, "rev-parse", branch) for branch in STACK.branches}

    _git(cwd, "checkout", "feature-c")
    remaining = iter(resolutions)
    finished = _rebase_step(cwd, "--update-refs", "origin/main")
    while not finished:
        (cwd / "shared.txt").write_text(next(remaining), encoding="utf-8")
        _git(cwd, "add", "shared.txt")
        _git(cwd, "rerere")
        finished = _rebase_step(cwd, "--continue")
    assert next(remaining, None) is None

    _git(cwd, "checkout", "--detach")
    for branch, sha in before.items():
        _git(cwd, "branch", "-f", branch, sha)
    _git(cwd, "checkout", "feature-b")


@pytest.mark.parametrize("autoupdate", [True, False])
def test_recorded_resolution_is_replayed(work_repo: Path, autoupdate: bool) -> None:
    _push_upstream_edit(work_repo)
    _train_rerere(work_repo, ["resolved\n"], autoupdate=autoupdate)
    ctx = context_for_test(git=RealGit(), cwd=work_repo, repo_root=work_repo)

    outcome = _run_sync(ctx)

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.auto_resolved_files == ("shared.txt",)
    assert outcome.restored_branch == "feature-b"
    assert not ctx.git.is_rebase_in_progress(work_repo)
    assert _git(work_repo, "show", "feature-b:shared.txt") == "resolved"
    assert _is_ancestor(work_repo, "origin/main", "feature-b")
    assert _is_ancestor(work_repo, "feature-b", "feature-c")
    assert load_stacks(work_repo).stacks[0].branches == ("feature-b", "feature-c")


def test_replay_continues_through_every_conflicting_commit(work_repo: Path) -> None:
    _git(work_repo, "checkout", "feature-c")
    _commit(work_repo, "shared.txt", "from feature-c\n", "Change shared file again")
    _push_upstream_edit(work_repo)
    _train_rerere(work_repo, ["resolved in b\n", "resolved in c\n"], autoupdate=False)
    ctx = context_for_test(git=RealGit(), cwd=work_repo, repo_root=work_repo)

    outcome = _run_sync(ctx)

    assert isinstance(outcome, SyncSucceeded)
    assert outcome.auto_resolved_files == ("shared.txt",)
    assert _git(work_repo, "show", "feature-b:shared.txt") == "resolved in b"
    assert _git(work_repo, "show", "feature-c:shared.txt") == "resolved in c"
    assert _git(work_repo, "branch", "--show-current") == "feature-b"
