"""Application context with dependency injection."""

from dataclasses import dataclass
from pathlib import Path

from stackboi.gateway.git.abc import Git
from stackboi.gateway.git.fake import FakeGit
from stackboi.gateway.git.real import RealGit
from stackboi.gateway.github.abc import GitHub
from stackboi.gateway.github.fake import FakeGitHub
from stackboi.gateway.github.real import RealGitHub
from stackboi.tui.runner import FakeTuiRunner, RealTuiRunner, TuiRunner


@dataclass(frozen=True)
class StackboiContext:
    """Immutable context holding all dependencies for stackboi operations.

    Created at the CLI entry point and threaded through commands, the sync
    engine and the TUI.

    repo_root is None when the command was started outside a git work tree;
    only `init` gets far enough to report that.
    """

    git: Git
    github: GitHub
    tui_runner: TuiRunner
    cwd: Path
    repo_root: Path | None


def create_context() -> StackboiContext:
    """Create production context with real implementations."""
    cwd = Path.cwd()
    git: Git = RealGit()
    repo_root = git.get_repository_root(cwd) if git.is_inside_work_tree(cwd) else None
    return StackboiContext(
        git=git,
        github=RealGitHub(),
        tui_runner=RealTuiRunner(),
        cwd=cwd,
        repo_root=repo_root,
    )


def context_for_test(
    *,
    git: Git | None = None,
    github: GitHub | None = None,
    tui_runner: TuiRunner | None = None,
    cwd: Path | None = None,
    repo_root: Path | None = None,
) -> StackboiContext:
    """Create test context with fakes for anything not provided.

    repo_root defaults to cwd, which defaults to the fake git's repository root;
    it stays None when the fake git reports being outside a work tree.

    Example:
        >>> git = FakeGit(current_branch="feature-a", repository_root=tmp_path)
        >>> ctx = context_for_test(git=git, repo_root=tmp_path)
    """
    resolved_git = git if git is not None else FakeGit()
    resolved_cwd = cwd if cwd is not None else resolved_git.get_repository_root(Path("."))
    if repo_root is None and resolved_git.is_inside_work_tree(resolved_cwd):
        repo_root = resolved_cwd
    return StackboiContext(
        git=resolved_git,
        github=github if github is not None else FakeGitHub(),
        tui_runner=tui_runner if tui_runner is not None else FakeTuiRunner(),
        cwd=resolved_cwd,
        repo_root=repo_root,
    )
