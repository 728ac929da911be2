"""Abstract interface for the GitHub operations stackboi needs.

Pull requests are addressed by head branch name, which is how `gh pr view`,
`gh pr edit` and friends resolve them.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from stackboi.gateway.github.types import PRDetails, PullRequestInfo


class GitHub(ABC):
    """Abstract interface for GitHub operations.

    Query methods return None when the PR does not exist or gh fails.
    Mutation methods raise RuntimeError so callers can record the failure.
    """

    @abstractmethod
    def check_auth_status(self) -> bool:
        """Return True if `gh auth status` reports a logged-in account."""
        ...

    @abstractmethod
    def get_pr_for_branch(self, repo_root: Path, branch: str) -> PullRequestInfo | None:
        """Get number, state, draft flag and URL of the PR for a branch."""
        ...

    @abstractmethod
    def get_pr_details(self, repo_root: Path, branch: str) -> PRDetails | None:
        """Get base branch, label names and body of the PR for a branch."""
        ...

    @abstractmethod
    def update_pr_base(self, repo_root: Path, branch: str, new_base: str) -> None:
        """Retarget the PR for a branch onto a new base branch."""
        ...

    @abstractmethod
    def add_label(self, repo_root: Path, branch: str, label: str) -> None:
        """Add a label to the PR for a branch."""
        ...

    @abstractmethod
    def remove_label(self, repo_root: Path, branch: str, label: str) -> None:
        """Remove a label from the PR for a branch."""
        ...

    @abstractmethod
    def ensure_label(self, repo_root: Path, label: str, description: str, color: str) -> None:
        """Create a repository label, or update it in place if it already exists."""
        ...

    @abstractmethod
    def update_pr_body(self, repo_root: Path, branch: str, body: str) -> None:
        """Replace the body of the PR for a branch."""
        ...

    @abstractmethod
    def create_pr(
        self,
        repo_root: Path,
        branch: str,
        *,
        base: str,
        title: str,
        body: str,
        labels: list[str],
        draft: bool,
    ) -> int:
        """Create a pull request for a branch.

        Returns:
            The new PR number

        Raises:
            RuntimeError: If gh fails to create the PR
        """
        ...

    @abstractmethod
    def open_pr_in_browser(self, repo_root: Path, branch: str) -> None:
        """Open the PR for a branch in the web browser."""
        ...
