"""Production implementation of GitHub operations using the gh CLI."""

import json
import logging
from pathlib import Path

from stackboi.gateway.github.abc import GitHub
from stackboi.gateway.github.types import PRDetails, PullRequestInfo
from stackboi.subprocess_utils import execute_gh_command, run_subprocess_with_context

logger = logging.getLogger(__name__)


class RealGitHub(GitHub):
    """Production implementation using gh CLI.

    All GitHub operations execute actual gh commands via subprocess.
    """

    def check_auth_status(self) -> bool:
        try:
            result = run_subprocess_with_context(
                ["gh", "auth", "status"],
                operation_context="check GitHub authentication status",
                check=False,
                timeout=30,
            )
        except RuntimeError:
            # gh not installed or hung
            return False
        return result.returncode == 0

    def get_pr_for_branch(self, repo_root: Path, branch: str) -> PullRequestInfo | None:
        """Get PR summary for a branch.

        Note: Uses try/except as an acceptable error boundary. `gh pr view` exits
        non-zero both for "no PR" and for gh failures; either way there is no PR
        we can act on.
        """
        try:
            stdout = execute_gh_command(
                ["gh", "pr", "view", branch, "--json", "number,state,isDraft,url"],
                repo_root,
                operation_context=f"view PR for branch '{branch}'",
            )
            data = json.loads(stdout)
        except (RuntimeError, json.JSONDecodeError) as e:
            logger.debug("No PR for %s: %s", branch, e)
            return None

        return PullRequestInfo(
            number=data["number"],
            state=data["state"],
            is_draft=bool(data.get("isDraft", False)),
            url=data.get("url", ""),
        )

    def get_pr_details(self, repo_root: Path, branch: str) -> PRDetails | None:
        try:
            stdout = execute_gh_command(
                ["gh", "pr", "view", branch, "--json", "number,baseRefName,labels,body"],
                repo_root,
                operation_context=f"view PR details for branch '{branch}'",
            )
            data = json.loads(stdout)
        except (RuntimeError, json.JSONDecodeError) as e:
            logger.debug("No PR details for %s: %s", branch, e)
            return None

        labels = tuple(label["name"] for label in data.get("labels") or [])
        return PRDetails(
            number=data["number"],
            base_ref_name=data.get("baseRefName", ""),
            labels=labels,
            body=data.get("body") or "",
        )

    def update_pr_base(self, repo_root: Path, branch: str, new_base: str) -> None:
        execute_gh_command(
            ["gh", "pr", "edit", branch, "--base", new_base],
            repo_root,
            operation_context=f"retarget PR for '{branch}' onto '{new_base}'",
        )

    def add_label(self, repo_root: Path, branch: str, label: str) -> None:
        execute_gh_command(
            ["gh", "pr", "edit", branch, "--add-label", label],
            repo_root,
            operation_context=f"add label '{label}' to PR for '{branch}'",
        )

    def remove_label(self, repo_root: Path, branch: str, label: str) -> None:
        execute_gh_command(
            ["gh", "pr", "edit", branch, "--remove-label", label],
            repo_root,
            operation_context=f"remove label '{label}' from PR for '{branch}'",
        )

    def ensure_label(self, repo_root: Path, label: str, description: str, color: str) -> None:
        execute_gh_command(
            [
                "gh",
                "label",
                "create",
                label,
                "--description",
                description,
                "--color",
                color,
                "--force",
            ],
            repo_root,
            operation_context=f"create label '{label}'",
        )

    def update_pr_body(self, repo_root: Path, branch: str, body: str) -> None:
        execute_gh_command(
            ["gh", "pr", "edit", branch, "--body", body],
            repo_root,
            operation_context=f"update body of PR for '{branch}'",
        )

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
        cmd = [
            "gh",
            "pr",
            "create",
            "--head",
            branch,
            "--base",
            base,
            "--title",
            title,
            "--body",
            body,
        ]
        for label in labels:
            cmd.extend(["--label", label])
        if draft:
            cmd.append("--draft")

        stdout = execute_gh_command(
            cmd,
            repo_root,
            operation_context=f"create pull request for branch '{branch}'",
        )

        # Format: https://github.com/owner/repo/pull/123
        pr_url = stdout.strip().splitlines()[-1]
        return int(pr_url.rstrip("/").split("/")[-1])

    def open_pr_in_browser(self, repo_root: Path, branch: str) -> None:
        execute_gh_command(
            ["gh", "pr", "view", branch, "--web"],
            repo_root,
            operation_context=f"open PR for '{branch}' in browser",
        )
