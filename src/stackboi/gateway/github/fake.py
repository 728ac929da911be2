"""Fake GitHub operations for testing."""

from dataclasses import dataclass, replace
from pathlib import Path

from stackboi.gateway.github.abc import GitHub
from stackboi.gateway.github.types import PRDetails, PullRequestInfo


@dataclass(frozen=True)
class CreatedPR:
    """Arguments of one create_pr() call."""

    branch: str
    base: str
    title: str
    body: str
    labels: tuple[str, ...]
    draft: bool


class FakeGitHub(GitHub):
    """In-memory fake implementation of GitHub operations.

    All state is provided via constructor using keyword arguments with sensible
    defaults; set_pr() stands in for a PR changing on GitHub between polls.
    Mutations update the in-memory PR details so later queries observe them.
    """

    def __init__(
        self,
        *,
        authenticated: bool = True,
        prs: dict[str, PullRequestInfo] | None = None,
        pr_details: dict[str, PRDetails] | None = None,
        update_base_raises: dict[str, Exception] | None = None,
        label_raises: dict[str, Exception] | None = None,
        update_body_raises: dict[str, Exception] | None = None,
        create_pr_raises: Exception | None = None,
        next_pr_number: int = 100,
    ) -> None:
        """Create FakeGitHub with pre-configured state.

        Args:
            authenticated: Result of check_auth_status()
            prs: Mapping of head branch -> PR summary
            pr_details: Mapping of head branch -> PR details; branches with a PR but
                no details get an empty base, no labels and an empty body
            update_base_raises: Mapping of branch -> exception raised by update_pr_base()
            label_raises: Mapping of branch -> exception raised by add_label()/remove_label()
            update_body_raises: Mapping of branch -> exception raised by update_pr_body()
            create_pr_raises: Exception raised by create_pr()
            next_pr_number: Number assigned to the next created PR
        """
        self._authenticated = authenticated
        self._prs = dict(prs or {})
        self._pr_details = dict(pr_details or {})
        self._update_base_raises = dict(update_base_raises or {})
        self._label_raises = dict(label_raises or {})
        self._update_body_raises = dict(update_body_raises or {})
        self._create_pr_raises = create_pr_raises
        self._next_pr_number = next_pr_number

        self._pr_lookups: list[str] = []
        self._updated_bases: list[tuple[str, str]] = []
        self._added_labels: list[tuple[str, str]] = []
        self._removed_labels: list[tuple[str, str]] = []
        self._ensured_labels: list[tuple[str, str, str]] = []
        self._updated_bodies: list[tuple[str, str]] = []
        self._created_prs: list[CreatedPR] = []
        self._opened_in_browser: list[str] = []

    def _details_for(self, branch: str) -> PRDetails | None:
        if branch in self._pr_details:
            return self._pr_details[branch]
        pr = self._prs.get(branch)
        if pr is None:
            return None
        return PRDetails(number=pr.number, base_ref_name="", labels=(), body="")

    def _require_pr(self, branch: str) -> PRDetails:
        details = self._details_for(branch)
        if details is None:
            raise RuntimeError(f"no pull requests found for branch '{branch}'")
        return details

    def check_auth_status(self) -> bool:
        return self._authenticated

    def get_pr_for_branch(self, repo_root: Path, branch: str) -> PullRequestInfo | None:
        self._pr_lookups.append(branch)
        return self._prs.get(branch)

    def get_pr_details(self, repo_root: Path, branch: str) -> PRDetails | None:
        return self._details_for(branch)

    def update_pr_base(self, repo_root: Path, branch: str, new_base: str) -> None:
        if branch in self._update_base_raises:
            raise self._update_base_raises[branch]
        details = self._require_pr(branch)
        self._pr_details[branch] = replace(details, base_ref_name=new_base)
        self._updated_bases.append((branch, new_base))

    def add_label(self, repo_root: Path, branch: str, label: str) -> None:
        if branch in self._label_raises:
            raise self._label_raises[branch]
        details = self._require_pr(branch)
        if label not in details.labels:
            self._pr_details[branch] = replace(details, labels=(*details.labels, label))
        self._added_labels.append((branch, label))

    def remove_label(self, repo_root: Path, branch: str, label: str) -> None:
        if branch in self._label_raises:
            raise self._label_raises[branch]
        details = self._require_pr(branch)
        remaining = tuple(name for name in details.labels if name != label)
        self._pr_details[branch] = replace(details, labels=remaining)
        self._removed_labels.append((branch, label))

    def ensure_label(self, repo_root: Path, label: str, description: str, color: str) -> None:
        self._ensured_labels.append((label, description, color))

    def update_pr_body(self, repo_root: Path, branch: str, body: str) -> None:
        if branch in self._update_body_raises:
            raise self._update_body_raises[branch]
        details = self._require_pr(branch)
        self._pr_details[branch] = replace(details, body=body)
        self._updated_bodies.append((branch, body))

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
        if self._create_pr_raises is not None:
            raise self._create_pr_raises
        number = self._next_pr_number
        self._next_pr_number += 1
        self._prs[branch] = PullRequestInfo(
            number=number,
            state="OPEN",
            is_draft=draft,
            url=f"https://github.com/owner/repo/pull/{number}",
        )
        self._pr_details[branch] = PRDetails(
            number=number, base_ref_name=base, labels=tuple(labels), body=body
        )
        self._created_prs.append(
            CreatedPR(
                branch=branch,
                base=base,
                title=title,
                body=body,
                labels=tuple(labels),
                draft=draft,
            )
        )
        return number

    def open_pr_in_browser(self, repo_root: Path, branch: str) -> None:
        self._opened_in_browser.append(branch)

    def set_pr(self, branch: str, pr: PullRequestInfo) -> None:
        """Replace the canned PR of a branch, as if it changed on GitHub between polls.

        Args:
            branch: Head branch of the PR
            pr: New PR summary returned by get_pr_for_branch()
        """
        self._prs[branch] = pr

    @property
    def pr_lookups(self) -> list[str]:
        """Branches passed to get_pr_for_branch(), in call order."""
        return list(self._pr_lookups)

    @property
    def updated_bases(self) -> list[tuple[str, str]]:
        return list(self._updated_bases)

    @property
    def added_labels(self) -> list[tuple[str, str]]:
        return list(self._added_labels)

    @property
    def removed_labels(self) -> list[tuple[str, str]]:
        return list(self._removed_labels)

    @property
    def ensured_labels(self) -> list[tuple[str, str, str]]:
        """(label, description, color) for each ensure_label() call."""
        return list(self._ensured_labels)

    @property
    def updated_bodies(self) -> list[tuple[str, str]]:
        return list(self._updated_bodies)

    @property
    def created_prs(self) -> list[CreatedPR]:
        return list(self._created_prs)

    @property
    def opened_in_browser(self) -> list[str]:
        return list(self._opened_in_browser)

    def details(self, branch: str) -> PRDetails | None:
        """Current in-memory details of the PR for a branch."""
        return self._details_for(branch)
