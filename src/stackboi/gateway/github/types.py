"""Type definitions for GitHub operations."""

from dataclasses import dataclass
from typing import Literal

PRState = Literal["OPEN", "MERGED", "CLOSED"]


@dataclass(frozen=True)
class PullRequestInfo:
    """Summary of the pull request whose head is a branch."""

    number: int
    state: PRState
    is_draft: bool
    url: str


@dataclass(frozen=True)
class PRDetails:
    """Fields of a pull request that stack metadata sync rewrites."""

    number: int
    base_ref_name: str
    labels: tuple[str, ...]
    body: str
