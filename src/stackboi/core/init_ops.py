"""Repository setup for `stackboi init`."""

import re
from dataclasses import dataclass
from pathlib import Path

from stackboi.core.errors import StackOperationError
from stackboi.core.metadata_store import CONFIG_FILENAME
from stackboi.core.models import RerereSettings, Settings, StackSet
from stackboi.gateway.git.abc import Git

# --update-refs landed in git 2.38
MIN_GIT_VERSION = (2, 38)

_VERSION_PATTERN = re.compile(r"git version (\d+)\.(\d+)")


@dataclass(frozen=True)
class GitVersion:
    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


def parse_git_version(output: str) -> GitVersion | None:
    """Parse `git --version` output such as "git version 2.43.0 (Apple Git-115)"."""
    match = _VERSION_PATTERN.search(output)
    if match is None:
        return None
    return GitVersion(major=int(match.group(1)), minor=int(match.group(2)))


def check_git_version(git: Git) -> GitVersion:
    """Ensure the installed git supports `rebase --update-refs`.

    Raises:
        StackOperationError: If git is missing, unparseable or too old
    """
    output = git.get_version()
    if output is None:
        raise StackOperationError("Git is not installed or not in PATH")

    version = parse_git_version(output)
    if version is None:
        raise StackOperationError(f"Could not parse Git version from: {output}")

    if (version.major, version.minor) < MIN_GIT_VERSION:
        required = ".".join(str(part) for part in MIN_GIT_VERSION)
        raise StackOperationError(
            f"Git version {required}+ required for --update-refs support. Found: {version}"
        )
    return version


def create_default_config(default_branch: str) -> StackSet:
    return StackSet(
        stacks=(),
        settings=Settings(
            rerere=RerereSettings(enabled=True, auto_apply=True),
            default_base_branch=default_branch,
        ),
    )


def add_to_gitignore(repo_root: Path) -> bool:
    """Append the config file to .gitignore.

    Returns:
        True if the entry was added, False if it was already present
    """
    gitignore = repo_root / ".gitignore"
    content = ""
    if gitignore.exists():
        content = gitignore.read_text(encoding="utf-8")
        entries = {line.strip().lstrip("/") for line in content.splitlines()}
        if CONFIG_FILENAME in entries:
            return False

    if content and not content.endswith("\n"):
        content += "\n"
    gitignore.write_text(f"{content}{CONFIG_FILENAME}\n", encoding="utf-8")
    return True
