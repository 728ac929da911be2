"""CLI precondition checks that exit with a red `Error:` message."""

from pathlib import Path
from typing import NoReturn, TypeVar

import click

from stackboi.core.context import StackboiContext
from stackboi.core.errors import StackboiConfigError
from stackboi.core.metadata_store import MetadataStore
from stackboi.core.models import StackSet
from stackboi.output import user_output

T = TypeVar("T")


def fail(message: str) -> NoReturn:
    """Print a red `Error:` line and exit with status 1."""
    user_output(click.style("Error: ", fg="red") + message)
    raise SystemExit(1)


class Ensure:
    """Helper class for CLI preconditions.

    Every method either returns (narrowing the type where it can) or prints an
    error and raises SystemExit(1).
    """

    @staticmethod
    def invariant(condition: bool, message: str) -> None:
        if not condition:
            fail(message)

    @staticmethod
    def not_none(value: T | None, message: str) -> T:
        """Ensure value is not None.

        Example:
            >>> branch = Ensure.not_none(ctx.git.get_current_branch(root), "HEAD is detached")
        """
        if value is None:
            fail(message)
        return value

    @staticmethod
    def repo_root(ctx: StackboiContext) -> Path:
        """Ensure the command runs inside a git work tree."""
        if ctx.repo_root is None:
            fail("Not a git repository. Run 'git init' first.")
        return ctx.repo_root

    @staticmethod
    def stack_set(ctx: StackboiContext) -> StackSet:
        """Load `.stackboi.json`, turning a missing or invalid file into an error exit."""
        repo_root = Ensure.repo_root(ctx)
        try:
            return MetadataStore(repo_root).load()
        except StackboiConfigError as e:
            fail(str(e))

    @staticmethod
    def gh_authenticated(ctx: StackboiContext) -> None:
        if not ctx.github.check_auth_status():
            fail("GitHub CLI not authenticated. Run 'gh auth login' first.")
