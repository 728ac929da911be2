"""Stack topology changes: new stacks, added branches and stack PRs."""

import re
from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path

from stackboi.core.context import StackboiContext
from stackboi.core.errors import StackOperationError
from stackboi.core.metadata_store import MetadataStore
from stackboi.core.models import Stack, StackSet
from stackboi.core.pr_metadata import ensure_stack_label, generate_stack_visualization
from stackboi.core.remote_status import fetch_pr_statuses
from stackboi.events import CompletionEvent, ProgressEvent
from stackboi.gateway.git.abc import Git

_TITLE_PREFIX = re.compile(r"^(feature|feat|fix|bugfix|hotfix|chore|refactor|docs|test|ci)/", re.I)
_FORBIDDEN_CHARS = (" ", "~", "^", ":", "?", "*", "[", "\\")


def validate_branch_name(name: str) -> None:
    """Reject names git would refuse as a branch name.

    Raises:
        StackOperationError: With the rule the name breaks
    """
    if not name or not name.strip():
        raise StackOperationError("Branch name cannot be empty")
    if name.startswith("-"):
        raise StackOperationError("Branch name cannot start with a hyphen")
    if name.endswith(".lock"):
        raise StackOperationError("Branch name cannot end with .lock")
    if ".." in name:
        raise StackOperationError("Branch name cannot contain '..'")
    for char in _FORBIDDEN_CHARS:
        if char in name:
            shown = "spaces" if char == " " else char
            raise StackOperationError(f"Branch name cannot contain {shown}")


def stack_name_for(branch: str) -> str:
    return f"stack-{branch}"


def _require_repo_root(ctx: StackboiContext) -> Path:
    if ctx.repo_root is None:
        raise StackOperationError("Not a git repository")
    return ctx.repo_root


def _check_new_branch(git: Git, repo_root: Path, stack_set: StackSet, branch: str) -> None:
    validate_branch_name(branch)
    if git.branch_exists(repo_root, branch):
        raise StackOperationError(f"Branch '{branch}' already exists")
    existing = stack_set.find_stack_by_branch(branch)
    if existing is not None:
        raise StackOperationError(f"Branch '{branch}' is already part of stack '{existing.name}'")


def create_stack(ctx: StackboiContext, branch: str, *, base: str | None = None) -> Stack:
    """Create branch on top of base and start a new one-branch stack with it.

    base defaults to the current branch. When base is another branch it is
    checked out first so the new branch starts from it.

    Raises:
        StackOperationError: If the name is invalid, taken, or the stack exists
    """
    repo_root = _require_repo_root(ctx)
    store = MetadataStore(repo_root)
    stack_set = store.load()

    current = ctx.git.get_current_branch(repo_root)
    base_branch = base if base is not None else current
    if base_branch is None:
        raise StackOperationError("HEAD is detached; pass --base to choose the stack's base")

    _check_new_branch(ctx.git, repo_root, stack_set, branch)
    name = stack_name_for(branch)
    if stack_set.find_stack(name) is not None:
        raise StackOperationError(f"Stack '{name}' already exists")

    if base_branch != current:
        if not ctx.git.branch_exists(repo_root, base_branch):
            raise StackOperationError(f"Base branch '{base_branch}' does not exist")
        ctx.git.checkout_branch(repo_root, base_branch)

    ctx.git.create_branch(repo_root, branch)
    stack = Stack(name=name, base_branch=base_branch, branches=(branch,))
    store.save(stack_set.add_stack(stack))
    return stack


@dataclass(frozen=True)
class AddedBranch:
    stack: Stack
    parent: str


def add_branch(ctx: StackboiContext, branch: str) -> AddedBranch:
    """Create branch from HEAD and insert it right above the current branch.

    Raises:
        StackOperationError: If the current branch is in no stack, or the name
            is invalid or taken
    """
    repo_root = _require_repo_root(ctx)
    store = MetadataStore(repo_root)
    stack_set = store.load()

    current = ctx.git.get_current_branch(repo_root)
    stack = stack_set.find_stack_by_branch(current) if current is not None else None
    if current is None or stack is None:
        raise StackOperationError(
            f"Current branch '{current}' is not part of any stack. "
            "Use 'stackboi new' to create a new stack."
        )

    _check_new_branch(ctx.git, repo_root, stack_set, branch)

    ctx.git.create_branch(repo_root, branch)
    updated = stack.with_branch_after(current, branch)
    store.save(stack_set.with_stack(updated))
    return AddedBranch(stack=updated, parent=current)


def generate_title_from_branch_name(branch: str) -> str:
    """Turn `feature/add-login_form` into `Add Login Form`."""
    clean = _TITLE_PREFIX.sub("", branch)
    words = [word for word in re.split(r"[-_]+", clean) if word]
    return " ".join(word[0].upper() + word[1:].lower() for word in words)


@dataclass(frozen=True)
class CreatePRSuccess:
    pr_number: int
    url: str
    base: str
    title: str
    label: str


@dataclass(frozen=True)
class CreatePRError:
    message: str


def create_stack_pr(
    ctx: StackboiContext,
    branch: str | None,
    *,
    draft: bool,
    open_browser: bool,
) -> Generator[ProgressEvent | CompletionEvent[CreatePRSuccess | CreatePRError]]:
    """Open a PR for a stack branch, based on the branch below it.

    Args:
        ctx: Application context
        branch: Branch to open the PR for; defaults to the current branch
        draft: Create the PR as a draft
        open_browser: Open the new PR in the browser

    Yields:
        ProgressEvent for status updates
        CompletionEvent with CreatePRSuccess or CreatePRError
    """
    if ctx.repo_root is None:
        yield CompletionEvent(CreatePRError("Not a git repository"))
        return
    repo_root = ctx.repo_root

    if not ctx.github.check_auth_status():
        yield CompletionEvent(
            CreatePRError("GitHub CLI not authenticated. Run 'gh auth login' first.")
        )
        return

    stack_set = MetadataStore(repo_root).load()
    branch_name = branch if branch is not None else ctx.git.get_current_branch(repo_root)
    if branch_name is None:
        yield CompletionEvent(CreatePRError("HEAD is detached; pass the branch name"))
        return

    stack = stack_set.find_stack_by_branch(branch_name)
    if stack is None:
        yield CompletionEvent(CreatePRError(f"Branch '{branch_name}' is not part of any stack"))
        return
    if not stack.contains(branch_name):
        yield CompletionEvent(
            CreatePRError(f"Branch '{branch_name}' is the base branch, not a stack branch")
        )
        return

    yield ProgressEvent("Checking for an existing PR...")
    existing = ctx.github.get_pr_for_branch(repo_root, branch_name)
    if existing is not None:
        yield CompletionEvent(
            CreatePRError(f"PR already exists for branch '{branch_name}': #{existing.number}")
        )
        return

    parent = stack.parent_of(branch_name)
    title = ctx.git.get_first_commit_subject(repo_root, parent, branch_name)
    if not title:
        title = generate_title_from_branch_name(branch_name)

    yield ProgressEvent("Building stack overview...")
    statuses = fetch_pr_statuses(ctx.github, repo_root, list(stack.branches))
    body = generate_stack_visualization(stack, branch_name, statuses)

    position = stack.position_of(branch_name)
    try:
        label = ensure_stack_label(ctx.github, repo_root, position.position, position.total)
    except RuntimeError as e:
        yield CompletionEvent(CreatePRError(f"Failed to create label {position.label}: {e}"))
        return

    yield ProgressEvent(f"Creating PR for {branch_name} onto {parent}...")
    try:
        pr_number = ctx.github.create_pr(
            repo_root,
            branch_name,
            base=parent,
            title=title,
            body=body,
            labels=[label],
            draft=draft,
        )
    except RuntimeError as e:
        yield CompletionEvent(CreatePRError(f"Failed to create PR: {e}"))
        return

    created = ctx.github.get_pr_for_branch(repo_root, branch_name)
    url = created.url if created is not None else ""
    yield ProgressEvent(f"Created PR #{pr_number}", style="success")

    if open_browser:
        try:
            ctx.github.open_pr_in_browser(repo_root, branch_name)
        except RuntimeError as e:
            yield ProgressEvent(f"Could not open browser: {e}", style="warning")

    yield CompletionEvent(
        CreatePRSuccess(pr_number=pr_number, url=url, base=parent, title=title, label=label)
    )
