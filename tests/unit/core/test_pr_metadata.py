"""Tests for keeping stack PR bases, labels and bodies in step with the stack."""

from pathlib import Path

from stackboi.core.models import PRStatus
from stackboi.core.pr_metadata import (
    STACK_BLOCK_END,
    STACK_BLOCK_START,
    STACK_LABEL_COLOR,
    generate_stack_visualization,
    replace_stack_block,
    update_pr_metadata_after_sync,
)
from stackboi.core.remote_status import RemotePRStatus
from stackboi.gateway.github.fake import FakeGitHub
from stackboi.gateway.github.types import PRDetails
from tests.test_utils.builders import make_stack, open_pr

REPO = Path("/repo")

# After feature-a merged, feature-b and feature-c remain
STACK_AFTER_SYNC = make_stack("feature-b", "feature-c", name="stack-feature-a")

OLD_BLOCK = f"{STACK_BLOCK_START}\nold overview\n{STACK_BLOCK_END}"


def _github(**kwargs) -> FakeGitHub:
    return FakeGitHub(
        prs={"feature-b": open_pr(2), "feature-c": open_pr(3)},
        pr_details={
            "feature-b": PRDetails(
                number=2,
                base_ref_name="feature-a",
                labels=("stack:2/3", "bug"),
                body=f"Adds the widget.\n\n{OLD_BLOCK}",
            ),
            "feature-c": PRDetails(
                number=3, base_ref_name="feature-b", labels=("stack:3/3",), body=""
            ),
        },
        **kwargs,
    )


def test_visualization_lists_base_branches_and_marks_current() -> None:
    stack = make_stack("feature-a", "feature-b")
    statuses = {"feature-a": RemotePRStatus(1, PRStatus.OPEN)}

    block = generate_stack_visualization(stack, "feature-b", statuses)

    assert block == "\n".join(
        [
            STACK_BLOCK_START,
            "### Stack Overview",
            "",
            "```",
            "main (base)",
            "├─ feature-a [#1 open]",
            "└─ feature-b ◀ this PR",
            "```",
            "",
            "_Created with [stackboi](https://github.com/stackboi/stackboi)_",
            STACK_BLOCK_END,
        ]
    )


def test_replace_stack_block_keeps_surrounding_text() -> None:
    body = f"Intro\n\n{OLD_BLOCK}\n\nOutro"

    assert replace_stack_block(body, "NEW") == "Intro\n\nNEW\n\nOutro"


def test_replace_stack_block_appends_when_missing() -> None:
    assert replace_stack_block("Intro\n", "NEW") == "Intro\n\nNEW"
    assert replace_stack_block("", "NEW") == "NEW"


def test_retargets_relabels_and_rewrites_body() -> None:
    github = _github()

    results = update_pr_metadata_after_sync(
        github, REPO, STACK_AFTER_SYNC, ["feature-b", "feature-c"], statuses={}
    )

    assert [r.success for r in results] == [True, True]
    assert github.updated_bases == [("feature-b", "main")]
    assert ("feature-b", "stack:2/3") in github.removed_labels
    assert ("feature-c", "stack:3/3") in github.removed_labels
    assert github.added_labels == [("feature-b", "stack:1/2"), ("feature-c", "stack:2/2")]

    details_b = github.details("feature-b")
    assert details_b is not None
    assert set(details_b.labels) == {"bug", "stack:1/2"}
    assert details_b.body.startswith("Adds the widget.\n\n")
    assert "old overview" not in details_b.body
    assert "└─ feature-c" in details_b.body
    assert "├─ feature-b ◀ this PR" in details_b.body


def test_base_already_correct_is_left_alone() -> None:
    github = _github()

    (result,) = update_pr_metadata_after_sync(
        github, REPO, STACK_AFTER_SYNC, ["feature-c"], statuses={}
    )

    assert result.success
    assert not result.updated_base
    assert github.updated_bases == []


def test_ensures_label_with_description_and_color() -> None:
    github = _github()

    update_pr_metadata_after_sync(github, REPO, STACK_AFTER_SYNC, ["feature-b"], statuses={})

    assert github.ensured_labels == [("stack:1/2", "Branch 1 of 2 in stack", STACK_LABEL_COLOR)]


def test_retarget_failure_does_not_block_label_and_body() -> None:
    github = _github(update_base_raises={"feature-b": RuntimeError("base is protected")})

    result_b, result_c = update_pr_metadata_after_sync(
        github, REPO, STACK_AFTER_SYNC, ["feature-b", "feature-c"], statuses={}
    )

    assert not result_b.success
    assert not result_b.updated_base
    assert result_b.updated_label
    assert result_b.updated_body
    assert any("base is protected" in error for error in result_b.errors)
    assert result_c.success


def test_label_failure_is_recorded_but_not_fatal() -> None:
    github = _github(label_raises={"feature-c": RuntimeError("label API down")})

    (result,) = update_pr_metadata_after_sync(
        github, REPO, STACK_AFTER_SYNC, ["feature-c"], statuses={}
    )

    assert result.success
    assert not result.updated_label
    assert result.updated_body
    assert any("label API down" in error for error in result.errors)


def test_branch_without_pr_is_skipped() -> None:
    github = FakeGitHub()

    (result,) = update_pr_metadata_after_sync(
        github, REPO, STACK_AFTER_SYNC, ["feature-b"], statuses={}
    )

    assert result.success
    assert (result.updated_base, result.updated_label, result.updated_body) == (
        False,
        False,
        False,
    )
    assert github.updated_bodies == []


def test_unauthenticated_reports_every_branch() -> None:
    github = FakeGitHub(authenticated=False, prs={"feature-b": open_pr(2)})

    results = update_pr_metadata_after_sync(
        github, REPO, STACK_AFTER_SYNC, ["feature-b", "feature-c"], statuses=None
    )

    assert [r.branch_name for r in results] == ["feature-b", "feature-c"]
    assert all(not r.success for r in results)
    assert all("gh auth login" in r.errors[0] for r in results)
    assert github.pr_lookups == []


def test_statuses_are_fetched_when_not_given() -> None:
    github = _github()

    update_pr_metadata_after_sync(github, REPO, STACK_AFTER_SYNC, ["feature-b"], statuses=None)

    details_b = github.details("feature-b")
    assert details_b is not None
    assert "feature-c [#3 open]" in details_b.body
