"""Tests for stackboi view."""

from pathlib import Path

from click.testing import CliRunner

from stackboi.cli.commands.view import view_cmd
from stackboi.core.context import context_for_test
from stackboi.gateway.git.fake import FakeGit
from stackboi.tui.app import StackboiApp
from stackboi.tui.runner import FakeTuiRunner
from tests.test_utils.builders import make_stack, write_stacks


def test_view_runs_app(tmp_path: Path) -> None:
    write_stacks(tmp_path, make_stack("feature-a"))
    runner = FakeTuiRunner()
    ctx = context_for_test(git=FakeGit(repository_root=tmp_path), tui_runner=runner)

    result = CliRunner().invoke(view_cmd, [], obj=ctx)

    assert result.exit_code == 0, result.output
    assert len(runner.apps_run) == 1
    assert isinstance(runner.apps_run[0], StackboiApp)


def test_view_requires_config(tmp_path: Path) -> None:
    runner = FakeTuiRunner()
    ctx = context_for_test(git=FakeGit(repository_root=tmp_path), tui_runner=runner)

    result = CliRunner().invoke(view_cmd, [], obj=ctx)

    assert result.exit_code == 1
    assert "stackboi init" in result.output
    assert runner.apps_run == []
