"""Subprocess helpers for the git and gh gateways.

Every external process stackboi starts goes through run_subprocess_with_context
so failures carry the operation, the command and its stderr.
"""

import logging
import os
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# gh talks to the network; a hung call must not stall the only thread of control
_GH_COMMAND_TIMEOUT = 60


def copied_env_for_git_subprocess() -> dict[str, str]:
    """Copy of the environment that keeps git from prompting or opening editors."""
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GIT_EDITOR"] = "true"
    return env


def run_subprocess_with_context(
    cmd: Sequence[str],
    operation_context: str,
    cwd: Path | None = None,
    check: bool = True,
    timeout: float | None = None,
    env: dict[str, str] | None = None,
    **kwargs: Any,
) -> subprocess.CompletedProcess[str]:
    """Execute subprocess with enriched error reporting.

    Wraps subprocess.run() to catch CalledProcessError and re-raise as RuntimeError
    with operation context, stderr output, and command details.

    Args:
        cmd: Command and arguments to execute
        operation_context: Human-readable description of operation
        cwd: Working directory for command execution
        check: Whether to raise on non-zero exit (default: True)
        timeout: Seconds before the process is killed (None waits forever)
        env: Environment for the child process
        **kwargs: Additional arguments passed to subprocess.run()

    Returns:
        CompletedProcess instance from subprocess.run()

    Raises:
        RuntimeError: If command fails, times out, or the binary is missing
    """
    cmd_str = " ".join(str(arg) for arg in cmd)
    logger.debug("$ %s", cmd_str)
    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=check,
            timeout=timeout,
            env=env,
            **kwargs,
        )

    except subprocess.CalledProcessError as e:
        error_msg = f"Failed to {operation_context}"
        error_msg += f"\nCommand: {cmd_str}"
        error_msg += f"\nExit code: {e.returncode}"

        if e.stdout and e.stdout.strip():
            error_msg += f"\nstdout: {e.stdout.strip()}"
        if e.stderr and e.stderr.strip():
            error_msg += f"\nstderr: {e.stderr.strip()}"

        raise RuntimeError(error_msg) from e

    except subprocess.TimeoutExpired as e:
        error_msg = f"Timed out after {timeout}s while trying to {operation_context}"
        error_msg += f"\nCommand: {cmd_str}"
        raise RuntimeError(error_msg) from e

    except FileNotFoundError as e:
        error_msg = f"Command not found while trying to {operation_context}: {cmd[0]}"
        error_msg += f"\nFull command: {cmd_str}"
        raise RuntimeError(error_msg) from e


def execute_gh_command(cmd: list[str], cwd: Path, operation_context: str) -> str:
    """Execute a gh CLI command with the default gh timeout and return stdout.

    Raises:
        RuntimeError: If command fails with enriched error context
    """
    result = run_subprocess_with_context(
        cmd,
        operation_context=operation_context,
        cwd=cwd,
        timeout=_GH_COMMAND_TIMEOUT,
    )
    return result.stdout
