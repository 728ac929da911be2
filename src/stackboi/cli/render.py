"""Render operation event streams to stderr."""

import sys
from collections.abc import Iterable
from typing import TypeVar

import click

from stackboi.core.models import SyncRun, SyncState
from stackboi.core.sync_engine import SyncEvent, SyncOutcome
from stackboi.events import CompletionEvent, ProgressEvent

T = TypeVar("T")

# Style mapping for progress events
STYLE_MAP: dict[str, dict[str, str | bool]] = {
    "info": {},
    "success": {"fg": "green"},
    "warning": {"fg": "yellow"},
    "error": {"fg": "red", "bold": True},
}

SYNC_STATE_STYLES: dict[SyncState, dict[str, str | bool]] = {
    SyncState.IDLE: {"dim": True},
    SyncState.FETCHING: {},
    SyncState.REBASING: {},
    SyncState.CHECKING_CONFLICTS: {"fg": "yellow"},
    SyncState.AWAITING_USER: {"fg": "yellow", "bold": True},
    SyncState.SUCCESS: {"fg": "green"},
    SyncState.ERROR: {"fg": "red", "bold": True},
}


def render_events(events: Iterable[ProgressEvent | CompletionEvent[T]]) -> T:
    """Consume event stream, render progress to stderr, return result.

    Raises:
        RuntimeError: If operation ends without a CompletionEvent
    """
    for event in events:
        match event:
            case ProgressEvent(message=msg, style=style):
                click.echo(click.style(f"  {msg}", **STYLE_MAP[style]), err=True)
                sys.stderr.flush()
            case CompletionEvent(result=result):
                return result
    raise RuntimeError("Operation ended without completion")


def render_sync_events(events: Iterable[SyncEvent]) -> SyncOutcome:
    """Print one line per sync state transition and return the outcome."""
    for event in events:
        match event:
            case SyncRun(state=state, message=msg):
                click.echo(
                    click.style(f"  [{state.value}] {msg}", **SYNC_STATE_STYLES[state]), err=True
                )
                sys.stderr.flush()
            case CompletionEvent(result=result):
                return result
    raise RuntimeError("Sync ended without completion")
