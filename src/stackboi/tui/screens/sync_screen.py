"""Live progress of a running sync."""

import asyncio
from collections.abc import Iterator

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Label, Log

from stackboi.core.models import SyncRun, SyncState
from stackboi.core.sync_engine import SyncEvent, SyncFailed, SyncOutcome
from stackboi.events import CompletionEvent

STATE_ICONS: dict[SyncState, str] = {
    SyncState.IDLE: "·",
    SyncState.FETCHING: "↓",
    SyncState.REBASING: "⟲",
    SyncState.CHECKING_CONFLICTS: "?",
    SyncState.AWAITING_USER: "!",
    SyncState.SUCCESS: "✓",
    SyncState.ERROR: "✗",
}


class SyncProgressScreen(ModalScreen[SyncOutcome]):
    """Drains a sync event stream off the UI thread and dismisses with its outcome.

    Every SyncRun is appended to a log; the screen cannot be closed by the user
    while git is working.
    """

    DEFAULT_CSS = """
    SyncProgressScreen {
        align: center middle;
    }

    #sync-dialog {
        width: 80;
        height: 20;
        background: $surface;
        border: solid $primary;
        padding: 1 2;
    }

    #sync-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    def __init__(self, events: Iterator[SyncEvent], *, title: str) -> None:
        super().__init__()
        self._events = events
        self._title = title
        self._runs: list[SyncRun] = []

    @property
    def runs(self) -> list[SyncRun]:
        return list(self._runs)

    def compose(self) -> ComposeResult:
        with Vertical(id="sync-dialog"):
            yield Label(self._title, id="sync-title", markup=False)
            yield Log(id="sync-log")

    def on_mount(self) -> None:
        self.run_worker(self._drain(), exclusive=True)

    async def _drain(self) -> None:
        loop = asyncio.get_running_loop()
        outcome: SyncOutcome = SyncFailed("Sync ended without completion")
        while True:
            # One git step per call, keeping the event loop free between steps
            event = await loop.run_in_executor(None, next, self._events, None)
            if event is None:
                break
            match event:
                case SyncRun(state=state, message=message):
                    self._runs.append(event)
                    self.query_one(Log).write_line(f"{STATE_ICONS[state]} {message}")
                case CompletionEvent(result=result):
                    outcome = result
        self.dismiss(outcome)
