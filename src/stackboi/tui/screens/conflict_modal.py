"""Modal shown when a sync stops on conflicts rerere could not resolve."""

from typing import Literal

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Label

from stackboi.core.sync_engine import SyncConflicts

ConflictChoice = Literal["abort", "edit"]


class ConflictModal(ModalScreen[ConflictChoice]):
    """Lists conflicted and auto-resolved files; `a` aborts, `e` leaves to edit."""

    BINDINGS = [
        Binding("a", "abort", "Abort sync"),
        Binding("e", "edit", "Resolve manually"),
    ]

    DEFAULT_CSS = """
    ConflictModal {
        align: center middle;
    }

    #conflict-dialog {
        width: 72;
        height: auto;
        max-height: 80%;
        background: $surface;
        border: solid $error;
        padding: 1 2;
    }

    #conflict-title {
        text-style: bold;
        color: $error;
        margin-bottom: 1;
    }

    .conflict-section {
        margin-top: 1;
        text-style: bold;
    }

    .conflict-file {
        margin-left: 2;
    }

    #conflict-footer {
        margin-top: 1;
        text-align: center;
        color: $text-muted;
    }
    """

    def __init__(self, conflicts: SyncConflicts) -> None:
        super().__init__()
        self._conflicts = conflicts

    def compose(self) -> ComposeResult:
        conflicts = self._conflicts
        with Vertical(id="conflict-dialog"):
            yield Label("Rebase stopped on conflicts", id="conflict-title")
            yield Label(f"While rebasing {conflicts.tip_branch}:", markup=False)
            yield Label("Needs manual resolution", classes="conflict-section")
            for path in conflicts.conflicted_files:
                yield Label(path, classes="conflict-file", markup=False)
            if conflicts.auto_resolved_files:
                yield Label("Auto-resolved by rerere", classes="conflict-section")
                for path in conflicts.auto_resolved_files:
                    yield Label(path, classes="conflict-file", markup=False)
            yield Label("a: abort sync   e: exit and resolve in your editor", id="conflict-footer")

    def action_abort(self) -> None:
        self.dismiss("abort")

    def action_edit(self) -> None:
        self.dismiss("edit")
