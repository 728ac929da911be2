"""Modal asking whether to sync a stack after a merge."""

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Label

from stackboi.core.models import MergedEvent


class MergeModal(ModalScreen[bool]):
    """Announces a merged PR; dismisses with True to sync, False to postpone."""

    BINDINGS = [
        Binding("y", "confirm", "Sync"),
        Binding("n", "decline", "Later"),
        Binding("escape", "decline", "Later", show=False),
    ]

    DEFAULT_CSS = """
    MergeModal {
        align: center middle;
    }

    #merge-dialog {
        width: 64;
        height: auto;
        background: $surface;
        border: solid $success;
        padding: 1 2;
    }

    #merge-title {
        text-style: bold;
        text-align: center;
        margin-bottom: 1;
        width: 100%;
    }

    .merge-child {
        margin-left: 2;
    }

    #merge-footer {
        margin-top: 1;
        text-align: center;
        color: $text-muted;
    }
    """

    def __init__(self, event: MergedEvent, *, base_branch: str) -> None:
        super().__init__()
        self._event = event
        self._base_branch = base_branch

    @property
    def event(self) -> MergedEvent:
        return self._event

    def compose(self) -> ComposeResult:
        event = self._event
        with Vertical(id="merge-dialog"):
            yield Label(f"PR #{event.pr_number} merged", id="merge-title", markup=False)
            yield Label(f"{event.branch_name} landed in {event.stack_name}.", markup=False)
            if event.child_branches:
                yield Label(f"Rebase onto origin/{self._base_branch}:", markup=False)
                for child in event.child_branches:
                    yield Label(child, classes="merge-child", markup=False)
            else:
                yield Label("Nothing is stacked on top; only the branch is removed.")
            yield Label("y: sync now   n: later", id="merge-footer")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_decline(self) -> None:
        self.dismiss(False)
