"""Main Textual application for `stackboi view`."""

import asyncio
from datetime import datetime
from functools import partial

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.screen import ModalScreen
from textual.widgets import Header, Label

from stackboi.core.context import StackboiContext
from stackboi.core.errors import StackboiConfigError, SyncInProgressError
from stackboi.core.models import MergedEvent
from stackboi.core.monitor import PollResult, StackMonitor
from stackboi.core.pr_metadata import update_pr_metadata_after_sync
from stackboi.core.sync_engine import (
    SyncConflicts,
    SyncFailed,
    SyncOutcome,
    SyncSucceeded,
    abort_sync,
)
from stackboi.display import conflict_instructions
from stackboi.tui.screens.conflict_modal import ConflictChoice, ConflictModal
from stackboi.tui.screens.merge_modal import MergeModal
from stackboi.tui.screens.sync_screen import SyncProgressScreen
from stackboi.tui.widgets.stack_table import StackTable
from stackboi.tui.widgets.status_bar import StatusBar


class HelpScreen(ModalScreen):
    """Modal screen showing keyboard shortcuts."""

    BINDINGS = [
        Binding("escape", "dismiss", "Close"),
        Binding("q", "dismiss", "Close"),
        Binding("?", "dismiss", "Close"),
    ]

    DEFAULT_CSS = """
    HelpScreen {
        align: center middle;
    }

    #help-dialog {
        width: 56;
        height: auto;
        background: $surface;
        border: solid $primary;
        padding: 1 2;
    }

    #help-title {
        text-style: bold;
        text-align: center;
        margin-bottom: 1;
        width: 100%;
    }

    .help-binding {
        margin-left: 2;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="help-dialog"):
            yield Label("stackboi view - Keyboard Shortcuts", id="help-title")
            yield Label("↑/k     Move cursor up", classes="help-binding")
            yield Label("↓/j     Move cursor down", classes="help-binding")
            yield Label("Enter   Check out branch", classes="help-binding")
            yield Label("r       Refresh", classes="help-binding")
            yield Label("?       Show this help", classes="help-binding")
            yield Label("q/Esc   Quit", classes="help-binding")
            yield Label("")
            yield Label("✓ up to date  ↑ needs push  ↓ needs rebase")
            yield Label("✗ conflicts   ⟲ pending sync  ? unknown")


class StackboiApp(App):
    """Interactive stack viewer.

    Shows every stack with PR state and sync status, polls GitHub on the
    configured interval and walks the user through syncing each detected merge.
    """

    TITLE = "stackboi"

    DEFAULT_CSS = """
    #main-container {
        height: 1fr;
    }

    #loading-message {
        padding: 1 2;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("q", "exit_app", "Quit"),
        Binding("escape", "exit_app", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("?", "help", "Help"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
    ]

    def __init__(self, ctx: StackboiContext, monitor: StackMonitor) -> None:
        """Initialize the viewer.

        Args:
            ctx: Application context; must have a repository root
            monitor: Poll state holder, sharing its SyncCoordinator with the app
        """
        super().__init__()
        if ctx.repo_root is None:
            raise ValueError("StackboiApp requires a repository root")
        self._ctx = ctx
        self._repo_root = ctx.repo_root
        self._monitor = monitor
        self._table: StackTable | None = None
        self._status_bar: StatusBar | None = None
        self._seconds_remaining = 0
        self._prompting = False

    @property
    def monitor(self) -> StackMonitor:
        return self._monitor

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="main-container"):
            yield Label("Loading stacks...", id="loading-message")
            yield StackTable()
        yield StatusBar()

    def on_mount(self) -> None:
        self._table = self.query_one(StackTable)
        self._status_bar = self.query_one(StatusBar)
        self._loading_label = self.query_one("#loading-message", Label)
        self._table.display = False
        self.run_worker(self._load_data(), exclusive=True, group="load")

    async def _load_data(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._monitor.load)
        except StackboiConfigError as e:
            self.exit(return_code=1, message=f"Error: {e}")
            return
        self._render_snapshots()

        if self._status_bar is not None:
            self._status_bar.set_polling(self._monitor.gh_authenticated)
        if self._monitor.gh_authenticated:
            self._start_poll_timer()

    def _render_snapshots(self) -> None:
        current = self._ctx.git.get_current_branch(self._repo_root)
        if self._table is not None:
            self._loading_label.display = False
            self._table.display = True
            self._table.populate(self._monitor.snapshots, current)
            self._table.focus()
            if not self._monitor.snapshots:
                self._loading_label.update("No stacks yet. Create one with 'stackboi new'.")
                self._loading_label.display = True
        if self._status_bar is not None:
            self._status_bar.set_last_update(datetime.now().strftime("%H:%M:%S"))

    # ============================================================================
    # Polling
    # ============================================================================

    def _start_poll_timer(self) -> None:
        self._seconds_remaining = int(self._monitor.poll_interval_seconds)
        self.set_interval(1.0, self._tick_countdown)

    def _tick_countdown(self) -> None:
        if self._status_bar is not None:
            self._status_bar.set_refresh_countdown(self._seconds_remaining)

        self._seconds_remaining -= 1
        if self._seconds_remaining <= 0:
            self._seconds_remaining = int(self._monitor.poll_interval_seconds)
            self.run_worker(self._poll(), exclusive=True, group="poll")

    async def _poll(self) -> None:
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self._monitor.poll)
        self._after_poll(result)

    async def _refresh(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, self._monitor.refresh)
        except StackboiConfigError as e:
            self._set_message(f"Error: {e}")
            return
        self._after_poll(result)

    def _after_poll(self, result: PollResult) -> None:
        if result.has_changes:
            self._render_snapshots()
        if result.new_events:
            self._set_message(f"{result.new_events} merged PR(s) detected")
        self._prompt_next_merge()

    # ============================================================================
    # Merge -> sync flow
    # ============================================================================

    def _prompt_next_merge(self) -> None:
        if self._prompting or self._monitor.coordinator.is_syncing:
            return
        event = self._monitor.queue.current
        if event is None:
            return
        stack = self._monitor.stack_set.find_stack(event.stack_name)
        base = stack.base_branch if stack is not None else "?"
        self._prompting = True
        self.push_screen(
            MergeModal(event, base_branch=base), callback=partial(self._on_merge_decision, event)
        )

    def _on_merge_decision(self, event: MergedEvent, confirmed: bool | None) -> None:
        self._prompting = False
        if not confirmed:
            self._monitor.dismiss_current()
            self._set_message(f"Postponed sync of {event.stack_name}")
            self._render_snapshots()
            self._prompt_next_merge()
            return

        taken = self._monitor.take_current()
        if taken is None:
            return
        try:
            events = self._monitor.coordinator.run(taken)
        except SyncInProgressError as e:
            self._set_message(str(e))
            return
        self._prompting = True
        self.push_screen(
            SyncProgressScreen(events, title=f"Syncing {taken.stack_name}"),
            callback=partial(self._on_sync_finished, taken),
        )

    def _on_sync_finished(self, event: MergedEvent, outcome: SyncOutcome | None) -> None:
        self._prompting = False
        match outcome:
            case SyncSucceeded() as succeeded:
                self._set_message(f"Synced {succeeded.stack.name}")
                self.run_worker(self._after_sync(event, succeeded), group="sync")
            case SyncConflicts() as conflicts:
                self._prompting = True
                self.push_screen(
                    ConflictModal(conflicts),
                    callback=partial(self._on_conflict_choice, event, conflicts),
                )
            case SyncFailed(message=message):
                self._set_message(f"Sync failed: {message}")
                self._prompt_next_merge()

    async def _after_sync(self, event: MergedEvent, succeeded: SyncSucceeded) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._monitor.sync_finished, event.stack_name)
        self._render_snapshots()

        if succeeded.stack.branches and self._monitor.gh_authenticated:
            results = await loop.run_in_executor(
                None,
                partial(
                    update_pr_metadata_after_sync,
                    self._ctx.github,
                    self._repo_root,
                    succeeded.stack,
                    succeeded.stack.branches,
                    statuses=None,
                ),
            )
            failed = [result.branch_name for result in results if result.errors]
            if failed:
                self._set_message(f"Synced; PR update incomplete for {', '.join(failed)}")
            else:
                self._set_message(f"Synced {succeeded.stack.name}; {len(results)} PR(s) updated")
        self._prompt_next_merge()

    def _on_conflict_choice(
        self, event: MergedEvent, conflicts: SyncConflicts, choice: ConflictChoice | None
    ) -> None:
        self._prompting = False
        if choice == "edit":
            instructions = "\n".join(
                conflict_instructions(event.branch_name, conflicts.original_branch)
            )
            self.exit(message=instructions)
            return

        try:
            abort_sync(self._ctx, conflicts.original_branch)
            self._set_message(f"Sync of {event.stack_name} aborted")
        except RuntimeError as e:
            self._set_message(f"Abort failed: {e}")
        self.run_worker(self._refresh(), exclusive=True, group="poll")

    # ============================================================================
    # Actions
    # ============================================================================

    def _set_message(self, message: str) -> None:
        if self._status_bar is not None:
            self._status_bar.set_message(message)

    def action_exit_app(self) -> None:
        self.exit()

    def action_refresh(self) -> None:
        """Reload config and rebuild every snapshot; resets the poll countdown."""
        if self._monitor.gh_authenticated:
            self._seconds_remaining = int(self._monitor.poll_interval_seconds)
        self.run_worker(self._refresh(), exclusive=True, group="poll")

    def action_help(self) -> None:
        self.push_screen(HelpScreen())

    def action_cursor_down(self) -> None:
        if self._table is not None:
            self._table.action_cursor_down()

    def action_cursor_up(self) -> None:
        if self._table is not None:
            self._table.action_cursor_up()

    def action_checkout(self) -> None:
        """Check out the branch under the cursor (the base for a stack header)."""
        if self._table is None:
            return
        row = self._table.get_selected_row_data()
        if row is None:
            return
        if self._monitor.coordinator.is_syncing:
            self._set_message("Cannot check out while a sync is running")
            return
        try:
            self._ctx.git.checkout_branch(self._repo_root, row.branch)
        except RuntimeError as e:
            self._set_message(f"Checkout failed: {e}")
            return
        self._set_message(f"Checked out {row.branch}")
        self._render_snapshots()

    @on(StackTable.RowSelected)
    def on_row_selected(self, event: StackTable.RowSelected) -> None:
        """Handle Enter/double-click on row - check out the branch."""
        self.action_checkout()
