"""Stack tree table for `stackboi view`."""

from dataclasses import dataclass

from rich.text import Text
from textual.widgets import DataTable

from stackboi.core.models import BranchInfo, StackSnapshot
from stackboi.display import PR_STATUS_STYLES, SYNC_STATUS_GLYPHS, SYNC_STATUS_STYLES, pr_badge


@dataclass(frozen=True)
class StackRow:
    """One table row: a stack header (info is None) or one of its branches.

    For a header row, branch is the stack's base branch.
    """

    stack_name: str
    branch: str
    info: BranchInfo | None
    is_last: bool = False


class StackTable(DataTable):
    """DataTable listing every stack followed by its branches, bottom to top."""

    def __init__(self) -> None:
        super().__init__(cursor_type="row")
        self._rows: list[StackRow] = []

    def action_cursor_left(self) -> None:
        """Disable left arrow navigation (row mode only)."""
        pass

    def action_cursor_right(self) -> None:
        """Disable right arrow navigation (row mode only)."""
        pass

    def on_mount(self) -> None:
        self.add_column("", key="sync")
        self.add_column("branch", key="branch")
        self.add_column("pr", key="pr")

    def populate(self, snapshots: tuple[StackSnapshot, ...], current_branch: str | None) -> None:
        """Rebuild the rows, keeping the cursor on the same branch when it still exists."""
        selected = self.get_selected_row_data()
        saved_cursor_row = self.cursor_row

        rows: list[StackRow] = []
        for snapshot in snapshots:
            rows.append(StackRow(snapshot.stack.name, snapshot.stack.base_branch, None))
            last = len(snapshot.branches) - 1
            rows.extend(
                StackRow(snapshot.stack.name, info.name, info, is_last=index == last)
                for index, info in enumerate(snapshot.branches)
            )

        self._rows = rows
        self.clear()
        for index, row in enumerate(rows):
            self.add_row(*_row_cells(row, current_branch), key=f"{index}:{row.branch}")

        if not rows:
            return
        if selected is not None:
            for index, row in enumerate(rows):
                if row.stack_name == selected.stack_name and row.branch == selected.branch:
                    self.move_cursor(row=index)
                    return
        if saved_cursor_row is not None and saved_cursor_row >= 0:
            self.move_cursor(row=min(saved_cursor_row, len(rows) - 1))

    def get_selected_row_data(self) -> StackRow | None:
        cursor_row = self.cursor_row
        if cursor_row is None or cursor_row < 0 or cursor_row >= len(self._rows):
            return None
        return self._rows[cursor_row]

    @property
    def rows_data(self) -> list[StackRow]:
        return list(self._rows)


def _row_cells(row: StackRow, current_branch: str | None) -> tuple[Text, Text, Text]:
    if row.info is None:
        return (
            Text(""),
            Text.assemble((row.stack_name, "bold"), (f"  on {row.branch}", "dim")),
            Text(""),
        )

    info = row.info
    is_current = info.name == current_branch
    glyph = Text(SYNC_STATUS_GLYPHS[info.sync_status], style=SYNC_STATUS_STYLES[info.sync_status])
    branch = Text.assemble(
        ("└─ " if row.is_last else "├─ ", "dim"),
        (info.name, "bold cyan" if is_current else ""),
    )
    if is_current:
        branch.append(" ●", style="cyan")
    pr = Text(pr_badge(info), style=PR_STATUS_STYLES[info.pr_status])
    return glyph, branch, pr
