"""Bottom status line for `stackboi view`."""

from rich.text import Text
from textual.widgets import Static


class StatusBar(Static):
    """Shows the last message, the last refresh time and the poll countdown."""

    DEFAULT_CSS = """
    StatusBar {
        dock: bottom;
        height: 1;
        background: $panel;
        color: $text-muted;
        padding: 0 1;
    }
    """

    def __init__(self) -> None:
        super().__init__("")
        self._message = ""
        self._last_update: str | None = None
        self._countdown: int | None = None
        self._polling = True

    @property
    def message(self) -> str:
        return self._message

    def set_message(self, message: str) -> None:
        self._message = message
        self._refresh_display()

    def set_last_update(self, update_time: str) -> None:
        self._last_update = update_time
        self._refresh_display()

    def set_refresh_countdown(self, seconds: int) -> None:
        self._countdown = seconds
        self._refresh_display()

    def set_polling(self, polling: bool) -> None:
        self._polling = polling
        self._refresh_display()

    def _refresh_display(self) -> None:
        parts: list[str] = []
        if self._message:
            parts.append(self._message)
        if self._last_update is not None:
            parts.append(f"updated {self._last_update}")
        if not self._polling:
            parts.append("polling off (gh not authenticated)")
        elif self._countdown is not None:
            parts.append(f"next poll in {self._countdown}s")
        self.update(Text(" │ ".join(parts)))
