"""TUI runner abstraction for testability.

Lets CLI tests check which app `stackboi view` builds without starting the
Textual event loop.
"""

from abc import ABC, abstractmethod

from textual.app import App


class TuiRunner(ABC):
    """Abstract interface for running TUI applications."""

    @abstractmethod
    def run(self, app: App) -> None: ...


class RealTuiRunner(TuiRunner):
    """Production implementation that runs the Textual event loop."""

    def run(self, app: App) -> None:
        app.run()


class FakeTuiRunner(TuiRunner):
    """Captures apps passed to run() without starting the event loop."""

    def __init__(self) -> None:
        self._apps_run: list[App] = []

    def run(self, app: App) -> None:
        self._apps_run.append(app)

    @property
    def apps_run(self) -> list[App]:
        """Apps that would have been run, for test assertions."""
        return self._apps_run
