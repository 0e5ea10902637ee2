"""Application foreground/background lifecycle notifications."""

import logging
from collections.abc import Callable
from typing import cast

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtGui import QGuiApplication

logger = logging.getLogger(__name__)


class AppLifecycle(QObject):
    """Broadcast foreground/background transitions.

    Transitions come from the GUI application state when a QGuiApplication
    is running, or from explicit ``set_foreground`` calls (headless mode).

    Example:
        lifecycle = AppLifecycle()
        lifecycle.subscribe(on_foreground, on_background)
        lifecycle.connect_application_state()
    """

    entered_foreground = Signal()
    entered_background = Signal()

    def __init__(self, parent: QObject | None = None) -> None:
        """Initialize in the foreground state."""
        super().__init__(parent)
        self._foreground = True

    @property
    def is_foreground(self) -> bool:
        """Return True if the application is in the foreground."""
        return self._foreground

    def subscribe(self, on_foreground: Callable[[], None], on_background: Callable[[], None]) -> None:
        """Register callbacks for both transitions.

        Callbacks run on the thread that reports the transition.
        """
        self.entered_foreground.connect(on_foreground)
        self.entered_background.connect(on_background)

    def set_foreground(self, foreground: bool) -> None:
        """Report a transition; repeated reports of the same state are ignored.

        Args:
            foreground: True when the application became active.
        """
        if foreground == self._foreground:
            return
        self._foreground = foreground
        logger.info("Application entered %s", "foreground" if foreground else "background")
        if foreground:
            self.entered_foreground.emit()
        else:
            self.entered_background.emit()

    def connect_application_state(self) -> None:
        """Follow the GUI application's active state, if there is one."""
        try:
            raw_app = QGuiApplication.instance()
            if raw_app is None:
                return
            app = cast(QGuiApplication, raw_app)
            app.applicationStateChanged.connect(self._on_application_state_changed)
            logger.debug("Connected to application state signal")
        except AttributeError:
            # Core application without GUI state
            logger.debug("Application state signal not available")

    def _on_application_state_changed(self, state: Qt.ApplicationState) -> None:
        self.set_foreground(state == Qt.ApplicationState.ApplicationActive)
