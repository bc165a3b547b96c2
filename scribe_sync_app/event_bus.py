"""
Notification hub for job lifecycle events.

A SignalBus instance is created by the application and handed to the
components that publish on it; there is no module-level singleton.
"""
import logging
from PySide6.QtCore import QObject, Signal

logger = logging.getLogger(__name__)


class SignalBus(QObject):
    """Typed signals for communication between components without
    requiring direct dependencies between them.
    """
    # ===== pipeline feedback =====
    jobFinished = Signal(str)                   # job_id

    # ===== account =====
    balanceRefreshRequested = Signal(str)       # job_id that consumed credit


__all__ = ["SignalBus"]
