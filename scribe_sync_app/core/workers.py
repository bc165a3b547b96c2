"""
Thread-pool workers for blocking network calls.

Results are delivered back through Qt signals, so slots connected on a
QObject living in the GUI thread run there, not on the worker thread.
"""
import logging
import typing as t

from PySide6.QtCore import QObject, QRunnable, Signal, Slot

logger = logging.getLogger(__name__)


class WorkerSignals(QObject):
    """Signals for worker thread communication."""
    finished = Signal(object)   # return value of the call
    error = Signal(object)      # exception raised by the call


class CallWorker(QRunnable):
    """Run one blocking callable on a QThreadPool thread."""

    def __init__(self, fn: t.Callable, *args, **kwargs):
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.signals = WorkerSignals()

    @Slot()
    def run(self):
        """Call the function and emit its result or its exception."""
        try:
            result = self.fn(*self.args, **self.kwargs)
        except Exception as e:
            logger.debug("Worker call %s raised %s", getattr(self.fn, "__name__", self.fn), e)
            self.signals.error.emit(e)
            return
        self.signals.finished.emit(result)
