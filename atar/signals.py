"""
Signal Interception

Turns the first termination signal into a single teardown request and
swallows every later one, so an impatient second Ctrl+C cannot abort a
running destroy.
"""

import signal
import threading
from typing import Any, Callable, Dict, Iterable, Optional

from atar.constants import TERMINATION_SIGNALS
from atar.logger import DeployLogger


def signal_name(signum: int) -> str:
    """Human readable name of a signal number."""
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


class SignalInterceptor:
    """
    Delivers the first termination signal exactly once.

    Usage:
        interceptor = SignalInterceptor()
        with interceptor.register(on_signal):
            ...  # on_signal(signum) runs once, on the first signal

    Previous handlers are restored when the block exits.
    """

    def __init__(
        self,
        signals: Iterable[int] = TERMINATION_SIGNALS,
        logger: Optional[DeployLogger] = None,
    ):
        self.signals = list(signals)
        self.logger = logger
        self.signum: Optional[int] = None
        self.ignored = 0
        self._callback: Optional[Callable[[int], None]] = None
        self._previous: Dict[int, Any] = {}
        self._fired = threading.Event()

    @property
    def fired(self) -> bool:
        """Check if the callback has been delivered."""
        return self._fired.is_set()

    @property
    def installed(self) -> bool:
        return bool(self._previous)

    def register(self, on_signal: Callable[[int], None]) -> "SignalInterceptor":
        """
        Install handlers that call `on_signal` on the first signal only.

        Raises:
            RuntimeError: If called outside the main thread
        """
        if threading.current_thread() is not threading.main_thread():
            raise RuntimeError("Signal handlers can only be installed from the main thread")

        self._callback = on_signal
        for sig in self.signals:
            self._previous[sig] = signal.signal(sig, self._handle)
        return self

    def restore(self) -> None:
        """Reinstall the handlers that were active before `register`."""
        for sig, previous in self._previous.items():
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()

    def _handle(self, signum: int, _frame) -> None:
        if self._fired.is_set():
            self.ignored += 1
            if self.logger:
                self.logger.warning(
                    f"{signal_name(signum)} received: teardown already in progress, ignoring"
                )
            return

        self._fired.set()
        self.signum = signum
        if self._callback is not None:
            self._callback(signum)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, _exc_tb):
        self.restore()
        return False
