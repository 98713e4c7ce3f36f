"""
SignalManager - forwards SIGINT/SIGTERM to the spawned child before the host exits.

Handlers are installed once per manager. bind() replaces the tracked child
instead of stacking handlers; once the child is released the handlers only
exit the host.
"""

import logging
import signal
import sys
from typing import Callable, Dict, Optional, Protocol, Sequence

logger = logging.getLogger("nextbridge.signals")

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Child(Protocol):
    pid: int
    returncode: Optional[int]

    def send_signal(self, sig: int) -> None: ...


class SignalManager:
    def __init__(
        self,
        signals: Sequence[int] = DEFAULT_SIGNALS,
        exit_func: Callable[[int], None] = sys.exit,
    ):
        self.signals = tuple(signals)
        self._exit = exit_func
        self._child: Optional[Child] = None
        self._previous: Dict[int, object] = {}

    @property
    def child(self) -> Optional[Child]:
        return self._child

    @property
    def installed(self) -> bool:
        return bool(self._previous)

    def bind(self, child: Child) -> None:
        if self._child is not None and self._child is not child:
            logger.debug("Replacing tracked process %s with %s", self._child.pid, child.pid)
        self._child = child
        self._install()

    def release(self) -> None:
        self._child = None

    def forward(self, signum: int) -> bool:
        """Send `signum` to the tracked child. Returns False when there is nothing to signal."""
        child = self._child
        if child is None or child.returncode is not None:
            return False
        try:
            child.send_signal(signum)
        except ProcessLookupError:
            return False
        logger.info("Forwarded %s to process %s", signal.Signals(signum).name, child.pid)
        return True

    def uninstall(self) -> None:
        """Restore the handlers that were active before install."""
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous = {}

    def _install(self) -> None:
        if self._previous:
            return
        for signum in self.signals:
            self._previous[signum] = signal.getsignal(signum)
            signal.signal(signum, self._handle)

    def _handle(self, signum, frame) -> None:
        self.forward(signum)
        self._child = None
        self._exit(128 + signum)
