"""
Shutdown Coordinator

Owns the one-way lifecycle of the gateway process:

    RUNNING --trigger--> DRAINING --listener closed--> STOPPED

Triggers come from SIGINT/SIGTERM, from POST /shutdown, or from the
listener thread exiting on its own, and may arrive from any thread at any
time. Only the first trigger moves the state out of RUNNING; later ones
are no-ops, so the listener is closed once and the process exits once.

Design Decisions:
- The watcher blocks on a queue on the main thread, like a signal channel
- Closing the listener stops new connections while in-flight requests
  finish; nothing is cancelled
- The exit function is injected so tests can observe it
"""

import queue
import signal
import sys
import threading
from enum import Enum
from typing import Callable, Optional, Protocol

from gateway.logging_config import get_logger

logger = get_logger(__name__)


class ShutdownState(str, Enum):
    """Lifecycle states of the gateway process."""
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class Listener(Protocol):
    """What the coordinator needs from the serving side."""

    def close(self) -> None:
        """Stop accepting new connections; let in-flight requests finish."""
        ...

    def wait_closed(self) -> Optional[BaseException]:
        """Block until serving stopped; return the error it died with, if any."""
        ...


class ShutdownCoordinator:
    """
    Coordinates a single, race-free shutdown.

    Usage:
        coordinator = ShutdownCoordinator()
        coordinator.install_signal_handlers()
        ...
        coordinator.watch(listener)  # blocks until shutdown, then exits
    """

    def __init__(self, exit_func: Callable[[int], None] = sys.exit):
        self._exit = exit_func
        self._triggers: "queue.Queue[str]" = queue.Queue()
        self._lock = threading.Lock()
        self._state = ShutdownState.RUNNING
        self.listener: Optional[Listener] = None

    @property
    def state(self) -> ShutdownState:
        return self._state

    def trigger(self, reason: str) -> bool:
        """
        Request shutdown.

        Safe to call from any thread or from a signal handler.

        Args:
            reason: Short description for the logs

        Returns:
            True if this call started the shutdown, False if one was
            already in progress
        """
        with self._lock:
            if self._state is not ShutdownState.RUNNING:
                return False
            self._state = ShutdownState.DRAINING

        self._triggers.put(reason)
        return True

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to trigger(). Main thread only."""
        def handle_signal(signum: int, frame: object) -> None:
            self.trigger(signal.Signals(signum).name)

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

    def watch(self, listener: Listener) -> None:
        """
        Wait for a trigger, drain the listener and exit the process.

        Exits with status 0 when the listener closed cleanly and 1 when it
        stopped with an error.

        Args:
            listener: The serving side to close
        """
        self.listener = listener
        reason = self._triggers.get()
        logger.info("Shutting down", reason=reason)

        listener.close()
        error = listener.wait_closed()

        with self._lock:
            self._state = ShutdownState.STOPPED

        if error is not None:
            logger.error(
                "Server stopped with an error",
                error=str(error),
                error_type=type(error).__name__
            )
            self._exit(1)
            return

        logger.info("Server stopped")
        self._exit(0)
