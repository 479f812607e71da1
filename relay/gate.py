"""Pause/resume rendezvous between the uplink and downlink threads.

The uplink pauses the downlink before a transfer takes over the serial
line and resumes it afterwards. Both calls are strict handshakes: pause()
returns only once the downlink is parked between reads, and the downlink
never reads while paused.

    RUNNING --pause()--> PAUSE_REQUESTED --checkpoint()--> PAUSED
    PAUSED --resume()--> RUNNING
    any --close()--> CLOSED
"""

import logging
import threading
from enum import Enum, auto

from common.protocol import PAUSE_TIMEOUT_S

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Raised when the pause/resume handshake with the downlink fails."""

    pass


class GateState(Enum):
    """State of the downlink as seen through the gate."""

    RUNNING = auto()
    PAUSE_REQUESTED = auto()
    PAUSED = auto()
    CLOSED = auto()


class PauseGate:
    """Condition-variable rendezvous controlling the downlink."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._state = GateState.RUNNING
        self._error: BaseException | None = None
        self.pause_count = 0
        self.resume_count = 0

    @property
    def state(self) -> GateState:
        with self._cond:
            return self._state

    @property
    def error(self) -> BaseException | None:
        """Error the downlink closed the gate with, if any."""
        with self._cond:
            return self._error

    def pause(self, timeout: float = PAUSE_TIMEOUT_S) -> None:
        """Ask the downlink to stop reading and wait until it has.

        Raises:
            RelayError: If the downlink is gone, already paused, or does not
                acknowledge within timeout.
        """
        with self._cond:
            if self._state is GateState.CLOSED:
                raise RelayError("downlink is not running") from self._error
            if self._state is not GateState.RUNNING:
                raise RelayError(f"cannot pause downlink in state {self._state.name}")

            self._state = GateState.PAUSE_REQUESTED
            self._cond.notify_all()
            acknowledged = self._cond.wait_for(
                lambda: self._state in (GateState.PAUSED, GateState.CLOSED), timeout
            )
            if self._state is GateState.CLOSED:
                raise RelayError("downlink exited while pausing") from self._error
            if not acknowledged:
                raise RelayError(f"downlink did not acknowledge pause within {timeout}s")
            self.pause_count += 1
        logger.debug("Downlink paused")

    def resume(self) -> None:
        """Let a paused downlink continue reading.

        Raises:
            RelayError: If the downlink is gone or was not paused.
        """
        with self._cond:
            if self._state is GateState.CLOSED:
                raise RelayError("downlink is not running") from self._error
            if self._state is not GateState.PAUSED:
                raise RelayError(f"cannot resume downlink in state {self._state.name}")
            self._state = GateState.RUNNING
            self.resume_count += 1
            self._cond.notify_all()
        logger.debug("Downlink resumed")

    def checkpoint(self) -> bool:
        """Called by the downlink between reads.

        Acknowledges a pending pause and blocks while paused. Returns False
        once the gate is closed and the downlink should exit.
        """
        with self._cond:
            if self._state is GateState.PAUSE_REQUESTED:
                self._state = GateState.PAUSED
                self._cond.notify_all()
            self._cond.wait_for(lambda: self._state is not GateState.PAUSED)
            return self._state is not GateState.CLOSED

    def close(self, error: BaseException | None = None) -> None:
        """Close the gate, releasing the downlink and any waiting pause()."""
        with self._cond:
            if error is not None and self._error is None:
                self._error = error
            self._state = GateState.CLOSED
            self._cond.notify_all()
