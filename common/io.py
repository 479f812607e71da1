"""I/O helpers for serterm.

Contains:
- mask7: Strip the high bit from every byte
- UserTerminal: The user's keyboard and screen as raw file descriptors
- KeyReader: Blocking keyboard reads that give up when the session stops
"""

import logging
import os
import select
import threading

from common.protocol import INPUT_POLL_S, SEVEN_BIT_MASK, UserStream

logger = logging.getLogger(__name__)


def mask7(data: bytes) -> bytes:
    """Mask every byte to 7 bits."""
    return bytes(b & SEVEN_BIT_MASK for b in data)


class UserTerminal:
    """User side of the relay: keyboard on in_fd, screen on out_fd."""

    def __init__(self, in_fd: int, out_fd: int) -> None:
        self.in_fd = in_fd
        self.out_fd = out_fd
        self._write_lock = threading.Lock()

    def read_byte(self, timeout: float | None = None) -> bytes | None:
        """Read one byte.

        Returns None if nothing arrived within timeout, b"" at end of input.
        """
        if timeout is not None:
            ready, _, _ = select.select([self.in_fd], [], [], timeout)
            if not ready:
                return None
        while True:
            try:
                return os.read(self.in_fd, 1)
            except InterruptedError:
                continue

    def write(self, data: bytes) -> None:
        """Write all of data to the screen."""
        # Both relay threads write here
        with self._write_lock:
            view = memoryview(data)
            while view:
                written = os.write(self.out_fd, view)
                view = view[written:]


class KeyReader:
    """Reads keyboard bytes, polling so a stop request is noticed."""

    def __init__(self, user: UserStream, stop: threading.Event) -> None:
        self._user = user
        self._stop = stop

    def __call__(self) -> int | None:
        """Block for the next key.

        Returns the byte value, or None at end of input or once the session
        has been asked to stop.
        """
        while not self._stop.is_set():
            data = self._user.read_byte(INPUT_POLL_S)
            if data is None:
                continue
            if not data:
                logger.debug("End of keyboard input")
                return None
            return data[0]
        return None
