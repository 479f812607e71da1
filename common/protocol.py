"""Protocol definitions for serterm.

Contains:
- SerialPort and UserStream Protocols for type checking
- Byte constants for the relay (escape character, line terminators)
- Timing constants for reads, pause handshake and shutdown
- Logging configuration
"""

import logging
import os
from typing import Protocol

# TRACE logging level (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class SerialPort(Protocol):
    """Protocol for serial port operations needed by the relay."""

    def write(self, data: bytes, /) -> int | None: ...
    def read(self, size: int = ..., /) -> bytes: ...
    @property
    def in_waiting(self) -> int: ...


class UserStream(Protocol):
    """Protocol for the user's side of the relay (keyboard and screen)."""

    def read_byte(self, timeout: float | None = None) -> bytes | None: ...
    def write(self, data: bytes) -> None: ...


DEFAULT_DEVICE = "/dev/ttyUSB0"

# Control-Z starts an escape sequence
ESCAPE_CHAR = 0x1A

SEVEN_BIT_MASK = 0x7F
CR = 0x0D
LF = 0x0A

# Max bytes per downlink read
CHUNK_SIZE = 30

# Filenames typed at a transfer prompt are truncated to this length
MAX_FILENAME_LEN = 59

# Default timing constants
READ_TIMEOUT_S = 0.1  # Bounded-wait serial read
WRITE_TIMEOUT_S = 1.0
INPUT_POLL_S = 0.2  # Keyboard poll interval, bounds reaction to stop requests
PAUSE_TIMEOUT_S = float(os.environ.get("SERTERM_PAUSE_TIMEOUT_S", "5.0"))
DOWNLINK_JOIN_TIMEOUT_S = 2.0

READY_BANNER = b"Term ready.\r\n"
FAREWELL = b"Exiting\n"
