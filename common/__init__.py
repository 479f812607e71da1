"""Common modules for serterm.

This package contains code shared by the relay, transfer and session packages:
- protocol: Byte and timing constants, SerialPort/UserStream Protocols
- config: SerialConfig, SessionConfig, TransferRequest dataclasses
- device: Serial device acquisition and line configuration
- terminal: Controlling terminal raw mode
- io: 7-bit masking, user terminal I/O, keyboard reader
"""

from common.config import (
    Bits,
    ConfigError,
    Direction,
    Parity,
    SerialConfig,
    SessionConfig,
    Speed,
    TransferProtocol,
    TransferRequest,
)
from common.device import DeviceError
from common.io import KeyReader, UserTerminal, mask7
from common.protocol import (
    CHUNK_SIZE,
    ESCAPE_CHAR,
    MAX_FILENAME_LEN,
    SerialPort,
    UserStream,
)

__all__ = [
    # Protocol
    "SerialPort",
    "UserStream",
    "CHUNK_SIZE",
    "ESCAPE_CHAR",
    "MAX_FILENAME_LEN",
    # Config
    "Bits",
    "Direction",
    "Parity",
    "SerialConfig",
    "SessionConfig",
    "Speed",
    "TransferProtocol",
    "TransferRequest",
    # I/O
    "KeyReader",
    "UserTerminal",
    "mask7",
    # Exceptions
    "ConfigError",
    "DeviceError",
]
