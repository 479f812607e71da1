"""Keyboard to serial data path."""

import logging
from collections.abc import Callable
from enum import Enum, auto

from common.protocol import CR, ESCAPE_CHAR, LF, SEVEN_BIT_MASK, TRACE, SerialPort
from relay.escape import EscapeCoordinator, EscapeOutcome

logger = logging.getLogger(__name__)


class UplinkExit(Enum):
    """Why the uplink loop ended."""

    END_OF_INPUT = auto()  # Keyboard closed, or the session was asked to stop
    QUIT = auto()  # Escape-q


def translate_key(key: int, raw_keyboard: bool = False) -> int:
    """Mask a key to 7 bits and map newline to carriage return.

    Remote line-oriented shells expect CR as the line terminator; with
    raw_keyboard the newline is sent as is.
    """
    key &= SEVEN_BIT_MASK
    if not raw_keyboard and key == LF:
        return CR
    return key


class Uplink:
    """Relay keyboard bytes to the serial line.

    Runs on the calling thread until the keyboard closes or the user quits;
    serial write errors propagate to the caller.
    """

    def __init__(
        self,
        port: SerialPort,
        read_key: Callable[[], int | None],
        coordinator: EscapeCoordinator,
        raw_keyboard: bool = False,
        escape_char: int = ESCAPE_CHAR,
    ) -> None:
        self._port = port
        self._read_key = read_key
        self._coordinator = coordinator
        self._raw_keyboard = raw_keyboard
        self._escape_char = escape_char
        self.bytes_relayed = 0

    def run(self) -> UplinkExit:
        while True:
            key = self._read_key()
            if key is None:
                return UplinkExit.END_OF_INPUT
            key &= SEVEN_BIT_MASK

            if key == self._escape_char:
                match self._coordinator.handle():
                    case EscapeOutcome.QUIT:
                        return UplinkExit.QUIT
                    case EscapeOutcome.END_OF_INPUT:
                        return UplinkExit.END_OF_INPUT
                continue

            self._port.write(bytes([translate_key(key, self._raw_keyboard)]))
            self.bytes_relayed += 1
            logger.log(TRACE, f"Uplink: {key:#04x}")
