"""Escape sequence handling for serterm.

Contains:
- EscapeCommand: What a sub-command byte after the escape character means
- ESCAPE_COMMANDS: The sub-command table
- classify_escape: Look up a sub-command byte
- EscapeOutcome: What the uplink should do after an escape sequence
- EscapeCoordinator: Pause the downlink, run the sub-command, resume
"""

import logging
from collections.abc import Callable
from enum import Enum, auto
from typing import Protocol

from common.config import TransferProtocol
from common.protocol import ESCAPE_CHAR, SEVEN_BIT_MASK, SerialPort, UserStream
from relay.gate import PauseGate

logger = logging.getLogger(__name__)

HELP_MESSAGE = b"Options are: <r>eceive, <s>end, <q>uit\r\n"


class EscapeCommand(Enum):
    """Sub-commands available after the escape character."""

    LITERAL = auto()  # Escape character typed twice, send it through
    QUIT = auto()
    RECEIVE = auto()
    SEND = auto()
    HELP = auto()  # Anything unrecognized


ESCAPE_COMMANDS: dict[int, EscapeCommand] = {
    ord("q"): EscapeCommand.QUIT,
    ord("Q"): EscapeCommand.QUIT,
    ord("r"): EscapeCommand.RECEIVE,
    ord("R"): EscapeCommand.RECEIVE,
    ord("s"): EscapeCommand.SEND,
    ord("S"): EscapeCommand.SEND,
    ord("t"): EscapeCommand.SEND,
    ord("T"): EscapeCommand.SEND,
}


def classify_escape(key: int, escape_char: int = ESCAPE_CHAR) -> EscapeCommand:
    """Map a (7-bit) sub-command byte to its command."""
    if key == escape_char:
        return EscapeCommand.LITERAL
    return ESCAPE_COMMANDS.get(key, EscapeCommand.HELP)


class EscapeOutcome(Enum):
    """Result of handling one escape sequence."""

    CONTINUE = auto()
    QUIT = auto()
    END_OF_INPUT = auto()


class TransferRunner(Protocol):
    """Protocol for the transfer driver, as used by the coordinator."""

    def run_receive(
        self, protocol: TransferProtocol, filename: str | None = None
    ) -> int | None: ...
    def run_send(
        self, protocol: TransferProtocol, filename: str | None = None
    ) -> int | None: ...


class EscapeCoordinator:
    """Runs escape sub-commands with the downlink paused."""

    def __init__(
        self,
        port: SerialPort,
        user: UserStream,
        gate: PauseGate,
        read_key: Callable[[], int | None],
        driver: TransferRunner,
        reconfigure: Callable[[], None],
        protocol: TransferProtocol,
        escape_char: int = ESCAPE_CHAR,
    ) -> None:
        self._port = port
        self._user = user
        self._gate = gate
        self._read_key = read_key
        self._driver = driver
        self._reconfigure = reconfigure
        self._protocol = protocol
        self._escape_char = escape_char
        self.transfers = 0

    def handle(self) -> EscapeOutcome:
        """Handle the keys following an escape character.

        The downlink stays paused on QUIT and END_OF_INPUT; the session
        shuts it down.

        Raises:
            RelayError: If the downlink cannot be paused or resumed.
        """
        self._gate.pause()

        key = self._read_key()
        if key is None:
            return EscapeOutcome.END_OF_INPUT
        key &= SEVEN_BIT_MASK

        command = classify_escape(key, self._escape_char)
        logger.debug(f"Escape sub-command {key:#04x}: {command.name}")

        match command:
            case EscapeCommand.LITERAL:
                self._port.write(bytes([key]))
            case EscapeCommand.QUIT:
                logger.info("Quit requested")
                return EscapeOutcome.QUIT
            case EscapeCommand.RECEIVE:
                self._transfer(self._driver.run_receive)
            case EscapeCommand.SEND:
                self._transfer(self._driver.run_send)
            case EscapeCommand.HELP:
                self._user.write(HELP_MESSAGE)

        self._gate.resume()
        return EscapeOutcome.CONTINUE

    def _transfer(self, run: Callable[[TransferProtocol], int | None]) -> None:
        status = run(self._protocol)
        self.transfers += 1
        if status:
            logger.warning(f"Transfer exited with status {status}")
        # The transfer program may have left the line in another mode
        self._reconfigure()
