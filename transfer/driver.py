"""External file transfer programs for serterm.

Transfers are delegated to the lrzsz tools (or cat for plain text), run
with stdin and stdout on the serial line. Their stderr stays on the user's
terminal, so progress and error messages show up there.
"""

import logging
import os
import subprocess
from collections.abc import Callable

from common.config import Direction, TransferProtocol, TransferRequest
from common.protocol import UserStream
from transfer.prompt import prompt_read

logger = logging.getLogger(__name__)

# Programs per (direction, protocol); the filename, if any, is appended
TRANSFER_COMMANDS: dict[tuple[Direction, TransferProtocol], tuple[str, ...]] = {
    (Direction.RECEIVE, TransferProtocol.X): ("lrx",),
    (Direction.RECEIVE, TransferProtocol.Y): ("lry",),
    (Direction.RECEIVE, TransferProtocol.Z): ("lrz",),
    (Direction.SEND, TransferProtocol.X): ("lsx",),
    (Direction.SEND, TransferProtocol.Y): ("lsy",),
    (Direction.SEND, TransferProtocol.Z): ("lsz",),
    (Direction.SEND, TransferProtocol.TXT): ("cat",),
}

# Xmodem doesn't send names, so receiving needs one from the user
_NAMELESS_PROTOCOLS = {TransferProtocol.X}

RECEIVE_PROMPT = "Receive file: "
SEND_PROMPT = "Send file: "

_UNSUPPORTED = {
    Direction.RECEIVE: b"Receive not supported with this protocol.\r\n",
    Direction.SEND: b"Transmit not supported with this protocol.\r\n",
}


def transfer_command(request: TransferRequest) -> list[str] | None:
    """Build the argv for a request, or None if the combination is unsupported."""
    base = TRANSFER_COMMANDS.get((request.direction, request.protocol))
    if base is None:
        return None
    argv = list(base)
    if request.filename:
        argv.append(request.filename)
    return argv


class TransferDriver:
    """Prompts for filenames and runs transfer programs on the serial line."""

    def __init__(
        self,
        user: UserStream,
        read_key: Callable[[], int | None],
        line_fd: int,
    ) -> None:
        self._user = user
        self._read_key = read_key
        self._line_fd = line_fd

    def run_receive(
        self, protocol: TransferProtocol, filename: str | None = None
    ) -> int | None:
        """Receive a file. Returns the program's exit status, or None if nothing ran."""
        if (Direction.RECEIVE, protocol) not in TRANSFER_COMMANDS:
            return self._unsupported(Direction.RECEIVE, protocol)
        if filename is None and protocol in _NAMELESS_PROTOCOLS:
            filename = self._ask_filename(RECEIVE_PROMPT)
            if filename is None:
                return None
        return self.run(TransferRequest(Direction.RECEIVE, protocol, filename))

    def run_send(
        self, protocol: TransferProtocol, filename: str | None = None
    ) -> int | None:
        """Send a file. Returns the program's exit status, or None if nothing ran."""
        if (Direction.SEND, protocol) not in TRANSFER_COMMANDS:
            return self._unsupported(Direction.SEND, protocol)
        if filename is None:
            filename = self._ask_filename(SEND_PROMPT)
            if filename is None:
                return None
        return self.run(TransferRequest(Direction.SEND, protocol, filename))

    def run(self, request: TransferRequest) -> int | None:
        """Run the program for request and wait for it to finish.

        A program that cannot be started is reported to the user; it does
        not end the session.
        """
        argv = transfer_command(request)
        if argv is None:
            return self._unsupported(request.direction, request.protocol)

        logger.info(f"Starting transfer: {' '.join(argv)}")
        # pyserial leaves the line non-blocking; the transfer programs expect
        # blocking reads
        was_blocking = os.get_blocking(self._line_fd)
        os.set_blocking(self._line_fd, True)
        try:
            proc = subprocess.run(argv, stdin=self._line_fd, stdout=self._line_fd, check=False)
        except OSError as e:
            logger.warning(f"Cannot run {argv[0]}: {e}")
            self._user.write(f"{argv[0]}: {e.strerror}\r\n".encode("ascii", "replace"))
            return None
        finally:
            os.set_blocking(self._line_fd, was_blocking)

        logger.info(f"Transfer {argv[0]} finished with status {proc.returncode}")
        return proc.returncode

    def _ask_filename(self, prompt: str) -> str | None:
        filename = prompt_read(self._user, self._read_key, prompt)
        if not filename:
            logger.info("No filename given, transfer abandoned")
            self._user.write(b"\r\n")
            return None
        self._user.write(b"\n")
        return filename

    def _unsupported(self, direction: Direction, protocol: TransferProtocol) -> None:
        logger.info(f"{direction.value} not supported with protocol {protocol.value}")
        self._user.write(_UNSUPPORTED[direction])
        return None
