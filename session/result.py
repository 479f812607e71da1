"""Session result types for serterm.

Contains:
- ExitCode: Process exit codes
- StopReason: Why a session ended
- SessionResult: Outcome of a session, mapped to an exit code
"""

from dataclasses import dataclass
from enum import Enum, IntEnum, auto


class ExitCode(IntEnum):
    """Exit codes for serterm."""

    SUCCESS = 0  # Quit or end of keyboard input
    SETUP_FAILED = 1  # Device, log file or terminal could not be acquired
    USAGE = 2  # Bad command line (argparse)
    RELAY_FAILED = 3  # Runtime I/O error or handshake failure
    TERMINATED = 4  # Stopped by SIGTERM/SIGHUP


class StopReason(Enum):
    """Why a session ended."""

    END_OF_INPUT = auto()
    QUIT = auto()
    SIGNALLED = auto()
    SETUP_FAILED = auto()
    DOWNLINK_FAILED = auto()
    UPLINK_FAILED = auto()


_EXIT_CODES = {
    StopReason.END_OF_INPUT: ExitCode.SUCCESS,
    StopReason.QUIT: ExitCode.SUCCESS,
    StopReason.SIGNALLED: ExitCode.TERMINATED,
    StopReason.SETUP_FAILED: ExitCode.SETUP_FAILED,
    StopReason.DOWNLINK_FAILED: ExitCode.RELAY_FAILED,
    StopReason.UPLINK_FAILED: ExitCode.RELAY_FAILED,
}


@dataclass
class SessionResult:
    """Result of a terminal session.

    Attributes:
        reason: Why the session ended.
        error: The error that ended it, if any.
        bytes_received: Bytes relayed from the serial line to the user.
        bytes_sent: Keyboard bytes relayed to the serial line.
        transfers: Number of transfers started from the escape menu.
    """

    reason: StopReason
    error: BaseException | None = None
    bytes_received: int = 0
    bytes_sent: int = 0
    transfers: int = 0

    @property
    def exit_code(self) -> ExitCode:
        return _EXIT_CODES[self.reason]

    @property
    def success(self) -> bool:
        return self.exit_code == ExitCode.SUCCESS
