"""Controlling terminal raw mode for serterm.

Contains:
- TerminalModeSnapshot: Saved terminal attributes
- apply_terminal_raw_mode: Put the terminal in raw mode, returning a snapshot
- restore_terminal_mode: Restore the snapshot (only the first call acts)
"""

import logging
import termios
import threading
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Indexes into the list returned by termios.tcgetattr
_IFLAG, _OFLAG, _CFLAG, _LFLAG, _ISPEED, _OSPEED, _CC = range(7)


@dataclass
class TerminalModeSnapshot:
    """Terminal attributes captured before switching to raw mode."""

    fd: int
    attrs: list
    restored: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


def apply_terminal_raw_mode(fd: int) -> TerminalModeSnapshot:
    """Switch the terminal on fd to raw mode.

    Disables echo, canonical input, signal characters, input translation and
    output post-processing. Reads return as soon as one byte is available.

    Raises:
        termios.error: If fd is not a terminal.
    """
    saved = termios.tcgetattr(fd)
    attrs = termios.tcgetattr(fd)
    attrs[_LFLAG] &= ~(termios.ECHO | termios.ICANON | termios.ISIG)
    attrs[_OFLAG] &= ~termios.OPOST
    attrs[_IFLAG] = 0
    attrs[_CC][termios.VMIN] = 1
    attrs[_CC][termios.VTIME] = 0
    termios.tcsetattr(fd, termios.TCSAFLUSH, attrs)
    logger.debug(f"Terminal fd {fd} in raw mode")
    return TerminalModeSnapshot(fd=fd, attrs=saved)


def restore_terminal_mode(snapshot: TerminalModeSnapshot) -> bool:
    """Restore the attributes saved in snapshot.

    Returns True if this call restored the terminal, False if an earlier
    call already did.
    """
    with snapshot._lock:
        if snapshot.restored:
            return False
        snapshot.restored = True
        termios.tcsetattr(snapshot.fd, termios.TCSAFLUSH, snapshot.attrs)
    logger.debug(f"Terminal fd {snapshot.fd} restored")
    return True
