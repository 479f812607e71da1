"""Session reporting for serterm.

Contains:
- SessionReport: Summary printed after the terminal has been restored
"""

import sys
from dataclasses import dataclass
from typing import TextIO

from session.result import SessionResult


@dataclass
class SessionReport:
    """Report after a session ends."""

    result: SessionResult

    def print(self, file: TextIO = sys.stderr) -> None:
        """Print the session report."""
        r = self.result
        status = "ENDED" if r.success else "FAILED"
        reason = r.reason.name.lower().replace("_", " ")
        if r.error is not None:
            print(f"Session: {status} ({reason}: {r.error})", file=file)
        else:
            print(f"Session: {status} ({reason})", file=file)
        print(
            f"         ({r.bytes_received} bytes received, {r.bytes_sent} bytes sent, "
            f"{r.transfers} transfers)",
            file=file,
        )

    def success(self) -> bool:
        """Return True if the session ended normally."""
        return self.result.success
