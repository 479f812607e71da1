"""Session lifecycle package for serterm.

This package ties the relay to the devices:
- Startup: log file, exclusive serial device, line and terminal modes
- Shutdown: downlink stop, terminal restore, device release
- Result reporting and exit codes
"""

from session.lifecycle import Session, SessionState
from session.report import SessionReport
from session.result import ExitCode, SessionResult, StopReason

__all__ = [
    "ExitCode",
    "Session",
    "SessionReport",
    "SessionResult",
    "SessionState",
    "StopReason",
]
