"""Relay engine package for serterm.

This package holds the two data paths and the handshake between them:
- gate: PauseGate rendezvous used to pause and resume the downlink
- downlink: Serial to user thread
- uplink: Keyboard to serial loop
- escape: Escape sub-command table and coordinator
"""

from relay.downlink import Downlink
from relay.escape import (
    ESCAPE_COMMANDS,
    HELP_MESSAGE,
    EscapeCommand,
    EscapeCoordinator,
    EscapeOutcome,
    classify_escape,
)
from relay.gate import GateState, PauseGate, RelayError
from relay.uplink import Uplink, UplinkExit, translate_key

__all__ = [
    "Downlink",
    "ESCAPE_COMMANDS",
    "EscapeCommand",
    "EscapeCoordinator",
    "EscapeOutcome",
    "GateState",
    "HELP_MESSAGE",
    "PauseGate",
    "RelayError",
    "Uplink",
    "UplinkExit",
    "classify_escape",
    "translate_key",
]
