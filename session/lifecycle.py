"""Session lifecycle for serterm.

A session goes STARTING -> ACTIVE -> TERMINATING -> STOPPED:

- STARTING acquires the log file and the serial device, configures the
  line and puts the terminal in raw mode. Failures here release whatever
  was acquired; the terminal is switched last so it never needs restoring.
- ACTIVE runs the downlink thread and the uplink loop on the caller's
  thread.
- TERMINATING stops the downlink, restores the terminal, says goodbye and
  releases the device and log file. It runs exactly once, whatever ended
  the session.
"""

import logging
import termios
import threading
from enum import Enum, auto
from typing import BinaryIO

import serial

from common.config import SessionConfig
from common.device import DeviceError, apply_serial_mode, open_serial
from common.io import KeyReader, UserTerminal
from common.protocol import FAREWELL, READY_BANNER
from common.terminal import TerminalModeSnapshot, apply_terminal_raw_mode, restore_terminal_mode
from relay.downlink import Downlink
from relay.escape import EscapeCoordinator
from relay.gate import PauseGate, RelayError
from relay.uplink import Uplink, UplinkExit
from session.result import SessionResult, StopReason
from transfer.driver import TransferDriver

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle state of a session."""

    STARTING = auto()
    ACTIVE = auto()
    TERMINATING = auto()
    STOPPED = auto()


class Session:
    """One terminal session between the user's terminal and a serial device."""

    def __init__(self, config: SessionConfig, in_fd: int, out_fd: int) -> None:
        self.config = config
        self.state = SessionState.STARTING
        self._in_fd = in_fd
        self._user = UserTerminal(in_fd, out_fd)
        self._stop = threading.Event()
        self._signalled = False
        self._gate = PauseGate()
        self._state_lock = threading.Lock()

        self._log_sink: BinaryIO | None = None
        self._port: serial.Serial | None = None
        self._snapshot: TerminalModeSnapshot | None = None
        self._downlink: Downlink | None = None
        self._uplink: Uplink | None = None
        self._coordinator: EscapeCoordinator | None = None

    def request_stop(self, signalled: bool = False) -> None:
        """Ask a running session to end. Safe to call from a signal handler."""
        if signalled:
            self._signalled = True
        self._stop.set()

    def start(self) -> None:
        """Acquire and configure devices and build the relay.

        Raises:
            OSError: If the log file cannot be opened.
            DeviceError: If the serial device is missing or busy.
            termios.error: If the user's input is not a terminal.
        """
        cfg = self.config
        try:
            if cfg.log_path is not None:
                self._log_sink = open(cfg.log_path, "wb")
            self._port = open_serial(cfg.device, cfg.serial)
            apply_serial_mode(self._port, cfg.serial)
            self._snapshot = apply_terminal_raw_mode(self._in_fd)
        except BaseException:
            self._release()
            self.state = SessionState.STOPPED
            raise

        read_key = KeyReader(self._user, self._stop)
        driver = TransferDriver(self._user, read_key, self._port.fileno())
        self._coordinator = EscapeCoordinator(
            self._port,
            self._user,
            self._gate,
            read_key,
            driver,
            self._reconfigure,
            cfg.protocol,
            cfg.escape_char,
        )
        self._uplink = Uplink(
            self._port, read_key, self._coordinator, cfg.raw_keyboard, cfg.escape_char
        )
        self._downlink = Downlink(self._port, self._user, self._gate, self._stop, self._log_sink)
        self.state = SessionState.ACTIVE

    def run(self) -> SessionResult:
        """Start the session and relay until it ends. Returns the result."""
        try:
            self.start()
        except (DeviceError, OSError, termios.error) as e:
            logger.error(f"Session setup failed: {e}")
            return SessionResult(StopReason.SETUP_FAILED, error=e)

        assert self._uplink is not None and self._downlink is not None
        reason = StopReason.END_OF_INPUT
        error: BaseException | None = None
        try:
            self._user.write(READY_BANNER)
            self._downlink.start()
            if self._uplink.run() is UplinkExit.QUIT:
                reason = StopReason.QUIT
        except RelayError as e:
            logger.error(f"Relay handshake failed: {e}")
            reason, error = StopReason.UPLINK_FAILED, e
        except (serial.SerialException, OSError) as e:
            logger.error(f"Uplink failed: {e}")
            reason, error = StopReason.UPLINK_FAILED, e
        finally:
            self.terminate()

        # The uplink also ends when the session is stopped from elsewhere
        if self._downlink.error is not None and reason is not StopReason.QUIT:
            reason, error = StopReason.DOWNLINK_FAILED, self._downlink.error
        elif reason is StopReason.END_OF_INPUT and self._signalled:
            reason = StopReason.SIGNALLED

        logger.info(f"Session ended: {reason.name}")
        return SessionResult(
            reason,
            error=error,
            bytes_received=self._downlink.bytes_relayed,
            bytes_sent=self._uplink.bytes_relayed,
            transfers=self._coordinator.transfers if self._coordinator else 0,
        )

    def terminate(self) -> None:
        """Shut the session down. Only the first call has any effect.

        Every step runs even if an earlier one failed, so the terminal is
        always restored.
        """
        with self._state_lock:
            if self.state in (SessionState.TERMINATING, SessionState.STOPPED):
                return
            self.state = SessionState.TERMINATING
        logger.info("Terminating session")

        steps = (
            ("stop downlink", self._stop_downlink),
            ("restore terminal", self._restore_terminal),
            ("write farewell", lambda: self._user.write(FAREWELL)),
            ("release devices", self._release),
        )
        for description, step in steps:
            try:
                step()
            except Exception as e:
                logger.warning(f"Failed to {description}: {e}")
        self.state = SessionState.STOPPED

    def _reconfigure(self) -> None:
        assert self._port is not None
        apply_serial_mode(self._port, self.config.serial)

    def _stop_downlink(self) -> None:
        self._stop.set()
        if self._downlink is not None:
            self._downlink.stop()
        else:
            self._gate.close()

    def _restore_terminal(self) -> None:
        if self._snapshot is not None:
            restore_terminal_mode(self._snapshot)

    def _release(self) -> None:
        if self._port is not None and self._port.is_open:
            name = self._port.name
            self._port.close()
            logger.info(f"Closed {name}")
        if self._log_sink is not None and not self._log_sink.closed:
            self._log_sink.close()
