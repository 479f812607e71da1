"""Serial to user data path.

The downlink runs on its own thread, reading blocks from the serial line
and writing them, masked to 7 bits, to the user's screen and the optional
log sink.
"""

import logging
import threading
from typing import BinaryIO

import serial

from common.io import mask7
from common.protocol import CHUNK_SIZE, DOWNLINK_JOIN_TIMEOUT_S, TRACE, SerialPort, UserStream
from relay.gate import PauseGate

logger = logging.getLogger(__name__)


class Downlink:
    """Relay serial bytes to the user until the gate is closed.

    A read error other than an interrupted call ends the downlink: the
    error is kept in `error`, the gate is closed with it and `stop` is set
    so the rest of the session shuts down too.
    """

    def __init__(
        self,
        port: SerialPort,
        user: UserStream,
        gate: PauseGate,
        stop: threading.Event,
        log_sink: BinaryIO | None = None,
    ) -> None:
        self._port = port
        self._user = user
        self._gate = gate
        self._stop = stop
        self._log_sink = log_sink
        self._thread = threading.Thread(target=self._run, name="downlink", daemon=True)
        self.error: Exception | None = None
        self.bytes_relayed = 0

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        self._thread.start()

    def stop(self, timeout: float = DOWNLINK_JOIN_TIMEOUT_S) -> None:
        """Close the gate and wait for the thread to finish its current read."""
        self._gate.close()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning(f"Downlink still running after {timeout}s")

    def _read_block(self) -> bytes:
        # Returns what is already buffered, or waits up to the port's read
        # timeout for the first byte
        size = min(self._port.in_waiting, CHUNK_SIZE) or 1
        while True:
            try:
                return self._port.read(size)
            except InterruptedError:
                continue

    def _run(self) -> None:
        logger.debug("Downlink started")
        try:
            while self._gate.checkpoint():
                data = self._read_block()
                if not data:
                    continue
                block = mask7(data)
                self._user.write(block)
                if self._log_sink is not None:
                    self._log_sink.write(block)
                self.bytes_relayed += len(block)
                logger.log(TRACE, f"Downlink: {len(block)} bytes")
        except (serial.SerialException, OSError) as e:
            logger.error(f"Downlink failed: {e}")
            self.error = e
            self._stop.set()
        finally:
            self._gate.close(self.error)
            logger.debug(f"Downlink exited after {self.bytes_relayed} bytes")
