"""pytest configuration and fixtures for serterm tests.

Provides:
- FakeSerialPort: Thread-safe serial port with timed blocking reads
- FakeTerminal: Keyboard queue and captured screen output
- FakeDriver: Transfer driver recording its calls
- PipeTerminal: Real pipes standing in for the user's terminal
- socat PTY pair fixture for integration tests
- Markers for unit vs integration tests
"""

import os
import queue
import re
import subprocess
import sys
import threading
import time
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from common.config import TransferProtocol


class FakeSerialPort:
    """Fake serial port for relay tests.

    Bytes injected with inject() are what the device "sends"; bytes the
    relay writes are collected in `written`. read() waits up to `timeout`
    for data like a pyserial port with a read timeout.
    """

    def __init__(self, timeout: float = 0.05) -> None:
        self.timeout = timeout
        self.name = "fake0"
        self.is_open = True
        self.read_calls = 0
        self._rx = bytearray()
        self._tx = bytearray()
        self._cond = threading.Condition()
        self._read_error: Exception | None = None
        self._interrupts = 0
        self._fd = -1

    def write(self, data: bytes, /) -> int:
        with self._cond:
            self._tx += data
            self._cond.notify_all()
            return len(data)

    def read(self, size: int = 1, /) -> bytes:
        with self._cond:
            if self._interrupts:
                self._interrupts -= 1
                raise InterruptedError("interrupted system call")
            self._cond.wait_for(lambda: self._rx or self._read_error, self.timeout)
            if self._read_error is not None:
                raise self._read_error
            self.read_calls += 1
            data = bytes(self._rx[:size])
            del self._rx[:size]
            return data

    @property
    def in_waiting(self) -> int:
        with self._cond:
            return len(self._rx)

    @property
    def written(self) -> bytes:
        with self._cond:
            return bytes(self._tx)

    def fileno(self) -> int:
        # Transfer programs get /dev/null as the line
        if self._fd < 0:
            self._fd = os.open(os.devnull, os.O_RDWR)
        return self._fd

    def close(self) -> None:
        self.is_open = False
        if self._fd >= 0:
            os.close(self._fd)
            self._fd = -1

    def inject(self, data: bytes) -> None:
        """Inject data as if received from the device."""
        with self._cond:
            self._rx += data
            self._cond.notify_all()

    def fail_reads(self, error: Exception) -> None:
        """Make every following read raise error."""
        with self._cond:
            self._read_error = error
            self._cond.notify_all()

    def interrupt_reads(self, count: int = 1) -> None:
        """Make the next count reads raise InterruptedError."""
        with self._cond:
            self._interrupts += count

    def wait_written(self, expected: bytes, timeout: float = 2.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: expected in self._tx, timeout)


class FakeTerminal:
    """Fake user terminal: queued keystrokes and captured output."""

    def __init__(self) -> None:
        self._keys: queue.Queue[bytes] = queue.Queue()
        self._out = bytearray()
        self._cond = threading.Condition()

    def type(self, data: bytes) -> None:
        for b in data:
            self._keys.put(bytes([b]))

    def close_input(self) -> None:
        self._keys.put(b"")

    def read_byte(self, timeout: float | None = None) -> bytes | None:
        try:
            data = self._keys.get(timeout=timeout)
        except queue.Empty:
            return None
        if not data:
            # End of input stays ended
            self._keys.put(b"")
        return data

    def write(self, data: bytes) -> None:
        with self._cond:
            self._out += data
            self._cond.notify_all()

    @property
    def output(self) -> bytes:
        with self._cond:
            return bytes(self._out)

    def wait_for_output(self, expected: bytes, timeout: float = 2.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: expected in self._out, timeout)


class FakeDriver:
    """Transfer driver that records requests instead of running programs."""

    def __init__(self, status: int | None = 0, action: Callable[[], None] | None = None) -> None:
        self.status = status
        self.action = action
        self.calls: list[tuple[str, TransferProtocol]] = []

    def run_receive(self, protocol: TransferProtocol, filename: str | None = None) -> int | None:
        return self._run("receive", protocol)

    def run_send(self, protocol: TransferProtocol, filename: str | None = None) -> int | None:
        return self._run("send", protocol)

    def _run(self, direction: str, protocol: TransferProtocol) -> int | None:
        self.calls.append((direction, protocol))
        if self.action is not None:
            self.action()
        return self.status


class PipeTerminal:
    """A pair of pipes used as the user's keyboard and screen.

    A reader thread drains the screen pipe so the session never blocks on
    writing to it.
    """

    def __init__(self) -> None:
        self.in_fd, self._key_fd = os.pipe()
        self._screen_fd, self.out_fd = os.pipe()
        self._out = bytearray()
        self._cond = threading.Condition()
        self._reader = threading.Thread(target=self._drain, daemon=True)
        self._reader.start()

    def _drain(self) -> None:
        while True:
            try:
                data = os.read(self._screen_fd, 4096)
            except OSError:
                return
            if not data:
                return
            with self._cond:
                self._out += data
                self._cond.notify_all()

    def type(self, data: bytes) -> None:
        os.write(self._key_fd, data)

    def close_input(self) -> None:
        if self._key_fd >= 0:
            os.close(self._key_fd)
            self._key_fd = -1

    @property
    def output(self) -> bytes:
        with self._cond:
            return bytes(self._out)

    def wait_for_output(self, expected: bytes, timeout: float = 2.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: expected in self._out, timeout)

    def close(self) -> None:
        self.close_input()
        for fd in (self.in_fd, self.out_fd):
            try:
                os.close(fd)
            except OSError:
                pass
        self._reader.join(timeout=2)
        os.close(self._screen_fd)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test (requires socat)")


@pytest.fixture
def port() -> FakeSerialPort:
    return FakeSerialPort()


@pytest.fixture
def user() -> FakeTerminal:
    return FakeTerminal()


@pytest.fixture
def pipe_terminal() -> Generator[PipeTerminal, None, None]:
    term = PipeTerminal()
    yield term
    term.close()


@pytest.fixture
def pty_pair() -> Generator[tuple[str, str, subprocess.Popen[str]], None, None]:
    """Create a connected PTY pair using socat.

    Yields (pty1, pty2, socat_process).

    The PTYs are connected: data written to pty1 appears on pty2 and vice versa.
    This stands in for a serial cable without real hardware.

    Requires: socat installed and Linux platform.
    """
    if sys.platform != "linux":
        pytest.skip("socat PTY fixture requires Linux")

    # Check if socat is available
    try:
        subprocess.run(["which", "socat"], check=True, capture_output=True)
    except subprocess.CalledProcessError:
        pytest.skip("socat not installed")

    # Start socat to create connected PTY pair
    socat = subprocess.Popen(
        ["socat", "-d", "-d", "pty,raw,echo=0", "pty,raw,echo=0"],
        stderr=subprocess.PIPE,
        text=True,
    )

    # Parse PTY names from socat stderr output
    ptys: list[str] = []
    try:
        for _ in range(20):  # Give socat time to start
            if socat.poll() is not None:
                raise RuntimeError(f"socat exited early with code {socat.returncode}")

            assert socat.stderr is not None
            line = socat.stderr.readline()
            if "PTY is" in line:
                match = re.search(r"/dev/pts/\d+", line)
                if match:
                    ptys.append(match.group())
            if len(ptys) == 2:
                break
            time.sleep(0.05)
        else:
            raise RuntimeError(f"Failed to get PTY pair from socat, got: {ptys}")

        yield ptys[0], ptys[1], socat

    finally:
        # Cleanup
        if socat.poll() is None:
            socat.terminate()
            socat.wait(timeout=5)
        if socat.stderr:
            socat.stderr.close()


@pytest.fixture
def script_dir() -> Path:
    """Return path to the main script directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def serterm_path(script_dir: Path) -> Path:
    """Return path to serterm.py."""
    return script_dir / "serterm.py"
