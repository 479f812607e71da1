"""Tests for terminal raw mode and serial line configuration on real ptys."""

import os
import pty
import sys
import termios
from collections.abc import Generator

import pytest

from common.config import SerialConfig, Speed
from common.device import DeviceError, apply_serial_mode, open_serial
from common.terminal import apply_terminal_raw_mode, restore_terminal_mode

pytestmark = pytest.mark.skipif(sys.platform != "linux", reason="Requires Linux ptys")


@pytest.fixture
def pty_fds() -> Generator[tuple[int, int], None, None]:
    """Yield (master_fd, slave_fd) of a fresh pty."""
    master_fd, slave_fd = pty.openpty()
    yield master_fd, slave_fd
    os.close(slave_fd)
    os.close(master_fd)


@pytest.mark.unit
class TestTerminalRawMode:
    """Tests for apply_terminal_raw_mode / restore_terminal_mode."""

    def test_raw_mode_flags(self, pty_fds: tuple[int, int]) -> None:
        _, slave_fd = pty_fds
        apply_terminal_raw_mode(slave_fd)
        iflag, oflag, _, lflag, _, _, cc = termios.tcgetattr(slave_fd)
        assert lflag & (termios.ECHO | termios.ICANON | termios.ISIG) == 0
        assert oflag & termios.OPOST == 0
        assert iflag == 0
        assert cc[termios.VMIN] in (1, b"\x01")
        assert cc[termios.VTIME] in (0, b"\x00")

    def test_restore_puts_back_original(self, pty_fds: tuple[int, int]) -> None:
        _, slave_fd = pty_fds
        original = termios.tcgetattr(slave_fd)
        snapshot = apply_terminal_raw_mode(slave_fd)
        assert termios.tcgetattr(slave_fd) != original
        assert restore_terminal_mode(snapshot) is True
        assert termios.tcgetattr(slave_fd) == original

    def test_restore_only_once(self, pty_fds: tuple[int, int]) -> None:
        _, slave_fd = pty_fds
        snapshot = apply_terminal_raw_mode(slave_fd)
        assert restore_terminal_mode(snapshot) is True
        # Changes made after the restore are left alone
        apply_terminal_raw_mode(slave_fd)
        raw = termios.tcgetattr(slave_fd)
        assert restore_terminal_mode(snapshot) is False
        assert termios.tcgetattr(slave_fd) == raw

    def test_not_a_terminal(self) -> None:
        read_fd, write_fd = os.pipe()
        try:
            with pytest.raises(termios.error):
                apply_terminal_raw_mode(read_fd)
        finally:
            os.close(read_fd)
            os.close(write_fd)


@pytest.mark.unit
class TestSerialDevice:
    """Tests for open_serial / apply_serial_mode using a pty as the line."""

    def test_open_applies_speed(self, pty_fds: tuple[int, int]) -> None:
        _, slave_fd = pty_fds
        ser = open_serial(os.ttyname(slave_fd), SerialConfig(speed=Speed.B38400))
        try:
            assert ser.baudrate == 38400
            assert termios.tcgetattr(ser.fileno())[5] == termios.B38400
        finally:
            ser.close()

    def test_open_is_exclusive(self, pty_fds: tuple[int, int]) -> None:
        _, slave_fd = pty_fds
        name = os.ttyname(slave_fd)
        ser = open_serial(name, SerialConfig())
        try:
            with pytest.raises(DeviceError):
                open_serial(name, SerialConfig())
        finally:
            ser.close()

    def test_missing_device(self) -> None:
        with pytest.raises(DeviceError) as exc_info:
            open_serial("/dev/serterm-no-such-tty", SerialConfig())
        assert "/dev/serterm-no-such-tty" in str(exc_info.value)

    def test_reapply_after_external_change(self, pty_fds: tuple[int, int]) -> None:
        """A transfer program changing the line is undone by re-applying."""
        _, slave_fd = pty_fds
        config = SerialConfig(speed=Speed.B9600)
        ser = open_serial(os.ttyname(slave_fd), config)
        try:
            attrs = termios.tcgetattr(ser.fileno())
            attrs[4] = attrs[5] = termios.B2400
            attrs[3] |= termios.ECHO | termios.ICANON
            termios.tcsetattr(ser.fileno(), termios.TCSANOW, attrs)

            apply_serial_mode(ser, config)

            attrs = termios.tcgetattr(ser.fileno())
            assert attrs[4] == attrs[5] == termios.B9600
            assert attrs[3] & (termios.ECHO | termios.ICANON) == 0
            assert attrs[2] & termios.CLOCAL
        finally:
            ser.close()

    def test_reapply_is_idempotent(self, pty_fds: tuple[int, int]) -> None:
        _, slave_fd = pty_fds
        config = SerialConfig(speed=Speed.B19200)
        ser = open_serial(os.ttyname(slave_fd), config)
        try:
            apply_serial_mode(ser, config)
            first = termios.tcgetattr(ser.fileno())
            apply_serial_mode(ser, config)
            assert termios.tcgetattr(ser.fileno()) == first
            assert ser.timeout == pytest.approx(0.1)
        finally:
            ser.close()
