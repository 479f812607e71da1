"""Serial device setup for serterm.

Contains:
- DeviceError: Raised when the serial device cannot be acquired
- log_device_info: Log information about a serial device
- open_serial: Open a serial port exclusively and configure it
- apply_serial_mode: (Re)apply line settings, e.g. after a transfer
"""

import logging
import os

import serial
import serial.tools.list_ports

from common.config import Bits, Parity, SerialConfig
from common.protocol import READ_TIMEOUT_S, WRITE_TIMEOUT_S

logger = logging.getLogger(__name__)

_PARITY = {
    Parity.NONE: serial.PARITY_NONE,
    Parity.ODD: serial.PARITY_ODD,
    Parity.EVEN: serial.PARITY_EVEN,
}

_BYTESIZE = {
    Bits.SEVEN: serial.SEVENBITS,
    Bits.EIGHT: serial.EIGHTBITS,
}


class DeviceError(Exception):
    """Raised when the serial device is missing, busy or unusable."""

    pass


def log_device_info(device: str) -> None:
    """Log information about a serial device."""
    real_path = os.path.realpath(device)
    if real_path.startswith("/dev/pts/"):
        logger.info(f"Device: {device} -> {real_path} (pty)")
        return

    ports = [p for p in serial.tools.list_ports.comports() if p.device == device]
    if len(ports) == 0:
        logger.info(f"Device: {device} (not in port list)")
        return

    info = ports[0]
    logger.info(f"Device: {info.device}")
    logger.info(f"Description: {info.description}")
    if info.vid is not None:
        logger.info(f"VID:PID: {info.vid:04x}:{info.pid:04x}")


def apply_serial_mode(ser: serial.Serial, config: SerialConfig) -> None:
    """Put the line into raw, locally controlled mode with the given settings.

    Safe to call repeatedly. Transfer programs do not always restore the
    line settings they change, so every call pushes the full configuration
    to the device, even when pyserial's cached values already match.

    pyserial always sets CLOCAL and raw lflag/oflag/iflag when it
    reconfigures a POSIX port, and the read timeout gives the bounded-wait
    read policy the downlink relies on.
    """
    ser.timeout = READ_TIMEOUT_S
    ser.write_timeout = WRITE_TIMEOUT_S
    ser.xonxoff = False
    ser.rtscts = False
    ser.dsrdtr = False
    ser.stopbits = serial.STOPBITS_ONE
    ser.bytesize = _BYTESIZE[config.bits]
    ser.parity = _PARITY[config.parity]
    # The baudrate setter reconfigures unconditionally, so this is the
    # assignment that forces the full settings back onto the device.
    ser.baudrate = int(config.speed)
    logger.debug(
        "Serial port settings: baudrate=%s, bytesize=%s, parity=%s, stopbits=%s",
        ser.baudrate,
        ser.bytesize,
        ser.parity,
        ser.stopbits,
    )


def open_serial(device: str, config: SerialConfig) -> serial.Serial:
    """Open a serial port exclusively and apply the line settings.

    Raises:
        DeviceError: If the device does not exist, is in use, or rejects
            the settings.
    """
    log_device_info(device)
    try:
        ser = serial.Serial(
            port=device,
            baudrate=int(config.speed),
            bytesize=_BYTESIZE[config.bits],
            parity=_PARITY[config.parity],
            stopbits=serial.STOPBITS_ONE,
            xonxoff=False,
            rtscts=False,
            timeout=READ_TIMEOUT_S,
            write_timeout=WRITE_TIMEOUT_S,
            exclusive=True,
        )
    except (serial.SerialException, ValueError) as e:
        raise DeviceError(f"{device}: {e}") from e
    logger.info(
        f"Opened {ser.name} ({int(config.speed)} baud, "
        f"{config.bits.value} bits, parity {config.parity.value})"
    )
    return ser
