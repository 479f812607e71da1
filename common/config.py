"""Session configuration dataclasses for serterm.

Contains:
- Speed, Parity, Bits: Serial line enums
- TransferProtocol, Direction: Enums for file transfers
- ConfigError: Exception for invalid configuration
- SerialConfig: Line settings for the serial device
- SessionConfig: Everything a session needs, built once at startup
- TransferRequest: A single transfer requested from the escape menu
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum

from common.protocol import DEFAULT_DEVICE, ESCAPE_CHAR


class ConfigError(Exception):
    """Raised when the requested configuration is invalid."""

    pass


class Speed(IntEnum):
    """Supported line speeds."""

    B300 = 300
    B1200 = 1200
    B2400 = 2400
    B9600 = 9600
    B19200 = 19200
    B38400 = 38400
    B115200 = 115200


class Parity(Enum):
    """Line parity."""

    NONE = "none"
    ODD = "odd"
    EVEN = "even"


class Bits(IntEnum):
    """Data bits per character."""

    SEVEN = 7
    EIGHT = 8


class TransferProtocol(Enum):
    """File transfer protocol family."""

    X = "x"
    Y = "y"
    Z = "z"
    TXT = "txt"


class Direction(Enum):
    """Transfer direction, seen from the local side."""

    RECEIVE = "receive"
    SEND = "send"


def parse_speed(value: str | int) -> Speed:
    """Convert a speed given on the command line to a Speed."""
    try:
        return Speed(int(value))
    except ValueError:
        raise ConfigError(f"Illegal speed: {value}") from None


@dataclass(frozen=True)
class SerialConfig:
    """Serial line settings. Stop bits are always one."""

    speed: Speed = Speed.B9600
    parity: Parity = Parity.NONE
    bits: Bits = Bits.EIGHT

    @classmethod
    def from_flags(
        cls,
        speed: str | int = Speed.B9600,
        odd: bool = False,
        even: bool = False,
        seven_bits: bool = False,
    ) -> "SerialConfig":
        """Build a SerialConfig from independent command line flags."""
        if odd and even:
            raise ConfigError("Can't select both even and odd parity.")
        if odd:
            parity = Parity.ODD
        elif even:
            parity = Parity.EVEN
        else:
            parity = Parity.NONE
        return cls(
            speed=parse_speed(speed),
            parity=parity,
            bits=Bits.SEVEN if seven_bits else Bits.EIGHT,
        )


@dataclass(frozen=True)
class SessionConfig:
    """Immutable configuration for one terminal session."""

    device: str = DEFAULT_DEVICE
    serial: SerialConfig = field(default_factory=SerialConfig)
    protocol: TransferProtocol = TransferProtocol.Z
    log_path: str | None = None
    raw_keyboard: bool = False  # Don't map \n to \r on keyboard input
    escape_char: int = ESCAPE_CHAR

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not 0 <= self.escape_char <= 0x7F:
            raise ConfigError(f"Escape character must be 7-bit, got {self.escape_char:#x}")


@dataclass(frozen=True)
class TransferRequest:
    """A transfer requested from the escape menu."""

    direction: Direction
    protocol: TransferProtocol
    filename: str | None = None
