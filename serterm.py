#!/usr/bin/env python3
"""Serial terminal with file transfers."""

import argparse
import logging
import os
import signal
import sys
from types import FrameType

from common.config import ConfigError, SerialConfig, SessionConfig, Speed, TransferProtocol
from common.protocol import DEFAULT_DEVICE, TRACE
from session.lifecycle import Session
from session.report import SessionReport
from session.result import ExitCode

logger = logging.getLogger(__name__)

_LOG_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG, TRACE)


def configure_logging(verbosity: int, log_file: str | None = None) -> None:
    """Set up logging.

    The screen is in raw mode while the session runs, so diagnostics go to
    log_file when one is given. SERTERM_LOG_LEVEL overrides the default
    level.
    """
    level: int | str = _LOG_LEVELS[min(verbosity, len(_LOG_LEVELS) - 1)]
    if verbosity == 0 and "SERTERM_LOG_LEVEL" in os.environ:
        level = os.environ["SERTERM_LOG_LEVEL"].upper()
    logging.basicConfig(
        level=level,
        filename=log_file,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="serterm",
        description="Terminal program, so you can type into a serial port",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Escape commands (control-Z, then):
  r     receive a file        s, t  send a file
  q     quit                  ^Z    send a literal control-Z

Examples:
  %(prog)s                              Connect to /dev/ttyUSB0 at 9600 baud
  %(prog)s -s 115200 /dev/ttyAMA0       Connect at 115200 baud
  %(prog)s -e -7 -p x -l session.log    7E1, xmodem transfers, log output
""",
    )
    parser.add_argument(
        "-s",
        "--speed",
        type=int,
        choices=[int(s) for s in Speed],
        default=int(Speed.B9600),
        help=f"Line speed (default: {int(Speed.B9600)})",
    )
    parser.add_argument(
        "-p",
        "--protocol",
        type=str,
        choices=[p.value for p in TransferProtocol],
        default=TransferProtocol.Z.value,
        help="Transfer protocol: x, y, z (modem) or txt (plain text send) (default: z)",
    )
    parity = parser.add_mutually_exclusive_group()
    parity.add_argument("-o", "--odd", action="store_true", help="Odd parity")
    parity.add_argument("-e", "--even", action="store_true", help="Even parity")
    parser.add_argument(
        "-7", "--seven-bits", action="store_true", help="Seven data bits (default: eight)"
    )
    parser.add_argument(
        "-r",
        "--raw-keyboard",
        action="store_true",
        help="Send newline as typed instead of mapping it to carriage return",
    )
    parser.add_argument("-l", "--log", type=str, help="Copy everything received to this file")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="More diagnostics (repeatable)"
    )
    parser.add_argument("--debug-log", type=str, help="Write diagnostics to this file")
    parser.add_argument(
        "device",
        nargs="?",
        default=DEFAULT_DEVICE,
        help=f"Serial device (default: {DEFAULT_DEVICE})",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> SessionConfig:
    """Build the session configuration from parsed arguments.

    Raises:
        ConfigError: If the arguments are inconsistent.
    """
    return SessionConfig(
        device=args.device,
        serial=SerialConfig.from_flags(
            speed=args.speed,
            odd=args.odd,
            even=args.even,
            seven_bits=args.seven_bits,
        ),
        protocol=TransferProtocol(args.protocol),
        log_path=args.log,
        raw_keyboard=args.raw_keyboard,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ConfigError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return ExitCode.USAGE

    configure_logging(args.verbose, args.debug_log)

    print("Terminal starting up...")
    print("Use ^Z-q (control-Z, followed by q) to quit.")
    sys.stdout.flush()

    session = Session(config, sys.stdin.fileno(), sys.stdout.fileno())

    def handler(sig: int, _frame: FrameType | None) -> None:
        logger.info(f"Received signal {signal.Signals(sig).name}")
        session.request_stop(signalled=True)

    signal.signal(signal.SIGTERM, handler)
    signal.signal(signal.SIGHUP, handler)

    result = session.run()
    if args.verbose or not result.success:
        SessionReport(result=result).print()
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
