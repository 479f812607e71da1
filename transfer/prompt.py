"""Raw-mode line input for transfer prompts."""

import logging
from collections.abc import Callable

from common.protocol import CR, LF, MAX_FILENAME_LEN, SEVEN_BIT_MASK, UserStream

logger = logging.getLogger(__name__)


def prompt_read(
    user: UserStream,
    read_key: Callable[[], int | None],
    prompt: str,
    max_len: int = MAX_FILENAME_LEN,
) -> str | None:
    """Show prompt and read a line, echoing each key.

    The terminal is in raw mode, so echo is done here. Keys are masked to
    7 bits; input stops at CR or LF. Keys past max_len are still echoed but
    not kept.

    Returns the line without its terminator, or None if input ended first.
    """
    user.write(prompt.encode("ascii"))
    line = bytearray()
    while True:
        key = read_key()
        if key is None:
            return None
        key &= SEVEN_BIT_MASK
        user.write(bytes([key]))
        if key in (CR, LF):
            break
        if len(line) < max_len:
            line.append(key)
    logger.debug(f"Prompt {prompt.strip()!r} read {len(line)} chars")
    return line.decode("ascii")
