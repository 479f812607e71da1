"""Transfer session package for serterm.

- prompt: Raw-mode filename prompt
- driver: TransferDriver running the external transfer programs
"""

from transfer.driver import TRANSFER_COMMANDS, TransferDriver, transfer_command
from transfer.prompt import prompt_read

__all__ = [
    "TRANSFER_COMMANDS",
    "TransferDriver",
    "prompt_read",
    "transfer_command",
]
