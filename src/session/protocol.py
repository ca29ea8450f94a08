"""
Backend command framing

A frame is the bare command name, or the command name followed by a NUL byte
and a JSON-encoded argument.
"""

import json
from typing import Any, Optional, Tuple

SEPARATOR = '\x00'

# Outbound
CMD_INIT = 'INIT'
CMD_NOAP = 'NOAP'
CMD_SCAN = 'SCAN'
CMD_RQHT = 'RQHT'

# Inbound
CMD_UUID = 'UUID'
CMD_TRYL = 'TRYL'
CMD_DISP = 'DISP'
CMD_HEAT = 'HEAT'


def encode_frame(command: str, arg: Any = None) -> str:
    if SEPARATOR in command:
        raise ValueError(f"Command name contains a NUL byte: {command!r}")
    if arg is None:
        return command
    return f"{command}{SEPARATOR}{json.dumps(arg, separators=(',', ':'))}"


def decode_frame(frame: str) -> Tuple[str, Optional[Any]]:
    """Split a frame into (command, argument). Raises ValueError on a malformed argument."""
    command, sep, payload = frame.partition(SEPARATOR)
    if not command:
        raise ValueError("Empty command name")
    if not sep:
        return command, None
    return command, json.loads(payload)
