"""Low-level terminal input decoding.

Reads raw bytes from stdin and translates them into menu key tokens.
Handles ESC-sequence timing, UTF-8 assembly, and literal-character mode.
"""

from __future__ import annotations

import os
import select

from .config import ENV_FORCE_CHAR, env_flag
from .errors import TerminalUnavailableError

ESC_SEQUENCE_TIMEOUT_MS = 25
DRAIN_LIMIT_BYTES = 4096
_PENDING_BYTES: list[bytes] = []

_COMMAND_CHARS = {
    "q": "QUIT",
    "Q": "QUIT",
    " ": "SPACE",
    "/": "FILTER",
    "?": "HELP",
    "R": "RETRY",
}


def _read_ready_byte(fd: int, timeout_ms: int) -> bytes | None:
    ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
    if not ready:
        return None
    ch = os.read(fd, 1)
    if not ch:
        return None
    return ch


def _utf8_length(lead: int) -> int:
    if lead >= 0xF0:
        return 4
    if lead >= 0xE0:
        return 3
    if lead >= 0xC0:
        return 2
    return 1


def _decode_char(fd: int, ch: bytes) -> str:
    """Assemble a possibly multi-byte UTF-8 character starting with ``ch``."""
    data = ch
    for _ in range(_utf8_length(ch[0]) - 1):
        part = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if part is None:
            break
        if part[0] & 0xC0 != 0x80:
            _PENDING_BYTES.append(part)
            break
        data += part
    return data.decode("utf-8", errors="replace")


def _decode_escape(fd: int) -> str:
    seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if seq is None:
        return "QUIT"
    if seq not in {b"[", b"O"}:
        # Bare ESC followed by an unrelated key: keep that key for next read.
        _PENDING_BYTES.append(seq)
        return "QUIT"
    code = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if code is None:
        return "QUIT"
    arrows = {b"A": "UP", b"B": "DOWN", b"C": "RIGHT", b"D": "LEFT"}
    if code in arrows:
        return arrows[code]
    # Unsupported CSI sequence (function keys, modifiers): consume it whole.
    while b"0" <= code <= b"9" or code == b";":
        code = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if code is None:
            break
    return ""


def read_key(fd: int, timeout_ms: int | None = None, force_char: bool | None = None) -> str:
    """Read one key and return its token.

    Returns ``""`` when ``timeout_ms`` elapses with no input or for bytes
    that carry no meaning, so callers can keep polling. When ``force_char``
    is true (default: the ``TIDYMAC_READ_KEY_FORCE_CHAR`` switch), every
    printable character is returned literally instead of as a command.
    Raises ``TerminalUnavailableError`` when the input reaches end-of-file.
    """
    if force_char is None:
        force_char = env_flag(ENV_FORCE_CHAR)

    if _PENDING_BYTES:
        ch = _PENDING_BYTES.pop(0)
    else:
        if timeout_ms is not None:
            ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
            if not ready:
                return ""

        ch = os.read(fd, 1)
        if not ch:
            raise TerminalUnavailableError("input stream closed")

    if ch in {b"\r", b"\n"}:
        return "ENTER"
    if ch in {b"\x08", b"\x7f"}:
        return "DELETE"
    if ch == b"\x03":
        return "QUIT"
    if ch == b"\x1b":
        return _decode_escape(fd)
    if ch[0] < 0x20:
        return ""

    key = _decode_char(fd, ch)
    if force_char:
        return key
    return _COMMAND_CHARS.get(key, key)


def drain_pending_input(fd: int) -> int:
    """Discard input that is already buffered, returning the byte count."""
    _PENDING_BYTES.clear()
    drained = 0
    while drained < DRAIN_LIMIT_BYTES:
        ready, _, _ = select.select([fd], [], [], 0)
        if not ready:
            break
        chunk = os.read(fd, 256)
        if not chunk:
            break
        drained += len(chunk)
    return drained
