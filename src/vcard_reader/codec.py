"""Value encodings used inside vCard property values.

Three transfer encodings appear in real files:

  escaped text       the vCard 3.0 default: \\ \\, \\; \\n are backslash escapes
  BASE64             binary payloads (PHOTO, KEY); "B" is the 3.0 spelling
  QUOTED-PRINTABLE   vCard 2.1 text, =XX escapes and =<CRLF> soft breaks

Everything here is a pure function; no state is kept between calls.
"""
from __future__ import annotations

import base64
import binascii
import codecs
import locale
from datetime import datetime, timezone
from enum import Enum

from dateutil import parser as dateparser

RFC_ESCAPES = frozenset({",", "\\", ";", "\r", "\n"})
# Outlook does not unescape "\," so commas are written as-is in compatibility mode
COMPAT_ESCAPES = frozenset({"\\", ";", "\r", "\n"})

OUTLOOK_REVISION_FORMAT = "%Y%m%dT%H%M%SZ"


class VCardEncoding(Enum):
    UNKNOWN = 0
    ESCAPED = 1
    BASE64 = 2
    QUOTED_PRINTABLE = 3


class _QPState(Enum):
    NONE = 0
    EXPECTING_HEX_1 = 1
    EXPECTING_HEX_2 = 2
    EXPECTING_LINE_FEED = 3


# ── Escaped text ───────────────────────────────────────────────────────────────

def decode_escaped(value: str) -> str:
    """Undo backslash escaping. Unknown escapes keep their backslash."""
    if not value:
        return value

    out: list[str] = []
    i = 0
    end = len(value)
    while i < end:
        ch = value[i]
        if ch != "\\" or i == end - 1:
            out.append(ch)
            i += 1
            continue

        code = value[i + 1]
        if code in "\\,;":
            out.append(code)
        elif code in "nN":
            out.append("\n")
        elif code in "rR":
            out.append("\r")
        else:
            out.append("\\")
            out.append(code)
        i += 2

    return "".join(out)


def encode_escaped(value: str, escaped: frozenset[str] = RFC_ESCAPES) -> str:
    if escaped is None:
        raise TypeError("escaped must be a set of characters")
    if not value:
        return value

    out: list[str] = []
    for ch in value:
        if ch not in escaped:
            out.append(ch)
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        else:
            out.append("\\" + ch)
    return "".join(out)


def split_escaped(value: str, separator: str) -> list[str]:
    """Split still-escaped text on separators that are not backslash-escaped.

    The parts are returned raw; run each through decode_escaped afterwards.
    """
    if len(separator) != 1:
        raise ValueError("separator must be a single character")

    parts: list[str] = []
    current: list[str] = []
    i = 0
    end = len(value)
    while i < end:
        ch = value[i]
        if ch == "\\" and i < end - 1:
            current.append(value[i:i + 2])
            i += 2
            continue
        if ch == separator:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    parts.append("".join(current))
    return parts


# ── BASE64 ─────────────────────────────────────────────────────────────────────

def decode_base64(value: str) -> bytes:
    """Decode BASE64, ignoring folding whitespace and missing padding.

    Raises binascii.Error for anything that is not BASE64.
    """
    compact = "".join(value.split())
    compact += "=" * (-len(compact) % 4)
    return base64.b64decode(compact, validate=True)


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# ── Hexadecimal helpers ────────────────────────────────────────────────────────

def is_hex_digit(ch: str) -> bool:
    return ch in "0123456789abcdefABCDEF"


def decode_hexadecimal(ch: str) -> int:
    if not is_hex_digit(ch):
        raise ValueError(f"not a hexadecimal digit: {ch!r}")
    return int(ch, 16)


# ── QUOTED-PRINTABLE ───────────────────────────────────────────────────────────

def default_charset() -> str:
    return locale.getpreferredencoding(False)


def resolve_charset(name: str | None) -> str:
    """Map a CHARSET= value onto a Python codec name (LookupError if unknown)."""
    if not name:
        return default_charset()
    upper = name.strip().upper()
    if upper == "UTF-8":
        return "utf-8"
    if upper in ("ASCII", "US-ASCII"):
        return "ascii"
    return codecs.lookup(name.strip()).name


def decode_quoted_printable(value: str, charset: str | None = None) -> str:
    """Decode QUOTED-PRINTABLE text into a string under ``charset``.

    Works as a small state machine over the characters. Escape sequences that
    are cut off by the end of the input are written out unchanged.
    """
    if not value:
        return value

    charset = charset or default_charset()
    buf = bytearray()
    state = _QPState.NONE
    first_hex = ""

    def emit(text: str) -> None:
        buf.extend(text.encode(charset, errors="replace"))

    for ch in value:
        if state is _QPState.NONE:
            if ch == "=":
                state = _QPState.EXPECTING_HEX_1
            else:
                emit(ch)

        elif state is _QPState.EXPECTING_HEX_1:
            if is_hex_digit(ch):
                first_hex = ch
                state = _QPState.EXPECTING_HEX_2
            elif ch == "\r":
                state = _QPState.EXPECTING_LINE_FEED
            elif ch == "\n":
                # bare LF soft break, written by some Unix tools
                state = _QPState.NONE
            elif ch == "=":
                emit("=")
            else:
                emit("=" + ch)
                state = _QPState.NONE

        elif state is _QPState.EXPECTING_HEX_2:
            if is_hex_digit(ch):
                buf.append((decode_hexadecimal(first_hex) << 4) + decode_hexadecimal(ch))
            else:
                emit("=" + first_hex + ch)
            state = _QPState.NONE

        else:  # EXPECTING_LINE_FEED
            if ch == "\n":
                state = _QPState.NONE
            elif ch == "=":
                state = _QPState.EXPECTING_HEX_1
            else:
                emit(ch)
                state = _QPState.NONE

    if state is _QPState.EXPECTING_HEX_1:
        emit("=")
    elif state is _QPState.EXPECTING_HEX_2:
        emit("=" + first_hex)
    elif state is _QPState.EXPECTING_LINE_FEED:
        emit("=\r")

    return buf.decode(charset, errors="replace")


def encode_quoted_printable(value: str, charset: str = "utf-8") -> str:
    if not value:
        return value

    out: list[str] = []
    for byte in value.encode(charset, errors="replace"):
        if byte == 9 or 32 <= byte <= 60 or 62 <= byte <= 126:
            out.append(chr(byte))
        else:
            out.append(f"={byte:02X}")

    # trailing whitespace is lost by many transports
    if out[-1] in (" ", "\t"):
        out[-1] = f"={ord(out[-1]):02X}"

    return "".join(out)


# ── Encoding names and dates ───────────────────────────────────────────────────

def parse_encoding(name: str | None) -> VCardEncoding:
    if not name:
        return VCardEncoding.UNKNOWN
    upper = name.strip().upper()
    if upper in ("B", "BASE64"):
        return VCardEncoding.BASE64
    if upper == "QUOTED-PRINTABLE":
        return VCardEncoding.QUOTED_PRINTABLE
    return VCardEncoding.UNKNOWN


def parse_date(value: str) -> datetime | None:
    """Best-effort date parsing; None when nothing sensible comes out.

    Outlook writes revision dates as 20061130T234000Z, which is tried after
    the generic parser.
    """
    value = (value or "").strip()
    if not value:
        return None
    try:
        return dateparser.parse(value)
    except (ValueError, OverflowError):
        pass
    try:
        return datetime.strptime(value, OUTLOOK_REVISION_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None
