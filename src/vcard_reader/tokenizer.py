"""Turn vCard text into Property objects, one logical line at a time.

A logical property may span several physical lines:

  folding            continuation lines start with a space or tab (RFC 2425 5.8.1)
  quoted-printable   a value ending in "=" continues on the next raw line

Malformed lines never raise. They are reported through the ``warnings`` list
handed in by the caller and skipped.
"""
from __future__ import annotations

import binascii
import logging
from typing import TextIO

from . import codec
from .codec import VCardEncoding
from .property import BytesValue, Property, TextValue

logger = logging.getLogger(__name__)

ENCODING_FLAGS = ("B", "BASE64", "QUOTED-PRINTABLE")


class LineReader:
    """Line source with one line of lookahead."""

    def __init__(self, stream: TextIO):
        if stream is None:
            raise TypeError("stream must not be None")
        self.stream = stream
        self.line_number = 0
        self._next_line: str | None = None

    def readline(self) -> str | None:
        """Next line without its line terminator, or None at end of stream."""
        if self._next_line is None:
            line = self.stream.readline()
        else:
            line = self._next_line
            self._next_line = None

        if not line:
            return None
        self.line_number += 1
        return line.rstrip("\r\n")

    def peekline(self) -> str:
        if self._next_line is None:
            self._next_line = self.stream.readline()
        return self._next_line


def _split_name_section(name_part: str) -> Property:
    tokens = [t.strip() for t in name_part.split(";")]

    group, _, name = tokens[0].rpartition(".")
    prop = Property(name=name.strip(), group=group.strip(". "))

    for token in tokens[1:]:
        if not token:
            continue
        sub_name, sep, sub_value = token.partition("=")
        if not sub_name.strip():
            continue
        if sep:
            prop.subproperties.add(sub_name.strip(), sub_value.strip())
        else:
            prop.subproperties.add(token)

    prop.language = prop.subproperties.get_value("LANGUAGE") or ""
    return prop


def _charset_for(prop: Property, lines: LineReader, warnings: list[str]) -> str:
    name = prop.subproperties.get_value("CHARSET")
    try:
        return codec.resolve_charset(name)
    except LookupError:
        _warn(warnings, f"Line {lines.line_number}: unknown charset {name!r}, using the default.")
        return codec.default_charset()


def _warn(warnings: list[str], message: str) -> None:
    warnings.append(message)
    logger.debug(message)


def read_property(lines: LineReader, warnings: list[str]) -> Property | None:
    """Read the next property from ``lines``; None once the stream is exhausted."""
    if lines is None:
        raise TypeError("lines must not be None")

    while True:
        first_line = lines.readline()
        if first_line is None:
            return None

        if not first_line.strip():
            _warn(warnings, f"Line {lines.line_number}: a blank line was encountered. "
                            "This is not allowed in the vCard specification.")
            continue

        # trailing whitespace belongs to the value
        first_line = first_line.lstrip()
        colon = first_line.find(":")
        if colon == -1:
            _warn(warnings, f"Line {lines.line_number}: a colon (:) is missing. "
                            "All properties must be in NAME:VALUE format.")
            continue

        name_part = first_line[:colon].strip()
        head = name_part.split(";", 1)[0].strip().rpartition(".")[2].strip()
        if not name_part or not head:
            _warn(warnings, f"Line {lines.line_number}: the name section of the property is empty.")
            continue

        prop = _split_name_section(name_part)
        start_line = lines.line_number

        encoding = codec.parse_encoding(prop.subproperties.get_value("ENCODING", ENCODING_FLAGS))
        raw_value = first_line[colon + 1:]

        # unfold continuation lines
        while True:
            peeked = lines.peekline()
            if not peeked or peeked[0] not in " \t":
                break
            raw_value += lines.readline()[1:]

        if encoding is VCardEncoding.QUOTED_PRINTABLE:
            # transport padding after a soft break is not data
            raw_value = raw_value.rstrip(" \t")
            while raw_value.endswith("="):
                more = lines.readline()
                if more is None:
                    break
                raw_value += "\r\n" + more.rstrip(" \t")

        prop.raw_value = raw_value
        if encoding is VCardEncoding.BASE64:
            try:
                prop.value = BytesValue(codec.decode_base64(raw_value))
            except (binascii.Error, ValueError):
                _warn(warnings, f"Line {start_line}: the BASE64 value of {prop.name} "
                                "could not be decoded and was skipped.")
                continue
            prop.encoding = VCardEncoding.BASE64
        elif encoding is VCardEncoding.QUOTED_PRINTABLE:
            charset = _charset_for(prop, lines, warnings)
            prop.value = TextValue(codec.decode_quoted_printable(raw_value, charset))
            prop.encoding = VCardEncoding.QUOTED_PRINTABLE
        else:
            prop.value = TextValue(codec.decode_escaped(raw_value))
            prop.encoding = VCardEncoding.ESCAPED

        return prop
