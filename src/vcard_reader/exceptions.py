from __future__ import annotations


class VCardError(Exception):
    """Base class for errors raised at the file boundary."""


class FileTypeNotSupportedError(VCardError):
    """The input file does not have a vCard extension."""


class FileContainsNoDataError(VCardError):
    """The input file holds no vCard properties at all."""
