from __future__ import annotations

import io
import logging
from pathlib import Path

from .exceptions import FileContainsNoDataError, FileTypeNotSupportedError
from .model import Contact
from .property import Property
from .reader import VCardReader
from .tokenizer import LineReader, read_property
from .writer import VCardWriter, WriterOptions

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".vcf", ".vcard")


def _load_text(path: Path) -> str:
    path = Path(path)
    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise FileTypeNotSupportedError(f"{path.name}: expected a .vcf or .vcard file")
    text = path.read_text(encoding="utf-8", errors="replace")
    if not text.strip():
        raise FileContainsNoDataError(f"{path.name}: the file is empty")
    return text


# ── Reading ────────────────────────────────────────────────────────────────────

def read_contact_text(text: str) -> tuple[Contact, list[str]]:
    """Parse one vCard held in a string; returns the contact and its warnings."""
    reader = VCardReader()
    contact = reader.read_all(Contact(), io.StringIO(text))
    return contact, reader.warnings


def read_contact(path: Path) -> tuple[Contact, list[str]]:
    """Parse the first vCard of a .vcf / .vcard file."""
    text = _load_text(path)
    contact, warnings = read_contact_text(text)
    logger.debug("%s: read %s with %d warning(s)", Path(path).name, contact, len(warnings))
    return contact, warnings


def read_properties(path: Path) -> tuple[list[Property], list[str]]:
    """Every property of the file, undispatched, in file order."""
    text = _load_text(path)
    lines = LineReader(io.StringIO(text))
    warnings: list[str] = []
    properties: list[Property] = []
    while True:
        prop = read_property(lines, warnings)
        if prop is None:
            break
        properties.append(prop)
    return properties, warnings


def collect_vcard_files(directory: Path) -> list[Path]:
    """Return all vCard files found directly inside ``directory``, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix.lower() in SUPPORTED_EXTENSIONS)


# ── Writing ────────────────────────────────────────────────────────────────────

def contact_to_text(contact: Contact, options: WriterOptions | None = None) -> tuple[str, list[str]]:
    writer = VCardWriter(options)
    text = writer.serialize(writer.write(contact))
    return text, writer.warnings


def write_contact(contact: Contact, path: Path, options: WriterOptions | None = None) -> list[str]:
    """Write ``contact`` to ``path`` as UTF-8; returns the writer's warnings."""
    path = Path(path)
    text, warnings = contact_to_text(contact, options)
    path.parent.mkdir(parents=True, exist_ok=True)
    # newline="" keeps the writer's CRLF line ends untouched
    path.write_text(text, encoding="utf-8", newline="")
    logger.debug("wrote %s to %s", contact, path)
    return warnings
