from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .model import Contact
from .property import BytesValue, Property

console = Console()

# ── Palette ────────────────────────────────────────────────────────────────────
_ACCENT  = "#4d9fff"
_GREEN   = "#3ecf8e"
_AMBER   = "#f0a500"
_TEXT    = "#c9d1e0"
_MID     = "#8896af"
_DIM     = "#546075"
_BORDER  = "#2a3347"

_MAX_VALUE = 60


def _flag_names(flags) -> str:
    return ", ".join(f.name.lower() for f in flags)


def contact_rows(contact: Contact) -> list[tuple[str, str]]:
    """(label, value) pairs for every field of ``contact`` that is set."""
    rows: list[tuple[str, str]] = []

    def add(label: str, value) -> None:
        if value not in (None, "", []):
            rows.append((label, str(value)))

    add("Formatted name", contact.formatted_name)
    add("Name", contact.display_name)
    full_name = " ".join(p for p in (
        contact.name_prefix, contact.given_name, contact.additional_names,
        contact.family_name, contact.name_suffix,
    ) if p)
    add("Full name", full_name)
    add("Nicknames", ", ".join(contact.nicknames))
    add("Organization", contact.organization)
    add("Department", contact.department)
    add("Title", contact.title)
    add("Role", contact.role)
    add("Birthday", contact.birth_date)
    add("Anniversary", contact.anniversary)
    if contact.gender.value:
        add("Gender", contact.gender.name.lower())

    for phone in contact.phones:
        add(f"Phone ({_flag_names(phone.phone_type) or 'other'})", phone.full_number)
    for email in contact.email_addresses:
        suffix = ", preferred" if email.is_preferred else ""
        add(f"Email ({_flag_names(email.email_type)}{suffix})", email.address)
    for address in contact.delivery_addresses:
        parts = (address.street, address.city, address.region, address.postal_code, address.country)
        add(f"Address ({_flag_names(address.address_type) or 'other'})", ", ".join(p for p in parts if p))
    for label in contact.delivery_labels:
        add("Label", label.text)
    for site in contact.websites:
        add(f"Website ({_flag_names(site.website_type) or 'other'})", site.url)

    if contact.latitude is not None and contact.longitude is not None:
        add("Location", f"{contact.latitude}, {contact.longitude}")
    add("Time zone", contact.time_zone)
    add("Categories", ", ".join(contact.categories))
    for note in contact.notes:
        add("Note", note.text)
    for photo in contact.photos:
        add("Photo", photo.url or f"{len(photo.data or b'')} bytes embedded")
    for certificate in contact.certificates:
        add(f"Key ({certificate.key_type or 'unknown'})", f"{len(certificate.data)} bytes")
    for source in contact.sources:
        add("Source", source.uri)
    add("IM address", contact.instant_messaging_address)
    add("Manager", contact.manager)
    add("Assistant", contact.assistant)
    add("Spouse", contact.spouse)
    if contact.access_classification.value:
        add("Class", contact.access_classification.name.lower())
    add("Mailer", contact.mailer)
    add("Product", contact.product_id)
    add("UID", contact.unique_id)
    add("Revised", contact.revision_date)
    return rows


def _shorten(text: str) -> str:
    text = text.replace("\r", "").replace("\n", " ⏎ ")
    return text if len(text) <= _MAX_VALUE else text[:_MAX_VALUE - 1] + "…"


def print_contact(contact: Contact, source_label: str = "") -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style=f"{_MID}")
    table.add_column(style=f"{_TEXT}")
    for label, value in contact_rows(contact):
        table.add_row(label, _shorten(value))

    title = Text(str(contact), style=f"bold {_ACCENT}")
    if source_label:
        title.append(f"  {source_label}", style=f"dim {_DIM}")
    console.print(Panel(table, title=title, title_align="left", border_style=_BORDER, padding=(0, 1)))


def print_properties(properties: list[Property]) -> None:
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Group", style=f"dim {_DIM}")
    table.add_column("Name", style=f"bold {_ACCENT}")
    table.add_column("Subproperties", style=_MID)
    table.add_column("Value", style=_TEXT)
    for prop in properties:
        subs = ";".join(s.name if s.value is None else f"{s.name}={s.value}" for s in prop.subproperties)
        if isinstance(prop.value, BytesValue):
            value = f"<{len(prop.value.data)} bytes>"
        else:
            value = _shorten(str(prop))
        table.add_row(prop.group, prop.name, subs, value)
    console.print(table)


def print_warnings(warnings: list[str]) -> None:
    if not warnings:
        return
    body = Text()
    for i, message in enumerate(warnings):
        if i:
            body.append("\n")
        body.append("· ", style=f"bold {_AMBER}")
        body.append(message, style=_TEXT)
    console.print(Panel(
        body,
        title=Text(f"{len(warnings)} WARNING(S)", style=f"dim {_AMBER}"),
        title_align="left",
        border_style=_AMBER,
        padding=(0, 1),
    ))


def print_written(path, count_warnings: int) -> None:
    body = Text()
    body.append("✓  Written successfully\n", style=f"bold {_GREEN}")
    body.append(str(path), style=f"dim {_MID}")
    if count_warnings:
        body.append(f"\n{count_warnings} warning(s)", style=f"{_AMBER}")
    console.print(Panel(body, border_style=_GREEN, padding=(0, 2)))
