from __future__ import annotations

import io
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
import requests

from vcard_reader import writer as writer_module
from vcard_reader.model import (
    AccessClassification,
    Certificate,
    Contact,
    DeliveryAddress,
    DeliveryAddressType,
    DeliveryLabel,
    EmailAddress,
    EmailAddressType,
    Gender,
    Note,
    Phone,
    PhoneType,
    Photo,
    Source,
    Website,
    WebsiteType,
)
from vcard_reader.property import BytesValue, MultiValue, Property
from vcard_reader.writer import VCardWriter, WriterOptions


# ── helpers ────────────────────────────────────────────────────────────────────

def _lines(contact: Contact, **options) -> list[str]:
    w = VCardWriter(WriterOptions(**options))
    return [w.encode_property(p) for p in w.write(contact)]


def _line(lines: list[str], name: str) -> str:
    return next(line for line in lines if line.split(";")[0].split(":")[0] == name)


class _Response:
    def __init__(self, content: bytes, status: int = 200):
        self.content = content
        self.status = status

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status}")


# ── Emission order ─────────────────────────────────────────────────────────────

def test_emission_order():
    contact = Contact(
        formatted_name="Jane Doe",
        display_name="Jane",
        family_name="Doe",
        given_name="Jane",
        organization="Acme",
        title="CEO",
        role="Boss",
        time_zone="-05:00",
        unique_id="1234",
        mailer="Outlook",
        product_id="-//Example//EN",
        birth_date=date(1980, 1, 15),
        revision_date=datetime(2006, 11, 30, 23, 40, tzinfo=timezone.utc),
        latitude=51.5,
        longitude=-0.12,
        gender=Gender.MALE,
        access_classification=AccessClassification.PUBLIC,
        sources=[Source("http://example.com/jane.vcf")],
        delivery_addresses=[DeliveryAddress(street="1 Main St")],
        delivery_labels=[DeliveryLabel("1 Main St")],
        categories=["Work"],
        email_addresses=[EmailAddress("jane@example.com")],
        certificates=[Certificate(b"key", "X509")],
        nicknames=["JJ"],
        notes=[Note("hello")],
        photos=[Photo(data=b"img")],
        phones=[Phone("555", PhoneType.HOME)],
        websites=[Website("https://example.com")],
    )
    names = [p.name for p in VCardWriter().write(contact)]
    assert names == [
        "BEGIN", "NAME", "SOURCE", "N", "FN", "ADR", "BDAY", "CATEGORIES", "CLASS",
        "EMAIL", "GEO", "KEY", "LABEL", "MAILER", "NICKNAME", "NOTE", "ORG", "PHOTO",
        "PRODID", "REV", "ROLE", "TEL", "TITLE", "TZ", "UID", "URL", "X-WAB-GENDER", "END",
    ]


def test_empty_contact_still_has_name_line():
    lines = _lines(Contact())
    assert lines == ["BEGIN:VCARD", "N:;;;;", "END:VCARD"]


def test_write_requires_contact():
    with pytest.raises(TypeError):
        VCardWriter().write(None)


# ── Property encoding ──────────────────────────────────────────────────────────

def test_encode_subproperties_and_group():
    prop = Property("TEL", "+1 555 0100", group="item1")
    prop.subproperties.add("WORK")
    prop.subproperties.add("TYPE", "VOICE")
    assert VCardWriter().encode_property(prop) == "item1.TEL;WORK;TYPE=VOICE:+1 555 0100"


def test_encode_bytes_as_base64():
    prop = Property("PHOTO", BytesValue(b"hello"))
    assert VCardWriter().encode_property(prop) == "PHOTO;ENCODING=BASE64:aGVsbG8="


def test_encode_multi_value_escapes_items():
    prop = Property("N", MultiValue(["O;Brien", "Pat"], ";"))
    assert VCardWriter().encode_property(prop) == "N:O\\;Brien;Pat"


def test_encode_empty_value():
    assert VCardWriter().encode_property(Property("X-EMPTY")) == "X-EMPTY:"


def test_compatibility_escaping_leaves_commas():
    prop = Property("TITLE", "Sales, North; East")
    assert VCardWriter().encode_property(prop) == "TITLE:Sales\\, North\\; East"
    compat = VCardWriter(WriterOptions(compatibility_escaping=True))
    assert compat.encode_property(prop) == "TITLE:Sales, North\\; East"


def test_note_is_quoted_printable_with_charset():
    lines = _lines(Contact(notes=[Note("Café")]))
    assert _line(lines, "NOTE") == "NOTE;ENCODING=QUOTED-PRINTABLE;CHARSET=UTF-8:Caf=C3=A9"


def test_ascii_note_has_no_charset():
    lines = _lines(Contact(notes=[Note("two\nlines", "en")]))
    assert _line(lines, "NOTE") == "NOTE;LANGUAGE=en;ENCODING=QUOTED-PRINTABLE:two=0Alines"


def test_serialize_uses_crlf():
    text = VCardWriter().serialize([Property("BEGIN", "VCARD"), Property("END", "VCARD")])
    assert text == "BEGIN:VCARD\r\nEND:VCARD\r\n"
    lf = VCardWriter(WriterOptions(newline="\n"))
    assert lf.serialize([Property("FN", "Jane")]) == "FN:Jane\n"


def test_write_to_stream():
    buf = io.StringIO()
    VCardWriter().write_to(Contact(formatted_name="Jane"), buf)
    assert "FN:Jane\r\n" in buf.getvalue()
    assert buf.getvalue().endswith("END:VCARD\r\n")


# ── Per-property construction ──────────────────────────────────────────────────

def test_address_line():
    address = DeliveryAddress(
        street="10 Downing St", city="London", postal_code="SW1A 2AA", country="UK",
        address_type=DeliveryAddressType.HOME | DeliveryAddressType.POSTAL,
    )
    lines = _lines(Contact(delivery_addresses=[address, DeliveryAddress()]))
    assert [line for line in lines if line.startswith("ADR")] == [
        "ADR;POSTAL;HOME:;;10 Downing St;London;;SW1A 2AA;UK",
    ]


def test_phone_email_and_url_lines():
    contact = Contact(
        phones=[Phone("555 0100", PhoneType.WORK_FAX | PhoneType.PREFERRED)],
        email_addresses=[
            EmailAddress("a@example.com", EmailAddressType.INTERNET, is_preferred=True),
            EmailAddress("b@example.com", EmailAddressType.DEFAULT),
            EmailAddress("12345,678", EmailAddressType.COMPUSERVE),
        ],
        websites=[Website("https://work.example.com", WebsiteType.WORK)],
    )
    lines = _lines(contact)
    assert "TEL;FAX;PREF;WORK:555 0100" in lines
    assert "EMAIL;PREF;INTERNET:a@example.com" in lines
    assert "EMAIL;INTERNET:b@example.com" in lines
    assert "EMAIL;CIS:12345\\,678" in lines
    assert "URL;WORK:https://work.example.com" in lines


def test_dates_geo_and_org():
    contact = Contact(
        birth_date=date(1980, 1, 15),
        revision_date=datetime(2006, 11, 30, 23, 40, tzinfo=timezone.utc),
        latitude=51.5,
        longitude=-0.12,
        organization="Acme, Inc.",
        department="Research",
        gender=Gender.FEMALE,
        access_classification=AccessClassification.CONFIDENTIAL,
    )
    lines = _lines(contact)
    assert "BDAY:19800115" in lines
    assert "REV:20061130T234000Z" in lines
    assert "GEO:51.5;-0.12" in lines
    assert "ORG:Acme\\, Inc.;Research" in lines
    assert "X-WAB-GENDER:1" in lines
    assert "CLASS:CONFIDENTIAL" in lines


def test_key_source_and_label():
    contact = Contact(
        certificates=[Certificate(b"hello", "X509")],
        sources=[Source("ldap://example.com", "word")],
        delivery_labels=[DeliveryLabel("1 Main St\nTown", DeliveryAddressType.WORK)],
    )
    lines = _lines(contact)
    assert "KEY;X509;ENCODING=BASE64:aGVsbG8=" in lines
    assert "SOURCE;CONTEXT=word:ldap://example.com" in lines
    assert "LABEL;WORK;ENCODING=QUOTED-PRINTABLE:1 Main St=0ATown" in lines


def test_product_id_falls_back_to_options():
    assert "PRODID:-//vcard-reader//EN" in _lines(Contact(), product_id="-//vcard-reader//EN")
    own = Contact(product_id="-//Own//EN")
    assert "PRODID:-//Own//EN" in _lines(own, product_id="-//vcard-reader//EN")


# ── Photos ─────────────────────────────────────────────────────────────────────

def test_remote_photo_linked_by_default(monkeypatch):
    def no_network(*args, **kwargs):
        raise AssertionError("should not fetch")

    monkeypatch.setattr(writer_module.requests, "get", no_network)
    lines = _lines(Contact(photos=[Photo(url="http://example.com/jane.jpg")]))
    assert "PHOTO;VALUE=URI:http://example.com/jane.jpg" in lines


def test_remote_photo_embedded(monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return _Response(b"hello")

    monkeypatch.setattr(writer_module.requests, "get", fake_get)
    lines = _lines(Contact(photos=[Photo(url="http://example.com/jane.jpg")]),
                   embed_remote_images=True, fetch_timeout=3.0)
    assert "PHOTO;ENCODING=BASE64:aGVsbG8=" in lines
    assert calls == [("http://example.com/jane.jpg", 3.0)]


def test_failed_fetch_falls_back_to_link(monkeypatch):
    def broken(url, timeout):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(writer_module.requests, "get", broken)
    w = VCardWriter(WriterOptions(embed_remote_images=True))
    props = w.write(Contact(photos=[Photo(url="http://example.com/jane.jpg")]))
    photo = next(p for p in props if p.name == "PHOTO")
    assert photo.subproperties.get_value("VALUE") == "URI"
    assert str(photo) == "http://example.com/jane.jpg"
    assert len(w.warnings) == 1


def test_http_error_falls_back_to_link(monkeypatch):
    monkeypatch.setattr(writer_module.requests, "get", lambda url, timeout: _Response(b"", 404))
    w = VCardWriter(WriterOptions(embed_remote_images=True))
    w.write(Contact(photos=[Photo(url="http://example.com/missing.jpg")]))
    assert "404" in w.warnings[0]


def test_local_photo_embedded(tmp_path: Path):
    image = tmp_path / "jane.jpg"
    image.write_bytes(b"hello")
    lines = _lines(Contact(photos=[Photo(url=str(image))]))
    assert "PHOTO;ENCODING=BASE64:aGVsbG8=" in lines


def test_missing_local_photo_is_linked(tmp_path: Path):
    missing = tmp_path / "nope.jpg"
    w = VCardWriter()
    props = w.write(Contact(photos=[Photo(url=str(missing))]))
    photo = next(p for p in props if p.name == "PHOTO")
    assert photo.subproperties.get_value("VALUE") == "URI"
    assert w.warnings


def test_warnings_are_per_write(tmp_path: Path):
    w = VCardWriter()
    w.write(Contact(photos=[Photo(url=str(tmp_path / "nope.jpg"))]))
    assert w.warnings
    w.write(Contact())
    assert w.warnings == []


def test_fetched_photo_leaves_contact_untouched(tmp_path: Path, monkeypatch):
    image = tmp_path / "jane.jpg"
    image.write_bytes(b"hello")
    monkeypatch.setattr(writer_module.requests, "get", lambda url, timeout: _Response(b"remote"))
    contact = Contact(photos=[Photo(url=str(image)), Photo(url="http://example.com/jane.jpg")])
    lines = _lines(contact, embed_remote_images=True)
    assert "PHOTO;ENCODING=BASE64:aGVsbG8=" in lines
    assert "PHOTO;ENCODING=BASE64:cmVtb3Rl" in lines
    assert [p.data for p in contact.photos] == [None, None]
    assert not contact.photos[0].is_loaded


# ── Subproperty delimiters ─────────────────────────────────────────────────────

@pytest.mark.parametrize("name, value", [
    ("CONTEXT", "a;b"),
    ("CONTEXT", "a:b"),
    ("LANGUAGE", "en\r\nFN:Mallory"),
    ("X-QUOTE", 'say "hi"'),
    ("X=Y", None),
])
def test_encode_rejects_delimiters_in_subproperties(name, value):
    prop = Property("SOURCE", "ldap://example.com")
    prop.subproperties.add(name, value)
    with pytest.raises(ValueError):
        VCardWriter().encode_property(prop)


def test_type_list_commas_are_allowed():
    prop = Property("TEL", "1")
    prop.subproperties.add("TYPE", "WORK,VOICE")
    assert VCardWriter().encode_property(prop) == "TEL;TYPE=WORK,VOICE:1"


def test_delimited_parameters_are_left_out_with_warning():
    contact = Contact(
        sources=[Source("ldap://example.com", "a;b")],
        notes=[Note("hello", "en:us")],
        certificates=[Certificate(b"hello", "X=509")],
    )
    w = VCardWriter()
    lines = w.serialize(w.write(contact)).split("\r\n")
    assert "SOURCE:ldap://example.com" in lines
    assert "NOTE;ENCODING=QUOTED-PRINTABLE:hello" in lines
    assert "KEY;ENCODING=BASE64:aGVsbG8=" in lines
    assert len(w.warnings) == 3
    assert "CONTEXT" in w.warnings[0]
