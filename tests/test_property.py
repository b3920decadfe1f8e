from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from vcard_reader.model import Contact, Phone, PhoneType, Photo
from vcard_reader.property import (
    BytesValue,
    DateValue,
    MultiValue,
    Property,
    Subproperty,
    SubpropertyList,
    TextValue,
)
from vcard_reader.report import contact_rows


# ── Values ─────────────────────────────────────────────────────────────────────

def test_value_rendering():
    assert str(TextValue("hi")) == "hi"
    assert str(BytesValue(b"hi")) == "hi"
    assert str(MultiValue(["a", None, "c"], ";")) == "a;;c"
    assert str(DateValue(date(1980, 1, 15))) == "19800115"
    later = datetime(2006, 12, 1, 1, 40, tzinfo=timezone(timedelta(hours=2)))
    assert str(DateValue(later)) == "20061130T234000Z"


def test_property_coerces_plain_values():
    assert Property("FN", "Jane").value == TextValue("Jane")
    assert Property("KEY", b"\x00").value == BytesValue(b"\x00")
    assert str(Property("X-EMPTY")) == ""
    assert Property("fn", "x").is_named("FN")


def test_property_needs_a_name():
    with pytest.raises(ValueError):
        Property("")
    with pytest.raises(ValueError):
        Subproperty("")


# ── Subproperties ──────────────────────────────────────────────────────────────

def test_subproperty_lookup_is_case_insensitive():
    subs = SubpropertyList()
    subs.add("type", "WORK")
    subs.add("TYPE", "VOICE")
    subs.add("pref")
    assert subs.index_of("TYPE") == 0
    assert subs.index_of_any(["X", "PREF"]) == 2
    assert subs.get_value("Type") == "WORK"
    assert subs.get_value("CHARSET") is None
    assert subs.get_names() == ["type", "TYPE", "pref"]
    assert subs.get_names(["pref", "home"]) == ["PREF"]


def test_add_or_update():
    subs = SubpropertyList()
    subs.add_or_update("CHARSET", "ASCII")
    subs.add_or_update("charset", "UTF-8")
    assert len(subs) == 1
    assert subs.get_value("CHARSET") == "UTF-8"


def test_get_value_falls_back_to_bare_names():
    subs = SubpropertyList([Subproperty("X509"), Subproperty("BASE64")])
    assert subs.get_value("ENCODING", ["B", "BASE64"]) == "BASE64"
    with pytest.raises(ValueError):
        subs.get_value("")


# ── Contact helpers ────────────────────────────────────────────────────────────

@pytest.mark.parametrize("url, local", [
    ("file:///home/jane/jane.jpg", True),
    ("/home/jane/jane.jpg", True),
    ("C:\\Pictures\\jane.jpg", True),
    ("https://example.com/jane.jpg", False),
    (None, False),
])
def test_photo_is_local(url, local):
    assert Photo(url=url).is_local is local


def test_first_phone_uses_flag_containment():
    contact = Contact(phones=[Phone("1", PhoneType.HOME_VOICE), Phone("2", PhoneType.WORK)])
    assert contact.first_phone(PhoneType.VOICE).full_number == "1"
    assert contact.first_phone(PhoneType.FAX) is None


def test_contact_rows_skip_empty_fields():
    contact = Contact(formatted_name="Jane", phones=[Phone("1", PhoneType.CELLULAR)])
    rows = dict(contact_rows(contact))
    assert rows["Formatted name"] == "Jane"
    assert rows["Phone (cellular)"] == "1"
    assert "Title" not in rows
    assert str(contact) == "Jane"
    assert str(Contact()) == "(unnamed contact)"


def test_photo_local_path_decodes_file_uri():
    assert Photo(url="file:///home/jane/my%20photo.jpg").local_path() == Path("/home/jane/my photo.jpg")
