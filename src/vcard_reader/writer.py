"""Build vCard properties from a Contact and serialise them.

Properties are emitted in a fixed order:

  BEGIN, NAME, SOURCE*, N, FN, ADR*, BDAY, CATEGORIES, CLASS, EMAIL*, GEO,
  KEY*, LABEL*, MAILER, NICKNAME, NOTE*, ORG, PHOTO*, PRODID, REV, ROLE,
  TEL*, TITLE, TZ, UID, URL*, X-WAB-GENDER, END
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TextIO

import requests

from . import codec
from .codec import COMPAT_ESCAPES, RFC_ESCAPES
from .model import (
    AccessClassification,
    Contact,
    DeliveryAddressType,
    EmailAddressType,
    Gender,
    PhoneType,
    Photo,
    WebsiteType,
)
from .property import BytesValue, DateValue, MultiValue, Property

logger = logging.getLogger(__name__)

QUOTED_PRINTABLE = "QUOTED-PRINTABLE"

# characters that would end a subproperty or the name section early
PARAMETER_DELIMITERS = frozenset(";:\"\r\n")

# flag → keyword, in output order
ADDRESS_KEYWORDS: tuple[tuple[DeliveryAddressType, str], ...] = (
    (DeliveryAddressType.DOMESTIC, "DOM"),
    (DeliveryAddressType.INTERNATIONAL, "INTL"),
    (DeliveryAddressType.PARCEL, "PARCEL"),
    (DeliveryAddressType.POSTAL, "POSTAL"),
    (DeliveryAddressType.HOME, "HOME"),
    (DeliveryAddressType.WORK, "WORK"),
    (DeliveryAddressType.PREFERRED, "PREF"),
)

PHONE_KEYWORDS: tuple[tuple[PhoneType, str], ...] = (
    (PhoneType.BBS, "BBS"),
    (PhoneType.CAR, "CAR"),
    (PhoneType.CELLULAR, "CELL"),
    (PhoneType.FAX, "FAX"),
    (PhoneType.HOME, "HOME"),
    (PhoneType.ISDN, "ISDN"),
    (PhoneType.MESSAGING_SERVICE, "MSG"),
    (PhoneType.MODEM, "MODEM"),
    (PhoneType.PAGER, "PAGER"),
    (PhoneType.PREFERRED, "PREF"),
    (PhoneType.VIDEO, "VIDEO"),
    (PhoneType.VOICE, "VOICE"),
    (PhoneType.WORK, "WORK"),
    (PhoneType.COMPANY, "COMPANY"),
    (PhoneType.CALLBACK, "CALLBACK"),
    (PhoneType.RADIO, "RADIO"),
    (PhoneType.ASSISTANT, "ASSISTANT"),
    (PhoneType.TTYTDD, "TTYTDD"),
)

EMAIL_KEYWORDS: tuple[tuple[EmailAddressType, str], ...] = (
    (EmailAddressType.INTERNET, "INTERNET"),
    (EmailAddressType.AOL, "AOL"),
    (EmailAddressType.APPLELINK, "AppleLink"),
    (EmailAddressType.ATTMAIL, "ATTMail"),
    (EmailAddressType.COMPUSERVE, "CIS"),
    (EmailAddressType.EWORLD, "eWorld"),
    (EmailAddressType.IBMMAIL, "IBMMail"),
    (EmailAddressType.MCIMAIL, "MCIMail"),
    (EmailAddressType.POWERSHARE, "POWERSHARE"),
    (EmailAddressType.PRODIGY, "PRODIGY"),
    (EmailAddressType.TELEX, "TLX"),
    (EmailAddressType.X400, "X400"),
)

WEBSITE_KEYWORDS: tuple[tuple[WebsiteType, str], ...] = (
    (WebsiteType.PERSONAL, "HOME"),
    (WebsiteType.WORK, "WORK"),
)


@dataclass
class WriterOptions:
    embed_local_images: bool = True
    embed_remote_images: bool = False
    compatibility_escaping: bool = False  # Outlook: leave commas unescaped
    product_id: str = ""
    fetch_timeout: float = 10.0
    newline: str = "\r\n"


def fetch_photo(photo: Photo, timeout: float) -> bytes:
    """Load the image a Photo links to.

    Raises OSError for unreadable local files and requests.RequestException
    for failed downloads.
    """
    if photo.is_local:
        return photo.local_path().read_bytes()
    response = requests.get(photo.url, timeout=timeout)
    response.raise_for_status()
    return response.content


def _is_plain_parameter(text: str, name: bool = False) -> bool:
    if name and "=" in text:
        return False
    return not PARAMETER_DELIMITERS.intersection(text)


def _add_keywords(prop: Property, flags, table) -> None:
    for flag, keyword in table:
        if flag in flags:
            prop.subproperties.add(keyword)


def _quoted_printable(prop: Property) -> Property:
    prop.subproperties.add("ENCODING", QUOTED_PRINTABLE)
    if not str(prop).isascii():
        prop.subproperties.add("CHARSET", "UTF-8")
    return prop


class VCardWriter:
    """Turns a Contact into vCard text. ``warnings`` covers the last write."""

    def __init__(self, options: WriterOptions | None = None):
        self.options = options or WriterOptions()
        self.warnings: list[str] = []

    # ── Contact → properties ──────────────────────────────────────────────────

    def write(self, contact: Contact) -> list[Property]:
        if contact is None:
            raise TypeError("contact must not be None")

        self.warnings = []
        props: list[Property] = [Property("BEGIN", "VCARD")]

        if contact.display_name:
            props.append(Property("NAME", contact.display_name))

        for source in contact.sources:
            prop = Property("SOURCE", source.uri)
            if source.context and self._parameter_ok("SOURCE", "CONTEXT", source.context):
                prop.subproperties.add("CONTEXT", source.context)
            props.append(prop)

        props.append(Property("N", MultiValue([
            contact.family_name,
            contact.given_name,
            contact.additional_names,
            contact.name_prefix,
            contact.name_suffix,
        ], ";")))

        if contact.formatted_name:
            props.append(Property("FN", contact.formatted_name))

        for address in contact.delivery_addresses:
            if address.is_empty():
                continue
            prop = Property("ADR", MultiValue([
                "",
                "",
                address.street,
                address.city,
                address.region,
                address.postal_code,
                address.country,
            ], ";"))
            _add_keywords(prop, address.address_type, ADDRESS_KEYWORDS)
            props.append(prop)

        if contact.birth_date is not None:
            props.append(Property("BDAY", DateValue(contact.birth_date)))

        categories = [c for c in contact.categories if c]
        if categories:
            props.append(Property("CATEGORIES", MultiValue(categories, ",")))

        if contact.access_classification is not AccessClassification.UNKNOWN:
            props.append(Property("CLASS", contact.access_classification.name))

        for email in contact.email_addresses:
            prop = Property("EMAIL", email.address)
            if email.is_preferred:
                prop.subproperties.add("PREF")
            if email.email_type == EmailAddressType.DEFAULT:
                prop.subproperties.add("INTERNET")
            else:
                _add_keywords(prop, email.email_type, EMAIL_KEYWORDS)
            props.append(prop)

        if contact.latitude is not None and contact.longitude is not None:
            props.append(Property("GEO", MultiValue([str(contact.latitude), str(contact.longitude)], ";")))

        for certificate in contact.certificates:
            prop = Property("KEY", BytesValue(certificate.data))
            key_type = certificate.key_type
            if key_type and self._parameter_ok("KEY", "key type", key_type, name=True):
                prop.subproperties.add(key_type)
            props.append(prop)

        for label in contact.delivery_labels:
            if not label.text:
                continue
            prop = Property("LABEL", label.text)
            _add_keywords(prop, label.address_type, ADDRESS_KEYWORDS)
            props.append(_quoted_printable(prop))

        if contact.mailer:
            props.append(Property("MAILER", contact.mailer))

        if contact.nicknames:
            props.append(Property("NICKNAME", MultiValue(contact.nicknames, ",")))

        for note in contact.notes:
            if not note.text:
                continue
            language = note.language
            if language and not self._parameter_ok("NOTE", "LANGUAGE", language):
                language = ""
            prop = Property("NOTE", note.text, language=language)
            if language:
                prop.subproperties.add("LANGUAGE", language)
            props.append(_quoted_printable(prop))

        if contact.organization:
            parts = [contact.organization]
            if contact.department:
                parts.append(contact.department)
            props.append(Property("ORG", MultiValue(parts, ";")))

        for photo in contact.photos:
            prop = self._photo_property(photo)
            if prop is not None:
                props.append(prop)

        product_id = contact.product_id or self.options.product_id
        if product_id:
            props.append(Property("PRODID", product_id))

        if contact.revision_date is not None:
            props.append(Property("REV", DateValue(contact.revision_date)))

        if contact.role:
            props.append(Property("ROLE", contact.role))

        for phone in contact.phones:
            prop = Property("TEL", phone.full_number)
            _add_keywords(prop, phone.phone_type, PHONE_KEYWORDS)
            props.append(prop)

        if contact.title:
            props.append(Property("TITLE", contact.title))
        if contact.time_zone:
            props.append(Property("TZ", contact.time_zone))
        if contact.unique_id:
            props.append(Property("UID", contact.unique_id))

        for site in contact.websites:
            if not site.url:
                continue
            prop = Property("URL", site.url)
            _add_keywords(prop, site.website_type, WEBSITE_KEYWORDS)
            props.append(prop)

        if contact.gender is Gender.FEMALE:
            props.append(Property("X-WAB-GENDER", "1"))
        elif contact.gender is Gender.MALE:
            props.append(Property("X-WAB-GENDER", "2"))

        props.append(Property("END", "VCARD"))
        return props

    def _parameter_ok(self, prop_name: str, label: str, text: str, name: bool = False) -> bool:
        if _is_plain_parameter(text, name):
            return True
        message = f"{prop_name} {label} {text!r} contains a delimiter and was left out"
        self.warnings.append(message)
        logger.warning(message)
        return False

    def _photo_property(self, photo: Photo) -> Property | None:
        if not photo.url:
            return Property("PHOTO", BytesValue(photo.data)) if photo.is_loaded else None

        embed = self.options.embed_local_images if photo.is_local else self.options.embed_remote_images
        data = photo.data
        if embed and not photo.is_loaded:
            try:
                data = fetch_photo(photo, self.options.fetch_timeout)
            except (OSError, requests.RequestException) as exc:
                message = f"Could not load photo {photo.url}, writing a link instead: {exc}"
                self.warnings.append(message)
                logger.warning(message)
                embed = False

        if embed:
            return Property("PHOTO", BytesValue(data))

        prop = Property("PHOTO", photo.url)
        prop.subproperties.add("VALUE", "URI")
        return prop

    # ── Properties → text ─────────────────────────────────────────────────────

    def encode_property(self, prop: Property) -> str:
        """One property as a NAME;SUB=VALUE:VALUE line (without newline)."""
        if prop is None:
            raise TypeError("prop must not be None")
        if not prop.name:
            raise ValueError("a property needs a name")

        escapes = COMPAT_ESCAPES if self.options.compatibility_escaping else RFC_ESCAPES
        parts = [f"{prop.group}.{prop.name}" if prop.group else prop.name]

        for sub in prop.subproperties:
            if not _is_plain_parameter(sub.name, name=True):
                raise ValueError(f"subproperty name {sub.name!r} of {prop.name} contains a delimiter")
            if sub.value and not _is_plain_parameter(sub.value):
                raise ValueError(f"subproperty {sub.name} of {prop.name} has a delimiter in {sub.value!r}")
            parts.append(f";{sub.name}" if not sub.value else f";{sub.name}={sub.value}")

        value = prop.value
        if value is None:
            parts.append(":")
        elif isinstance(value, BytesValue):
            parts.append(";ENCODING=BASE64:")
            parts.append(codec.encode_base64(value.data))
        elif isinstance(value, MultiValue):
            parts.append(":")
            parts.append(value.separator.join(codec.encode_escaped(item, escapes) for item in value.items))
        else:
            parts.append(":")
            encoding = (prop.subproperties.get_value("ENCODING") or "").upper()
            if encoding == QUOTED_PRINTABLE:
                charset = codec.resolve_charset(prop.subproperties.get_value("CHARSET") or "UTF-8")
                parts.append(codec.encode_quoted_printable(str(value), charset))
            else:
                parts.append(codec.encode_escaped(str(value), escapes))

        return "".join(parts)

    def serialize(self, properties: list[Property]) -> str:
        if properties is None:
            raise TypeError("properties must not be None")
        newline = self.options.newline
        return "".join(self.encode_property(p) + newline for p in properties)

    def write_to(self, contact: Contact, stream: TextIO) -> None:
        if stream is None:
            raise TypeError("stream must not be None")
        stream.write(self.serialize(self.write(contact)))
