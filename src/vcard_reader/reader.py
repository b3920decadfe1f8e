"""Map parsed properties onto a Contact.

Each recognised property name has one handler taking (contact, property).
Handlers mutate the contact in place and quietly ignore values they cannot
make sense of; unknown property names are skipped without comment.
"""
from __future__ import annotations

import io
import logging
from datetime import date, datetime
from typing import Callable, TextIO

from . import codec
from .codec import VCardEncoding
from .model import (
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
from .property import BytesValue, Property
from .tokenizer import LineReader, read_property

logger = logging.getLogger(__name__)

Handler = Callable[[Contact, Property], None]

# ── Keyword tables ─────────────────────────────────────────────────────────────

DELIVERY_ADDRESS_TYPES: dict[str, DeliveryAddressType] = {
    "DOM": DeliveryAddressType.DOMESTIC,
    "INTL": DeliveryAddressType.INTERNATIONAL,
    "POSTAL": DeliveryAddressType.POSTAL,
    "PARCEL": DeliveryAddressType.PARCEL,
    "HOME": DeliveryAddressType.HOME,
    "WORK": DeliveryAddressType.WORK,
    "PREF": DeliveryAddressType.PREFERRED,
}

PHONE_TYPES: dict[str, PhoneType] = {
    "BBS": PhoneType.BBS,
    "CAR": PhoneType.CAR,
    "CELL": PhoneType.CELLULAR,
    "FAX": PhoneType.FAX,
    "HOME": PhoneType.HOME,
    "ISDN": PhoneType.ISDN,
    "MODEM": PhoneType.MODEM,
    "MSG": PhoneType.MESSAGING_SERVICE,
    "PAGER": PhoneType.PAGER,
    "PREF": PhoneType.PREFERRED,
    "VIDEO": PhoneType.VIDEO,
    "VOICE": PhoneType.VOICE,
    "WORK": PhoneType.WORK,
    "COMPANY": PhoneType.COMPANY,
    "CALLBACK": PhoneType.CALLBACK,
    "RADIO": PhoneType.RADIO,
    "ASSISTANT": PhoneType.ASSISTANT,
    "TTYTDD": PhoneType.TTYTDD,
}

EMAIL_TYPES: dict[str, EmailAddressType] = {
    "INTERNET": EmailAddressType.INTERNET,
    "AOL": EmailAddressType.AOL,
    "APPLELINK": EmailAddressType.APPLELINK,
    "ATTMAIL": EmailAddressType.ATTMAIL,
    "CIS": EmailAddressType.COMPUSERVE,
    "EWORLD": EmailAddressType.EWORLD,
    "IBMMAIL": EmailAddressType.IBMMAIL,
    "MCIMAIL": EmailAddressType.MCIMAIL,
    "POWERSHARE": EmailAddressType.POWERSHARE,
    "PRODIGY": EmailAddressType.PRODIGY,
    "TLX": EmailAddressType.TELEX,
    "X400": EmailAddressType.X400,
}

WEBSITE_TYPES: dict[str, WebsiteType] = {
    "HOME": WebsiteType.PERSONAL,
    "WORK": WebsiteType.WORK,
}

KEY_TYPES = ("X509", "PGP")

OUTLOOK_DATE_FORMAT = "%Y%m%d"


# ── Helpers ────────────────────────────────────────────────────────────────────

def _components(prop: Property, separator: str) -> list[str]:
    """Split a structured value, respecting escaped separators where possible."""
    if prop.encoding is VCardEncoding.ESCAPED and prop.raw_value is not None:
        return [codec.decode_escaped(part) for part in codec.split_escaped(prop.raw_value, separator)]
    return str(prop).split(separator)


def _type_values(prop: Property) -> list[str]:
    """Every comma-separated keyword of every TYPE= subproperty."""
    values: list[str] = []
    for sub in prop.subproperties:
        if sub.name.upper() == "TYPE" and sub.value:
            values.extend(v.strip().upper() for v in sub.value.split(","))
    return values


def _address_type(prop: Property) -> DeliveryAddressType:
    # 2.1 style: ADR;HOME;POSTAL:   3.0 style: ADR;TYPE=HOME,POSTAL:
    keywords = prop.subproperties.get_names(DELIVERY_ADDRESS_TYPES) + _type_values(prop)
    result = DeliveryAddressType.DEFAULT
    for keyword in keywords:
        result |= DELIVERY_ADDRESS_TYPES.get(keyword, DeliveryAddressType.DEFAULT)
    return result


def _parse_outlook_date(value: str) -> date | None:
    try:
        return datetime.strptime(value.strip(), OUTLOOK_DATE_FORMAT).date()
    except ValueError:
        return None


# ── Handlers ───────────────────────────────────────────────────────────────────

def read_adr(contact: Contact, prop: Property) -> None:
    # 0 post office box, 1 extended address, 2 street, 3 locality,
    # 4 region, 5 postal code, 6 country. Components past 6 are ignored.
    parts = [p.strip() for p in _components(prop, ";")]
    parts += [""] * (7 - len(parts))

    address = DeliveryAddress(
        street=parts[2],
        city=parts[3],
        region=parts[4],
        postal_code=parts[5],
        country=parts[6],
    )
    if address.is_empty():
        return

    address.address_type = _address_type(prop)
    contact.delivery_addresses.append(address)


def read_label(contact: Contact, prop: Property) -> None:
    contact.delivery_labels.append(DeliveryLabel(text=str(prop), address_type=_address_type(prop)))


def read_bday(contact: Contact, prop: Property) -> None:
    value = str(prop)
    parsed = codec.parse_date(value)
    if parsed is not None:
        contact.birth_date = parsed.date()
    else:
        contact.birth_date = _parse_outlook_date(value)


def read_anniversary(contact: Contact, prop: Property) -> None:
    contact.anniversary = _parse_outlook_date(str(prop))


def read_categories(contact: Contact, prop: Property) -> None:
    contact.categories.extend(c for c in _components(prop, ",") if c)


def read_class(contact: Contact, prop: Property) -> None:
    try:
        contact.access_classification = AccessClassification[str(prop).strip().upper()]
    except KeyError:
        pass


def read_email(contact: Contact, prop: Property) -> None:
    email = EmailAddress(address=str(prop), email_type=EmailAddressType.DEFAULT)

    for sub in prop.subproperties:
        name = sub.name.upper()
        if name == "PREF":
            email.is_preferred = True
        elif name == "TYPE":
            for keyword in (sub.value or "").split(","):
                keyword = keyword.strip().upper()
                if keyword == "PREF":
                    email.is_preferred = True
                else:
                    email.email_type |= EMAIL_TYPES.get(keyword, EmailAddressType.DEFAULT)
        else:
            # 2.1 wrote the type bare, e.g. EMAIL;INTERNET:
            email.email_type |= EMAIL_TYPES.get(name, EmailAddressType.DEFAULT)

    if email.email_type == EmailAddressType.DEFAULT:
        email.email_type = EmailAddressType.INTERNET
    contact.email_addresses.append(email)


def read_fn(contact: Contact, prop: Property) -> None:
    contact.formatted_name = str(prop)


def read_geo(contact: Contact, prop: Property) -> None:
    value = str(prop)
    # 3.0 separates with ";", 2.1 with ","
    coordinates = value.split(";") if ";" in value else value.split(",")
    if len(coordinates) != 2:
        return
    try:
        latitude = float(coordinates[0])
        longitude = float(coordinates[1])
    except ValueError:
        return
    contact.latitude = latitude
    contact.longitude = longitude


def read_im_address(contact: Contact, prop: Property) -> None:
    contact.instant_messaging_address = str(prop)


def read_key(contact: Contact, prop: Property) -> None:
    if isinstance(prop.value, BytesValue):
        data = prop.value.data
    else:
        data = str(prop).encode("utf-8")

    certificate = Certificate(data=data)
    keywords = prop.subproperties.get_names(KEY_TYPES) + _type_values(prop)
    for keyword in keywords:
        if keyword in KEY_TYPES:
            certificate.key_type = keyword
            break
    contact.certificates.append(certificate)


def read_mailer(contact: Contact, prop: Property) -> None:
    contact.mailer = str(prop)


def read_n(contact: Contact, prop: Property) -> None:
    # family; given; additional; prefix; suffix. Trailing parts are often missing.
    names = _components(prop, ";")
    fields = ("family_name", "given_name", "additional_names", "name_prefix", "name_suffix")
    for field_name, value in zip(fields, names):
        setattr(contact, field_name, value)


def read_name(contact: Contact, prop: Property) -> None:
    contact.display_name = str(prop).strip()


def read_nickname(contact: Contact, prop: Property) -> None:
    for nickname in _components(prop, ","):
        nickname = nickname.strip()
        if nickname:
            contact.nicknames.append(nickname)


def read_note(contact: Contact, prop: Property) -> None:
    text = str(prop)
    if text:
        contact.notes.append(Note(text=text, language=prop.language))


def read_org(contact: Contact, prop: Property) -> None:
    # ORG:Company;Department
    parts = _components(prop, ";")
    contact.organization = parts[0]
    if len(parts) > 1:
        contact.department = parts[1]


def read_photo(contact: Contact, prop: Property) -> None:
    value_type = (prop.subproperties.get_value("VALUE") or "").upper()
    if value_type in ("URI", "URL"):
        url = str(prop).strip()
        if url:
            contact.photos.append(Photo(url=url))
    elif isinstance(prop.value, BytesValue):
        contact.photos.append(Photo(data=prop.value.data))
    elif "://" in str(prop):
        # a link without VALUE=URI, as some 2.1 producers write it
        contact.photos.append(Photo(url=str(prop).strip()))


def read_prodid(contact: Contact, prop: Property) -> None:
    contact.product_id = str(prop)


def read_rev(contact: Contact, prop: Property) -> None:
    contact.revision_date = codec.parse_date(str(prop))


def read_role(contact: Contact, prop: Property) -> None:
    contact.role = str(prop)


def read_source(contact: Contact, prop: Property) -> None:
    uri = str(prop).strip()
    if uri:
        contact.sources.append(Source(uri=uri, context=prop.subproperties.get_value("CONTEXT") or ""))


def read_tel(contact: Contact, prop: Property) -> None:
    phone = Phone(full_number=str(prop))
    if not phone.full_number:
        return

    for sub in prop.subproperties:
        if sub.name.upper() == "TYPE" and sub.value:
            for keyword in sub.value.split(","):
                phone.phone_type |= PHONE_TYPES.get(keyword.strip().upper(), PhoneType.DEFAULT)
        else:
            # bare flags; ENCODING/CHARSET simply do not match
            phone.phone_type |= PHONE_TYPES.get(sub.name.strip().upper(), PhoneType.DEFAULT)

    contact.phones.append(phone)


def read_title(contact: Contact, prop: Property) -> None:
    contact.title = str(prop)


def read_tz(contact: Contact, prop: Property) -> None:
    contact.time_zone = str(prop)


def read_uid(contact: Contact, prop: Property) -> None:
    contact.unique_id = str(prop)


def read_url(contact: Contact, prop: Property) -> None:
    site = Website(url=str(prop))
    for keyword in prop.subproperties.get_names(WEBSITE_TYPES) + _type_values(prop):
        site.website_type |= WEBSITE_TYPES.get(keyword, WebsiteType.DEFAULT)
    contact.websites.append(site)


def read_wab_gender(contact: Contact, prop: Property) -> None:
    # Outlook 2003: 1 = female, 2 = male
    try:
        gender_id = int(str(prop).strip())
    except ValueError:
        return
    if gender_id == 1:
        contact.gender = Gender.FEMALE
    elif gender_id == 2:
        contact.gender = Gender.MALE


def read_manager(contact: Contact, prop: Property) -> None:
    contact.manager = str(prop)


def read_assistant(contact: Contact, prop: Property) -> None:
    contact.assistant = str(prop)


def read_spouse(contact: Contact, prop: Property) -> None:
    contact.spouse = str(prop)


HANDLERS: dict[str, Handler] = {
    "ADR": read_adr,
    "BDAY": read_bday,
    "CATEGORIES": read_categories,
    "CLASS": read_class,
    "EMAIL": read_email,
    "FN": read_fn,
    "GEO": read_geo,
    "KEY": read_key,
    "LABEL": read_label,
    "MAILER": read_mailer,
    "N": read_n,
    "NAME": read_name,
    "NICKNAME": read_nickname,
    "NOTE": read_note,
    "ORG": read_org,
    "PHOTO": read_photo,
    "X-MS-CARDPICTURE": read_photo,
    "PRODID": read_prodid,
    "REV": read_rev,
    "ROLE": read_role,
    "SOURCE": read_source,
    "TEL": read_tel,
    "X-MS-TEL": read_tel,
    "TITLE": read_title,
    "TZ": read_tz,
    "UID": read_uid,
    "URL": read_url,
    "X-WAB-GENDER": read_wab_gender,
    "X-MS-ANNIVERSARY": read_anniversary,
    "X-MS-IMADDRESS": read_im_address,
    "X-MS-MANAGER": read_manager,
    "X-MS-ASSISTANT": read_assistant,
    "X-MS-SPOUSE": read_spouse,
}


# ── Reader ─────────────────────────────────────────────────────────────────────

class VCardReader:
    """Reads a vCard 2.1 / 3.0 text stream into a Contact.

    ``warnings`` holds the messages of the most recent read_all call.
    """

    def __init__(self, handlers: dict[str, Handler] | None = None):
        self.handlers = dict(HANDLERS if handlers is None else handlers)
        self.warnings: list[str] = []

    def read_all(self, contact: Contact, stream: TextIO) -> Contact:
        if contact is None:
            raise TypeError("contact must not be None")
        if stream is None:
            raise TypeError("stream must not be None")

        self.warnings = []
        lines = LineReader(stream)
        while True:
            prop = read_property(lines, self.warnings)
            if prop is None:
                break
            if prop.is_named("END") and str(prop).strip().upper() == "VCARD":
                break
            self.read_one(contact, prop)

        if self.warnings:
            logger.debug("read finished with %d warning(s)", len(self.warnings))
        return contact

    def read_one(self, contact: Contact, prop: Property) -> None:
        if contact is None:
            raise TypeError("contact must not be None")
        if prop is None:
            raise TypeError("prop must not be None")

        handler = self.handlers.get(prop.name.strip().upper())
        if handler is not None:
            handler(contact, prop)

    def read_property(self, text: str) -> Property | None:
        """Parse the first property found in ``text``."""
        if not text:
            raise ValueError("text must not be empty")
        return read_property(LineReader(io.StringIO(text)), self.warnings)
