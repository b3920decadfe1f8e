from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, Flag
from pathlib import Path
from urllib.parse import unquote, urlparse


# ── Type bitmasks ──────────────────────────────────────────────────────────────

class DeliveryAddressType(Flag):
    DEFAULT = 0
    DOMESTIC = 1
    INTERNATIONAL = 2
    POSTAL = 4
    PARCEL = 8
    HOME = 16
    WORK = 32
    PREFERRED = 64


class PhoneType(Flag):
    DEFAULT = 0
    BBS = 1
    CAR = 2
    CELLULAR = 4
    FAX = 8
    HOME = 16
    ISDN = 32
    MESSAGING_SERVICE = 64
    MODEM = 128
    PAGER = 256
    PREFERRED = 512
    VIDEO = 1024
    VOICE = 2048
    WORK = 4096
    # Outlook extensions
    COMPANY = 8192
    CALLBACK = 16384
    RADIO = 32768
    ASSISTANT = 65536
    TTYTDD = 131072
    # convenience combinations
    CELLULAR_VOICE = CELLULAR | VOICE
    HOME_VOICE = HOME | VOICE
    WORK_FAX = WORK | FAX
    WORK_VOICE = WORK | VOICE


class EmailAddressType(Flag):
    DEFAULT = 0
    INTERNET = 1
    AOL = 2
    APPLELINK = 4
    ATTMAIL = 8
    COMPUSERVE = 16
    EWORLD = 32
    IBMMAIL = 64
    MCIMAIL = 128
    POWERSHARE = 256
    PRODIGY = 512
    TELEX = 1024
    X400 = 2048


class WebsiteType(Flag):
    DEFAULT = 0
    PERSONAL = 1
    WORK = 2


class Gender(Enum):
    UNKNOWN = 0
    FEMALE = 1
    MALE = 2


class AccessClassification(Enum):
    UNKNOWN = 0
    PUBLIC = 1
    PRIVATE = 2
    CONFIDENTIAL = 3


# ── Collection entities ────────────────────────────────────────────────────────

@dataclass
class DeliveryAddress:
    street: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = ""
    country: str = ""
    address_type: DeliveryAddressType = DeliveryAddressType.DEFAULT

    def is_empty(self) -> bool:
        return not (self.street or self.city or self.region or self.postal_code or self.country)


@dataclass
class DeliveryLabel:
    text: str = ""
    address_type: DeliveryAddressType = DeliveryAddressType.DEFAULT


@dataclass
class Phone:
    full_number: str = ""
    phone_type: PhoneType = PhoneType.DEFAULT

    @property
    def is_preferred(self) -> bool:
        return PhoneType.PREFERRED in self.phone_type


@dataclass
class EmailAddress:
    address: str = ""
    email_type: EmailAddressType = EmailAddressType.INTERNET
    is_preferred: bool = False


@dataclass
class Website:
    url: str = ""
    website_type: WebsiteType = WebsiteType.DEFAULT


@dataclass
class Certificate:
    data: bytes = b""
    key_type: str = ""  # X509, PGP, or empty when unknown


@dataclass
class Note:
    text: str = ""
    language: str = ""


@dataclass
class Source:
    uri: str = ""
    context: str = ""


@dataclass
class Photo:
    """An embedded image (``data``) or a link to one (``url``), possibly both
    once a linked image has been fetched."""
    data: bytes | None = None
    url: str | None = None

    @property
    def is_loaded(self) -> bool:
        return self.data is not None

    @property
    def is_local(self) -> bool:
        """True for file: URLs and bare filesystem paths."""
        if not self.url:
            return False
        scheme = urlparse(self.url).scheme.lower()
        # a one-letter scheme is a Windows drive letter
        return scheme in ("", "file") or len(scheme) == 1

    def local_path(self) -> Path:
        parsed = urlparse(self.url or "")
        if parsed.scheme.lower() == "file":
            return Path(unquote(parsed.path))
        return Path(self.url or "")


# ── Contact record ─────────────────────────────────────────────────────────────

@dataclass
class Contact:
    formatted_name: str = ""
    display_name: str = ""             # NAME
    family_name: str = ""
    given_name: str = ""
    additional_names: str = ""
    name_prefix: str = ""
    name_suffix: str = ""
    organization: str = ""
    department: str = ""
    office: str = ""
    title: str = ""
    role: str = ""
    time_zone: str = ""
    product_id: str = ""
    unique_id: str = ""
    mailer: str = ""
    instant_messaging_address: str = ""  # Outlook X-MS-* extensions
    manager: str = ""
    assistant: str = ""
    spouse: str = ""
    revision_date: datetime | None = None
    birth_date: date | None = None
    anniversary: date | None = None
    latitude: float | None = None
    longitude: float | None = None
    gender: Gender = Gender.UNKNOWN
    access_classification: AccessClassification = AccessClassification.UNKNOWN

    delivery_addresses: list[DeliveryAddress] = field(default_factory=list)
    delivery_labels: list[DeliveryLabel] = field(default_factory=list)
    phones: list[Phone] = field(default_factory=list)
    email_addresses: list[EmailAddress] = field(default_factory=list)
    websites: list[Website] = field(default_factory=list)
    certificates: list[Certificate] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)
    nicknames: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    photos: list[Photo] = field(default_factory=list)

    def __str__(self) -> str:
        return self.formatted_name or self.display_name or "(unnamed contact)"

    # ── first-choice lookups ──────────────────────────────────────────────────

    def first_phone(self, phone_type: PhoneType) -> Phone | None:
        """First phone carrying every flag of ``phone_type``; a preferred one wins."""
        fallback = None
        for phone in self.phones:
            if phone_type in phone.phone_type:
                if fallback is None:
                    fallback = phone
                if phone.is_preferred:
                    return phone
        return fallback

    def first_email(self, email_type: EmailAddressType = EmailAddressType.INTERNET) -> EmailAddress | None:
        fallback = None
        for email in self.email_addresses:
            if email_type in email.email_type:
                if fallback is None:
                    fallback = email
                if email.is_preferred:
                    return email
        return fallback

    def first_website(self, website_type: WebsiteType) -> Website | None:
        """First site of the given type, else the first untyped one."""
        fallback = None
        for site in self.websites:
            if website_type in site.website_type:
                return site
            if fallback is None and site.website_type == WebsiteType.DEFAULT:
                fallback = site
        return fallback
