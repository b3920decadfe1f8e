"""One NAME;SUB=VAL:VALUE line of a vCard and its parsed value."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable, Union

from .codec import OUTLOOK_REVISION_FORMAT, VCardEncoding

DATE_FORMAT = "%Y%m%d"


# ── Values ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TextValue:
    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class BytesValue:
    data: bytes

    def __str__(self) -> str:
        return self.data.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class MultiValue:
    items: tuple[str, ...]
    separator: str = ","

    def __init__(self, items: Iterable[str], separator: str = ",") -> None:
        object.__setattr__(self, "items", tuple(i or "" for i in items))
        object.__setattr__(self, "separator", separator)

    def __str__(self) -> str:
        return self.separator.join(self.items)


@dataclass(frozen=True)
class DateValue:
    value: date | datetime

    def __str__(self) -> str:
        if isinstance(self.value, datetime):
            stamp = self.value
            if stamp.tzinfo is not None:
                stamp = stamp.astimezone(timezone.utc)
            return stamp.strftime(OUTLOOK_REVISION_FORMAT)
        return self.value.strftime(DATE_FORMAT)


Value = Union[TextValue, BytesValue, MultiValue, DateValue]


# ── Subproperties ──────────────────────────────────────────────────────────────

@dataclass
class Subproperty:
    name: str
    value: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("a subproperty needs a name")


class SubpropertyList(list):
    """Subproperties in file order. Names compare case-insensitively.

    Duplicates are allowed; producers repeat TYPE= freely.
    """

    def add(self, name: str, value: str | None = None) -> Subproperty:
        sub = Subproperty(name, value)
        self.append(sub)
        return sub

    def add_or_update(self, name: str, value: str | None) -> None:
        index = self.index_of(name)
        if index == -1:
            self.add(name, value)
        else:
            self[index].value = value

    def index_of(self, name: str) -> int:
        wanted = name.upper()
        for index, sub in enumerate(self):
            if sub.name.upper() == wanted:
                return index
        return -1

    def index_of_any(self, names: Iterable[str]) -> int:
        wanted = {n.upper() for n in names}
        for index, sub in enumerate(self):
            if sub.name.upper() in wanted:
                return index
        return -1

    def contains(self, name: str) -> bool:
        return self.index_of(name) != -1

    def get_value(self, name: str, nameless: Iterable[str] = ()) -> str | None:
        """Value of the first subproperty called ``name``.

        Old 2.1 files write some values bare (KEY;BASE64: instead of
        KEY;ENCODING=BASE64:). When ``nameless`` is given and no ``name``
        subproperty exists, the name of the first bare match is returned.
        """
        if not name:
            raise ValueError("name must not be empty")
        index = self.index_of(name)
        if index != -1:
            return self[index].value
        nameless = list(nameless)
        if not nameless:
            return None
        index = self.index_of_any(nameless)
        return None if index == -1 else self[index].name

    def get_names(self, only: Iterable[str] | None = None) -> list[str]:
        """Subproperty names, optionally restricted to (and upper-cased by) ``only``."""
        if only is None:
            return [sub.name for sub in self]
        allowed = {n.strip().upper() for n in only if n}
        return [sub.name.upper() for sub in self if sub.name.upper() in allowed]


# ── Property ───────────────────────────────────────────────────────────────────

@dataclass
class Property:
    name: str
    value: Value | None = None
    group: str = ""
    language: str = ""
    subproperties: SubpropertyList = field(default_factory=SubpropertyList)
    # set by the tokenizer: the value as it appeared in the file
    raw_value: str | None = field(default=None, repr=False, compare=False)
    encoding: VCardEncoding = field(default=VCardEncoding.UNKNOWN, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("a property needs a name")
        if isinstance(self.value, str):
            self.value = TextValue(self.value)
        elif isinstance(self.value, (bytes, bytearray)):
            self.value = BytesValue(bytes(self.value))
        if not isinstance(self.subproperties, SubpropertyList):
            self.subproperties = SubpropertyList(self.subproperties)

    def __str__(self) -> str:
        return "" if self.value is None else str(self.value)

    def is_named(self, name: str) -> bool:
        return self.name.upper() == name.upper()
