from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Union


@dataclass(frozen=True)
class PlainString:
    value: str


@dataclass(frozen=True)
class NamedObject:
    name: str


@dataclass(frozen=True)
class Absent:
    pass


FieldValue = Union[PlainString, NamedObject, Absent]

_ABSENT = Absent()

TICKET_FALLBACKS: Dict[str, str] = {
    "status": "Unknown",
    "priority": "Unspecified",
    "requester": "Unknown",
    "technician": "Unassigned",
    "created_by": "System",
}

DESCRIPTION_PARTS = ("subject", "short_description", "group")


@dataclass(frozen=True)
class NormalizedAccount:
    externalId: str
    name: str | None
    site: str | None
    isActive: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def classify_field(raw: Any) -> FieldValue:
    """Sort an upstream field into one of the shapes ServiceDesk uses for it."""
    if isinstance(raw, str):
        return PlainString(raw)
    if isinstance(raw, Mapping):
        name = raw.get("name")
        if isinstance(name, str):
            return NamedObject(name)
    return _ABSENT


def display_value(raw: Any, fallback: str) -> str:
    shape = classify_field(raw)
    if isinstance(shape, PlainString):
        return shape.value
    if isinstance(shape, NamedObject):
        return shape.name
    return fallback


def text_value(raw: Any) -> str:
    """Like ``display_value`` with an empty fallback, but numbers and booleans are stringified."""
    if isinstance(raw, (bool, int, float)):
        return str(raw)
    return display_value(raw, "")


def normalize_account(raw: Mapping[str, Any]) -> NormalizedAccount:
    account_id = raw.get("id")
    name = raw.get("name")
    site = raw.get("site")
    status = raw.get("status")

    status_name = status.get("name") if isinstance(status, Mapping) else None
    site_name = site.get("name") if isinstance(site, Mapping) else None

    return NormalizedAccount(
        externalId="" if account_id is None else str(account_id),
        name=name if isinstance(name, str) else None,
        site=site_name if isinstance(site_name, str) else None,
        isActive=isinstance(status_name, str) and status_name.lower() == "active",
    )


def normalize_ticket(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Flatten the display fields of a raw ticket.

    Unknown fields are carried over untouched; the listed ones are overwritten.
    """
    ticket: Dict[str, Any] = dict(raw)

    for field, fallback in TICKET_FALLBACKS.items():
        ticket[field] = display_value(raw.get(field), fallback)

    for field in DESCRIPTION_PARTS:
        ticket[field] = text_value(raw.get(field))

    description = f"{ticket['subject']} {ticket['short_description']} {ticket['group']}".strip()
    ticket["description"] = description
    ticket["text"] = description
    ticket["summary"] = description
    return ticket


def technician_name(raw: Mapping[str, Any]) -> str | None:
    shape = classify_field(raw.get("technician"))
    if isinstance(shape, NamedObject):
        return shape.name
    if isinstance(shape, PlainString):
        return shape.value
    return None
