from __future__ import annotations

import pytest

from app.integrations.servicedesk.normalization import (
    Absent,
    NamedObject,
    PlainString,
    classify_field,
    normalize_account,
    normalize_ticket,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Open", PlainString("Open")),
        ({"name": "Closed", "id": "2"}, NamedObject("Closed")),
        ({"id": "2"}, Absent()),
        (None, Absent()),
        (42, Absent()),
        ({"name": 5}, Absent()),
    ],
)
def test_classify_field(raw, expected) -> None:
    assert classify_field(raw) == expected


def test_normalize_account_maps_upstream_shape() -> None:
    account = normalize_account(
        {"id": 90012, "name": "Acme", "site": {"name": "Berlin"}, "status": {"name": "ACTIVE"}}
    )

    assert account.to_dict() == {
        "externalId": "90012",
        "name": "Acme",
        "site": "Berlin",
        "isActive": True,
    }


def test_normalize_account_fills_gaps() -> None:
    account = normalize_account({"status": {"name": "Inactive"}})

    assert account.externalId == ""
    assert account.name is None
    assert account.site is None
    assert account.isActive is False


def test_normalize_account_without_status_is_inactive() -> None:
    assert normalize_account({"id": "7"}).isActive is False


def test_normalize_ticket_keeps_plain_strings() -> None:
    ticket = normalize_ticket({"status": "Open", "priority": "High", "technician": "Jane"})

    assert ticket["status"] == "Open"
    assert ticket["priority"] == "High"
    assert ticket["technician"] == "Jane"


def test_normalize_ticket_flattens_named_objects() -> None:
    ticket = normalize_ticket(
        {
            "status": {"name": "Resolved", "color": "#00ff00"},
            "priority": {"name": "Low"},
            "requester": {"name": "Ann", "email_id": "ann@example.com"},
            "technician": {"name": "Bob"},
            "created_by": {"name": "Carol"},
        }
    )

    assert ticket["status"] == "Resolved"
    assert ticket["priority"] == "Low"
    assert ticket["requester"] == "Ann"
    assert ticket["technician"] == "Bob"
    assert ticket["created_by"] == "Carol"


def test_normalize_ticket_uses_fallbacks() -> None:
    ticket = normalize_ticket({"id": "1", "status": {"id": "3"}, "priority": None})

    assert ticket["status"] == "Unknown"
    assert ticket["priority"] == "Unspecified"
    assert ticket["requester"] == "Unknown"
    assert ticket["technician"] == "Unassigned"
    assert ticket["created_by"] == "System"
    assert ticket["subject"] == ""
    assert ticket["short_description"] == ""
    assert ticket["group"] == ""
    assert ticket["description"] == ""


def test_normalize_ticket_builds_description() -> None:
    ticket = normalize_ticket(
        {
            "subject": "Printer offline",
            "short_description": "Third floor printer",
            "group": {"name": "Hardware"},
        }
    )

    assert ticket["description"] == "Printer offline Third floor printer Hardware"
    assert ticket["text"] == ticket["summary"] == ticket["description"]


def test_normalize_ticket_trims_description_when_parts_missing() -> None:
    ticket = normalize_ticket({"subject": "VPN down"})

    assert ticket["description"] == "VPN down"
    assert ticket["text"] == "VPN down"
    assert ticket["summary"] == "VPN down"


def test_normalize_ticket_preserves_unknown_fields_and_input() -> None:
    raw = {
        "id": "100",
        "status": {"name": "Open"},
        "created_time": {"value": "1705320000000", "display_value": "Jan 15, 2024"},
        "udf_fields": {"udf_pick_1": "VIP"},
    }

    ticket = normalize_ticket(raw)

    assert ticket["id"] == "100"
    assert ticket["created_time"] == raw["created_time"]
    assert ticket["udf_fields"] == {"udf_pick_1": "VIP"}
    assert raw["status"] == {"name": "Open"}


def test_normalize_ticket_stringifies_scalar_description_parts() -> None:
    ticket = normalize_ticket({"subject": 4521, "short_description": 2.5, "group": True})

    assert ticket["subject"] == "4521"
    assert ticket["short_description"] == "2.5"
    assert ticket["group"] == "True"
    assert ticket["description"] == "4521 2.5 True"


def test_normalize_ticket_keeps_display_fields_strict() -> None:
    ticket = normalize_ticket({"status": 3, "subject": ["a", "b"]})

    assert ticket["status"] == "Unknown"
    assert ticket["subject"] == ""
