from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from app.core.logging_config import get_logger

from .normalization import technician_name

logger = get_logger(__name__)


@dataclass(frozen=True)
class TicketExclusion:
    excluded: bool
    reason: str | None


def normalize_name_set(items: Iterable[Any] | None) -> frozenset[str]:
    if not items:
        return frozenset()
    out: set[str] = set()
    for item in items:
        s = str(item).strip().lower()
        if s:
            out.add(s)
    return frozenset(out)


def created_epoch_ms(ticket: Mapping[str, Any]) -> float:
    """Return ``created_time.value`` as a number, NaN when it is missing or not numeric."""
    created = ticket.get("created_time")
    raw = created.get("value") if isinstance(created, Mapping) else None
    if isinstance(raw, bool) or raw is None:
        return math.nan
    try:
        return float(raw)
    except (TypeError, ValueError):
        return math.nan


def is_in_date_range(
    ticket: Mapping[str, Any],
    from_ms: float | None = None,
    to_ms: float | None = None,
) -> bool:
    # Filtering only applies when both bounds are supplied.
    if from_ms is None or to_ms is None:
        return True
    created = created_epoch_ms(ticket)
    # NaN fails both comparisons.
    return from_ms <= created <= to_ms


def compute_technician_exclusion(
    ticket: Mapping[str, Any] | None,
    *,
    excluded_technicians: Iterable[Any] = (),
) -> TicketExclusion:
    name = technician_name(ticket or {})
    if name is None:
        return TicketExclusion(excluded=False, reason=None)

    normalized = name.strip().lower()
    if normalized and normalized in normalize_name_set(excluded_technicians):
        return TicketExclusion(
            excluded=True,
            reason=f"technician:{normalized}",
        )
    return TicketExclusion(excluded=False, reason=None)


def is_not_excluded(ticket: Mapping[str, Any], excluded_technicians: Iterable[Any] = ()) -> bool:
    return not compute_technician_exclusion(
        ticket, excluded_technicians=excluded_technicians
    ).excluded


def filter_requests(
    tickets: Iterable[Mapping[str, Any]],
    *,
    from_ms: float | None = None,
    to_ms: float | None = None,
    excluded_technicians: Iterable[Any] = (),
) -> list[Mapping[str, Any]]:
    excluded = normalize_name_set(excluded_technicians)
    kept: list[Mapping[str, Any]] = []
    out_of_range = 0
    exclusions: Counter[str] = Counter()

    for ticket in tickets:
        if not is_in_date_range(ticket, from_ms, to_ms):
            out_of_range += 1
            continue
        exclusion = compute_technician_exclusion(ticket, excluded_technicians=excluded)
        if exclusion.excluded:
            exclusions[exclusion.reason] += 1
            continue
        kept.append(ticket)

    logger.info(
        "Requests filtered",
        kept=len(kept),
        out_of_range=out_of_range,
        exclusions=dict(exclusions),
    )
    return kept
