"""Package status lifecycle and the allowed-transition table.

Forward moves along ``LIFECYCLE`` are always allowed, including skipped
steps. A handful of explicit backward edges cover reprints, re-dispatch
between branches and re-sending returned parcels. ``canceled`` is terminal.
"""

from __future__ import annotations

from enum import StrEnum

from parceltrack.exceptions import InvalidTransitionError


class PackageStatus(StrEnum):
    JUST_CREATED = "just_created"
    CREATED = "created"
    ENVELOPE_PREPARED = "envelope_prepared"
    QUEUED_FOR_PRINT = "queued_for_print"
    PRINTED = "printed"
    HANDED_OVER = "handed_over"
    IN_TRANSIT = "in_transit"
    AT_BRANCH = "at_branch"
    DELIVERED = "delivered"
    RETURNED = "returned"
    CANCELED = "canceled"


LIFECYCLE: tuple[PackageStatus, ...] = (
    PackageStatus.JUST_CREATED,
    PackageStatus.CREATED,
    PackageStatus.ENVELOPE_PREPARED,
    PackageStatus.QUEUED_FOR_PRINT,
    PackageStatus.PRINTED,
    PackageStatus.HANDED_OVER,
    PackageStatus.IN_TRANSIT,
    PackageStatus.AT_BRANCH,
    PackageStatus.DELIVERED,
)

TERMINAL: frozenset[PackageStatus] = frozenset({PackageStatus.CANCELED})

_EXTRA_EDGES: dict[PackageStatus, frozenset[PackageStatus]] = {
    PackageStatus.PRINTED: frozenset({PackageStatus.QUEUED_FOR_PRINT}),
    PackageStatus.AT_BRANCH: frozenset({PackageStatus.IN_TRANSIT}),
    PackageStatus.RETURNED: frozenset(
        {PackageStatus.HANDED_OVER, PackageStatus.IN_TRANSIT}
    ),
}


def _build_table() -> dict[PackageStatus, frozenset[PackageStatus]]:
    table: dict[PackageStatus, frozenset[PackageStatus]] = {}
    for status in PackageStatus:
        if status in TERMINAL:
            table[status] = frozenset()
            continue
        allowed: set[PackageStatus] = set(_EXTRA_EDGES.get(status, ()))
        if status in LIFECYCLE:
            position = LIFECYCLE.index(status)
            allowed.update(LIFECYCLE[position + 1 :])
        if status is PackageStatus.DELIVERED:
            allowed.add(PackageStatus.RETURNED)
        else:
            allowed.update({PackageStatus.RETURNED, PackageStatus.CANCELED})
        allowed.discard(status)
        table[status] = frozenset(allowed)
    return table


ALLOWED_TRANSITIONS: dict[PackageStatus, frozenset[PackageStatus]] = (
    _build_table()
)


def parse_status(value: str | PackageStatus) -> PackageStatus:
    """Coerce a raw label to ``PackageStatus``."""
    try:
        return PackageStatus(value)
    except ValueError as exc:
        raise InvalidTransitionError(f"Unknown status {value!r}") from exc


def allowed_transitions(status: str | PackageStatus) -> frozenset[PackageStatus]:
    return ALLOWED_TRANSITIONS[parse_status(status)]


def can_transition(
    current: str | PackageStatus,
    target: str | PackageStatus,
) -> bool:
    return parse_status(target) in allowed_transitions(current)


def ensure_transition(
    current: str | PackageStatus,
    target: str | PackageStatus,
    *,
    enforce: bool = True,
) -> PackageStatus:
    """Validate a transition and return the target as ``PackageStatus``.

    With ``enforce=False`` any known label may follow any other, but a
    write to the status the package already has is still rejected.
    """
    source = parse_status(current)
    destination = parse_status(target)
    if source is destination:
        raise InvalidTransitionError(
            f"Package is already in status {destination.value}",
            current=source.value,
            target=destination.value,
        )
    if enforce and destination not in ALLOWED_TRANSITIONS[source]:
        raise InvalidTransitionError(
            f"Cannot move package from {source.value} to {destination.value}",
            current=source.value,
            target=destination.value,
        )
    return destination
