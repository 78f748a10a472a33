"""Status transition handler tests."""

import pytest

from parceltrack.config import ParceltrackConfig
from parceltrack.exceptions import (
    InvalidTransitionError,
    StatusConflictError,
    StatusUpdateError,
)
from parceltrack.retry import HISTORY_WRITE, SCAN_WRITE
from parceltrack.transitions import (
    BULK_NOTE,
    StatusTransitionHandler,
    normalize_symbology,
)


@pytest.fixture()
def handler(packages, history, scans, config, retry_store):
    return StatusTransitionHandler(
        packages, history, scans, config=config, retry_store=retry_store
    )


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("code_128", "code128"),
        ("CODE128", "code128"),
        ("qr_code", "qr"),
        (None, "qr"),
        ("ean_13", "ean_13"),
    ],
)
def test_normalize_symbology(value, expected) -> None:
    assert normalize_symbology(value) == expected


async def test_apply_writes_status_history_and_scan(
    handler, packages, history, scans
) -> None:
    package = packages.add("ABC123", status="created")

    result = await handler.apply(
        package,
        "handed_over",
        actor_id="u-1",
        raw_data="ABC123",
        symbology="qr_code",
    )

    assert packages.items[package.id].status == "handed_over"
    assert result.from_status == "created"
    assert result.to_status == "handed_over"
    assert not result.audit_incomplete

    assert len(history.entries) == 1
    entry = history.entries[0]
    assert (entry.from_status, entry.to_status) == ("created", "handed_over")
    assert entry.scanned_by == "u-1"
    assert entry.location == "Main Office"

    assert scans.rows == [
        {
            "package_id": package.id,
            "raw_data": "ABC123",
            "symbology": "qr",
            "location": "Main Office",
            "actor_id": "u-1",
            "device_label": "",
        }
    ]


async def test_apply_uses_explicit_location_and_note(
    handler, packages, history, scans
) -> None:
    package = packages.add("ABC123")

    await handler.apply(
        package,
        "at_branch",
        actor_id="u-1",
        location="North Branch",
        note="left at reception",
    )

    assert packages.items[package.id].current_location == "North Branch"
    assert history.entries[0].note == "left at reception"
    assert scans.rows[0]["raw_data"] == "ABC123"


async def test_invalid_transition_writes_nothing(
    handler, packages, history, scans
) -> None:
    package = packages.add("ABC123", status="delivered")

    with pytest.raises(InvalidTransitionError):
        await handler.apply(package, "created", actor_id="u-1")

    assert packages.updates == []
    assert history.entries == []
    assert scans.rows == []


async def test_same_status_is_rejected(handler, packages) -> None:
    package = packages.add("ABC123", status="in_transit")
    with pytest.raises(InvalidTransitionError):
        await handler.apply(package, "in_transit", actor_id="u-1")


async def test_unenforced_transitions_allow_backwards(
    packages, history, scans
) -> None:
    handler = StatusTransitionHandler(
        packages,
        history,
        scans,
        config=ParceltrackConfig(enforce_transitions=False),
    )
    package = packages.add("ABC123", status="delivered")

    result = await handler.apply(package, "created", actor_id="u-1")

    assert result.to_status == "created"


async def test_stale_status_raises_conflict(
    handler, packages, history, scans
) -> None:
    package = packages.add("ABC123", status="created")
    packages.items[package.id].status = "handed_over"
    stale = type(package)(
        id=package.id, short_code="ABC123", status="created"
    )

    with pytest.raises(StatusConflictError) as exc_info:
        await handler.apply(stale, "in_transit", actor_id="u-1")

    assert exc_info.value.actual == "handed_over"
    assert history.entries == []
    assert scans.rows == []


async def test_expected_status_overrides_observed(handler, packages) -> None:
    package = packages.add("ABC123", status="in_transit")

    with pytest.raises(StatusConflictError):
        await handler.apply(
            package,
            "delivered",
            actor_id="u-1",
            expected_status="at_branch",
        )
    assert packages.items[package.id].status == "in_transit"


async def test_status_write_failure_is_fatal(
    handler, packages, history, scans
) -> None:
    package = packages.add("ABC123")
    packages.fail_updates = True

    with pytest.raises(StatusUpdateError, match="ABC123"):
        await handler.apply(package, "handed_over", actor_id="u-1")

    assert history.entries == []
    assert scans.rows == []


async def test_history_failure_keeps_status_and_queues_retry(
    handler, packages, history, scans, retry_store
) -> None:
    package = packages.add("ABC123")
    history.fail = True

    result = await handler.apply(package, "handed_over", actor_id="u-1")

    assert packages.items[package.id].status == "handed_over"
    assert result.history_recorded is False
    assert result.scan_recorded is True
    assert result.audit_incomplete
    assert len(scans.rows) == 1
    assert result.queued_retries == ["retry-1"]
    event = retry_store.events[0]
    assert event["kind"] == HISTORY_WRITE
    assert event["payload"]["to_status"] == "handed_over"
    assert "history table unavailable" in event["error"]


async def test_scan_failure_is_reported(
    handler, packages, history, scans, retry_store
) -> None:
    package = packages.add("ABC123")
    scans.fail = True

    result = await handler.apply(package, "handed_over", actor_id="u-1")

    assert result.history_recorded is True
    assert result.scan_recorded is False
    assert [e["kind"] for e in retry_store.events] == [SCAN_WRITE]


async def test_retry_disabled_does_not_queue(
    packages, history, scans, retry_store
) -> None:
    handler = StatusTransitionHandler(
        packages,
        history,
        scans,
        config=ParceltrackConfig(retry_enabled=False),
        retry_store=retry_store,
    )
    package = packages.add("ABC123")
    history.fail = True

    result = await handler.apply(package, "handed_over", actor_id="u-1")

    assert result.audit_incomplete
    assert retry_store.events == []


async def test_retry_store_failure_is_swallowed(
    packages, history, scans, config
) -> None:
    class BrokenStore:
        async def store_failed_write(self, *args, **kwargs):
            raise RuntimeError("retry table missing")

    handler = StatusTransitionHandler(
        packages, history, scans, config=config, retry_store=BrokenStore()
    )
    package = packages.add("ABC123")
    history.fail = True

    result = await handler.apply(package, "handed_over", actor_id="u-1")

    assert result.queued_retries == []
    assert packages.items[package.id].status == "handed_over"


async def test_device_label_is_truncated(handler, packages, scans) -> None:
    package = packages.add("ABC123")
    await handler.apply(
        package, "handed_over", actor_id="u-1", device_label="x" * 80
    )
    assert len(scans.rows[0]["device_label"]) == 50


async def test_apply_bulk_success(handler, packages, history) -> None:
    packages.add("A1B", status="handed_over")

    outcome = await handler.apply_bulk(
        "A1B", "in_transit", actor_id="u-1", symbology="code_128"
    )

    assert outcome.success
    assert outcome.short_code == "A1B"
    assert history.entries[0].note == BULK_NOTE


async def test_apply_bulk_not_found(handler) -> None:
    outcome = await handler.apply_bulk("ZZZ999", "in_transit", actor_id="u-1")
    assert not outcome.success
    assert outcome.error == "Package not found"
    assert outcome.error_code == "package_not_found"


async def test_apply_bulk_invalid_transition(handler, packages) -> None:
    packages.add("DONE1", status="canceled")

    outcome = await handler.apply_bulk("DONE1", "in_transit", actor_id="u-1")

    assert not outcome.success
    assert outcome.short_code == "DONE1"
    assert outcome.error_code == "invalid_transition"


async def test_apply_bulk_backend_unavailable(handler, packages) -> None:
    packages.add("A1B")
    packages.unavailable_for = 10

    outcome = await handler.apply_bulk("A1B", "in_transit", actor_id="u-1")

    assert not outcome.success
    assert outcome.error_code == "backend_unavailable"
