from __future__ import annotations

from datetime import UTC, datetime

from pycourier.exceptions import MalformedEventError
from pycourier.ingestion import EVENT_HANDLERS, EventDispatcher
from pycourier.models.notification import Notification
from pycourier.state.reconciler import EventReconciler


def _dispatcher() -> tuple[EventDispatcher, EventReconciler, list[MalformedEventError], list[Notification]]:
    notes: list[Notification] = []
    errors: list[MalformedEventError] = []
    reconciler = EventReconciler(notify=notes.append)
    return EventDispatcher(reconciler, on_malformed=errors.append), reconciler, errors, notes


def test_nested_location_payload_is_flattened() -> None:
    dispatcher, reconciler, errors, _ = _dispatcher()

    dispatcher.dispatch(
        "location_update",
        {
            "order_id": "O1",
            "courier": {"id": "C9", "location": {"lat": 40.71, "lng": -74.0}, "speed": 12.5},
            "timestamp": 1_767_268_800_000,
        },
    )

    stored = reconciler.location("O1")
    assert errors == []
    assert stored is not None
    assert stored.courier_id == "C9"
    assert stored.speed == 12.5
    assert stored.location.longitude == -74.0
    assert stored.timestamp == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def test_nested_status_payload() -> None:
    dispatcher, reconciler, _, notes = _dispatcher()

    dispatcher.dispatch(
        "order_status_change",
        {
            "order_id": "O1",
            "status": {"current": "picked_up", "previous": "confirmed"},
            "timestamp": "2026-01-01T12:05:00Z",
        },
    )

    assert reconciler.current_status("O1") == "picked_up"
    assert reconciler.status_log("O1")[0].previous_status == "confirmed"
    assert len(notes) == 1


def test_message_with_nested_sender() -> None:
    dispatcher, reconciler, errors, _ = _dispatcher()

    dispatcher.dispatch(
        "message_received",
        {
            "message_id": "M1",
            "order_id": "O1",
            "sender": {"user_id": "C9", "name": "Sam"},
            "message": "Be there in 5",
            "timestamp": "2026-01-01T12:00:00Z",
        },
    )

    assert errors == []
    (message,) = reconciler.messages("O1")
    assert message.sender_id == "C9"
    assert message.content == "Be there in 5"


def test_malformed_event_is_reported_and_state_untouched() -> None:
    dispatcher, reconciler, errors, notes = _dispatcher()

    result = dispatcher.dispatch("order_status_change", {"order_id": "O1", "timestamp": "2026-01-01T12:00:00Z"})

    assert result is None
    assert reconciler.status_log("O1") == ()
    assert notes == []
    assert len(errors) == 1
    assert errors[0].event == "order_status_change"
    assert any(err["loc"] == "new_status" for err in errors[0].errors)


def test_out_of_range_coordinates_are_malformed() -> None:
    dispatcher, reconciler, errors, _ = _dispatcher()

    dispatcher.dispatch(
        "location_update",
        {"order_id": "O1", "location": {"latitude": 123.0, "longitude": 0.0}, "timestamp": 1_767_268_800},
    )

    assert reconciler.location("O1") is None
    assert len(errors) == 1


def test_non_object_payload_is_malformed() -> None:
    dispatcher, _, errors, _ = _dispatcher()

    assert dispatcher.dispatch("system_alert", ["not", "a", "dict"]) is None
    assert len(errors) == 1


def test_unknown_event_is_ignored() -> None:
    dispatcher, _, errors, notes = _dispatcher()

    assert dispatcher.handles("typing_indicator") is False
    assert dispatcher.dispatch("typing_indicator", {"order_id": "O1"}) is None
    assert errors == []
    assert notes == []


def test_notification_push_is_rebuilt_from_validated_fields() -> None:
    dispatcher, _, _, notes = _dispatcher()

    dispatcher.dispatch(
        "notification_push",
        {
            "notification": {
                "id": "N1",
                "type": "payment",
                "title": "Payment received",
                "message": "Thanks!",
                "timestamp": "2026-01-01T12:00:00Z",
            }
        },
    )

    assert [n.id for n in notes] == ["N1"]
    assert notes[0].type == "payment"


def test_every_handler_targets_a_reconciler_method() -> None:
    for model_cls, handler in EVENT_HANDLERS.values():
        assert handler.__name__.startswith("apply_")
        assert hasattr(model_cls, "model_validate")


def test_message_with_empty_body_is_accepted() -> None:
    dispatcher, reconciler, errors, notes = _dispatcher()

    dispatcher.dispatch(
        "message_received",
        {"message_id": "M2", "order_id": "O1", "sender_id": "C9", "content": "", "timestamp": "2026-01-01T12:00:00Z"},
    )

    assert errors == []
    (message,) = reconciler.messages("O1")
    assert message.content == ""
    assert [n.id for n in notes] == ["message_M2"]
