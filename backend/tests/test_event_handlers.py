"""
事件处理器单元测试
"""
import pytest

from staybook.models.events import BookingEventType, BookingEventData
from staybook.services.event_bus import Event, EventBus
from staybook.services.event_handlers import EventHandlers


def _booking_event(event_type=BookingEventType.BOOKING_CREATED, status="pending", actor_id=1):
    data = BookingEventData(
        booking_id=1,
        booking_number="BK2024000001",
        user_id=1,
        room_id=2,
        status=status,
        total_amount=2360.0,
        actor_id=actor_id,
    )
    return Event(event_type=event_type.value, data=data.to_dict(), source="booking_service")


class TestEventHandlers:
    """事件处理器测试"""

    @pytest.fixture
    def bus(self):
        bus = EventBus()
        bus.clear_subscribers()
        bus.clear_history()
        yield bus
        bus.clear_subscribers()

    @pytest.fixture
    def handlers(self):
        return EventHandlers(max_records=3)

    def test_handle_records_audit(self, handlers):
        handlers.handle_booking_event(_booking_event())
        record = handlers.recent()[0]
        assert record["event_type"] == "booking.created"
        assert record["booking_number"] == "BK2024000001"
        assert record["actor_id"] == 1

    def test_audit_log_written(self, handlers, caplog):
        with caplog.at_level("INFO", logger="staybook.audit"):
            handlers.handle_booking_event(_booking_event(BookingEventType.BOOKING_CANCELLED, "cancelled"))
        assert "[audit] booking.cancelled booking=BK2024000001" in caplog.text

    def test_records_bounded(self, handlers):
        for i in range(5):
            handlers.handle_booking_event(_booking_event(actor_id=i))
        records = handlers.recent()
        assert len(records) == 3
        assert records[0]["actor_id"] == 4

    def test_register_subscribes_all_booking_events(self, handlers, bus):
        handlers.register_handlers(bus)
        subscribers = bus.get_subscribers()
        for event_type in BookingEventType:
            assert subscribers[event_type.value] == ["handle_booking_event"]

    def test_register_idempotent(self, handlers, bus):
        handlers.register_handlers(bus)
        handlers.register_handlers(bus)
        bus.publish(_booking_event())
        assert len(handlers.recent()) == 1

    def test_unregister(self, handlers, bus):
        handlers.register_handlers(bus)
        handlers.unregister_handlers(bus)
        bus.publish(_booking_event())
        assert handlers.recent() == []

    def test_published_booking_events_are_audited(self, handlers, bus):
        handlers.register_handlers(bus)
        bus.publish(_booking_event(BookingEventType.BOOKING_CHECKED_IN, "checked-in"))
        assert handlers.recent()[0]["status"] == "checked-in"
