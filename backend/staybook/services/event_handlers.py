"""
事件处理器
订阅预订事件，写审计日志并保留最近的审计记录
"""
from collections import deque
from typing import List, Dict, Any
import logging

from staybook.models.events import BookingEventType
from staybook.services.event_bus import EventBus, Event, event_bus

logger = logging.getLogger("staybook.audit")


class EventHandlers:
    """预订事件处理器集合"""

    def __init__(self, max_records: int = 500):
        self._records: deque = deque(maxlen=max_records)
        self._registered = False

    def handle_booking_event(self, event: Event) -> None:
        """审计：记录事件类型、预订号、操作人与状态"""
        data = event.data
        record = {
            "event_id": event.event_id,
            "event_type": event.event_type,
            "timestamp": event.timestamp.isoformat(),
            "booking_number": data.get("booking_number"),
            "actor_id": data.get("actor_id"),
            "status": data.get("status"),
        }
        self._records.append(record)
        logger.info(
            f"[audit] {event.event_type} booking={record['booking_number']} "
            f"actor={record['actor_id']} status={record['status']}"
        )

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        return list(reversed(self._records))[:limit]

    def register_handlers(self, bus: EventBus = None) -> None:
        """订阅所有预订事件（重复调用无副作用）"""
        if self._registered:
            return
        target = bus or event_bus
        for event_type in BookingEventType:
            target.subscribe(event_type.value, self.handle_booking_event)
        self._registered = True
        logger.info("Booking event handlers registered")

    def unregister_handlers(self, bus: EventBus = None) -> None:
        target = bus or event_bus
        for event_type in BookingEventType:
            target.unsubscribe(event_type.value, self.handle_booking_event)
        self._registered = False


event_handlers = EventHandlers()


def register_event_handlers():
    """注册所有事件处理器（应用启动时调用）"""
    event_handlers.register_handlers()
