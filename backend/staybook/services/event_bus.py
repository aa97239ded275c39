"""
事件总线 - 内存级发布/订阅
预订服务通过它发布生命周期事件，处理器异常不影响业务操作
"""
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime
from collections import deque
import logging
import threading
import uuid

from staybook.models.ontology import utcnow

logger = logging.getLogger(__name__)

Handler = Callable[["Event"], None]


@dataclass
class Event:
    """领域事件"""
    event_type: str
    data: Dict[str, Any]
    source: str
    timestamp: datetime = field(default_factory=utcnow)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class EventBus:
    """
    内存级事件总线（线程安全单例）

    event_bus.subscribe("booking.created", handler)
    event_bus.publish(Event(...))
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._subscribers: Dict[str, List[Handler]] = {}
        self._history: deque = deque(maxlen=200)
        self._subscriber_lock = threading.Lock()
        self._initialized = True

    def subscribe(self, event_type: str, handler: Handler) -> None:
        """订阅事件，重复订阅同一处理器会被忽略"""
        with self._subscriber_lock:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)
                logger.debug(f"Handler {handler.__name__} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        with self._subscriber_lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: Event) -> None:
        """
        同步发布事件

        单个处理器抛出异常时记录日志并继续执行其余处理器
        """
        self._history.append(event)

        with self._subscriber_lock:
            handlers = list(self._subscribers.get(event.event_type, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler {handler.__name__} error for {event.event_type}: {e}",
                    exc_info=True
                )

    def get_history(self, event_type: Optional[str] = None, limit: int = 50) -> List[Event]:
        """最近的事件（最新的在前）"""
        history = list(self._history)
        if event_type:
            history = [e for e in history if e.event_type == event_type]
        return list(reversed(history))[:limit]

    def get_subscribers(self) -> Dict[str, List[str]]:
        with self._subscriber_lock:
            return {
                et: [h.__name__ for h in handlers]
                for et, handlers in self._subscribers.items()
            }

    def clear_subscribers(self) -> None:
        """清空所有订阅（用于测试）"""
        with self._subscriber_lock:
            self._subscribers.clear()

    def clear_history(self) -> None:
        self._history.clear()


# 全局事件总线实例
event_bus = EventBus()
