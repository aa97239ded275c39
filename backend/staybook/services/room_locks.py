"""
房间锁注册表

创建预订、修改日期、确认支付都要先检查可用性再写入。
同一房间的这些操作在进程内串行执行，避免检查与写入之间插入另一笔预订。
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class RoomLockRegistry:
    """按房间 ID 分配的可重入锁"""

    def __init__(self):
        self._locks: Dict[int, threading.RLock] = {}
        self._guard = threading.Lock()

    def get(self, room_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[room_id] = lock
            return lock

    @contextmanager
    def hold(self, room_id: int) -> Iterator[None]:
        """在房间锁内执行"""
        lock = self.get(room_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


room_locks = RoomLockRegistry()
