"""
余票查询缓存：带过期时间、容量上限（按插入顺序淘汰）
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from logger import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    expire_at: float


class TicketCache:
    """线程安全的票务缓存"""

    def __init__(self, ttl: float = 5 * 60, max_size: int = 1000,
                 cleanup_interval: float = 10 * 60, clock: Callable[[], float] = time.time):
        """
        :param ttl: 过期时间（秒）
        :param max_size: 最大缓存条目数
        :param cleanup_interval: 后台清理间隔（秒）
        :param clock: 时间函数
        """
        self.ttl = ttl
        self.max_size = max_size
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() > entry.expire_at:
                del self._entries[key]
                return None
            return entry.data

    def set(self, key: str, value: Any):
        now = self._clock()
        with self._lock:
            # 重新写入视为最新插入
            self._entries.pop(key, None)
            if len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
            self._entries[key] = CacheEntry(data=value, timestamp=now, expire_at=now + self.ttl)

    def clean_expired(self) -> int:
        """清理过期条目，返回清理数量"""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now > e.expire_at]
            for key in expired:
                del self._entries[key]
            size = len(self._entries)
        if expired:
            logger.debug(f"清理了 {len(expired)} 个过期缓存条目，当前缓存大小: {size}")
        return len(expired)

    def clear(self):
        with self._lock:
            self._entries.clear()
        logger.debug("已清空所有票务缓存")

    def stats(self) -> dict:
        now = self._clock()
        with self._lock:
            valid = sum(1 for e in self._entries.values() if now <= e.expire_at)
            total = len(self._entries)
        return {
            "total": total,
            "valid": valid,
            "expired": total - valid,
            "max_size": self.max_size,
            "ttl": f"{self.ttl:g}秒",
        }

    def start_sweeper(self):
        """启动后台定时清理线程"""
        if self._sweeper and self._sweeper.is_alive():
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="ticket-cache-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self):
        self._stop_event.set()
        if self._sweeper:
            self._sweeper.join(timeout=1)
            self._sweeper = None

    def _sweep_loop(self):
        while not self._stop_event.wait(self.cleanup_interval):
            self.clean_expired()
