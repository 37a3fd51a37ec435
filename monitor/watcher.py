"""
配置文件变化监听（轮询 mtime）
"""

import os
import threading
from typing import Callable, Optional

from logger import get_logger

logger = get_logger(__name__)


class ConfigFileWatcher:
    """定期检查文件修改时间，变化后回调"""

    def __init__(self, path: str, on_change: Callable[[], None],
                 interval: float = 1.0, settle: float = 0.5):
        """
        :param path: 监听的文件
        :param on_change: 文件变化时的回调
        :param interval: 检查间隔（秒）
        :param settle: 检测到变化后等待写入完成的时间（秒）
        """
        self.path = path
        self.on_change = on_change
        self.interval = interval
        self.settle = settle
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._mtime = self._current_mtime()

    def _current_mtime(self) -> float:
        try:
            return os.stat(self.path).st_mtime
        except OSError:
            return 0.0

    def check(self) -> bool:
        """检查一次，文件变新时触发回调"""
        mtime = self._current_mtime()
        if mtime <= self._mtime:
            return False
        self._mtime = mtime
        # 确保文件写入完成
        if self.settle and self._stop_event.wait(self.settle):
            return False
        self.on_change()
        return True

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="config-watcher", daemon=True)
        self._thread.start()
        logger.info(f"已启用配置文件热重载监控: {self.path}")

    def _run(self):
        while not self._stop_event.wait(self.interval):
            try:
                self.check()
            except Exception as e:
                logger.error(f"配置文件监控回调失败：{e}", exc_info=True)

    def stop(self):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self.interval + self.settle + 1)
            self._thread = None
