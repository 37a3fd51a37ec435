"""
通知管理器 - 协调多个通知渠道
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, Iterable, List, Tuple

from logger import get_logger
from .base import AlertMessage, ChannelConfigError, ChannelDeliveryError, NotificationChannel
from .channels import create_channel

logger = get_logger(__name__)

SUCCESS = "成功"


class NotificationManager:
    """通知管理器，并发推送到所有渠道，单个渠道失败互不影响"""

    def __init__(self, factory: Callable[[dict], NotificationChannel] = create_channel, min_workers: int = 8):
        """
        :param factory: 根据配置创建渠道的函数
        :param min_workers: 推送线程数下限，渠道更多时按渠道数扩容
        """
        self.channels: List[NotificationChannel] = []
        self._factory = factory
        self._lock = threading.Lock()
        self._pool_size = min_workers
        self._executor = ThreadPoolExecutor(max_workers=min_workers, thread_name_prefix="notify")
        self._closed = False

    def _ensure_capacity(self, size: int):
        """保证每个渠道都有独立的推送线程，需在持有锁时调用"""
        if size <= self._pool_size:
            return
        old, self._executor = self._executor, ThreadPoolExecutor(max_workers=size, thread_name_prefix="notify")
        self._pool_size = size
        # 旧线程池中已提交的推送继续执行
        old.shutdown(wait=False)

    def reload(self, configs: Iterable[dict]) -> List[str]:
        """
        释放现有渠道并按新配置重新创建
        :param configs: 推送配置列表
        :return: 创建失败的错误信息
        """
        channels, errors = [], []
        for config in configs or []:
            try:
                channels.append(self._factory(config))
            except ChannelConfigError as e:
                logger.error(f"配置消息推送时发生错误：{e}")
                errors.append(str(e))

        with self._lock:
            old, self.channels = self.channels, channels
            if not self._closed:
                self._ensure_capacity(len(channels))
        for channel in old:
            channel.dispose()

        for channel in channels:
            logger.info(f"已配置消息推送：{channel.describe()}")
        if not channels:
            logger.warning("未配置消息推送")
        return errors

    def _dispatch(self, message: AlertMessage) -> List[Tuple[NotificationChannel, Future]]:
        with self._lock:
            if self._closed:
                logger.warning(f"通知管理器已关闭，丢弃消息：{message.content}")
                return []
            return [(channel, self._executor.submit(self._deliver, channel, message))
                    for channel in self.channels]

    def broadcast(self, message: AlertMessage) -> List[Future]:
        """
        将消息并发推送到所有渠道，不等待结果
        :return: 每个渠道一个 Future，结果为发送结果描述
        """
        return [future for _, future in self._dispatch(message)]

    def notify(self, message: AlertMessage, timeout: float = None) -> Dict[str, str]:
        """
        推送并在 timeout 秒内等待结果
        :return: 各渠道发送结果 {渠道描述: 结果}
        """
        dispatched = self._dispatch(message)
        done, _ = wait([future for _, future in dispatched], timeout=timeout)
        return {
            channel.describe(): future.result() if future in done else "超时"
            for channel, future in dispatched
        }

    def _deliver(self, channel: NotificationChannel, message: AlertMessage) -> str:
        try:
            channel.send(message)
            return SUCCESS
        except ChannelDeliveryError as e:
            logger.error(f"{channel.describe()} 发送失败：{e}")
            return f"失败: {e}"
        except Exception as e:
            logger.error(f"{channel.describe()} 发送异常：{e}", exc_info=True)
            return f"异常: {e}"

    def get_available_channels(self) -> List[str]:
        """
        获取当前渠道列表
        :return: 渠道描述列表
        """
        with self._lock:
            return [c.describe() for c in self.channels]

    def dispose(self):
        """释放所有渠道"""
        with self._lock:
            channels, self.channels = self.channels, []
        for channel in channels:
            channel.dispose()

    def shutdown(self, wait_pending: bool = False):
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait_pending)
        self.dispose()
