"""
通知系统基类和数据类定义
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime


class ChannelConfigError(Exception):
    """推送渠道配置不完整，构造时即抛出"""


class ChannelDeliveryError(Exception):
    """推送发送失败（网络错误或对方拒绝）"""


@dataclass
class AlertMessage:
    """一条提醒消息"""
    time: str       # 发送时间
    content: str    # 消息内容

    @classmethod
    def now(cls, content: str) -> "AlertMessage":
        return cls(time=datetime.now().strftime("%Y-%m-%d %H:%M:%S"), content=content)

    def to_dict(self) -> dict:
        return asdict(self)


class NotificationChannel(ABC):
    """通知渠道抽象基类"""

    #: 渠道名称
    name = "CRTM Notification"
    #: 必填配置项
    required = ()

    def __init__(self, config: dict):
        self.config = config
        self._disposed = False
        self._require(*self.required)

    @abstractmethod
    def send(self, message: AlertMessage):
        """
        发送通知
        :param message: 提醒消息
        :raises ChannelDeliveryError: 发送失败
        """

    @property
    def description(self) -> str:
        """渠道说明（如 Webhook 域名、收件人等）"""
        return ""

    def describe(self) -> str:
        return f"{self.name} ({self.description})" if self.description else self.name

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self):
        """释放渠道持有的资源，可重复调用"""
        if self._disposed:
            return
        self._disposed = True
        self._release()

    def _release(self):
        pass

    def _require(self, *keys: str):
        missing = [k for k in keys if not self.config.get(k)]
        if missing:
            raise ChannelConfigError(f"{self.name} 配置不完整，缺少: {', '.join(missing)}")
