"""
通知系统模块
"""

from .base import (
    AlertMessage,
    NotificationChannel,
    ChannelConfigError,
    ChannelDeliveryError,
)
from .manager import NotificationManager
from .channels import (
    CHANNEL_TYPES,
    create_channel,
    LarkNotification,
    TelegramNotification,
    WeChatWorkNotification,
    BarkNotification,
    SMTPNotification,
    HTTPNotification,
)

__all__ = [
    'AlertMessage',
    'NotificationChannel',
    'ChannelConfigError',
    'ChannelDeliveryError',
    'NotificationManager',
    'CHANNEL_TYPES',
    'create_channel',
    'LarkNotification',
    'TelegramNotification',
    'WeChatWorkNotification',
    'BarkNotification',
    'SMTPNotification',
    'HTTPNotification',
]
