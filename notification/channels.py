"""
各种通知渠道的具体实现
"""

import base64
import hashlib
import hmac
import smtplib
import ssl
import threading
import time
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional
from urllib.parse import parse_qs, urlparse

import requests

from .base import AlertMessage, ChannelConfigError, ChannelDeliveryError, NotificationChannel

TITLE = "车票监控"


def _plain_text(message: AlertMessage) -> str:
    return f"[{TITLE}]\n🕒 时间：{message.time}\n📝 内容：{message.content}"


class WebhookChannel(NotificationChannel):
    """基于 HTTP POST 的推送渠道"""

    timeout = 10

    def __init__(self, config: dict):
        super().__init__(config)
        self.session = requests.Session()

    def _post(self, url: str, payload: dict) -> requests.Response:
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ChannelDeliveryError(f"{self.name} 发送失败：{e}") from e
        if not response.ok:
            raise ChannelDeliveryError(f"{self.name} 发送失败：HTTP {response.status_code}")
        return response

    def _json(self, response: requests.Response) -> dict:
        try:
            result = response.json()
        except ValueError as e:
            raise ChannelDeliveryError(f"{self.name} 返回内容无法解析：{e}") from e
        if not isinstance(result, dict):
            raise ChannelDeliveryError(f"{self.name} 返回内容格式错误：{result!r}")
        return result

    def _release(self):
        self.session.close()


class LarkNotification(WebhookChannel):
    """飞书机器人通知"""

    name = "飞书推送"
    required = ("webhook",)

    def __init__(self, config: dict):
        super().__init__(config)
        self.webhook = config["webhook"]
        self.secret = config.get("secret")

    @property
    def description(self) -> str:
        host = urlparse(self.webhook).netloc
        return f"{host} (已启用签名校验)" if self.secret else host

    def sign(self, timestamp: str) -> str:
        string_to_sign = f"{timestamp}\n{self.secret}"
        hmac_code = hmac.new(string_to_sign.encode("utf-8"), digestmod=hashlib.sha256).digest()
        return base64.b64encode(hmac_code).decode("utf-8")

    def send(self, message: AlertMessage):
        payload = {
            "msg_type": "text",
            "content": {"text": _plain_text(message)},
        }
        if self.secret:
            timestamp = str(int(time.time()))
            payload["timestamp"] = timestamp
            payload["sign"] = self.sign(timestamp)

        result = self._json(self._post(self.webhook, payload))
        code = result.get("code", result.get("StatusCode"))
        if code != 0:
            raise ChannelDeliveryError(f"{self.name} 发送失败：{result.get('msg', result)}")


class TelegramNotification(WebhookChannel):
    """Telegram Bot 通知"""

    name = "Telegram推送"
    required = ("botToken", "chatId")
    api_base = "https://api.telegram.org"

    def __init__(self, config: dict):
        super().__init__(config)
        self.bot_token = config["botToken"]
        self.chat_id = config["chatId"]

    @property
    def description(self) -> str:
        return f"Chat ID: {self.chat_id}"

    def send(self, message: AlertMessage):
        text = f"🚄 *{TITLE}*\n\n🕒 *时间：* {message.time}\n📝 *内容：* {message.content}"
        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        payload = {"chat_id": self.chat_id, "text": text, "parse_mode": "Markdown"}

        result = self._json(self._post(url, payload))
        if not result.get("ok"):
            raise ChannelDeliveryError(f"{self.name} 发送失败：{result.get('description', result)}")


class WeChatWorkNotification(WebhookChannel):
    """企业微信机器人通知"""

    name = "企业微信推送"
    required = ("webhook",)

    def __init__(self, config: dict):
        super().__init__(config)
        self.webhook = config["webhook"]

    @property
    def description(self) -> str:
        key = parse_qs(urlparse(self.webhook).query).get("key", [""])[0]
        return f"{key[:8]}..." if key else urlparse(self.webhook).netloc

    def send(self, message: AlertMessage):
        payload = {"msgtype": "text", "text": {"content": _plain_text(message)}}
        result = self._json(self._post(self.webhook, payload))
        if result.get("errcode") != 0:
            raise ChannelDeliveryError(f"{self.name} 发送失败：{result.get('errmsg', result)}")


class BarkNotification(WebhookChannel):
    """Bark (iOS) 推送"""

    name = "Bark推送"
    required = ("deviceKey",)
    default_server = "https://api.day.app"

    def __init__(self, config: dict):
        super().__init__(config)
        self.device_key = config["deviceKey"]
        self.server_url = (config.get("serverUrl") or self.default_server).rstrip("/")

    @property
    def description(self) -> str:
        desc = f"设备: {self.device_key[:8]}..."
        if self.config.get("group"):
            desc += f", 分组: {self.config['group']}"
        return desc

    def build_payload(self, message: AlertMessage) -> dict:
        payload = {
            "device_key": self.device_key,
            "title": TITLE,
            "body": f"{message.content}\n{message.time}",
            "group": self.config.get("group") or "火车票监控",
            "sound": self.config.get("sound") or "default",
        }
        for key in ("level", "icon", "url"):
            if self.config.get(key):
                payload[key] = self.config[key]
        if self.config.get("autoCopy"):
            payload["autoCopy"] = "1"
            payload["copy"] = message.content
        if "isArchive" in self.config:
            payload["isArchive"] = 1 if self.config["isArchive"] else 0
        return payload

    def send(self, message: AlertMessage):
        result = self._json(self._post(f"{self.server_url}/push", self.build_payload(message)))
        if result.get("code") != 200:
            raise ChannelDeliveryError(f"{self.name} 发送失败：{result.get('message', result)}")


class SMTPNotification(NotificationChannel):
    """SMTP 邮件通知"""

    name = "SMTP邮件推送"
    required = ("host", "user", "pass", "to")
    subject = "车票监控提醒"
    timeout = 15

    def __init__(self, config: dict):
        super().__init__(config)
        self.host = str(config["host"])
        try:
            self.port = int(config.get("port") or 587)
        except (TypeError, ValueError):
            raise ChannelConfigError(f"{self.name} 端口号错误: {config.get('port')}") from None
        # YAML 会把纯数字的密码解析成 int
        self.user = str(config["user"])
        self.password = str(config["pass"])
        self.sender = str(config.get("from") or config["user"])
        self.to = str(config["to"])
        self._server: Optional[smtplib.SMTP] = None
        self._lock = threading.Lock()

    @property
    def description(self) -> str:
        return f"邮箱: {self.to} ({self.host})"

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.port == 465:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if self.port != 465:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls(context=context)
                    server.ehlo()
            server.login(self.user, self.password)
        except Exception:
            server.close()
            raise
        return server

    def build_email(self, message: AlertMessage) -> EmailMessage:
        email = EmailMessage()
        email["Subject"] = self.subject
        email["From"] = formataddr((self.sender, self.user))
        email["To"] = self.to
        email.set_content(f"时间：{message.time}\n\n{message.content}\n")
        return email

    def send(self, message: AlertMessage):
        email = self.build_email(message)
        with self._lock:
            try:
                if self._server is None:
                    self._server = self._connect()
                self._server.send_message(email)
            except Exception as e:
                self._close_server()
                raise ChannelDeliveryError(f"{self.name} 发送失败：{e}") from e

    def _close_server(self):
        server, self._server = self._server, None
        if server is None:
            return
        try:
            server.quit()
        except (smtplib.SMTPException, OSError):
            server.close()

    def _release(self):
        with self._lock:
            self._close_server()


class HTTPNotification(WebhookChannel):
    """通用 HTTP 推送，POST 原始消息 JSON"""

    name = "HTTP 推送"
    required = ("url",)

    def __init__(self, config: dict):
        super().__init__(config)
        self.url = config["url"]
        if not urlparse(self.url).netloc:
            self.session.close()
            raise ChannelConfigError(f"{self.name} 地址格式错误: {self.url}")

    @property
    def description(self) -> str:
        return urlparse(self.url).netloc

    def send(self, message: AlertMessage):
        self._post(self.url, message.to_dict())


CHANNEL_TYPES = {
    "Lark": LarkNotification,
    "Telegram": TelegramNotification,
    "WechatWork": WeChatWorkNotification,
    "Bark": BarkNotification,
    "SMTP": SMTPNotification,
    "HTTP": HTTPNotification,
}


def create_channel(config: dict) -> NotificationChannel:
    """
    根据配置中的 type 创建推送渠道
    :raises ChannelConfigError: 类型未知或配置不完整
    """
    if not isinstance(config, dict):
        raise ChannelConfigError(f"推送配置格式错误: {config!r}")
    channel_type = config.get("type")
    channel_cls = CHANNEL_TYPES.get(channel_type)
    if channel_cls is None:
        raise ChannelConfigError(f"未知的推送类型: {channel_type}")
    return channel_cls(config)
