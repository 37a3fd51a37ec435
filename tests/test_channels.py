"""Tests for the notification channels."""
import base64
import hashlib
import hmac
import smtplib
from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import FakeResponse
from notification.base import AlertMessage, ChannelConfigError, ChannelDeliveryError
from notification.channels import (BarkNotification, HTTPNotification, LarkNotification,
                                   SMTPNotification, TelegramNotification,
                                   WeChatWorkNotification, create_channel)

MESSAGE = AlertMessage(time="2026-10-17 08:00:00", content="G1 北京南→上海虹桥\n二等座 有")


def with_session(channel, response):
    channel.session = MagicMock()
    channel.session.post.return_value = response
    return channel


def posted(channel):
    args, kwargs = channel.session.post.call_args
    return args[0], kwargs["json"]


class TestCreateChannel:

    @pytest.mark.parametrize("config", [
        {"type": "Lark"},
        {"type": "Telegram", "botToken": "123:abc"},
        {"type": "WechatWork", "webhook": ""},
        {"type": "Bark"},
        {"type": "SMTP", "host": "smtp.example.com", "user": "me", "to": "you@example.com"},
        {"type": "HTTP"},
        {"type": "HTTP", "url": "not a url"},
        {"type": "Pigeon", "url": "https://example.com"},
        "Lark",
    ])
    def test_missing_credentials_fail_at_construction(self, config):
        with pytest.raises(ChannelConfigError):
            create_channel(config)

    def test_creates_by_type(self):
        channel = create_channel({"type": "Bark", "deviceKey": "abcdefghijk"})
        assert isinstance(channel, BarkNotification)
        assert channel.describe() == "Bark推送 (设备: abcdefgh...)"


class TestLarkNotification:

    def test_send_plain(self):
        channel = with_session(
            LarkNotification({"webhook": "https://open.feishu.cn/open-apis/bot/v2/hook/abc"}),
            FakeResponse({"code": 0, "msg": "success"}),
        )
        channel.send(MESSAGE)

        url, payload = posted(channel)
        assert url == "https://open.feishu.cn/open-apis/bot/v2/hook/abc"
        assert payload["msg_type"] == "text"
        assert "📝 内容：G1 北京南→上海虹桥" in payload["content"]["text"]
        assert "sign" not in payload

    def test_send_signed(self):
        channel = with_session(
            LarkNotification({"webhook": "https://open.feishu.cn/hook/abc", "secret": "s3cret"}),
            FakeResponse({"StatusCode": 0}),
        )
        with patch("notification.channels.time.time", return_value=1700000000.5):
            channel.send(MESSAGE)

        _, payload = posted(channel)
        expected = base64.b64encode(
            hmac.new(b"1700000000\ns3cret", digestmod=hashlib.sha256).digest()
        ).decode()
        assert payload["timestamp"] == "1700000000"
        assert payload["sign"] == expected
        assert channel.describe() == "飞书推送 (open.feishu.cn (已启用签名校验))"

    def test_remote_rejection(self):
        channel = with_session(
            LarkNotification({"webhook": "https://open.feishu.cn/hook/abc"}),
            FakeResponse({"code": 19021, "msg": "sign match fail"}),
        )
        with pytest.raises(ChannelDeliveryError, match="sign match fail"):
            channel.send(MESSAGE)


class TestTelegramNotification:

    def test_send(self):
        channel = with_session(
            TelegramNotification({"botToken": "123:abc", "chatId": "42"}),
            FakeResponse({"ok": True, "result": {}}),
        )
        channel.send(MESSAGE)

        url, payload = posted(channel)
        assert url == "https://api.telegram.org/bot123:abc/sendMessage"
        assert payload["chat_id"] == "42"
        assert payload["parse_mode"] == "Markdown"
        assert payload["text"].startswith("🚄 *车票监控*")

    def test_http_error(self):
        channel = with_session(
            TelegramNotification({"botToken": "123:abc", "chatId": "42"}),
            FakeResponse({"ok": False}, status_code=401),
        )
        with pytest.raises(ChannelDeliveryError, match="HTTP 401"):
            channel.send(MESSAGE)


class TestWeChatWorkNotification:

    def test_send(self):
        channel = with_session(
            WeChatWorkNotification({"webhook": "https://qyapi.weixin.qq.com/cgi-bin/webhook/send?key=1234567890"}),
            FakeResponse({"errcode": 0, "errmsg": "ok"}),
        )
        channel.send(MESSAGE)

        _, payload = posted(channel)
        assert payload["msgtype"] == "text"
        assert payload["text"]["content"].startswith("[车票监控]")
        assert channel.description == "12345678..."

    def test_errcode(self):
        channel = with_session(
            WeChatWorkNotification({"webhook": "https://qyapi.weixin.qq.com/cgi-bin/webhook/send?key=k"}),
            FakeResponse({"errcode": 93000, "errmsg": "invalid webhook url"}),
        )
        with pytest.raises(ChannelDeliveryError):
            channel.send(MESSAGE)


class TestBarkNotification:

    def test_send_with_options(self):
        channel = with_session(
            BarkNotification({"deviceKey": "key123", "serverUrl": "https://bark.example.com/",
                              "level": "timeSensitive", "autoCopy": True, "isArchive": False}),
            FakeResponse({"code": 200, "message": "success"}),
        )
        channel.send(MESSAGE)

        url, payload = posted(channel)
        assert url == "https://bark.example.com/push"
        assert payload["device_key"] == "key123"
        assert payload["title"] == "车票监控"
        assert payload["group"] == "火车票监控"
        assert payload["level"] == "timeSensitive"
        assert payload["autoCopy"] == "1"
        assert payload["isArchive"] == 0

    def test_transport_error(self):
        channel = BarkNotification({"deviceKey": "key123"})
        channel.session = MagicMock()
        channel.session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ChannelDeliveryError, match="refused"):
            channel.send(MESSAGE)


class TestHTTPNotification:

    def test_send_raw_message(self):
        channel = with_session(HTTPNotification({"url": "https://hooks.example.com/notify"}),
                               FakeResponse(status_code=204))
        channel.send(MESSAGE)

        url, payload = posted(channel)
        assert url == "https://hooks.example.com/notify"
        assert payload == {"time": MESSAGE.time, "content": MESSAGE.content}
        assert channel.describe() == "HTTP 推送 (hooks.example.com)"

    def test_dispose_is_idempotent(self):
        channel = with_session(HTTPNotification({"url": "https://hooks.example.com/notify"}),
                               FakeResponse())
        channel.dispose()
        channel.dispose()
        assert channel.disposed
        channel.session.close.assert_called_once()


class TestSMTPNotification:

    CONFIG = {"host": "smtp.example.com", "port": 587, "user": "me@example.com",
              "pass": "pw", "to": "you@example.com", "from": "车票监控"}

    def test_send_starttls(self):
        with patch("notification.channels.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value
            server.has_extn.return_value = True
            channel = SMTPNotification(self.CONFIG)
            channel.send(MESSAGE)
            channel.send(MESSAGE)

        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=15)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("me@example.com", "pw")
        assert server.send_message.call_count == 2
        email = server.send_message.call_args[0][0]
        assert email["Subject"] == "车票监控提醒"
        assert email["To"] == "you@example.com"

        channel.dispose()
        server.quit.assert_called_once()

    def test_send_ssl(self):
        with patch("notification.channels.smtplib.SMTP_SSL") as smtp_cls:
            channel = SMTPNotification(dict(self.CONFIG, port=465))
            channel.send(MESSAGE)
        assert smtp_cls.call_args[0][:2] == ("smtp.example.com", 465)

    def test_failure_resets_connection(self):
        with patch("notification.channels.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value
            server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
            channel = SMTPNotification(self.CONFIG)
            with pytest.raises(ChannelDeliveryError):
                channel.send(MESSAGE)
        assert channel._server is None

    def test_bad_port(self):
        with pytest.raises(ChannelConfigError):
            SMTPNotification(dict(self.CONFIG, port="abc"))

    def test_numeric_credentials_are_strings(self):
        with patch("notification.channels.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value
            server.has_extn.return_value = False
            channel = SMTPNotification(dict(self.CONFIG, user=10001, to=10002, **{"pass": 123456}))
            channel.send(MESSAGE)

        server.login.assert_called_once_with("10001", "123456")
        assert server.send_message.call_args[0][0]["To"] == "10002"

    def test_unexpected_login_error_closes_connection(self):
        with patch("notification.channels.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value
            server.login.side_effect = AttributeError("'int' object has no attribute 'encode'")
            channel = SMTPNotification(self.CONFIG)
            with pytest.raises(ChannelDeliveryError):
                channel.send(MESSAGE)
            with pytest.raises(ChannelDeliveryError):
                channel.send(MESSAGE)

        assert server.close.call_count == 2
        assert channel._server is None
