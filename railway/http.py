"""
HTTP 会话与重试工具
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

import requests
from tenacity import (Retrying, before_sleep_log, retry_if_exception_type,
                      stop_after_attempt, stop_after_delay, stop_when_event_set,
                      wait_exponential)

from logger import get_logger
from .errors import NetworkError

logger = get_logger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Referer": "https://kyfw.12306.cn/otn/leftTicket/init",
}


@dataclass
class RetryPolicy:
    """重试配置"""
    max_retries: int = 3               # 首次请求之后的最大重试次数
    retry_delay: float = 1.0           # 基础等待秒数
    backoff_multiplier: float = 2.0    # 指数退避倍数
    max_total_seconds: float = 60.0    # 总重试时间上限
    timeout: float = 10.0              # 单次请求超时


class HTTPStatusError(requests.RequestException):
    """非 2xx 响应"""


def create_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(DEFAULT_HEADERS)
    return session


def fetch_with_retry(session: requests.Session, url: str, policy: RetryPolicy = None,
                     sleep: Callable[[float], None] = time.sleep, stop_event: threading.Event = None,
                     **kwargs) -> requests.Response:
    """
    带指数退避重试的 GET 请求
    :param session: requests 会话
    :param url: 请求地址
    :param policy: 重试配置
    :param sleep: 等待函数（测试时可替换）
    :param stop_event: 置位后不再重试
    :return: 成功的响应
    :raises NetworkError: 重试耗尽后仍失败
    """
    policy = policy or RetryPolicy()
    kwargs.setdefault("timeout", policy.timeout)

    stop = stop_after_attempt(policy.max_retries + 1) | stop_after_delay(policy.max_total_seconds)
    if stop_event is not None:
        stop = stop | stop_when_event_set(stop_event)

    retryer = Retrying(
        reraise=True,
        sleep=sleep,
        stop=stop,
        wait=wait_exponential(multiplier=policy.retry_delay, exp_base=policy.backoff_multiplier),
        retry=retry_if_exception_type(requests.RequestException),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    try:
        for attempt in retryer:
            with attempt:
                response = session.get(url, **kwargs)
                if not response.ok:
                    raise HTTPStatusError(f"HTTP {response.status_code}: {response.reason}")
                return response
    except requests.RequestException as e:
        raise NetworkError(f"网络请求失败: {e}", last_error=e) from e
