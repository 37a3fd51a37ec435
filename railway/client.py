"""
12306 余票查询客户端
"""

import threading
from datetime import date as Date, datetime, timedelta
from typing import Callable, List, Optional

import requests

from logger import get_logger
from .cache import TicketCache
from .errors import DateRangeError, MalformedRecordError, NetworkError, QueryCancelled, RemoteDataError
from .http import RetryPolicy, create_session, fetch_with_retry
from .records import TrainRecord, parse_train_record

logger = get_logger(__name__)

QUERY_URL = "https://kyfw.12306.cn/otn/leftTicket/queryG"
MAX_DAYS_AHEAD = 15


def parse_date(value: str) -> Date:
    """解析 YYYYMMDD 格式的日期"""
    return datetime.strptime(value, "%Y%m%d").date()


def check_date_range(value: str, today: Date):
    """
    日期需为 0~15 天内
    :raises DateRangeError: 日期越界或格式错误
    """
    try:
        day = parse_date(value)
    except (TypeError, ValueError):
        raise DateRangeError(f"日期格式错误: {value}") from None
    if day < today or day > today + timedelta(days=MAX_DAYS_AHEAD):
        raise DateRangeError(f"日期需为0~{MAX_DAYS_AHEAD}天内: {value}")
    return day


class TicketClient:
    """带缓存与重试的余票查询客户端"""

    def __init__(self, session: requests.Session = None, cache: TicketCache = None,
                 policy: RetryPolicy = None, sleep: Optional[Callable[[float], None]] = None,
                 today: Callable[[], Date] = Date.today):
        """
        :param sleep: 等待函数，默认在 cancel() 后立即返回
        """
        self.session = session or create_session()
        self.cache = cache if cache is not None else TicketCache()
        self.policy = policy or RetryPolicy()
        self._cancelled = threading.Event()
        self._sleep = sleep or self._cancelled.wait
        self._today = today

    def start(self):
        """启动缓存后台清理"""
        self.cache.start_sweeper()

    def fetch_availability(self, date: str, from_code: str, to_code: str, delay: float = 0) -> dict:
        """
        查询余票原始数据，优先使用缓存
        :param date: 出发日期 YYYYMMDD
        :param from_code: 出发站电报码
        :param to_code: 到达站电报码
        :param delay: 实际发起网络请求前的等待秒数
        :return: 12306 返回的 JSON
        """
        day = check_date_range(date, self._today())

        cache_key = date + from_code + to_code
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"使用缓存数据: {cache_key}")
            return cached

        if delay:
            self._sleep(delay)
        self._check_cancelled()

        params = {
            "leftTicketDTO.train_date": day.strftime("%Y-%m-%d"),
            "leftTicketDTO.from_station": from_code,
            "leftTicketDTO.to_station": to_code,
            "purpose_codes": "ADULT",
        }
        try:
            response = fetch_with_retry(
                self.session, QUERY_URL, self.policy, sleep=self._sleep, stop_event=self._cancelled,
                params=params, headers={"Cookie": "JSESSIONID="},
            )
        except NetworkError:
            self._check_cancelled()
            raise

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteDataError(f"余票数据解析失败: {e}") from e
        if not isinstance(data, dict) or not data.get("status"):
            raise RemoteDataError("获取余票数据失败")

        self.cache.set(cache_key, data)
        logger.debug(f"缓存新数据: {cache_key}")
        return data

    def query_trains(self, date: str, from_code: str, to_code: str, delay: float = 0) -> List[TrainRecord]:
        """查询并解析车次列表，无法解析的行会被跳过"""
        data = self.fetch_availability(date, from_code, to_code, delay)
        payload = data.get("data")
        rows = payload.get("result") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise RemoteDataError("余票数据缺少 data.result")

        records = []
        for row in rows:
            try:
                records.append(parse_train_record(row))
            except MalformedRecordError as e:
                logger.warning(f"跳过无法解析的车次记录: {e}")
        logger.debug(f"查询完成: {from_code} -> {to_code}, 返回 {len(records)} 条记录")
        return records

    def cancel(self):
        """中止正在进行的访问延迟与重试，之后的查询直接抛出 QueryCancelled"""
        self._cancelled.set()

    def _check_cancelled(self):
        if self._cancelled.is_set():
            raise QueryCancelled("查询已中止")

    def clear_cache(self):
        self.cache.clear()

    def cache_stats(self) -> dict:
        return self.cache.stats()

    def close(self):
        self.cancel()
        self.cache.stop_sweeper()
        self.session.close()
