"""
车站名称与电报码的互查
"""

import json
import os
import re
import threading
import time
from typing import Callable, Dict, Optional

import requests

from logger import get_logger
from .errors import NetworkError, StationNotFoundError
from .http import RetryPolicy, create_session, fetch_with_retry

logger = get_logger(__name__)

STATION_URL = "https://kyfw.12306.cn/otn/resources/js/framework/station_name.js"


def parse_station_list(text: str) -> Dict[str, str]:
    """
    解析 station_name.js
    形如 var station_names ='@bjb|北京北|VAP|beijingbei|bjb|0@...'
    :return: {站名: 电报码}
    """
    matched = re.search(r"'(.+)'", text)
    if not matched:
        return {}
    stations = {}
    for station in matched.group(1).split("@")[1:]:
        details = station.split("|")
        if len(details) > 2 and details[1] and details[2]:
            stations[details[1]] = details[2]
    return stations


class StationDirectory:
    """车站目录，首次使用时加载一次并缓存在内存中"""

    def __init__(self, session: requests.Session = None, policy: RetryPolicy = None,
                 cache_file: Optional[str] = None, sleep: Callable[[float], None] = time.sleep):
        """
        :param session: requests 会话
        :param policy: 重试配置
        :param cache_file: 本地缓存文件路径，远程同步失败时使用
        """
        self.session = session or create_session()
        self.policy = policy or RetryPolicy()
        self.cache_file = cache_file
        self._sleep = sleep
        self._lock = threading.Lock()
        self.station_code: Optional[Dict[str, str]] = None
        self.station_name: Optional[Dict[str, str]] = None

    def load(self):
        """同步车站编码数据，失败时回退到本地缓存文件"""
        with self._lock:
            stations = {}
            try:
                logger.debug("开始同步车站数据")
                url = f"{STATION_URL}?v={time.time()}"
                response = fetch_with_retry(self.session, url, self.policy, sleep=self._sleep)
                stations = parse_station_list(response.text)
                if stations:
                    logger.debug(f"车站数据同步完成，共 {len(stations)} 个站点")
                    self._save_cache(stations)
            except NetworkError as e:
                logger.warning(f"车站数据同步失败，使用缓存: {e}")

            if not stations:
                stations = self._load_cache()
            if not stations and self.station_code:
                return

            self.station_code = stations
            self.station_name = {code: name for name, code in stations.items()}

    def _save_cache(self, stations: Dict[str, str]):
        if not self.cache_file:
            return
        try:
            with open(self.cache_file, "w", encoding="utf-8") as f:
                json.dump(stations, f, ensure_ascii=False, indent=4)
        except OSError as e:
            logger.warning(f"车站缓存写入失败: {e}")

    def _load_cache(self) -> Dict[str, str]:
        if not self.cache_file or not os.path.exists(self.cache_file):
            return {}
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                stations = json.load(f)
            logger.debug(f"使用缓存车站数据，共 {len(stations)} 个站点")
            return stations
        except (OSError, ValueError) as e:
            logger.error(f"读取缓存车站数据失败: {e}", exc_info=True)
            return {}

    def _ensure_loaded(self):
        if self.station_code is None:
            self.load()

    def get_code(self, name: str, refresh: bool = True) -> str:
        """
        站名 -> 电报码，站名不在字典中时重新同步一次
        :raises StationNotFoundError: 站名无法识别
        """
        self._ensure_loaded()
        code = self.station_code.get(name)
        if code is None and refresh:
            logger.debug(f"站名不在字典中，尝试重新同步: {name}")
            self.load()
            code = self.station_code.get(name)
        if code is None:
            raise StationNotFoundError(f"站名匹配失败: {name}")
        return code

    def get_name(self, code: str) -> str:
        """电报码 -> 站名，未知时返回电报码本身"""
        self._ensure_loaded()
        return self.station_name.get(code, code)
