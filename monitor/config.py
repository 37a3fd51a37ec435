"""
监控配置加载与校验
"""

import copy
from dataclasses import dataclass, field
from datetime import date as Date, datetime
from typing import List, Optional

import yaml
from prettytable import PrettyTable

DEFAULT_CONFIG = {
    "watch": [],
    "notifications": [],
    "interval": 15,
    "delay": 5,
    "logging": {
        "level": "INFO",
        "max_size_mb": 10,
        "backup_count": 5,
        "console_output": True,
    },
}


class ConfigError(Exception):
    """配置文件错误，启动时遇到即退出"""


@dataclass
class TrainFilter:
    """车次筛选条件"""
    code: str
    from_station: Optional[str] = None
    to_station: Optional[str] = None
    seat_category: Optional[List[str]] = None   # None 表示全部席别
    check_round_trip: bool = False

    def matches(self, code: str, from_name: str, to_name: str) -> bool:
        return (self.code == code
                and (self.from_station is None or self.from_station == from_name)
                and (self.to_station is None or self.to_station == to_name))


@dataclass
class Watch:
    """一个监控任务"""
    date: str           # YYYYMMDD
    from_station: str
    to_station: str
    trains: List[TrainFilter] = field(default_factory=list)


@dataclass
class MonitorConfig:
    watch: List[Watch]
    notifications: List[dict]
    interval: float = 15       # 查询间隔（分钟）
    delay: float = 5           # 访问延迟（秒）
    logging: dict = field(default_factory=dict)


def _deep_update(d, u):
    """深度合并字典"""
    for k, v in u.items():
        if isinstance(v, dict) and k in d and isinstance(d[k], dict):
            _deep_update(d[k], v)
        else:
            d[k] = v
    return d


def _normalize_date(value) -> str:
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, Date):
        return value.strftime("%Y%m%d")
    text = str(value).strip().replace("-", "")
    try:
        datetime.strptime(text, "%Y%m%d")
    except ValueError:
        raise ConfigError(f"日期格式错误: {value}") from None
    return text


def _parse_train(raw) -> TrainFilter:
    if not isinstance(raw, dict) or not raw.get("code"):
        raise ConfigError("未填写车次号")
    seats = raw.get("seatCategory")
    if seats is not None:
        if isinstance(seats, str):
            seats = [seats]
        if not isinstance(seats, list):
            raise ConfigError(f"{raw['code']} 席别格式错误: {seats!r}")
        seats = [str(s) for s in seats]
    return TrainFilter(
        code=str(raw["code"]),
        from_station=raw.get("from"),
        to_station=raw.get("to"),
        seat_category=seats,
        check_round_trip=bool(raw.get("checkRoundTrip", False)),
    )


def _parse_watch(raw) -> Watch:
    if not isinstance(raw, dict) or not raw.get("date") or not raw.get("from") or not raw.get("to"):
        raise ConfigError("搜索条件不完整")
    trains = raw.get("trains") or []
    if not isinstance(trains, list):
        raise ConfigError("trains 需为列表")
    return Watch(
        date=_normalize_date(raw["date"]),
        from_station=str(raw["from"]),
        to_station=str(raw["to"]),
        trains=[_parse_train(t) for t in trains],
    )


def parse_config(raw: dict) -> MonitorConfig:
    """
    校验并转换配置字典
    :raises ConfigError: 配置不完整
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("配置文件格式错误")
    merged = _deep_update(copy.deepcopy(DEFAULT_CONFIG), raw)

    if not merged["watch"] or not isinstance(merged["watch"], list):
        raise ConfigError("未配置搜索条件")
    notifications = merged["notifications"] or []
    if not isinstance(notifications, list):
        raise ConfigError("notifications 需为列表")

    try:
        interval = float(merged["interval"] or DEFAULT_CONFIG["interval"])
        delay = float(merged["delay"] or DEFAULT_CONFIG["delay"])
    except (TypeError, ValueError):
        raise ConfigError("查询间隔或访问延迟格式错误") from None
    if interval <= 0 or delay < 0:
        raise ConfigError("查询间隔需大于 0，访问延迟不能为负")

    return MonitorConfig(
        watch=[_parse_watch(w) for w in merged["watch"]],
        notifications=notifications,
        interval=interval,
        delay=delay,
        logging=merged["logging"] or {},
    )


def load_config(path: str) -> MonitorConfig:
    """
    读取 YAML 配置文件
    :raises ConfigError: 文件不存在、无法解析或内容不完整
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"{path} 不存在") from None
    except OSError as e:
        raise ConfigError(f"读取 {path} 时发生错误：{e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"解析 {path} 时发生错误：{e}") from e
    return parse_config(raw)


def describe_config(config: MonitorConfig) -> str:
    """生成配置摘要，用于日志与启动提醒"""
    table = PrettyTable()
    table.field_names = ["日期", "区间", "车次", "指定区间", "席别", "查询全程票"]
    for watch in config.watch:
        route = f"{watch.from_station}→{watch.to_station}"
        if not watch.trains:
            table.add_row([watch.date, route, "全部车次", "", "全部席别", ""])
            continue
        for train in watch.trains:
            table.add_row([
                watch.date,
                route,
                train.code,
                f"{train.from_station or '(*)'}→{train.to_station or '(*)'}",
                "/".join(train.seat_category) if train.seat_category else "全部席别",
                "[✓]" if train.check_round_trip else "[×]",
            ])
    return (f"当前配置文件：\n\n{table.get_string()}\n\n"
            f"查询间隔：{config.interval:g}分钟，访问延迟：{config.delay:g}秒")
