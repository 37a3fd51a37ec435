"""
12306 余票查询结果的单行解析
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from .errors import MalformedRecordError

# 字段位置参考 https://kyfw.12306.cn/otn/resources/merged/queryLeftTicket_end_js.js
FIELD_POSITIONS = {
    "secret_str": 0,
    "button_text_info": 1,
    "train_no": 2,
    "station_train_code": 3,
    "start_station_telecode": 4,
    "end_station_telecode": 5,
    "from_station_telecode": 6,
    "to_station_telecode": 7,
    "start_time": 8,
    "arrive_time": 9,
    "lishi": 10,
    "can_web_buy": 11,
    "yp_info": 12,
    "start_train_date": 13,
    "train_seat_feature": 14,
    "location_code": 15,
    "from_station_no": 16,
    "to_station_no": 17,
    "is_support_card": 18,
    "controlled_train_flag": 19,
    "gg_num": 20,
    "gr_num": 21,
    "qt_num": 22,
    "rw_num": 23,
    "rz_num": 24,
    "tz_num": 25,
    "wz_num": 26,
    "yb_num": 27,
    "yw_num": 28,
    "yz_num": 29,
    "ze_num": 30,
    "zy_num": 31,
    "swz_num": 32,
    "srrb_num": 33,
    "yp_ex": 34,
    "seat_types": 35,
    "exchange_train_flag": 36,
    "houbu_train_flag": 37,
    "houbu_seat_limit": 38,
    "yp_info_new": 39,
    "dw_flag": 46,
    "stopcheck_time": 48,
    "country_flag": 49,
    "local_arrive_time": 50,
    "local_start_time": 51,
    "bed_level_info": 53,
    "seat_discount_info": 54,
    "sale_time": 55,
}

FIELD_COUNT = max(FIELD_POSITIONS.values()) + 1

# 坐席名称 -> 字段名；YB 与 SRRB 含义未知，原样透传
SEAT_FIELDS = (
    ("优选一等座", "gg_num"),
    ("高级软卧", "gr_num"),
    ("其他", "qt_num"),
    ("软卧", "rw_num"),
    ("软座", "rz_num"),
    ("特等座", "tz_num"),
    ("无座", "wz_num"),
    ("YB", "yb_num"),
    ("硬卧", "yw_num"),
    ("硬座", "yz_num"),
    ("二等座", "ze_num"),
    ("一等座", "zy_num"),
    ("商务座", "swz_num"),
    ("SRRB", "srrb_num"),
)

SEAT_CATEGORIES = tuple(label for label, _ in SEAT_FIELDS)

NO_TICKET = "无"
HAS_TICKET = "有"


@dataclass(frozen=True)
class TrainRecord:
    """一条车次余票记录"""
    station_train_code: str
    train_no: str
    start_station_telecode: str
    end_station_telecode: str
    from_station_telecode: str
    to_station_telecode: str
    start_time: str
    arrive_time: str
    lishi: str
    start_train_date: str
    fields: Mapping[str, str] = field(repr=False)
    tickets: Mapping[str, str]

    def __getitem__(self, name: str) -> str:
        return self.fields[name]


def parse_train_record(raw: str) -> TrainRecord:
    """
    解析一行 | 分隔的余票记录
    :param raw: 原始行
    :return: TrainRecord
    :raises MalformedRecordError: 字段数量不足
    """
    if not isinstance(raw, str):
        raise MalformedRecordError(f"记录类型错误: {type(raw).__name__}")
    arr = raw.split("|")
    if len(arr) < FIELD_COUNT:
        raise MalformedRecordError(f"字段数量不足: 期望至少 {FIELD_COUNT} 个，实际 {len(arr)} 个")

    fields = {name: arr[pos] for name, pos in FIELD_POSITIONS.items()}
    tickets = {label: fields[name] for label, name in SEAT_FIELDS}

    return TrainRecord(
        station_train_code=fields["station_train_code"],
        train_no=fields["train_no"],
        start_station_telecode=fields["start_station_telecode"],
        end_station_telecode=fields["end_station_telecode"],
        from_station_telecode=fields["from_station_telecode"],
        to_station_telecode=fields["to_station_telecode"],
        start_time=fields["start_time"],
        arrive_time=fields["arrive_time"],
        lishi=fields["lishi"],
        start_train_date=fields["start_train_date"],
        fields=MappingProxyType(fields),
        tickets=MappingProxyType(tickets),
    )
