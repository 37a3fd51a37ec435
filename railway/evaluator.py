"""
余票判断
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from logger import get_logger
from .errors import QueryCancelled, TicketMonitorError
from .records import HAS_TICKET, NO_TICKET, TrainRecord

logger = get_logger(__name__)

SOLD_OUT = "区间无票"
ESTIMATE_CAP = 20


@dataclass(frozen=True)
class Availability:
    """余票判断结果"""
    has_availability: bool
    summary: str
    total_estimate: Optional[Union[int, str]] = None


def _estimate(total: float) -> Union[int, str]:
    if total >= ESTIMATE_CAP:
        return f"≥{ESTIMATE_CAP}"
    return int(total)


def _seat_count(value: str) -> float:
    if value == HAS_TICKET:
        return math.inf
    try:
        return int(value)
    except ValueError:
        # 未知标记按有票处理但不计数
        return 0


def check_seats(record: TrainRecord, seat_filter: Optional[Iterable[str]] = None) -> Availability:
    """
    仅根据本条记录判断余票，不做全程查询
    :param record: 车次记录
    :param seat_filter: 需要关注的坐席，None 表示全部
    """
    wanted = set(seat_filter) if seat_filter is not None else None
    remain_types = []
    remain_total = 0
    for seat, value in record.tickets.items():
        if wanted is not None and seat not in wanted:
            continue
        if value == "" or value == NO_TICKET:
            continue
        remain_types.append(f"{seat} {value}")
        remain_total += _seat_count(value)

    if remain_types:
        return Availability(True, " / ".join(remain_types), _estimate(remain_total))
    return Availability(False, SOLD_OUT)


class AvailabilityEvaluator:
    """区间无票时可选地查询全程余票"""

    def __init__(self, client=None, delay: float = 0):
        """
        :param client: TicketClient，仅在需要查询全程票时使用
        :param delay: 全程查询未命中缓存时的访问延迟（秒）
        """
        self.client = client
        self.delay = delay

    def evaluate(self, record: TrainRecord, seat_filter: Optional[Iterable[str]] = None,
                 check_round_trip: bool = False) -> Availability:
        result = check_seats(record, seat_filter)
        if result.has_availability or not check_round_trip:
            return result

        full_route = self._find_full_route(record)
        if full_route is None:
            return Availability(False, f"{SOLD_OUT}，全程未知")

        full = check_seats(full_route)
        if full.has_availability:
            return Availability(False, f"{SOLD_OUT}，全程有票 ({full.total_estimate}张)", full.total_estimate)
        return Availability(False, f"{SOLD_OUT}，全程无票")

    def _find_full_route(self, record: TrainRecord) -> Optional[TrainRecord]:
        if self.client is None:
            return None
        try:
            candidates = self.client.query_trains(
                record.start_train_date,
                record.start_station_telecode,
                record.end_station_telecode,
                delay=self.delay,
            )
        except QueryCancelled:
            raise
        except TicketMonitorError as e:
            logger.warning(f"{record.station_train_code} 全程余票查询失败: {e}")
            return None

        for candidate in candidates:
            if (candidate.station_train_code == record.station_train_code
                    and candidate.from_station_telecode == record.start_station_telecode
                    and candidate.to_station_telecode == record.end_station_telecode):
                return candidate
        return None
