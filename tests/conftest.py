"""测试公共工具"""
from datetime import date
from unittest.mock import MagicMock

import pytest

from railway.records import FIELD_COUNT, FIELD_POSITIONS, SEAT_FIELDS

TODAY = date(2026, 10, 17)


def make_row(code="G1", start="VNP", end="AOH", from_code="VNP", to_code="AOH",
             start_date="20261020", seats=None, extra=0):
    """按 12306 字段位置拼出一行余票记录，seats 为 {坐席名: 值}"""
    arr = [""] * (FIELD_COUNT + extra)
    values = {
        "secret_str": "secret",
        "button_text_info": "预订",
        "train_no": f"24000000{code}0",
        "station_train_code": code,
        "start_station_telecode": start,
        "end_station_telecode": end,
        "from_station_telecode": from_code,
        "to_station_telecode": to_code,
        "start_time": "09:00",
        "arrive_time": "13:28",
        "lishi": "04:28",
        "can_web_buy": "Y",
        "start_train_date": start_date,
    }
    labels = dict(SEAT_FIELDS)
    for seat, value in (seats or {}).items():
        values[labels[seat]] = value
    for name, value in values.items():
        arr[FIELD_POSITIONS[name]] = value
    return "|".join(arr)


class FakeResponse:
    """最小化的 requests.Response 替身"""

    def __init__(self, payload=None, status_code=200, text=""):
        self._payload = payload
        self.status_code = status_code
        self.reason = "OK" if status_code < 400 else "Error"
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


def ticket_payload(*rows):
    return {"status": True, "httpstatus": 200, "data": {"result": list(rows), "flag": "1", "map": {}}}


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def sleeps():
    """记录所有等待时长，代替 time.sleep"""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
