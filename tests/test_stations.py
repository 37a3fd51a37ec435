"""Tests for the station directory."""
import json

import pytest
import requests

from conftest import FakeResponse
from railway.errors import StationNotFoundError
from railway.stations import StationDirectory, parse_station_list

STATION_JS = ("var station_names ='@bjb|北京北|VAP|beijingbei|bjb|0|0357|北京|||"
              "@bjn|北京南|VNP|beijingnan|bjn|2|0357|北京|||"
              "@shq|上海虹桥|AOH|shanghaihongqiao|shhq|3|0712|上海|||';")


class TestParseStationList:

    def test_parse(self):
        stations = parse_station_list(STATION_JS)
        assert stations == {"北京北": "VAP", "北京南": "VNP", "上海虹桥": "AOH"}

    def test_unexpected_text(self):
        assert parse_station_list("<html>maintenance</html>") == {}


class TestStationDirectory:

    def test_lookup_loads_once(self, session, fake_sleep):
        session.get.return_value = FakeResponse(text=STATION_JS)
        directory = StationDirectory(session=session, sleep=fake_sleep)

        assert directory.get_code("北京南") == "VNP"
        assert directory.get_name("AOH") == "上海虹桥"
        assert directory.get_code("北京北") == "VAP"
        assert session.get.call_count == 1

    def test_unknown_code_returns_code(self, session, fake_sleep):
        session.get.return_value = FakeResponse(text=STATION_JS)
        directory = StationDirectory(session=session, sleep=fake_sleep)
        assert directory.get_name("XYZ") == "XYZ"

    def test_unknown_name_resyncs_then_raises(self, session, fake_sleep):
        session.get.return_value = FakeResponse(text=STATION_JS)
        directory = StationDirectory(session=session, sleep=fake_sleep)

        with pytest.raises(StationNotFoundError):
            directory.get_code("火星站")
        assert session.get.call_count == 2

    def test_sync_writes_cache_file(self, session, fake_sleep, tmp_path):
        cache_file = tmp_path / "station_codes.json"
        session.get.return_value = FakeResponse(text=STATION_JS)
        StationDirectory(session=session, cache_file=str(cache_file), sleep=fake_sleep).load()

        assert json.loads(cache_file.read_text(encoding="utf-8"))["北京南"] == "VNP"

    def test_falls_back_to_cache_file(self, session, fake_sleep, tmp_path):
        cache_file = tmp_path / "station_codes.json"
        cache_file.write_text(json.dumps({"广州南": "IZQ"}, ensure_ascii=False), encoding="utf-8")
        session.get.side_effect = requests.ConnectionError("offline")

        directory = StationDirectory(session=session, cache_file=str(cache_file), sleep=fake_sleep)
        assert directory.get_code("广州南") == "IZQ"

    def test_failed_resync_keeps_loaded_data(self, session, fake_sleep):
        session.get.side_effect = [FakeResponse(text=STATION_JS)] + [requests.ConnectionError("offline")] * 4
        directory = StationDirectory(session=session, sleep=fake_sleep)
        directory.load()
        directory.load()
        assert directory.get_code("北京南", refresh=False) == "VNP"
