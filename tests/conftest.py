from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest
from requests import exceptions as req_exc

from traffic_survey.controller.dashboard_controller import DashboardController
from traffic_survey.domain.models import (
    DateWindow,
    ParkingEvent,
    ParkingFlowSample,
    TrafficObservation,
    WeatherSample,
)
from traffic_survey.domain.services.aggregation import AggregationService
from traffic_survey.infrastructure.repositories.mock_data import MockRecordSource
from traffic_survey.infrastructure.repositories.record_store import RecordStore


@dataclass
class DummyResponse:
    """requests.Response の代わりに使う最小限のスタブ"""
    payload: Any = None
    status_code: int = 200
    json_error: bool = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise req_exc.HTTPError(f"HTTP {self.status_code}", response=self)

    def json(self) -> Any:
        if self.json_error:
            raise ValueError("No JSON object could be decoded")
        return self.payload


@dataclass
class RecordingRequest:
    """requests.get 互換の呼び出しを記録し、用意した応答を順に返す"""
    responses: List[Any]
    calls: List[Dict[str, Any]] = field(default_factory=list)

    def __call__(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class StubSource:
    """種別ごとに固定のレコードを返すデータソース"""

    def __init__(self, records: Optional[Dict[Any, List[Any]]] = None):
        self.records = records or {}
        self.calls = []

    def fetch_records(self, kind, window=None):
        self.calls.append((kind, window))
        return list(self.records.get(kind, []))


def traffic(timestamp, speed=None, vehicle_class="car", direction="left", object_id=1):
    return TrafficObservation(
        timestamp=timestamp,
        object_id=object_id,
        vehicle_class=vehicle_class,
        direction=direction,
        speed_kmh=speed,
    )


def parking(timestamp, direction="in", kana="さ", city="神戸", vehicle_type="car"):
    return ParkingEvent(
        timestamp=timestamp,
        object_id=1,
        vehicle_type=vehicle_type,
        direction=direction,
        region_label=city,
        engine_size=300,
        kana_classifier=kana,
        plate_number="12-34",
    )


def parking_flow(timestamp, region="Osaka", stay=100, entries=1, exits=0, rate=0.5):
    return ParkingFlowSample(
        timestamp=timestamp,
        plate_region=region,
        stay_duration=stay,
        entry_count=entries,
        exit_count=exits,
        occupancy_rate=rate,
    )


def weather(day, condition="sunny", temperature=10, humidity=50):
    return WeatherSample(date=day, condition=condition, temperature_c=temperature, humidity_percent=humidity)


def window(start, end=None):
    return DateWindow(start=start, end=end or start)


@pytest.fixture
def service():
    return AggregationService()


@pytest.fixture
def mock_controller():
    return DashboardController(source=MockRecordSource(), store=RecordStore(), service=AggregationService())


TRAFFIC_CSV = (
    "timestamp,object_id,class_name,direction,speed_kmh\n"
    "2024-02-01 09:05:00,1,car,L,42.5\n"
    "2024-02-01 09:40:00,2,truck,R,25\n"
    "2024-02-01 10:15:00,3,bus,L,31.2\n"
)
