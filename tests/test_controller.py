import pytest

from conftest import TRAFFIC_CSV, StubSource, traffic, window
from traffic_survey.controller.dashboard_controller import DashboardController
from traffic_survey.domain.errors import ParseFailure
from traffic_survey.domain.models import RecordKind


def test_load_builds_series_and_breakdowns(mock_controller):
    view = mock_controller.load("traffic", window("2024-01-15"))

    assert [(bucket.key, bucket.count) for bucket in view.series.buckets] == [("06:00", 4), ("07:00", 5), ("08:00", 1)]
    assert set(view.breakdowns) == {"vehicle_class", "direction"}
    assert sum(item.count for item in view.breakdowns["direction"]) == 10
    assert view.weather_summary is None
    assert not view.using_csv


def test_range_selection_buckets_by_day(mock_controller):
    view = mock_controller.load(RecordKind.TRAFFIC, window("2024-01-15", "2024-01-17"))

    assert [(bucket.key, bucket.count) for bucket in view.series.buckets] == [
        ("2024-01-15", 10),
        ("2024-01-16", 10),
        ("2024-01-17", 10),
    ]


def test_empty_selection_is_not_an_error(mock_controller):
    view = mock_controller.load(RecordKind.PARKING, window("2023-12-01"))

    payload = view.to_dict()
    assert payload["empty"] is True
    assert payload["message"] == "選択した日付の駐車場データがありません"
    assert payload["series"]["buckets"] == []
    assert payload["breakdowns"]["usage"] == []
    assert payload["records"] == []


def test_stale_response_is_discarded():
    controller = DashboardController(source=StubSource({RecordKind.TRAFFIC: [traffic("2024-01-15 09:00", 40)]}))

    first = controller.begin(RecordKind.TRAFFIC, window("2024-01-14"))
    second = controller.begin(RecordKind.TRAFFIC, window("2024-01-15"))

    # 古い要求の応答が後から届いても表示には使わない
    assert controller.complete(first, controller.fetch(first)) is None
    view = controller.complete(second, controller.fetch(second))
    assert view.selection.window == window("2024-01-15")
    assert view.series.record_count == 1


def test_requests_for_other_kinds_stay_current():
    controller = DashboardController(source=StubSource())

    traffic_ticket = controller.begin(RecordKind.TRAFFIC, window("2024-01-15"))
    controller.begin(RecordKind.WEATHER, window("2024-01-15"))

    assert controller.complete(traffic_ticket, []) is not None


def test_uploaded_csv_takes_precedence_until_cleared(mock_controller):
    parsed = mock_controller.upload_csv("traffic", "survey.csv", TRAFFIC_CSV)

    assert parsed.record_count == 3
    view = mock_controller.load(RecordKind.TRAFFIC, window("2024-02-01"))
    assert view.using_csv
    assert [(bucket.key, bucket.count) for bucket in view.series.buckets] == [("09:00", 2), ("10:00", 1)]
    assert mock_controller.load(RecordKind.TRAFFIC, window("2024-01-15")).series.is_empty

    mock_controller.clear_upload("traffic")

    view = mock_controller.load(RecordKind.TRAFFIC, window("2024-01-15"))
    assert not view.using_csv
    assert view.series.record_count == 10


def test_failed_upload_keeps_previous_data(mock_controller):
    mock_controller.upload_csv("traffic", "survey.csv", TRAFFIC_CSV)

    with pytest.raises(ParseFailure):
        mock_controller.upload_csv("traffic", "broken.csv", "timestamp,speed_kmh\n2024-02-01 09:00,10\n")

    assert mock_controller.store.count(RecordKind.TRAFFIC) == 3
    assert mock_controller.store.status()["traffic"]["source_name"] == "survey.csv"


def test_weather_view_has_summary(mock_controller):
    view = mock_controller.load("weather", window("2024-01-18", "2024-01-19"))

    assert view.weather_summary.to_dict() == {
        "window": {"start": "2024-01-18", "end": "2024-01-19"},
        "days": 2,
        "weather": "sunny",
        "weatherLabel": "晴れ",
        "temperature": 12,
        "humidity": 47,
        "averaged": True,
    }


def test_list_records_without_window_returns_everything(mock_controller):
    assert len(mock_controller.list_records("parking_flow")) == 50
    assert len(mock_controller.list_records("parking_flow", window("2024-01-16"))) == 10


def test_record_without_time_does_not_split_the_view():
    controller = DashboardController(source=StubSource({RecordKind.TRAFFIC: [traffic("2024-01-15", 40)]}))

    view = controller.load(RecordKind.TRAFFIC, window("2024-01-15"))
    payload = view.to_dict()

    assert view.is_empty
    assert payload["empty"] is True
    assert payload["message"] == "選択した日付の交通データがありません"
    assert payload["records"] == []
    assert payload["series"]["dropped_count"] == 1


def test_view_lists_exactly_the_bucketed_records():
    records = [traffic("2024-01-15", 40), traffic("2024-01-15 09:00", 20), traffic("2024-01-15 10:30", 50)]
    controller = DashboardController(source=StubSource({RecordKind.TRAFFIC: records}))

    view = controller.load(RecordKind.TRAFFIC, window("2024-01-15"))

    assert sum(bucket.count for bucket in view.series.buckets) == len(view.records) == 2
    assert sum(item.count for item in view.breakdowns["direction"]) == 2
    assert [record["congested"] for record in view.to_dict()["records"]] == [True, False]


def test_view_reports_usage_strategy(mock_controller):
    parking = mock_controller.load(RecordKind.PARKING, window("2024-01-15")).to_dict(include_records=False)
    flow = mock_controller.load(RecordKind.PARKING_FLOW, window("2024-01-15")).to_dict(include_records=False)
    traffic_view = mock_controller.load(RecordKind.TRAFFIC, window("2024-01-15")).to_dict(include_records=False)

    assert parking["usage_strategy"] == "kana_table"
    assert flow["usage_strategy"] == "stay_duration"
    assert "usage_strategy" not in traffic_view
