import pytest

from conftest import parking, parking_flow, traffic, weather, window
from traffic_survey.domain.models import Granularity, RecordKind
from traffic_survey.domain.services.aggregation import (
    AggregationService,
    choose_granularity,
    filter_records,
    get_category_breakdown,
    get_series,
    hour_label,
    partition_date,
    summarize_weather,
    tally,
)
from traffic_survey.domain.services.usage_classifier import build_usage_classifiers
from traffic_survey.infrastructure.repositories.mock_data import MockRecordSource
from traffic_survey.utils.config_loader import UsageClassificationSettings


def test_single_day_buckets_by_hour_with_average_speed():
    records = [traffic("2024-01-15 09:00:00", 20), traffic("2024-01-15 09:30:00", 40)]

    series = get_series(RecordKind.TRAFFIC, records, window("2024-01-15"))

    assert series.granularity is Granularity.HOUR
    assert [bucket.to_dict() for bucket in series.buckets] == [
        {"time": "09:00", "count": 2, "avgSpeed": 30.0, "congested": True},
    ]


def test_three_day_window_buckets_by_day():
    records = [traffic("2024-01-15 09:00:00", 20), traffic("2024-01-15 09:30:00", 40)]

    series = get_series(RecordKind.TRAFFIC, records, window("2024-01-14", "2024-01-16"))

    assert series.granularity is Granularity.DAY
    assert len(series.buckets) == 1
    assert series.buckets[0].key == "2024-01-15"
    assert series.buckets[0].count == 2
    assert series.buckets[0].avg_speed == 30.0


def test_empty_input_returns_empty_results():
    series = get_series(RecordKind.TRAFFIC, [], window("2024-01-15"))

    assert series.buckets == []
    assert series.is_empty
    assert series.empty_message() == "選択した日付の交通データがありません"
    assert get_category_breakdown(RecordKind.TRAFFIC, []) == []
    assert get_category_breakdown(RecordKind.PARKING, None, "usage") == []


def test_malformed_timestamp_is_dropped():
    records = [traffic("garbage", 10), traffic("2024-01-15 09:10:00", 50)]

    series = get_series(RecordKind.TRAFFIC, records, window("2024-01-15"))

    assert [(bucket.key, bucket.count, bucket.avg_speed) for bucket in series.buckets] == [("09:00", 1, 50.0)]


def test_timestamp_without_time_is_excluded_from_hourly_selection():
    records = [traffic("2024-01-15", 10), traffic("2024-01-15 25:00:00", 10), traffic("2024-01-15 08:00", 10)]

    hourly = get_series(RecordKind.TRAFFIC, records, window("2024-01-15"))
    daily = get_series(RecordKind.TRAFFIC, records, window("2024-01-15", "2024-01-17"))

    assert [bucket.key for bucket in hourly.buckets] == ["08:00"]
    assert hourly.record_count == 1
    assert hourly.dropped_count == 2
    assert filter_records(records, window("2024-01-15"), Granularity.HOUR) == [records[2]]
    assert daily.buckets[0].count == 3
    assert daily.dropped_count == 0


@pytest.mark.parametrize(
    "start, end",
    [("2024-01-15", "2024-01-15"), ("2024-01-15", "2024-01-16"), ("2024-01-14", "2024-01-16")],
)
def test_bucket_counts_match_filtered_records(start, end):
    records = [
        traffic("2024-01-15", 10),
        traffic("2024-01-15 09:00", 20),
        traffic("2024-01-16 23:59:59", 30),
        traffic("2024-01-16 7:05", 40),
        traffic("2024/01/16 08:00", 50),
        traffic("2024-01-17 08:00", 60),
    ]
    service = AggregationService()
    selected = filter_records(records, window(start, end), service.granularity_for(RecordKind.TRAFFIC, window(start, end)))

    series = service.get_series(RecordKind.TRAFFIC, records, window(start, end))

    assert sum(bucket.count for bucket in series.buckets) == len(selected) == series.record_count


@pytest.mark.parametrize(
    "start, end, expected",
    [
        ("2024-01-15", "2024-01-15", Granularity.HOUR),
        ("2024-01-15", "2024-01-16", Granularity.HOUR),
        ("2024-01-15", "2024-01-17", Granularity.DAY),
        ("2024-01-30", "2024-02-01", Granularity.DAY),
        ("2024-01-17", "2024-01-15", Granularity.HOUR),
    ],
)
def test_granularity_switches_at_three_calendar_days(start, end, expected):
    assert choose_granularity(window(start, end)) is expected


def test_granularity_threshold_is_configurable():
    assert choose_granularity(window("2024-01-15", "2024-01-16"), daily_min_days=2) is Granularity.DAY


def test_bucket_counts_sum_to_filtered_records():
    records = MockRecordSource().fetch_records(RecordKind.TRAFFIC)
    selection = window("2024-01-15", "2024-01-16")

    series = get_series(RecordKind.TRAFFIC, records, selection)

    assert sum(bucket.count for bucket in series.buckets) == len(filter_records(records, selection))
    assert series.record_count == 20


def test_hour_buckets_pool_days_and_sort_lexically():
    records = [
        traffic("2024-01-16 10:00:00", 30),
        traffic("2024-01-15 09:59:59", 30),
        traffic("2024-01-15 10:30", 30),
        traffic("2024-01-16 9:15", 30),
    ]

    series = get_series(RecordKind.TRAFFIC, records, window("2024-01-15", "2024-01-16"))

    assert [(bucket.key, bucket.count) for bucket in series.buckets] == [("09:00", 2), ("10:00", 2)]


def test_degenerate_range_matches_single_day():
    records = MockRecordSource().fetch_records(RecordKind.PARKING)
    single = window("2024-01-16")
    degenerate = window("2024-01-16", "2024-01-16")

    assert filter_records(records, single) == filter_records(records, degenerate)


def test_inverted_range_yields_empty_result():
    records = MockRecordSource().fetch_records(RecordKind.TRAFFIC)

    series = get_series(RecordKind.TRAFFIC, records, window("2024-01-17", "2024-01-15"))

    assert series.buckets == []
    assert series.empty_message() == "選択した期間の交通データがありません"


def test_partition_helpers():
    assert partition_date(traffic("2024-01-15 09:00:00")) == "2024-01-15"
    assert partition_date(traffic("15/01/2024 09:00")) is None
    assert partition_date(weather("2024-01-15")) == "2024-01-15"
    assert hour_label(traffic("2024-01-15 7:05")) == "07:00"
    assert hour_label(traffic("2024-01-15")) is None


def test_speed_average_skips_missing_values_and_rounds_half_up():
    records = [traffic("2024-01-15 09:00", 30.2), traffic("2024-01-15 09:10", 30.3), traffic("2024-01-15 09:20", None)]

    bucket = get_series(RecordKind.TRAFFIC, records, window("2024-01-15")).buckets[0]

    assert bucket.count == 3
    assert bucket.avg_speed == 30.3
    assert bucket.congested is False


def test_parking_events_occupancy_delta():
    records = [
        parking("2024-01-15 14:00", "in"),
        parking("2024-01-15 14:10", "in"),
        parking("2024-01-15 14:20", "out"),
        parking("2024-01-15 15:00", "out"),
    ]

    series = get_series(RecordKind.PARKING, records, window("2024-01-15"))

    assert [bucket.to_dict() for bucket in series.buckets] == [
        {"time": "14:00", "entries": 2, "exits": 1, "total": 3, "occupancyDelta": 33},
        {"time": "15:00", "entries": 0, "exits": 1, "total": 1, "occupancyDelta": -100},
    ]


def test_parking_seed_day():
    records = MockRecordSource().fetch_records(RecordKind.PARKING)

    series = get_series(RecordKind.PARKING, records, window("2024-01-15"))

    assert [(b.key, b.entries, b.exits, b.occupancy_delta) for b in series.buckets] == [
        ("14:00", 3, 1, 50),
        ("15:00", 3, 3, 0),
    ]


def test_occupancy_rate_is_mean_times_hundred():
    records = [
        parking_flow("2024-01-15 09:00", entries=3, exits=1, rate=0.5),
        parking_flow("2024-01-15 09:30", entries=2, exits=2, rate=0.7),
        parking_flow("2024-01-15 10:00", rate=None),
    ]

    series = get_series(RecordKind.PARKING_FLOW, records, window("2024-01-15"))

    first, second = series.buckets
    assert (first.key, first.count, first.entries, first.exits, first.occupancy_rate) == ("09:00", 2, 5, 3, 60.0)
    assert second.occupancy_rate is None


def test_weather_series_is_always_daily():
    records = [weather("2024-01-15", "sunny", 12, 45), weather("2024-01-16", "cloudy", 8, 62)]

    series = get_series(RecordKind.WEATHER, records, window("2024-01-15", "2024-01-16"))

    assert series.granularity is Granularity.DAY
    assert [bucket.to_dict() for bucket in series.buckets] == [
        {"time": "2024-01-15", "count": 1, "weather": "sunny", "avgTemperature": 12.0, "avgHumidity": 45.0},
        {"time": "2024-01-16", "count": 1, "weather": "cloudy", "avgTemperature": 8.0, "avgHumidity": 62.0},
    ]


def test_summarize_weather_uses_first_day_and_rounded_means():
    records = MockRecordSource().fetch_records(RecordKind.WEATHER)

    summary = summarize_weather(records, window("2024-01-15", "2024-01-17"))

    assert summary.condition == "sunny"
    assert summary.condition_label == "晴れ"
    assert summary.temperature == 9
    assert summary.humidity == 62
    assert summary.days == 3
    assert summarize_weather(records, window("2023-01-01")) is None


def test_tally_uses_order_then_first_seen_and_omits_zero():
    result = tally(["b", "x", "a", "b"], labels={"a": "A", "b": "B"}, order=["a", "b", "c"])

    assert [(item.key, item.label, item.count) for item in result] == [("a", "A", 1), ("b", "B", 2), ("x", "x", 1)]


def test_usage_breakdown_for_parking_seed(service):
    records = MockRecordSource().fetch_records(RecordKind.PARKING, window("2024-01-15"))

    result = service.get_category_breakdown(RecordKind.PARKING, records)

    assert [item.to_dict() for item in result] == [
        {"key": "private", "name": "自家用車", "value": 8},
        {"key": "commercial", "name": "商用車", "value": 2},
    ]


def test_region_breakdown_keeps_first_seen_order(service):
    records = MockRecordSource().fetch_records(RecordKind.PARKING, window("2024-01-15"))
    records.append(parking("2024-01-15 16:00", city=""))

    result = service.get_category_breakdown(RecordKind.PARKING, records, "region")

    assert [(item.label, item.count) for item in result] == [
        ("世田谷", 3), ("横浜", 3), ("品川", 2), ("川崎", 2), ("不明", 1),
    ]


def test_vehicle_class_breakdown_in_enum_order(service):
    records = [traffic("2024-01-15 09:00", vehicle_class="bus"), traffic("2024-01-15 09:00"), traffic("2024-01-15 09:00")]

    result = service.get_category_breakdown(RecordKind.TRAFFIC, records, "vehicle_class")

    assert [(item.key, item.label, item.count) for item in result] == [("car", "乗用車", 2), ("bus", "バス", 1)]


def test_usage_strategy_is_chosen_per_kind(service):
    flow = MockRecordSource().fetch_records(RecordKind.PARKING_FLOW, window("2024-01-15"))

    result = service.get_category_breakdown(RecordKind.PARKING_FLOW, flow, "usage")

    # フローにはかなが無いため滞在時間で判定する
    assert [(item.key, item.count) for item in result] == [("private", 9), ("rental", 1)]
    assert service.usage_strategy(RecordKind.PARKING) == "kana_table"
    assert service.usage_strategy(RecordKind.PARKING_FLOW) == "stay_duration"
    assert service.usage_strategy(RecordKind.TRAFFIC) is None


def test_stay_duration_setting_keeps_kana_table_for_parking_events():
    settings = UsageClassificationSettings(strategy="stay_duration", rental_region="Osaka")
    service = AggregationService(usage_classifiers=build_usage_classifiers(settings))
    events = MockRecordSource().fetch_records(RecordKind.PARKING, window("2024-01-15"))
    flow = [parking_flow("2024-01-15 09:00", region="Osaka", stay=60), parking_flow("2024-01-15 09:00", region="Kobe", stay=60)]

    assert service.usage_strategy(RecordKind.PARKING) == "kana_table"
    assert [item.key for item in service.get_category_breakdown(RecordKind.PARKING, events, "usage")] == [
        "private", "commercial",
    ]
    assert [(item.key, item.count) for item in service.get_category_breakdown(RecordKind.PARKING_FLOW, flow, "usage")] == [
        ("private", 1), ("rental", 1),
    ]


def test_invalid_dimension_raises(service):
    with pytest.raises(ValueError):
        service.get_category_breakdown(RecordKind.WEATHER, [weather("2024-01-15")], "usage")


def test_congestion_threshold_is_configurable():
    service = AggregationService(congestion_speed=20)
    records = [traffic("2024-01-15 09:00", 25)]

    bucket = service.get_series(RecordKind.TRAFFIC, records, window("2024-01-15")).buckets[0]

    assert bucket.congested is False
