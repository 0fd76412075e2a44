import pytest
from fastapi.testclient import TestClient

from conftest import TRAFFIC_CSV, DummyResponse, RecordingRequest
from traffic_survey.api.app import create_app
from traffic_survey.app_container import build_dashboard_controller, build_record_source
from traffic_survey.infrastructure.repositories.http_source import HttpRecordSource
from traffic_survey.utils.config_loader import DashboardSettings


@pytest.fixture
def client(mock_controller):
    app = create_app(controller=mock_controller, settings=DashboardSettings())
    return TestClient(app)


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["status"] == "healthy"


def test_records_for_single_date(client):
    response = client.get("/api/traffic", params={"date": "2024-01-15"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["count"] == 10
    assert data["records"][0]["timestamp"] == "2024-01-15 06:02:15"
    assert data["records"][0]["direction"] == "right"


def test_records_without_dates_returns_all(client):
    data = client.get("/api/weather").json()["data"]

    assert data["window"] is None
    assert data["count"] == 5


def test_series_for_range(client):
    response = client.get("/api/traffic/series", params={"startDate": "2024-01-15", "endDate": "2024-01-17"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["granularity"] == "day"
    assert [bucket["time"] for bucket in data["buckets"]] == ["2024-01-15", "2024-01-16", "2024-01-17"]
    assert data["record_count"] == 30


def test_series_for_empty_selection_is_ok(client):
    response = client.get("/api/parking/series", params={"date": "2023-01-01"})

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["empty"] is True
    assert body["message"] == "選択した日付の駐車場データがありません"


def test_series_as_csv(client):
    response = client.get("/api/parking/series", params={"date": "2024-01-15", "format": "csv"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    lines = response.text.strip().splitlines()
    assert lines[0] == "time,entries,exits,total,occupancyDelta"
    assert lines[1] == "14:00,3,1,4,50"


@pytest.mark.parametrize(
    "path, params",
    [
        ("/api/traffic/series", {}),
        ("/api/traffic/series", {"date": "2024/01/15"}),
        ("/api/traffic/series", {"date": "2024-02-30"}),
        ("/api/traffic/series", {"startDate": "2024-01-15"}),
        ("/api/unknown/series", {"date": "2024-01-15"}),
        ("/api/traffic/series", {"date": "2024-01-15", "format": "xlsx"}),
        ("/api/weather/breakdown", {"dimension": "usage"}),
        ("/api/weather/summary", {}),
    ],
)
def test_invalid_requests_are_rejected(client, path, params):
    response = client.get(path, params=params)

    assert response.status_code == 400
    assert response.json()["status"] == "error"


def test_breakdown_default_dimension(client):
    data = client.get("/api/parking/breakdown", params={"date": "2024-01-15"}).json()["data"]

    assert data["dimension"] == "usage"
    assert data["items"] == [
        {"key": "private", "name": "自家用車", "value": 8},
        {"key": "commercial", "name": "商用車", "value": 2},
    ]


def test_breakdown_region_for_parking_flow(client):
    data = client.get(
        "/api/parking_flow/breakdown",
        params={"dimension": "region", "date": "2024-01-15"},
    ).json()["data"]

    assert [(item["name"], item["value"]) for item in data["items"]] == [
        ("Osaka", 3), ("Kobe", 3), ("Kyoto", 2), ("Nara", 1), ("Wakayama", 1),
    ]


def test_weather_summary(client):
    data = client.get("/api/weather/summary", params={"startDate": "2024-01-15", "endDate": "2024-01-17"}).json()["data"]

    assert data["weather"] == "sunny"
    assert data["temperature"] == 9
    assert data["humidity"] == 62
    assert data["empty"] is False


def test_weather_summary_without_data(client):
    body = client.get("/api/weather/summary", params={"date": "2023-01-01"}).json()

    assert body["data"]["empty"] is True
    assert body["message"] == "選択した日付の天気データがありません"


def test_upload_replace_and_clear(client):
    response = client.post("/api/uploads/traffic", params={"filename": "survey.csv"}, content=TRAFFIC_CSV)

    assert response.status_code == 201
    assert response.json()["data"]["record_count"] == 3
    assert client.get("/api/uploads").json()["data"]["traffic"]["using_csv"] is True

    data = client.get("/api/traffic/series", params={"date": "2024-02-01"}).json()["data"]
    assert data["using_csv"] is True
    assert data["record_count"] == 3

    response = client.delete("/api/uploads/traffic")
    assert response.status_code == 200
    assert response.json()["data"]["using_csv"] is False


def test_upload_parse_failure_is_422(client):
    response = client.post("/api/uploads/traffic", params={"filename": "survey.csv"}, content="timestamp\n1\n")

    assert response.status_code == 422
    assert response.json()["data"]["details"]["errors"][0] == "Missing required column: object_id"
    assert client.get("/api/uploads").json()["data"]["traffic"]["using_csv"] is False


def test_upload_without_filename_is_400(client):
    response = client.post("/api/uploads/traffic", content=TRAFFIC_CSV)

    assert response.status_code == 400
    assert response.json()["data"]["details"]["missing_fields"] == ["filename"]


def test_fetch_failure_is_502():
    request = RecordingRequest([DummyResponse(status_code=500)])
    settings = DashboardSettings(base_url="http://edge.local/api")
    source = build_record_source(settings, request_func=request)
    app = create_app(controller=build_dashboard_controller(settings, source=source), settings=settings)

    response = TestClient(app).get("/api/traffic/series", params={"date": "2024-01-15"})

    assert isinstance(source, HttpRecordSource)
    assert response.status_code == 502
    assert response.json()["data"]["details"]["retryable"] is True


def test_records_mark_congested_rows(client):
    records = client.get("/api/traffic", params={"date": "2024-01-15"}).json()["data"]["records"]

    # 27.3 km/h と 38.1 km/h
    assert [record["congested"] for record in records[:2]] == [True, False]
    assert all(record["congested"] == (record["speed_kmh"] <= 30) for record in records)


def test_breakdown_reports_usage_strategy(client):
    parking = client.get("/api/parking/breakdown", params={"date": "2024-01-15"}).json()["data"]
    flow = client.get("/api/parking_flow/breakdown", params={"date": "2024-01-15", "dimension": "usage"}).json()["data"]
    region = client.get("/api/parking_flow/breakdown", params={"dimension": "region"}).json()["data"]

    assert parking["strategy"] == "kana_table"
    assert flow["strategy"] == "stay_duration"
    assert [(item["key"], item["value"]) for item in flow["items"]] == [("private", 9), ("rental", 1)]
    assert region["strategy"] is None


def test_breakdown_as_csv(client):
    response = client.get("/api/parking/breakdown", params={"date": "2024-01-15", "format": "csv"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="parking_usage.csv"' in response.headers["content-disposition"]
    assert response.text.splitlines() == ["key,name,value", "private,自家用車,8", "commercial,商用車,2"]
