"""
サンプルデータのデータソース

実機が無い環境でダッシュボードを確認するための固定データです。
2024-01-15 の実測風データに加えて、期間表示の確認用に
翌日以降のデータを決まった規則で生成します。
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from traffic_survey.domain.models import (
    DateWindow,
    RecordKind,
    records_from_dicts,
)
from traffic_survey.domain.services.aggregation import filter_records
from traffic_survey.logger.app_logger import get_logger

from .data_interfaces import IRecordSource

logger = get_logger(__name__)

SEED_DATE = "2024-01-15"
GENERATED_DAYS = 4

TRAFFIC_SEED: List[Dict[str, Any]] = [
    {"timestamp": "2024-01-15 06:02:15", "object_id": 1, "class_name": "car", "direction": "R", "speed_kmh": 27.3},
    {"timestamp": "2024-01-15 06:18:40", "object_id": 2, "class_name": "car", "direction": "L", "speed_kmh": 38.1},
    {"timestamp": "2024-01-15 06:37:02", "object_id": 3, "class_name": "motorcycle", "direction": "R", "speed_kmh": 44.6},
    {"timestamp": "2024-01-15 06:51:29", "object_id": 4, "class_name": "truck", "direction": "L", "speed_kmh": 29.8},
    {"timestamp": "2024-01-15 07:05:11", "object_id": 5, "class_name": "car", "direction": "L", "speed_kmh": 33.5},
    {"timestamp": "2024-01-15 07:16:48", "object_id": 6, "class_name": "bus", "direction": "R", "speed_kmh": 24.2},
    {"timestamp": "2024-01-15 07:29:55", "object_id": 7, "class_name": "car", "direction": "R", "speed_kmh": 36.4},
    {"timestamp": "2024-01-15 07:44:38", "object_id": 8, "class_name": "truck", "direction": "R", "speed_kmh": 41.2},
    {"timestamp": "2024-01-15 07:59:23", "object_id": 9, "class_name": "bus", "direction": "L", "speed_kmh": 18.5},
    {"timestamp": "2024-01-15 08:14:07", "object_id": 10, "class_name": "car", "direction": "L", "speed_kmh": 32.9},
]

PARKING_SEED: List[Dict[str, Any]] = [
    {"timestamp": "2024-01-15 14:34:24", "object_id": 1, "vehicle_type": "car", "direction": "in", "city": "世田谷", "engine_size": 310, "kana": "ふ", "four-digit number": "70-50"},
    {"timestamp": "2024-01-15 14:40:34", "object_id": 2, "vehicle_type": "car", "direction": "in", "city": "横浜", "engine_size": 331, "kana": "や", "four-digit number": "28-50"},
    {"timestamp": "2024-01-15 14:45:12", "object_id": 3, "vehicle_type": "car", "direction": "out", "city": "世田谷", "engine_size": 280, "kana": "あ", "four-digit number": "12-34"},
    {"timestamp": "2024-01-15 14:52:18", "object_id": 4, "vehicle_type": "car", "direction": "in", "city": "品川", "engine_size": 350, "kana": "か", "four-digit number": "56-78"},
    {"timestamp": "2024-01-15 15:01:45", "object_id": 5, "vehicle_type": "car", "direction": "out", "city": "横浜", "engine_size": 290, "kana": "さ", "four-digit number": "90-12"},
    {"timestamp": "2024-01-15 15:08:33", "object_id": 6, "vehicle_type": "car", "direction": "in", "city": "川崎", "engine_size": 320, "kana": "た", "four-digit number": "34-56"},
    {"timestamp": "2024-01-15 15:15:27", "object_id": 7, "vehicle_type": "car", "direction": "in", "city": "世田谷", "engine_size": 340, "kana": "な", "four-digit number": "78-90"},
    {"timestamp": "2024-01-15 15:22:41", "object_id": 8, "vehicle_type": "car", "direction": "out", "city": "品川", "engine_size": 300, "kana": "は", "four-digit number": "23-45"},
    {"timestamp": "2024-01-15 15:29:15", "object_id": 9, "vehicle_type": "car", "direction": "in", "city": "横浜", "engine_size": 360, "kana": "ま", "four-digit number": "67-89"},
    {"timestamp": "2024-01-15 15:35:52", "object_id": 10, "vehicle_type": "car", "direction": "out", "city": "川崎", "engine_size": 275, "kana": "ら", "four-digit number": "01-23"},
]

PARKING_FLOW_SEED: List[Dict[str, Any]] = [
    {"timestamp": "2024-01-15 09:00", "plate_region": "Osaka", "stay_duration": 120, "entry_count": 8, "exit_count": 5, "occupancy_rate": 0.65},
    {"timestamp": "2024-01-15 09:10", "plate_region": "Kobe", "stay_duration": 95, "entry_count": 12, "exit_count": 7, "occupancy_rate": 0.70},
    {"timestamp": "2024-01-15 09:20", "plate_region": "Kyoto", "stay_duration": 150, "entry_count": 6, "exit_count": 9, "occupancy_rate": 0.67},
    {"timestamp": "2024-01-15 09:30", "plate_region": "Nara", "stay_duration": 180, "entry_count": 10, "exit_count": 8, "occupancy_rate": 0.69},
    {"timestamp": "2024-01-15 09:40", "plate_region": "Osaka", "stay_duration": 110, "entry_count": 9, "exit_count": 11, "occupancy_rate": 0.67},
    {"timestamp": "2024-01-15 09:50", "plate_region": "Kobe", "stay_duration": 135, "entry_count": 7, "exit_count": 6, "occupancy_rate": 0.68},
    {"timestamp": "2024-01-15 10:00", "plate_region": "Kyoto", "stay_duration": 165, "entry_count": 11, "exit_count": 8, "occupancy_rate": 0.71},
    {"timestamp": "2024-01-15 10:10", "plate_region": "Wakayama", "stay_duration": 90, "entry_count": 5, "exit_count": 7, "occupancy_rate": 0.69},
    {"timestamp": "2024-01-15 10:20", "plate_region": "Osaka", "stay_duration": 125, "entry_count": 8, "exit_count": 10, "occupancy_rate": 0.67},
    {"timestamp": "2024-01-15 10:30", "plate_region": "Kobe", "stay_duration": 140, "entry_count": 9, "exit_count": 6, "occupancy_rate": 0.70},
]

WEATHER_SEED: List[Dict[str, Any]] = [
    {"date": "2024-01-15", "weather": "sunny", "temperature": 12, "humidity": 45},
    {"date": "2024-01-16", "weather": "cloudy", "temperature": 8, "humidity": 62},
    {"date": "2024-01-17", "weather": "rainy", "temperature": 6, "humidity": 78},
    {"date": "2024-01-18", "weather": "sunny", "temperature": 14, "humidity": 38},
    {"date": "2024-01-19", "weather": "cloudy", "temperature": 10, "humidity": 55},
]


def _shift_rows(rows: List[Dict[str, Any]], days: int, key: str = "timestamp") -> List[Dict[str, Any]]:
    """行のタイムスタンプを days 日ずらし、速度や台数を少し変化させる。"""
    shifted = []
    for index, row in enumerate(rows):
        original = row[key]
        stamp_format = "%Y-%m-%d %H:%M:%S" if original.count(":") == 2 else "%Y-%m-%d %H:%M"
        moved = datetime.strptime(original, stamp_format) + timedelta(days=days)
        new_row = dict(row)
        new_row[key] = moved.strftime(stamp_format)
        if "speed_kmh" in new_row:
            # 曜日ごとに ±3km/h 程度の揺らぎ
            new_row["speed_kmh"] = round(new_row["speed_kmh"] + ((index + days) % 7 - 3), 1)
        if "direction" in new_row and new_row["direction"] in ("in", "out") and (index + days) % 5 == 0:
            new_row["direction"] = "out" if new_row["direction"] == "in" else "in"
        shifted.append(new_row)
    return shifted


def generate_rows(kind: RecordKind, days: int = GENERATED_DAYS) -> List[Dict[str, Any]]:
    """種別のサンプル行（SEED_DATE から days 日分を追加生成）を返す"""
    if kind is RecordKind.WEATHER:
        return [dict(row) for row in WEATHER_SEED]

    seeds = {
        RecordKind.TRAFFIC: TRAFFIC_SEED,
        RecordKind.PARKING: PARKING_SEED,
        RecordKind.PARKING_FLOW: PARKING_FLOW_SEED,
    }[kind]

    rows = [dict(row) for row in seeds]
    for offset in range(1, days + 1):
        rows.extend(_shift_rows(seeds, offset))
    return rows


class MockRecordSource(IRecordSource):
    """固定サンプルデータを返すデータソース（サーバー側の絞り込みも再現）"""

    def __init__(self, days: int = GENERATED_DAYS):
        self._cache: Dict[RecordKind, List[Any]] = {}
        self._days = days

    def fetch_records(self, kind: RecordKind, window: Optional[DateWindow] = None) -> List[Any]:
        if kind not in self._cache:
            self._cache[kind] = records_from_dicts(kind, generate_rows(kind, self._days))
            logger.debug("サンプルデータを生成しました: %s %d 件", kind.value, len(self._cache[kind]))
        records = self._cache[kind]
        if window is None:
            return list(records)
        return filter_records(records, window)
