"""
ビジネスロジック層のドメインモデル

このモジュールは、エッジ端末が収集した観測レコードと、それを集計した
結果オブジェクトを定義します。
責務: レコードの表現、ワイヤ形式（JSON/CSV の列名）との相互変換

タイムスタンプは "YYYY-MM-DD[ HH:MM[:SS]]" 形式の文字列のまま保持します。
この形式は辞書順と時系列順が一致するため、範囲比較や並べ替えは
文字列比較で行います。
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple


class RecordKind(Enum):
    """レコード種別"""
    TRAFFIC = "traffic"
    PARKING = "parking"
    PARKING_FLOW = "parking_flow"  # 満車率を含む集計済み駐車場レコード
    WEATHER = "weather"


class VehicleClass(Enum):
    """交通データの車種"""
    CAR = "car"
    TRUCK = "truck"
    BUS = "bus"
    MOTORCYCLE = "motorcycle"


class TrafficDirection(Enum):
    """交通データの進行方向"""
    LEFT = "left"
    RIGHT = "right"


class ParkingDirection(Enum):
    """駐車場の入出庫"""
    IN = "in"
    OUT = "out"


class WeatherCondition(Enum):
    """天気"""
    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    SNOWY = "snowy"


class UsageCategory(Enum):
    """ナンバープレートから推定する用途区分"""
    PRIVATE = "private"
    COMMERCIAL = "commercial"
    RENTAL = "rental"
    OTHER = "other"


class Granularity(Enum):
    """時系列集計の粒度"""
    HOUR = "hour"
    DAY = "day"


# 表示ラベル
VEHICLE_CLASS_LABELS: Dict[str, str] = {
    "car": "乗用車",
    "truck": "トラック",
    "bus": "バス",
    "motorcycle": "バイク",
}
DIRECTION_LABELS: Dict[str, str] = {
    "left": "左",
    "right": "右",
    "in": "入庫",
    "out": "出庫",
}
USAGE_LABELS: Dict[str, str] = {
    "private": "自家用車",
    "commercial": "商用車",
    "rental": "レンタカー",
    "other": "その他",
}
WEATHER_LABELS: Dict[str, str] = {
    "sunny": "晴れ",
    "cloudy": "曇り",
    "rainy": "雨",
    "snowy": "雪",
}
KIND_LABELS: Dict[RecordKind, str] = {
    RecordKind.TRAFFIC: "交通データ",
    RecordKind.PARKING: "駐車場データ",
    RecordKind.PARKING_FLOW: "駐車場集計データ",
    RecordKind.WEATHER: "天気データ",
}
UNKNOWN_REGION_LABEL = "不明"

# この速度 (km/h) 以下を渋滞とみなす
CONGESTION_SPEED_KMH = 30.0

_TRAFFIC_DIRECTION_ALIASES = {"l": "left", "r": "right"}


# ----------------------------------------------------------------------
# 型変換ヘルパー（検証は行わず、変換できない値は None とする）
# ----------------------------------------------------------------------
def to_int(value: Any) -> Optional[int]:
    """整数へ変換する。'12.7' のような値は切り捨てる。"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        try:
            return int(float(text))
        except (ValueError, OverflowError):
            return None


def to_float(value: Any) -> Optional[float]:
    """浮動小数点数へ変換する。"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if number == number else None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if number == number else None


def to_text(value: Any) -> str:
    """文字列へ変換する。None は空文字。"""
    if value is None:
        return ""
    return str(value).strip()


def normalize_traffic_direction(value: Any) -> str:
    """'L'/'R' 表記を 'left'/'right' にそろえる。"""
    text = to_text(value).lower()
    return _TRAFFIC_DIRECTION_ALIASES.get(text, text)


# ----------------------------------------------------------------------
# レコード
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class TrafficObservation:
    """通過車両 1 件の検知レコード"""
    timestamp: str
    object_id: Optional[int]
    vehicle_class: str
    direction: str
    speed_kmh: Optional[float]

    kind: ClassVar[RecordKind] = RecordKind.TRAFFIC
    WIRE_FIELDS: ClassVar[Tuple[str, ...]] = (
        "timestamp", "object_id", "class_name", "direction", "speed_kmh",
    )

    @property
    def partition_key(self) -> Any:
        return self.timestamp

    def is_congested(self, threshold_kmh: float = CONGESTION_SPEED_KMH) -> bool:
        """渋滞速度以下かどうか"""
        return self.speed_kmh is not None and self.speed_kmh <= threshold_kmh

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TrafficObservation":
        return cls(
            timestamp=data.get("timestamp"),
            object_id=to_int(data.get("object_id")),
            vehicle_class=to_text(data.get("class_name", data.get("vehicle_class"))).lower(),
            direction=normalize_traffic_direction(data.get("direction")),
            speed_kmh=to_float(data.get("speed_kmh")),
        )

    def to_dict(self, congestion_speed: float = CONGESTION_SPEED_KMH) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "object_id": self.object_id,
            "class_name": self.vehicle_class,
            "direction": self.direction,
            "speed_kmh": self.speed_kmh,
            "congested": self.is_congested(congestion_speed),
        }


@dataclass(frozen=True)
class ParkingEvent:
    """駐車場の入出庫 1 件のレコード"""
    timestamp: str
    object_id: Optional[int]
    vehicle_type: str
    direction: str
    region_label: str
    engine_size: Optional[int]
    kana_classifier: str
    plate_number: str

    kind: ClassVar[RecordKind] = RecordKind.PARKING
    WIRE_FIELDS: ClassVar[Tuple[str, ...]] = (
        "timestamp", "object_id", "vehicle_type", "direction", "city",
        "engine_size", "kana", "four-digit number",
    )

    @property
    def partition_key(self) -> Any:
        return self.timestamp

    @property
    def region(self) -> str:
        return self.region_label

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ParkingEvent":
        return cls(
            timestamp=data.get("timestamp"),
            object_id=to_int(data.get("object_id")),
            vehicle_type=to_text(data.get("vehicle_type")).lower(),
            direction=to_text(data.get("direction")).lower(),
            region_label=to_text(data.get("city")),
            engine_size=to_int(data.get("engine_size")),
            kana_classifier=to_text(data.get("kana")),
            plate_number=to_text(data.get("four-digit number")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "object_id": self.object_id,
            "vehicle_type": self.vehicle_type,
            "direction": self.direction,
            "city": self.region_label,
            "engine_size": self.engine_size,
            "kana": self.kana_classifier,
            "four-digit number": self.plate_number,
        }


@dataclass(frozen=True)
class ParkingFlowSample:
    """満車率を含む集計済みの駐車場レコード"""
    timestamp: str
    plate_region: str
    stay_duration: Optional[int]
    entry_count: Optional[int]
    exit_count: Optional[int]
    occupancy_rate: Optional[float]

    kind: ClassVar[RecordKind] = RecordKind.PARKING_FLOW
    WIRE_FIELDS: ClassVar[Tuple[str, ...]] = (
        "timestamp", "plate_region", "stay_duration", "entry_count",
        "exit_count", "occupancy_rate",
    )

    @property
    def partition_key(self) -> Any:
        return self.timestamp

    @property
    def region(self) -> str:
        return self.plate_region

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ParkingFlowSample":
        return cls(
            timestamp=data.get("timestamp"),
            plate_region=to_text(data.get("plate_region")),
            stay_duration=to_int(data.get("stay_duration")),
            entry_count=to_int(data.get("entry_count")),
            exit_count=to_int(data.get("exit_count")),
            occupancy_rate=to_float(data.get("occupancy_rate")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "plate_region": self.plate_region,
            "stay_duration": self.stay_duration,
            "entry_count": self.entry_count,
            "exit_count": self.exit_count,
            "occupancy_rate": self.occupancy_rate,
        }


@dataclass(frozen=True)
class WeatherSample:
    """日単位の天気レコード"""
    date: str
    condition: str
    temperature_c: Optional[int]
    humidity_percent: Optional[int]

    kind: ClassVar[RecordKind] = RecordKind.WEATHER
    WIRE_FIELDS: ClassVar[Tuple[str, ...]] = ("date", "weather", "temperature", "humidity")

    @property
    def partition_key(self) -> Any:
        return self.date

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WeatherSample":
        return cls(
            date=data.get("date"),
            condition=to_text(data.get("weather")).lower(),
            temperature_c=to_int(data.get("temperature")),
            humidity_percent=to_int(data.get("humidity")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "weather": self.condition,
            "temperature": self.temperature_c,
            "humidity": self.humidity_percent,
        }


RECORD_TYPES: Dict[RecordKind, type] = {
    RecordKind.TRAFFIC: TrafficObservation,
    RecordKind.PARKING: ParkingEvent,
    RecordKind.PARKING_FLOW: ParkingFlowSample,
    RecordKind.WEATHER: WeatherSample,
}


def parse_kind(value: Any) -> RecordKind:
    """文字列からレコード種別を解決する。"""
    if isinstance(value, RecordKind):
        return value
    text = str(value).strip().lower().replace("-", "_")
    try:
        return RecordKind(text)
    except ValueError as exc:
        supported = ", ".join(kind.value for kind in RecordKind)
        raise ValueError(f"未対応のデータ種別です: {value}（対応: {supported}）") from exc


def records_from_dicts(kind: RecordKind, rows: List[Mapping[str, Any]]) -> List[Any]:
    """ワイヤ形式の辞書リストをレコードへ変換する。辞書以外は読み飛ばす。"""
    record_type = RECORD_TYPES[kind]
    return [record_type.from_mapping(row) for row in rows if isinstance(row, Mapping)]


def record_to_dict(record: Any, congestion_speed: float = CONGESTION_SPEED_KMH) -> Dict[str, Any]:
    """レコードを出力用の辞書にする。交通レコードには渋滞判定を付ける。"""
    if isinstance(record, TrafficObservation):
        return record.to_dict(congestion_speed)
    return record.to_dict()


# ----------------------------------------------------------------------
# 日付範囲
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class DateWindow:
    """両端を含む日付範囲 [start, end]（どちらも YYYY-MM-DD 文字列）"""
    start: str
    end: str

    @property
    def is_single_day(self) -> bool:
        return self.start == self.end

    @property
    def is_inverted(self) -> bool:
        return self.start > self.end

    def contains(self, day: str) -> bool:
        """day が範囲内かを文字列比較で判定する。"""
        return self.start <= day <= self.end

    def calendar_days(self) -> int:
        """範囲に含まれる暦日数（両端を含む）。逆転した範囲は 0 以下になる。"""
        try:
            start = date.fromisoformat(self.start)
            end = date.fromisoformat(self.end)
        except (TypeError, ValueError):
            return 0
        return (end - start).days + 1

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end}


def empty_selection_message(kind: RecordKind, window: DateWindow) -> str:
    """選択範囲にデータが無いときの表示メッセージ"""
    scope = "日付" if window.is_single_day else "期間"
    return f"選択した{scope}の{KIND_LABELS[kind]}がありません"


# ----------------------------------------------------------------------
# 集計結果
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class TrafficBucket:
    """交通量の時間帯バケット"""
    key: str
    count: int
    avg_speed: Optional[float]
    congested: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.key,
            "count": self.count,
            "avgSpeed": self.avg_speed,
            "congested": self.congested,
        }


@dataclass(frozen=True)
class ParkingEventBucket:
    """入出庫イベントの時間帯バケット

    occupancy_delta は (入庫-出庫)/件数*100 の流量指標で、真の満車率ではない。
    """
    key: str
    entries: int
    exits: int
    total: int
    occupancy_delta: int

    @property
    def count(self) -> int:
        return self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.key,
            "entries": self.entries,
            "exits": self.exits,
            "total": self.total,
            "occupancyDelta": self.occupancy_delta,
        }


@dataclass(frozen=True)
class OccupancyBucket:
    """満車率レコードの時間帯バケット（occupancy_rate の平均×100）"""
    key: str
    count: int
    entries: int
    exits: int
    occupancy_rate: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.key,
            "count": self.count,
            "entries": self.entries,
            "exits": self.exits,
            "occupancyRate": self.occupancy_rate,
        }


@dataclass(frozen=True)
class WeatherBucket:
    """天気の日別バケット"""
    key: str
    count: int
    condition: str
    avg_temperature: Optional[float]
    avg_humidity: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.key,
            "count": self.count,
            "weather": self.condition,
            "avgTemperature": self.avg_temperature,
            "avgHumidity": self.avg_humidity,
        }


@dataclass(frozen=True)
class CategoryCount:
    """カテゴリ別件数（円グラフ 1 要素）"""
    key: str
    label: str
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "name": self.label, "value": self.count}


@dataclass(frozen=True)
class WeatherSummary:
    """天気ウィジェット向けの要約"""
    window: DateWindow
    days: int
    condition: str
    temperature: Optional[int]
    humidity: Optional[int]

    @property
    def condition_label(self) -> str:
        return WEATHER_LABELS.get(self.condition, self.condition)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": self.window.to_dict(),
            "days": self.days,
            "weather": self.condition,
            "weatherLabel": self.condition_label,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "averaged": self.days > 1,
        }


@dataclass
class SeriesResult:
    """時系列集計の結果"""
    kind: RecordKind
    window: DateWindow
    granularity: Granularity
    buckets: List[Any]
    record_count: int
    dropped_count: int = 0
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.record_count == 0

    def empty_message(self) -> Optional[str]:
        """データがない場合の表示メッセージ"""
        if not self.is_empty:
            return None
        return empty_selection_message(self.kind, self.window)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "kind": self.kind.value,
            "window": self.window.to_dict(),
            "granularity": self.granularity.value,
            "record_count": self.record_count,
            "dropped_count": self.dropped_count,
            "empty": self.is_empty,
            "message": self.empty_message(),
            "buckets": [bucket.to_dict() for bucket in self.buckets],
        }
        payload.update(self.meta)
        return payload

    def to_dataframe(self) -> "pd.DataFrame":
        """バケットを DataFrame に変換"""
        import pandas as pd  # 局所インポートで起動を軽くする

        if not self.buckets:
            return pd.DataFrame()
        return pd.DataFrame([bucket.to_dict() for bucket in self.buckets])
