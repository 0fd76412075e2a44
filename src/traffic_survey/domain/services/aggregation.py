"""
時系列集計エンジン

すべてのグラフと表が利用する、日付範囲での絞り込み・時間帯バケットへの
振り分け・バケットごとの統計量算出を 1 か所にまとめたモジュールです。

処理の流れ:
1. filter_records: レコードの日付部分が [start, end] に入るものだけを残す
2. choose_granularity: 範囲の暦日数で時間単位/日単位を決める
3. _accumulate: バケットキーごとに件数と合計値を積み上げる
4. 各 Accumulator.build: 積み上げ値を表示用の統計量へ変換する

形式が不正なレコードは例外にせず読み飛ばす（ログのみ出力）。
"""

import re
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ...logger.app_logger import get_logger
from ...utils.rounding import round1, round_int
from ..models import (
    CONGESTION_SPEED_KMH,
    DIRECTION_LABELS,
    UNKNOWN_REGION_LABEL,
    USAGE_LABELS,
    VEHICLE_CLASS_LABELS,
    WEATHER_LABELS,
    CategoryCount,
    DateWindow,
    Granularity,
    OccupancyBucket,
    ParkingDirection,
    ParkingEventBucket,
    RecordKind,
    SeriesResult,
    TrafficBucket,
    TrafficDirection,
    UsageCategory,
    VehicleClass,
    WeatherBucket,
    WeatherCondition,
    WeatherSummary,
    record_to_dict,
)
from .usage_classifier import KanaTableClassifier, UsageClassifier, build_usage_classifiers

logger = get_logger(__name__)

DAILY_BUCKET_MIN_DAYS = 3
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(\d{1,2}):\d{2}(?::\d{2})?")


# ----------------------------------------------------------------------
# 1. 絞り込み
# ----------------------------------------------------------------------
def partition_date(record: Any) -> Optional[str]:
    """レコードの日付部分（YYYY-MM-DD）を返す。形式不正なら None。

    timestamp を持つレコードは最初の空白より前を、天気レコードは date を
    そのまま使う。
    """
    key = getattr(record, "partition_key", None)
    if not isinstance(key, str):
        return None
    day = key if getattr(record, "kind", None) is RecordKind.WEATHER else key.split(" ", 1)[0]
    return day if _DATE_RE.match(day) else None


def hour_label(record: Any) -> Optional[str]:
    """レコードの時刻から 'HH:00' 形式の時間帯キーを返す。"""
    key = getattr(record, "partition_key", None)
    if not isinstance(key, str) or " " not in key:
        return None
    match = _TIME_RE.match(key.split(" ", 1)[1].strip())
    if not match:
        return None
    hour = int(match.group(1))
    if hour > 23:
        return None
    return f"{hour:02d}:00"


def select_records(
    records: Optional[Iterable[Any]],
    window: DateWindow,
    granularity: Optional[Granularity] = None,
) -> Tuple[List[Any], int]:
    """範囲内のレコードと、範囲内だがバケットに振り分けられない件数を返す。

    granularity が指定された場合は、その粒度のバケットキーを決められない
    レコード（時間単位で時刻の無いものなど）も除外する。時系列・一覧・
    カテゴリ集計が同じ件数になるよう、除外の判断はここだけで行う。
    """
    selected: List[Any] = []
    malformed = 0
    unplaceable = 0
    for record in records or []:
        day = partition_date(record)
        if day is None:
            malformed += 1
            continue
        if not window.contains(day):
            continue
        if granularity is not None and bucket_key(record, granularity) is None:
            unplaceable += 1
            continue
        selected.append(record)

    if malformed:
        logger.debug("日付形式が不正なレコードを %d 件除外しました", malformed)
    if unplaceable:
        logger.debug("時刻を判定できないレコードを %d 件除外しました", unplaceable)
    return selected, unplaceable


def filter_records(
    records: Optional[Iterable[Any]],
    window: DateWindow,
    granularity: Optional[Granularity] = None,
) -> List[Any]:
    """日付範囲 [start, end] に含まれるレコードを返す。

    比較は文字列比較。空の入力や該当なしは空リストを返す。
    """
    return select_records(records, window, granularity)[0]


# ----------------------------------------------------------------------
# 2. バケット粒度
# ----------------------------------------------------------------------
def choose_granularity(window: DateWindow, daily_min_days: int = DAILY_BUCKET_MIN_DAYS) -> Granularity:
    """範囲の暦日数（両端含む）が daily_min_days 以上なら日単位、未満なら時間単位"""
    if window.calendar_days() >= daily_min_days:
        return Granularity.DAY
    return Granularity.HOUR


def bucket_key(record: Any, granularity: Granularity) -> Optional[str]:
    """レコードのバケットキーを返す。決められない場合は None。"""
    if granularity is Granularity.DAY:
        return partition_date(record)
    return hour_label(record)


# ----------------------------------------------------------------------
# 3. 積み上げ
# ----------------------------------------------------------------------
class _TrafficAccumulator:
    def __init__(self, congestion_speed: float):
        self.congestion_speed = congestion_speed
        self.count = 0
        self.speed_sum = 0.0
        self.speed_count = 0

    def add(self, record) -> None:
        self.count += 1
        if record.speed_kmh is not None:
            self.speed_sum += record.speed_kmh
            self.speed_count += 1

    def build(self, key: str) -> TrafficBucket:
        avg_speed = round1(self.speed_sum / self.speed_count) if self.speed_count else None
        congested = avg_speed is not None and avg_speed <= self.congestion_speed
        return TrafficBucket(key=key, count=self.count, avg_speed=avg_speed, congested=congested)


class _ParkingEventAccumulator:
    def __init__(self):
        self.entries = 0
        self.exits = 0
        self.total = 0

    def add(self, record) -> None:
        self.total += 1
        if record.direction == ParkingDirection.IN.value:
            self.entries += 1
        elif record.direction == ParkingDirection.OUT.value:
            self.exits += 1

    def build(self, key: str) -> ParkingEventBucket:
        delta = round_int((self.entries - self.exits) / self.total * 100) if self.total else 0
        return ParkingEventBucket(
            key=key,
            entries=self.entries,
            exits=self.exits,
            total=self.total,
            occupancy_delta=delta,
        )


class _OccupancyAccumulator:
    def __init__(self):
        self.count = 0
        self.entries = 0
        self.exits = 0
        self.rate_sum = 0.0
        self.rate_count = 0

    def add(self, record) -> None:
        self.count += 1
        self.entries += record.entry_count or 0
        self.exits += record.exit_count or 0
        if record.occupancy_rate is not None:
            self.rate_sum += record.occupancy_rate
            self.rate_count += 1

    def build(self, key: str) -> OccupancyBucket:
        rate = round1(self.rate_sum / self.rate_count * 100) if self.rate_count else None
        return OccupancyBucket(
            key=key,
            count=self.count,
            entries=self.entries,
            exits=self.exits,
            occupancy_rate=rate,
        )


class _WeatherAccumulator:
    def __init__(self):
        self.count = 0
        self.conditions: Counter = Counter()
        self.temperature_sum = 0
        self.temperature_count = 0
        self.humidity_sum = 0
        self.humidity_count = 0

    def add(self, record) -> None:
        self.count += 1
        if record.condition:
            self.conditions[record.condition] += 1
        if record.temperature_c is not None:
            self.temperature_sum += record.temperature_c
            self.temperature_count += 1
        if record.humidity_percent is not None:
            self.humidity_sum += record.humidity_percent
            self.humidity_count += 1

    def build(self, key: str) -> WeatherBucket:
        condition = self.conditions.most_common(1)[0][0] if self.conditions else ""
        return WeatherBucket(
            key=key,
            count=self.count,
            condition=condition,
            avg_temperature=(
                round1(self.temperature_sum / self.temperature_count) if self.temperature_count else None
            ),
            avg_humidity=round1(self.humidity_sum / self.humidity_count) if self.humidity_count else None,
        )


def _accumulate(
    records: Iterable[Any],
    granularity: Granularity,
    accumulator_factory: Callable[[], Any],
) -> List[Any]:
    """バケットごとに積み上げ、キー昇順のバケットリストを返す。

    records は select_records で振り分け可能なものに絞り込み済みであること。
    """
    grouped: Dict[str, Any] = {}
    for record in records:
        key = bucket_key(record, granularity)
        accumulator = grouped.get(key)
        if accumulator is None:
            accumulator = grouped[key] = accumulator_factory()
        accumulator.add(record)

    # 時間帯キーは 2 桁ゼロ埋め、日付キーは ISO 形式なので辞書順 = 時系列順
    return [grouped[key].build(key) for key in sorted(grouped)]


# ----------------------------------------------------------------------
# 4. カテゴリ集計
# ----------------------------------------------------------------------
def tally(
    values: Iterable[str],
    labels: Optional[Dict[str, str]] = None,
    order: Optional[Sequence[str]] = None,
) -> List[CategoryCount]:
    """値ごとの件数を数える。

    order があればその順で、無ければ初出順で返す。件数 0 の項目は含めない。
    """
    counts: Dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1

    keys = list(counts)
    if order is not None:
        known = [key for key in order if key in counts]
        keys = known + [key for key in keys if key not in known]

    labels = labels or {}
    return [CategoryCount(key=key, label=labels.get(key, key), count=counts[key]) for key in keys]


def breakdown_usage(records: Iterable[Any], classifier: Optional[UsageClassifier] = None) -> List[CategoryCount]:
    """用途区分ごとの件数"""
    classifier = classifier or KanaTableClassifier()
    return tally(
        (classifier.classify(record).value for record in records),
        labels=USAGE_LABELS,
        order=[category.value for category in UsageCategory],
    )


def breakdown_region(records: Iterable[Any]) -> List[CategoryCount]:
    """ナンバープレート地域ごとの件数。地域が空なら「不明」"""
    return tally((getattr(record, "region", "") or UNKNOWN_REGION_LABEL for record in records))


# ----------------------------------------------------------------------
# 天気の要約
# ----------------------------------------------------------------------
def summarize_weather(records: Iterable[Any], window: DateWindow) -> Optional[WeatherSummary]:
    """範囲内の天気を要約する。該当が無ければ None。

    天気は範囲内で最初の日のもの、気温と湿度は全日の平均（整数に四捨五入）。
    """
    selected = sorted(filter_records(records, window), key=lambda record: record.date)
    if not selected:
        return None

    temperatures = [record.temperature_c for record in selected if record.temperature_c is not None]
    humidities = [record.humidity_percent for record in selected if record.humidity_percent is not None]
    return WeatherSummary(
        window=window,
        days=len(selected),
        condition=selected[0].condition,
        temperature=round_int(sum(temperatures) / len(temperatures)) if temperatures else None,
        humidity=round_int(sum(humidities) / len(humidities)) if humidities else None,
    )


# ----------------------------------------------------------------------
# サービス
# ----------------------------------------------------------------------
class AggregationService:
    """種別ごとの時系列集計とカテゴリ集計の入口"""

    BREAKDOWN_DIMENSIONS: Dict[RecordKind, Tuple[str, ...]] = {
        RecordKind.TRAFFIC: ("vehicle_class", "direction"),
        RecordKind.PARKING: ("usage", "region", "vehicle_type", "direction"),
        RecordKind.PARKING_FLOW: ("usage", "region"),
        RecordKind.WEATHER: ("condition",),
    }

    def __init__(
        self,
        *,
        daily_min_days: int = DAILY_BUCKET_MIN_DAYS,
        congestion_speed: float = CONGESTION_SPEED_KMH,
        usage_classifiers: Optional[Dict[RecordKind, UsageClassifier]] = None,
    ):
        self.daily_min_days = daily_min_days
        self.congestion_speed = congestion_speed
        self.usage_classifiers = {**build_usage_classifiers(), **(usage_classifiers or {})}

    # ------------------------------------------------------------------
    # 時系列
    # ------------------------------------------------------------------
    def get_series(self, kind: RecordKind, records: Optional[Iterable[Any]], window: DateWindow) -> SeriesResult:
        """レコードを範囲で絞り込み、時間帯バケットの集計結果を返す"""
        factories: Dict[RecordKind, Callable[[], Any]] = {
            RecordKind.TRAFFIC: lambda: _TrafficAccumulator(self.congestion_speed),
            RecordKind.PARKING: _ParkingEventAccumulator,
            RecordKind.PARKING_FLOW: _OccupancyAccumulator,
            RecordKind.WEATHER: _WeatherAccumulator,
        }

        granularity = self.granularity_for(kind, window)
        selected, dropped = select_records(records, window, granularity)
        buckets = _accumulate(selected, granularity, factories[kind])
        return SeriesResult(
            kind=kind,
            window=window,
            granularity=granularity,
            buckets=buckets,
            record_count=sum(bucket.count for bucket in buckets),
            dropped_count=dropped,
        )

    def granularity_for(self, kind: RecordKind, window: DateWindow) -> Granularity:
        # 天気は日単位のレコードしかないため常に日単位
        if kind is RecordKind.WEATHER:
            return Granularity.DAY
        return choose_granularity(window, self.daily_min_days)

    # ------------------------------------------------------------------
    # カテゴリ
    # ------------------------------------------------------------------
    def default_dimension(self, kind: RecordKind) -> str:
        return self.BREAKDOWN_DIMENSIONS[kind][0]

    def record_to_dict(self, record: Any) -> Dict[str, Any]:
        """設定の渋滞速度で交通レコードの渋滞判定を付けた辞書を返す"""
        return record_to_dict(record, self.congestion_speed)

    def usage_strategy(self, kind: RecordKind) -> Optional[str]:
        """種別の用途区分に使う判定方式の名前。用途区分を持たない種別は None"""
        classifier = self.usage_classifiers.get(kind)
        return classifier.name if classifier is not None else None

    def get_category_breakdown(
        self,
        kind: RecordKind,
        records: Optional[Iterable[Any]],
        dimension: Optional[str] = None,
    ) -> List[CategoryCount]:
        """絞り込み済みのレコードをカテゴリ別に数える（時間帯には分けない）

        Raises:
            ValueError: 種別に対応しない集計軸が指定された場合
        """
        dimension = dimension or self.default_dimension(kind)
        if dimension not in self.BREAKDOWN_DIMENSIONS[kind]:
            supported = ", ".join(self.BREAKDOWN_DIMENSIONS[kind])
            raise ValueError(f"{kind.value} では集計軸 {dimension} は使えません（対応: {supported}）")

        records = list(records or [])
        if not records:
            return []

        if dimension == "usage":
            return breakdown_usage(records, self.usage_classifiers[kind])
        if dimension == "region":
            return breakdown_region(records)
        if dimension == "vehicle_class":
            return tally(
                (record.vehicle_class for record in records),
                labels=VEHICLE_CLASS_LABELS,
                order=[item.value for item in VehicleClass],
            )
        if dimension == "direction":
            order = (
                [item.value for item in TrafficDirection]
                if kind is RecordKind.TRAFFIC
                else [item.value for item in ParkingDirection]
            )
            return tally((record.direction for record in records), labels=DIRECTION_LABELS, order=order)
        if dimension == "vehicle_type":
            return tally(
                (record.vehicle_type for record in records),
                labels=VEHICLE_CLASS_LABELS,
                order=[item.value for item in VehicleClass],
            )
        return tally(
            (record.condition for record in records),
            labels=WEATHER_LABELS,
            order=[item.value for item in WeatherCondition],
        )

    def summarize_weather(self, records, window: DateWindow) -> Optional[WeatherSummary]:
        return summarize_weather(records, window)


_default_service = AggregationService()


def get_series(kind: RecordKind, records, window: DateWindow) -> SeriesResult:
    """既定設定での時系列集計"""
    return _default_service.get_series(kind, records, window)


def get_category_breakdown(kind: RecordKind, records, dimension: Optional[str] = None) -> List[CategoryCount]:
    """既定設定でのカテゴリ集計"""
    return _default_service.get_category_breakdown(kind, records, dimension)
