# traffic_survey/exporter/csv_exporter.py
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable

import pandas as pd

from traffic_survey.domain.models import CategoryCount, SeriesResult
from traffic_survey.logger.app_logger import get_logger

logger = get_logger(__name__)

# 列名の日本語表示
COLUMN_LABELS: Dict[str, str] = {
    "time": "時間帯",
    "count": "件数",
    "avgSpeed": "平均速度 (km/h)",
    "congested": "渋滞",
    "entries": "入庫数",
    "exits": "出庫数",
    "total": "合計",
    "occupancyDelta": "入出庫差率 (%)",
    "occupancyRate": "満車率 (%)",
    "weather": "天気",
    "avgTemperature": "平均気温 (°C)",
    "avgHumidity": "平均湿度 (%)",
    "name": "区分",
    "value": "件数",
}


def series_to_dataframe(series: SeriesResult, japanese_headers: bool = False) -> pd.DataFrame:
    """時系列集計を DataFrame に変換します。"""
    df = series.to_dataframe()
    if df.empty:
        return df
    if japanese_headers:
        df = df.rename(columns=COLUMN_LABELS)
    return df


def breakdown_to_dataframe(items: Iterable[CategoryCount], japanese_headers: bool = False) -> pd.DataFrame:
    """カテゴリ集計を DataFrame に変換します。"""
    rows = [item.to_dict() for item in items]
    df = pd.DataFrame(rows, columns=["key", "name", "value"])
    if japanese_headers:
        df = df.rename(columns=COLUMN_LABELS)
    return df


def series_to_csv(series: SeriesResult, japanese_headers: bool = False) -> str:
    """時系列集計を CSV 文字列にします。データが無い場合はヘッダーのみ。"""
    df = series_to_dataframe(series, japanese_headers=japanese_headers)
    if df.empty:
        header = ["time", "count"]
        if japanese_headers:
            header = [COLUMN_LABELS[name] for name in header]
        df = pd.DataFrame(columns=header)
    return df.to_csv(index=False)


def breakdown_to_csv(items: Iterable[CategoryCount], japanese_headers: bool = False) -> str:
    """カテゴリ集計を CSV 文字列にします。"""
    return breakdown_to_dataframe(items, japanese_headers=japanese_headers).to_csv(index=False)


def build_export_filename(series: SeriesResult) -> str:
    """出力ファイル名（種別_開始_終了_生成時刻.csv）"""
    stamp = datetime.now().strftime("%Y%m%d%H%M%S")
    return f"{series.kind.value}_{series.window.start}_{series.window.end}_{stamp}.csv"


def save_series_csv(series: SeriesResult, output_dir: Path, japanese_headers: bool = True) -> Path:
    """時系列集計を CSV ファイルに保存します（Excel で開けるよう BOM 付き UTF-8）。"""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / build_export_filename(series)

    df = series_to_dataframe(series, japanese_headers=japanese_headers)
    df.to_csv(output_path, index=False, encoding="utf-8-sig")
    logger.info("集計結果を保存しました: %s (%d 行)", output_path, len(df))
    return output_path
