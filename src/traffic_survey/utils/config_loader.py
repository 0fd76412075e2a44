"""設定ファイル読み込みユーティリティ"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..logger.app_logger import get_logger
from .path_utils import get_package_root


logger = get_logger(__name__)

KANA_TABLE_STRATEGY = "kana_table"
STAY_DURATION_STRATEGY = "stay_duration"


@dataclass(frozen=True)
class UsageClassificationSettings:
    """用途区分の判定設定"""
    strategy: str = KANA_TABLE_STRATEGY
    rental_region: str = "Kobe"
    commercial_min_stay_minutes: int = 180
    rental_max_stay_minutes: int = 120


@dataclass(frozen=True)
class DashboardSettings:
    """ダッシュボード全体の設定値"""
    base_url: str = ""
    timeout_seconds: int = 10
    daily_bucket_min_days: int = 3
    congestion_speed_kmh: float = 30.0
    allow_origins: List[str] = field(default_factory=lambda: ["*"])
    usage: UsageClassificationSettings = field(default_factory=UsageClassificationSettings)


def get_default_config_path() -> Path:
    """Return the canonical config file location."""

    return get_package_root() / "config.yml"


def load_config(config_path: str | Path | None = None) -> Dict[str, Any]:
    """Load configuration data, tolerating missing files."""

    if config_path is None:
        config_path = get_default_config_path()
    else:
        config_path = Path(config_path)

    try:
        with config_path.open("r", encoding="utf-8") as file:
            config = yaml.safe_load(file) or {}
        logger.info("設定ファイルを読み込みました: %s", config_path)
        return config
    except FileNotFoundError:
        logger.warning("設定ファイルが見つかりません。デフォルト設定を使用します: %s", config_path)
        return {}
    except yaml.YAMLError as exc:
        logger.error("設定ファイルの解析エラー: %s", exc)
        raise


def load_dashboard_settings(
    config: Dict[str, Any] | None = None,
    config_path: str | Path | None = None,
) -> DashboardSettings:
    """設定辞書から DashboardSettings を構築する。"""

    if config is None:
        config = load_config(config_path)
    if not isinstance(config, dict):
        config = {}

    source_config = config.get("data_source", {}) or {}
    dashboard_config = config.get("dashboard", {}) or {}
    usage_config = config.get("usage_classification", {}) or {}
    api_config = config.get("api", {}) or {}

    defaults = UsageClassificationSettings()
    strategy = str(usage_config.get("strategy", defaults.strategy)).strip().lower()
    if strategy not in (KANA_TABLE_STRATEGY, STAY_DURATION_STRATEGY):
        logger.warning("未知の用途区分方式です。%s を使用します: %s", KANA_TABLE_STRATEGY, strategy)
        strategy = KANA_TABLE_STRATEGY

    usage = UsageClassificationSettings(
        strategy=strategy,
        rental_region=str(usage_config.get("rental_region", defaults.rental_region)),
        commercial_min_stay_minutes=int(
            usage_config.get("commercial_min_stay_minutes", defaults.commercial_min_stay_minutes)
        ),
        rental_max_stay_minutes=int(
            usage_config.get("rental_max_stay_minutes", defaults.rental_max_stay_minutes)
        ),
    )

    origins = api_config.get("allow_origins") or ["*"]
    if isinstance(origins, str):
        origins = [item.strip() for item in origins.split(",") if item.strip()]

    return DashboardSettings(
        base_url=str(source_config.get("base_url") or ""),
        timeout_seconds=int(source_config.get("timeout_seconds", 10)),
        daily_bucket_min_days=int(dashboard_config.get("daily_bucket_min_days", 3)),
        congestion_speed_kmh=float(dashboard_config.get("congestion_speed_kmh", 30)),
        allow_origins=list(origins),
        usage=usage,
    )
