"""依存性注入コンテナ

`DashboardController` や API ハンドラーを組み立てるためのヘルパー関数を定義します。
API と CLI から共通のコントローラーを利用できるようにします。
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from traffic_survey.api.handlers.dashboard_api import APIFactory, DashboardAPIHandler
from traffic_survey.api.validators.request_validator import ValidationFactory
from traffic_survey.controller.dashboard_controller import DashboardController
from traffic_survey.domain.services.aggregation import AggregationService
from traffic_survey.domain.services.usage_classifier import build_usage_classifiers
from traffic_survey.infrastructure.repositories.data_interfaces import IRecordSource
from traffic_survey.infrastructure.repositories.http_source import HttpRecordSource
from traffic_survey.infrastructure.repositories.mock_data import MockRecordSource
from traffic_survey.infrastructure.repositories.record_store import RecordStore
from traffic_survey.logger.app_logger import get_logger
from traffic_survey.utils.config_loader import DashboardSettings, load_dashboard_settings

logger = get_logger(__name__)


def build_aggregation_service(settings: Optional[DashboardSettings] = None) -> AggregationService:
    """設定から `AggregationService` を構築して返す"""

    settings = settings or DashboardSettings()
    return AggregationService(
        daily_min_days=settings.daily_bucket_min_days,
        congestion_speed=settings.congestion_speed_kmh,
        usage_classifiers=build_usage_classifiers(settings.usage),
    )


def build_record_source(
    settings: Optional[DashboardSettings] = None,
    *,
    request_func: Optional[Callable[..., Any]] = None,
) -> IRecordSource:
    """base_url が設定されていれば HTTP、無ければサンプルデータのソースを返す"""

    settings = settings or DashboardSettings()
    if settings.base_url:
        logger.info("HTTP データソースを使用します: %s", settings.base_url)
        return HttpRecordSource(
            settings.base_url,
            timeout=settings.timeout_seconds,
            request_func=request_func,
        )
    logger.info("サンプルデータを使用します")
    return MockRecordSource()


def build_dashboard_controller(
    settings: Optional[DashboardSettings] = None,
    *,
    source: Optional[IRecordSource] = None,
    store: Optional[RecordStore] = None,
) -> DashboardController:
    """`DashboardController` を構築して返す"""

    if settings is None:
        settings = load_dashboard_settings()
    return DashboardController(
        source=source or build_record_source(settings),
        store=store if store is not None else RecordStore(),
        service=build_aggregation_service(settings),
    )


def build_api_handlers(controller: DashboardController) -> Dict[str, DashboardAPIHandler]:
    """エンドポイントごとのハンドラーを構築して返す"""

    service = controller.service
    handlers: Dict[str, DashboardAPIHandler] = {
        "records": APIFactory.create_records_handler(),
        "series": APIFactory.create_series_handler(),
        "breakdown": APIFactory.create_breakdown_handler(),
        "weather_summary": APIFactory.create_weather_summary_handler(),
        "upload": APIFactory.create_upload_handler(),
        "clear_upload": APIFactory.create_clear_upload_handler(),
        "upload_status": APIFactory.create_upload_status_handler(),
    }
    validators = {
        "records": ValidationFactory.create_dashboard_validator(service=service),
        "series": ValidationFactory.create_dashboard_validator(require_window=True, service=service),
        "breakdown": ValidationFactory.create_dashboard_validator(service=service),
        "weather_summary": ValidationFactory.create_dashboard_validator(require_window=True, service=service),
        "upload": ValidationFactory.create_upload_validator(),
        "clear_upload": ValidationFactory.create_kind_validator(),
    }

    for name, handler in handlers.items():
        handler.set_controller(controller)
        if name in validators:
            handler.set_validator(validators[name])
    return handlers
