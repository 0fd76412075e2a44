"""
API層の基本構造とインターフェース定義

このモジュールは、交通調査ダッシュボード API のエントリーポイントとして機能します。
責務: リクエストの受け付け、レスポンスの生成、例外から HTTP ステータスへの変換

設計コンセプト:
- API層はHTTPリクエスト/レスポンスの処理のみに専念する
- 取得・集計はコントローラー（DashboardController）に委譲する
- 「選択範囲にデータがない」は 200 の空結果として返す

例外とステータスの対応:
- RequestValidationError -> 400
- ParseFailure -> 422
- FetchFailure -> 502
- その他 -> 500

クラス構成:
1. データクラス (APIRequest, APIResponse): リクエストとレスポンスの構造を定義
2. 基底クラス (BaseAPIHandler, DashboardAPIHandler): 共通のインターフェースと処理の流れ
3. 具象クラス (SeriesAPIHandler など): エンドポイントごとの処理
4. ファクトリークラス (APIFactory): インスタンス生成を担当
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from traffic_survey.api.constants import CSV_MEDIA_TYPE
from traffic_survey.api.responses.response_builder import HTTPStatusCodes
from traffic_survey.api.validators.request_validator import BaseValidator, ValidationResult
from traffic_survey.controller.dashboard_controller import DashboardController
from traffic_survey.domain.errors import FetchFailure, ParseFailure
from traffic_survey.domain.models import RecordKind, empty_selection_message
from traffic_survey.exporter.csv_exporter import breakdown_to_csv, build_export_filename, series_to_csv
from traffic_survey.logger.app_logger import get_logger
from traffic_survey.version import get_app_info

logger = get_logger(__name__)


@dataclass
class APIRequest:
    """
    APIリクエストを表現するデータクラス

    FastAPI から受け取ったパスやクエリをこのクラスに変換して処理します。

    Attributes:
        endpoint (str): APIエンドポイントのパス（例: "/api/traffic/series"）
        method (str): HTTPメソッド（GET, POST, DELETE）
        parameters (Dict[str, Any]): パスパラメータ・クエリパラメータ・本文
        headers (Optional[Dict[str, str]]): HTTPヘッダー情報

    Example:
        >>> request = APIRequest(
        ...     endpoint="/api/traffic/series",
        ...     method="GET",
        ...     parameters={"kind": "traffic", "date": "2024-01-15"},
        ... )
    """
    endpoint: str
    method: str
    parameters: Dict[str, Any]
    headers: Optional[Dict[str, str]] = None


@dataclass
class APIResponse:
    """
    APIレスポンスを表現するデータクラス

    Attributes:
        status_code (int): HTTPステータスコード
        data (Any): レスポンス本体データ（辞書、CSV 文字列など）
        message (Optional[str]): ユーザーに表示するメッセージ
        timestamp (Optional[datetime]): レスポンス生成時刻
        content_type (str): 本文のメディアタイプ
        headers (Optional[Dict[str, str]]): 追加のレスポンスヘッダー
    """
    status_code: int
    data: Any
    message: Optional[str] = None
    timestamp: Optional[datetime] = None
    content_type: str = "application/json"
    headers: Optional[Dict[str, str]] = None


class RequestValidationError(ValueError):
    """入力検証で不正なパラメータが見つかった際に送出される例外。"""

    def __init__(self, errors: list[str]):
        super().__init__("入力検証に失敗しました")
        self.errors = errors


class BaseAPIHandler(ABC):
    """
    APIハンドラーの基底クラス

    すべてのAPIハンドラーが実装すべき共通インターフェースを定義します。
    """

    @abstractmethod
    def handle_request(self, request: APIRequest) -> APIResponse:
        """リクエストを処理する"""

    @abstractmethod
    def validate_request(self, request: APIRequest) -> bool:
        """必須パラメータがそろっているかを確認する"""


class DashboardAPIHandler(BaseAPIHandler):
    """
    コントローラーを利用するハンドラーの共通処理

    処理の流れ（テンプレートメソッド）:
    1. 必須パラメータの確認（validate_request）
    2. バリデータによる検証とサニタイズ
    3. サブクラスの process への委譲
    4. 例外の HTTP ステータスへの変換

    Attributes:
        required_fields: 必須のパラメータ名
        success_message: 成功時の既定メッセージ
    """

    required_fields: Tuple[str, ...] = ("kind",)
    success_message: str = "データの取得に成功しました"

    def __init__(self):
        self._controller: Optional[DashboardController] = None
        self._validator: Optional[BaseValidator] = None

    # ------------------------------------------------------------------
    # 依存性注入（DI）用のセッター
    # ------------------------------------------------------------------
    def set_controller(self, controller: DashboardController) -> None:
        """ダッシュボードコントローラーを設定"""
        self._controller = controller

    def set_validator(self, validator: BaseValidator) -> None:
        """入力バリデータを設定"""
        self._validator = validator

    @property
    def controller(self) -> DashboardController:
        if self._controller is None:
            raise RuntimeError("Controller is not configured. Call set_controller() before use.")
        return self._controller

    def handle_request(self, request: APIRequest) -> APIResponse:
        if not self.validate_request(request):
            return self._build_error_response(
                status_code=HTTPStatusCodes.BAD_REQUEST,
                message="Invalid request parameters",
                details={"missing_fields": self._missing_required_fields(request)},
            )

        try:
            params = self._run_validator(request)
            return self.process(params)
        except RequestValidationError as exc:
            return self._build_error_response(
                status_code=HTTPStatusCodes.BAD_REQUEST,
                message="Invalid request parameters",
                details={"errors": exc.errors},
            )
        except ParseFailure as exc:
            logger.warning("CSV の解析に失敗しました: %s", exc)
            return self._build_error_response(
                status_code=HTTPStatusCodes.UNPROCESSABLE_ENTITY,
                message=str(exc),
                details={"errors": exc.errors},
            )
        except FetchFailure as exc:
            logger.error("データの取得に失敗しました: %s", exc)
            return self._build_error_response(
                status_code=HTTPStatusCodes.BAD_GATEWAY,
                message=str(exc),
                details={"url": exc.url, "status_code": exc.status_code, "retryable": exc.retryable},
            )
        except Exception as exc:
            logger.exception("API 処理中に予期しないエラーが発生しました: %s", request.endpoint)
            return self._build_error_response(
                status_code=HTTPStatusCodes.INTERNAL_SERVER_ERROR,
                message="Internal server error",
                details={"reason": str(exc)},
            )

    def validate_request(self, request: APIRequest) -> bool:
        return len(self._missing_required_fields(request)) == 0

    @abstractmethod
    def process(self, params: Dict[str, Any]) -> APIResponse:
        """検証済みパラメータで処理を行う"""

    # ------------------------------------------------------------------
    # 内部ユーティリティ
    # ------------------------------------------------------------------
    def _missing_required_fields(self, request: APIRequest) -> list[str]:
        return [name for name in self.required_fields if request.parameters.get(name) in (None, "")]

    def _run_validator(self, request: APIRequest) -> Dict[str, Any]:
        """設定済みのバリデータを実行し、サニタイズ済みデータを返す"""
        if not self._validator:
            return dict(request.parameters)

        validation_result: ValidationResult = self._validator.validate(request)
        if not validation_result.is_valid:
            raise RequestValidationError(validation_result.errors)

        return validation_result.sanitized_data or dict(request.parameters)

    def _build_success_response(
        self,
        data: Any,
        *,
        message: Optional[str] = None,
        status_code: int = HTTPStatusCodes.OK,
    ) -> APIResponse:
        return APIResponse(
            status_code=status_code,
            data=data,
            message=message or self.success_message,
            timestamp=datetime.now(),
        )

    def _build_csv_response(self, body: str, filename: str) -> APIResponse:
        """CSV 本文を添付ファイルとして返す"""
        return APIResponse(
            status_code=HTTPStatusCodes.OK,
            data=body,
            message="CSV export generated successfully",
            timestamp=datetime.now(),
            content_type=CSV_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    def _build_error_response(
        self,
        *,
        status_code: int,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        payload: Dict[str, Any] = {
            "message": message,
            "details": details or {},
        }
        return APIResponse(
            status_code=status_code,
            data=payload,
            message=message,
            timestamp=datetime.now(),
            content_type="application/json",
        )


class RecordsAPIHandler(DashboardAPIHandler):
    """範囲内のレコード一覧（日付指定が無ければ全件）"""

    def process(self, params: Dict[str, Any]) -> APIResponse:
        kind: RecordKind = params["kind"]
        window = params.get("window")
        records = self.controller.list_records(kind, window)

        message = None
        if not records and window is not None:
            message = empty_selection_message(kind, window)
        data = {
            "kind": kind.value,
            "window": window.to_dict() if window else None,
            "using_csv": self.controller.store.is_using_upload(kind),
            "count": len(records),
            "empty": not records,
            "records": [self.controller.service.record_to_dict(record) for record in records],
        }
        return self._build_success_response(data, message=message)


class SeriesAPIHandler(DashboardAPIHandler):
    """時系列集計（JSON または CSV）"""

    success_message = "集計に成功しました"

    def process(self, params: Dict[str, Any]) -> APIResponse:
        view = self.controller.load(params["kind"], params["window"])
        series = view.series

        if params.get("output_format") == "csv":
            return self._build_csv_response(series_to_csv(series), build_export_filename(series))

        data = series.to_dict()
        data["using_csv"] = view.using_csv
        return self._build_success_response(data, message=series.empty_message())


class BreakdownAPIHandler(DashboardAPIHandler):
    """カテゴリ別集計（円グラフ用）"""

    success_message = "集計に成功しました"

    def process(self, params: Dict[str, Any]) -> APIResponse:
        kind: RecordKind = params["kind"]
        window = params.get("window")
        service = self.controller.service
        dimension = params.get("dimension") or service.default_dimension(kind)

        records = self.controller.list_records(kind, window)
        items = service.get_category_breakdown(kind, records, dimension)

        if params.get("output_format") == "csv":
            return self._build_csv_response(breakdown_to_csv(items), f"{kind.value}_{dimension}.csv")

        message = None
        if not items and window is not None:
            message = empty_selection_message(kind, window)
        data = {
            "kind": kind.value,
            "dimension": dimension,
            "strategy": service.usage_strategy(kind) if dimension == "usage" else None,
            "window": window.to_dict() if window else None,
            "empty": not items,
            "items": [item.to_dict() for item in items],
        }
        return self._build_success_response(data, message=message)


class WeatherSummaryAPIHandler(DashboardAPIHandler):
    """天気ウィジェット用の要約"""

    def process(self, params: Dict[str, Any]) -> APIResponse:
        window = params["window"]
        records = self.controller.list_records(RecordKind.WEATHER, window)
        summary = self.controller.service.summarize_weather(records, window)

        if summary is None:
            data = {"window": window.to_dict(), "empty": True}
            return self._build_success_response(
                data, message=empty_selection_message(RecordKind.WEATHER, window)
            )

        data = summary.to_dict()
        data["empty"] = False
        return self._build_success_response(data)


class UploadAPIHandler(DashboardAPIHandler):
    """CSV アップロード（種別ごとに丸ごと置き換え）"""

    required_fields = ("kind", "filename")

    def process(self, params: Dict[str, Any]) -> APIResponse:
        parsed = self.controller.upload_csv(params["kind"], params["filename"], params["content"])
        data = parsed.to_dict()
        data["using_csv"] = True
        return self._build_success_response(
            data,
            message=f"{parsed.record_count}件のデータを読み込みました",
            status_code=HTTPStatusCodes.CREATED,
        )


class ClearUploadAPIHandler(DashboardAPIHandler):
    """アップロードの消去（サンプルデータに戻す）"""

    def process(self, params: Dict[str, Any]) -> APIResponse:
        kind: RecordKind = params["kind"]
        self.controller.clear_upload(kind)
        return self._build_success_response(
            self.controller.store.status()[kind.value],
            message="サンプルデータに戻しました",
        )


class UploadStatusAPIHandler(DashboardAPIHandler):
    """種別ごとのデータソース状態"""

    required_fields = ()

    def process(self, params: Dict[str, Any]) -> APIResponse:
        return self._build_success_response(self.controller.store.status())


class HealthCheckAPIHandler(BaseAPIHandler):
    """
    ヘルスチェックAPIハンドラー

    常に正常なレスポンスを返す軽量なハンドラーです。
    """

    def handle_request(self, request: APIRequest) -> APIResponse:
        info = get_app_info()
        return APIResponse(
            status_code=HTTPStatusCodes.OK,
            data={
                "status": "healthy",
                "service": info["name"],
                "version": info["version"],
            },
            timestamp=datetime.now(),
        )

    def validate_request(self, request: APIRequest) -> bool:
        return True


class APIFactory:
    """
    APIハンドラーのファクトリークラス

    使用例:
        >>> handler = APIFactory.create_series_handler()
        >>> handler.set_controller(controller)
    """

    @staticmethod
    def create_records_handler() -> RecordsAPIHandler:
        return RecordsAPIHandler()

    @staticmethod
    def create_series_handler() -> SeriesAPIHandler:
        return SeriesAPIHandler()

    @staticmethod
    def create_breakdown_handler() -> BreakdownAPIHandler:
        return BreakdownAPIHandler()

    @staticmethod
    def create_weather_summary_handler() -> WeatherSummaryAPIHandler:
        return WeatherSummaryAPIHandler()

    @staticmethod
    def create_upload_handler() -> UploadAPIHandler:
        return UploadAPIHandler()

    @staticmethod
    def create_clear_upload_handler() -> ClearUploadAPIHandler:
        return ClearUploadAPIHandler()

    @staticmethod
    def create_upload_status_handler() -> UploadStatusAPIHandler:
        return UploadStatusAPIHandler()

    @staticmethod
    def create_health_check_handler() -> HealthCheckAPIHandler:
        return HealthCheckAPIHandler()
