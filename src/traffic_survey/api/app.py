"""交通調査ダッシュボードの API を FastAPI で公開するモジュール。

本モジュールはコントローラーとハンドラーを HTTP エンドポイントへ結線し、
フロントエンド（ブラウザ/JS）から JSON 経由で同一の集計処理を
利用できるようにします。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from traffic_survey.api.constants import API_PREFIX, JSON_MEDIA_TYPE
from traffic_survey.api.handlers.dashboard_api import (
    APIFactory,
    APIRequest,
    APIResponse,
    BaseAPIHandler,
    DashboardAPIHandler,
)
from traffic_survey.api.responses.response_builder import HTTPStatusCodes, ResponseFactory
from traffic_survey.app_container import build_api_handlers, build_dashboard_controller
from traffic_survey.controller.dashboard_controller import DashboardController
from traffic_survey.utils.config_loader import DashboardSettings, load_dashboard_settings
from traffic_survey.version import __app_name__, __description__, __version__

DEFAULT_ALLOW_ORIGINS: Iterable[str] = ("*",)


class SelectionQuery(BaseModel):
    """日付選択と集計オプションのクエリ。"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("date", "selectedDate"),
        description="単日モードの日付（YYYY-MM-DD）。",
    )
    start_date: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("start_date", "startDate"),
        description="範囲モードの開始日（YYYY-MM-DD）。",
    )
    end_date: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("end_date", "endDate"),
        description="範囲モードの終了日（YYYY-MM-DD）。",
    )
    dimension: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("dimension", "groupBy"),
        description="カテゴリ集計の軸（例: usage, region, vehicle_class）。",
    )
    output_format: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("format", "output_format", "outputFormat"),
        description="出力形式（json または csv）。",
    )

    @field_validator("date", "start_date", "end_date", "dimension", "output_format", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any):
        """空文字は未指定として扱う"""
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @model_validator(mode="after")
    def _validate_pair(self) -> "SelectionQuery":
        """startDate と endDate は両方そろえて指定する。"""
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("startDate と endDate は両方指定してください。")
        return self

    def to_parameters(self, kind: str) -> Dict[str, Any]:
        """ハンドラが期待する辞書形式のパラメータへ変換。"""
        params: Dict[str, Any] = {"kind": kind}
        if self.start_date is not None:
            params["start_date"] = self.start_date
            params["end_date"] = self.end_date
        elif self.date is not None:
            params["date"] = self.date
        if self.dimension is not None:
            params["dimension"] = self.dimension
        if self.output_format is not None:
            params["output_format"] = self.output_format
        return params


def _build_http_response(api_response: APIResponse) -> Response:
    """APIResponse を FastAPI Response に変換"""

    if api_response.content_type != JSON_MEDIA_TYPE:
        return Response(
            content=api_response.data or "",
            media_type=api_response.content_type,
            headers=api_response.headers or {},
            status_code=api_response.status_code,
        )

    payload = ResponseFactory.create_json_builder().build_payload(api_response)
    return JSONResponse(
        status_code=api_response.status_code,
        content=payload,
        headers=api_response.headers or {},
    )


def _query_error_response(exc: ValidationError) -> Response:
    errors = [error.get("msg", str(error)) for error in exc.errors()]
    return _build_http_response(
        APIResponse(
            status_code=HTTPStatusCodes.BAD_REQUEST,
            data={"message": "Invalid request parameters", "details": {"errors": errors}},
            message="Invalid request parameters",
            timestamp=datetime.now(),
        )
    )


def create_app(
    *,
    controller: Optional[DashboardController] = None,
    settings: Optional[DashboardSettings] = None,
    handlers: Optional[Mapping[str, DashboardAPIHandler]] = None,
    health_handler: Optional[BaseAPIHandler] = None,
    allow_origins: Optional[Iterable[str]] = None,
) -> FastAPI:
    """FastAPI アプリケーションを生成・設定します。"""

    if settings is None and (controller is None or allow_origins is None):
        settings = load_dashboard_settings()

    app = FastAPI(
        title=__app_name__,
        version=__version__,
        description=__description__,
        docs_url=f"{API_PREFIX}/docs",
        redoc_url=f"{API_PREFIX}/redoc",
        openapi_url=f"{API_PREFIX}/openapi.json",
    )

    origins = list(allow_origins or (settings.allow_origins if settings else DEFAULT_ALLOW_ORIGINS))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    configured_controller = controller or build_dashboard_controller(settings)
    configured_handlers = dict(handlers or build_api_handlers(configured_controller))
    configured_health_handler = health_handler or APIFactory.create_health_check_handler()
    app.state.controller = configured_controller

    def _dispatch(name: str, endpoint: str, method: str, parameters: Dict[str, Any]) -> Response:
        api_request = APIRequest(endpoint=endpoint, method=method, parameters=parameters)
        return _build_http_response(configured_handlers[name].handle_request(api_request))

    def _selection(request: Request) -> SelectionQuery:
        return SelectionQuery.model_validate(dict(request.query_params))

    # 固定パスは /api/{kind} より先に登録する
    @app.get(f"{API_PREFIX}/health", tags=["system"])
    def health_check() -> Response:
        """起動/フロントエンド側の簡易ヘルスチェック。"""

        api_response = configured_health_handler.handle_request(
            APIRequest(endpoint=f"{API_PREFIX}/health", method="GET", parameters={})
        )
        return _build_http_response(api_response)

    @app.get(f"{API_PREFIX}/uploads", tags=["uploads"])
    def upload_status() -> Response:
        """種別ごとのデータソース状態（CSV 使用中か、件数）。"""

        return _dispatch("upload_status", f"{API_PREFIX}/uploads", "GET", {})

    @app.post(f"{API_PREFIX}/uploads/{{kind}}", tags=["uploads"])
    async def upload_csv(kind: str, request: Request, filename: Optional[str] = Query(None)) -> Response:
        """CSV 本文を受け取り、種別のデータを丸ごと置き換える。"""

        content = await request.body()
        return _dispatch(
            "upload",
            f"{API_PREFIX}/uploads/{kind}",
            "POST",
            {"kind": kind, "filename": filename, "content": content},
        )

    @app.delete(f"{API_PREFIX}/uploads/{{kind}}", tags=["uploads"])
    def clear_upload(kind: str) -> Response:
        """アップロードを消去してサンプルデータに戻す。"""

        return _dispatch("clear_upload", f"{API_PREFIX}/uploads/{kind}", "DELETE", {"kind": kind})

    @app.get(f"{API_PREFIX}/weather/summary", tags=["weather"])
    def weather_summary(request: Request) -> Response:
        """天気ウィジェット用の要約（先頭日の天気、平均気温・湿度）。"""

        try:
            query = _selection(request)
        except ValidationError as exc:
            return _query_error_response(exc)
        return _dispatch(
            "weather_summary",
            f"{API_PREFIX}/weather/summary",
            "GET",
            query.to_parameters("weather"),
        )

    @app.get(f"{API_PREFIX}/{{kind}}/series", tags=["dashboard"])
    def series(kind: str, request: Request) -> Response:
        """時間帯ごとの集計。?format=csv で CSV を返す。"""

        try:
            query = _selection(request)
        except ValidationError as exc:
            return _query_error_response(exc)
        return _dispatch("series", f"{API_PREFIX}/{kind}/series", "GET", query.to_parameters(kind))

    @app.get(f"{API_PREFIX}/{{kind}}/breakdown", tags=["dashboard"])
    def breakdown(kind: str, request: Request) -> Response:
        """カテゴリ別の件数（円グラフ用）。"""

        try:
            query = _selection(request)
        except ValidationError as exc:
            return _query_error_response(exc)
        return _dispatch("breakdown", f"{API_PREFIX}/{kind}/breakdown", "GET", query.to_parameters(kind))

    @app.get(f"{API_PREFIX}/{{kind}}", tags=["dashboard"])
    def records(kind: str, request: Request) -> Response:
        """レコード一覧。date または startDate/endDate で絞り込む。"""

        try:
            query = _selection(request)
        except ValidationError as exc:
            return _query_error_response(exc)
        return _dispatch("records", f"{API_PREFIX}/{kind}", "GET", query.to_parameters(kind))

    return app


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual entry point
    import uvicorn

    uvicorn.run("traffic_survey.api.app:app", host="0.0.0.0", port=8000, reload=True)
