"""
APIレスポンス処理モジュール

このモジュールは、APIレスポンスのフォーマット統一と処理を担当します。
責務: レスポンスの生成、フォーマット、エラーハンドリング
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from traffic_survey.api.handlers.dashboard_api import APIResponse


class ResponseFormatter:
    """レスポンスフォーマッター"""

    @staticmethod
    def format_success(data: Any, message: Optional[str] = None, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
        """成功レスポンスをフォーマット"""
        return {
            "status": "success",
            "message": message,
            "data": data,
            "timestamp": (timestamp or datetime.now()).isoformat(),
        }

    @staticmethod
    def format_error(
        error_code: int,
        message: str,
        details: Optional[Any] = None,
        timestamp: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """エラーレスポンスをフォーマット"""
        return {
            "status": "error",
            "message": message,
            "data": details,
            "error": {"code": error_code, "message": message},
            "timestamp": (timestamp or datetime.now()).isoformat(),
        }


class JSONResponseBuilder:
    """JSONレスポンスビルダー"""

    def build_payload(self, response: "APIResponse") -> Dict[str, Any]:
        """APIResponse から JSON 化前の辞書を構築"""
        if response.status_code >= 400:
            return ResponseFormatter.format_error(
                error_code=response.status_code,
                message=response.message or "Unknown error",
                details=response.data,
                timestamp=response.timestamp,
            )
        return ResponseFormatter.format_success(
            data=response.data,
            message=response.message,
            timestamp=response.timestamp,
        )


class ResponseFactory:
    """レスポンスビルダーのファクトリー"""

    @staticmethod
    def create_json_builder() -> JSONResponseBuilder:
        """JSONレスポンスビルダーを作成"""
        return JSONResponseBuilder()


class HTTPStatusCodes:
    """HTTPステータスコード定義"""

    OK = 200
    CREATED = 201

    BAD_REQUEST = 400
    NOT_FOUND = 404
    UNPROCESSABLE_ENTITY = 422

    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
