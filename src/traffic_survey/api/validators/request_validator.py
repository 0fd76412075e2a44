"""
API入力バリデーションモジュール

このモジュールは、APIリクエストの入力バリデーションを担当します。
責務: リクエストパラメータの検証とサニタイズ
"""

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from traffic_survey.api.constants import DATE_PATTERN, DEFAULT_OUTPUT_FORMAT, OUTPUT_FORMATS
from traffic_survey.domain.models import DateWindow, RecordKind, parse_kind
from traffic_survey.domain.services.aggregation import AggregationService

if TYPE_CHECKING:  # pragma: no cover - typing only
    from traffic_survey.api.handlers.dashboard_api import APIRequest


@dataclass
class ValidationResult:
    """バリデーション結果"""
    is_valid: bool
    errors: List[str]
    sanitized_data: Optional[Dict[str, Any]] = None


class BaseValidator:
    """バリデータの基底クラス"""

    def validate(self, data: Any) -> ValidationResult:
        """データをバリデーションする"""
        raise NotImplementedError

    def sanitize(self, data: Any) -> Any:
        """データをサニタイズする"""
        return data


def _validate_kind(value: Any, errors: List[str]) -> Optional[RecordKind]:
    if value is None or str(value).strip() == "":
        errors.append("Missing required field: kind")
        return None
    try:
        return parse_kind(value)
    except ValueError:
        supported = ", ".join(kind.value for kind in RecordKind)
        errors.append(f"Invalid kind: {value} (supported: {supported})")
        return None


def _validate_date(value: Any, field_name: str, errors: List[str]) -> Optional[str]:
    text = str(value).strip()
    if not DATE_PATTERN.match(text):
        errors.append(f"Invalid {field_name} format. Use YYYY-MM-DD")
        return None
    try:
        date.fromisoformat(text)
    except ValueError:
        errors.append(f"Invalid {field_name}: {text} is not a calendar date")
        return None
    return text


class DashboardRequestValidator(BaseValidator):
    """種別・日付範囲・集計軸・出力形式のバリデータ

    逆転した範囲（startDate > endDate）はエラーにせず、そのまま通す。
    集計結果が空になるだけである。
    """

    def __init__(self, require_window: bool = False, service: Optional[AggregationService] = None):
        self.require_window = require_window
        self._dimensions = (service or AggregationService()).BREAKDOWN_DIMENSIONS

    def validate(self, request: "APIRequest") -> ValidationResult:
        """ダッシュボードの取得リクエストをバリデーション"""
        params = request.parameters
        errors: List[str] = []
        sanitized: Dict[str, Any] = {}

        kind = _validate_kind(params.get("kind"), errors)
        sanitized["kind"] = kind

        window = self._validate_window(params, errors)
        sanitized["window"] = window

        dimension = params.get("dimension")
        if dimension is not None and kind is not None:
            dimension = str(dimension).strip()
            if dimension not in self._dimensions[kind]:
                supported = ", ".join(self._dimensions[kind])
                errors.append(f"Invalid dimension for {kind.value}: {dimension} (supported: {supported})")
        sanitized["dimension"] = dimension

        output_format = str(params.get("output_format") or DEFAULT_OUTPUT_FORMAT).strip().lower()
        if output_format not in OUTPUT_FORMATS:
            errors.append("Invalid output_format. Supported values are 'json' or 'csv'")
        sanitized["output_format"] = output_format

        if errors:
            return ValidationResult(is_valid=False, errors=errors)
        return ValidationResult(is_valid=True, errors=[], sanitized_data=sanitized)

    def _validate_window(self, params: Dict[str, Any], errors: List[str]) -> Optional[DateWindow]:
        start = params.get("start_date")
        end = params.get("end_date")
        single = params.get("date")

        if (start is None) != (end is None):
            errors.append("start_date and end_date must be given together")
            return None

        if start is not None:
            start_text = _validate_date(start, "start_date", errors)
            end_text = _validate_date(end, "end_date", errors)
            if start_text is None or end_text is None:
                return None
            return DateWindow(start=start_text, end=end_text)

        if single is not None:
            day = _validate_date(single, "date", errors)
            return DateWindow(start=day, end=day) if day else None

        if self.require_window:
            errors.append("Missing required field: date (or start_date and end_date)")
        return None


class UploadRequestValidator(BaseValidator):
    """CSV アップロードリクエストのバリデータ

    拡張子や列の検査は CSV パーサーが担当する。
    """

    def validate(self, request: "APIRequest") -> ValidationResult:
        params = request.parameters
        errors: List[str] = []

        kind = _validate_kind(params.get("kind"), errors)
        filename = str(params.get("filename") or "").strip()
        if not filename:
            errors.append("Missing required field: filename")
        content = params.get("content")
        if content is None:
            errors.append("Missing required field: content")

        if errors:
            return ValidationResult(is_valid=False, errors=errors)
        return ValidationResult(
            is_valid=True,
            errors=[],
            sanitized_data={"kind": kind, "filename": filename, "content": content},
        )


class KindOnlyValidator(BaseValidator):
    """種別だけを受け取るリクエスト（アップロード消去など）のバリデータ"""

    def validate(self, request: "APIRequest") -> ValidationResult:
        errors: List[str] = []
        kind = _validate_kind(request.parameters.get("kind"), errors)
        if errors:
            return ValidationResult(is_valid=False, errors=errors)
        return ValidationResult(is_valid=True, errors=[], sanitized_data={"kind": kind})


class ValidationFactory:
    """バリデータファクトリー"""

    @staticmethod
    def create_dashboard_validator(
        require_window: bool = False,
        service: Optional[AggregationService] = None,
    ) -> DashboardRequestValidator:
        return DashboardRequestValidator(require_window=require_window, service=service)

    @staticmethod
    def create_upload_validator() -> UploadRequestValidator:
        return UploadRequestValidator()

    @staticmethod
    def create_kind_validator() -> KindOnlyValidator:
        return KindOnlyValidator()
