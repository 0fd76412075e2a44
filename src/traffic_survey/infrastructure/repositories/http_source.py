"""
HTTP API のデータソース

`/api/{kind}` から JSON 配列を取得してレコードに変換します。
サーバー側の絞り込み（date / startDate&endDate）は最適化にすぎないため、
呼び出し側で必ず絞り込み直します。
"""

from typing import Any, Callable, Dict, List, Optional

from traffic_survey.domain.errors import FetchFailure
from traffic_survey.domain.models import DateWindow, RecordKind, records_from_dicts
from traffic_survey.logger.app_logger import get_logger
from traffic_survey.utils.http_client import DEFAULT_TIMEOUT, get_json

from .data_interfaces import IRecordSource

logger = get_logger(__name__)

# 種別ごとのエンドポイント（parking_flow は旧版サーバーの集計形式）
ENDPOINTS: Dict[RecordKind, str] = {
    RecordKind.TRAFFIC: "traffic",
    RecordKind.PARKING: "parking",
    RecordKind.PARKING_FLOW: "parking_flow",
    RecordKind.WEATHER: "weather",
}


def build_query(window: Optional[DateWindow]) -> Dict[str, str]:
    """範囲からクエリパラメータを組み立てる"""
    if window is None:
        return {}
    if window.is_single_day:
        return {"date": window.start}
    return {"startDate": window.start, "endDate": window.end}


class HttpRecordSource(IRecordSource):
    """HTTP GET でレコードを取得するデータソース"""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        request_func: Optional[Callable[..., Any]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._request_func = request_func

    def build_url(self, kind: RecordKind) -> str:
        return f"{self.base_url}/{ENDPOINTS[kind]}"

    def fetch_records(self, kind: RecordKind, window: Optional[DateWindow] = None) -> List[Any]:
        url = self.build_url(kind)
        payload = get_json(
            url,
            params=build_query(window),
            timeout=self.timeout,
            request_func=self._request_func,
        )
        if not isinstance(payload, list):
            raise FetchFailure("データの形式が不正です（配列ではありません）", url=url)

        records = records_from_dicts(kind, payload)
        logger.info("%s から %d 件取得しました", url, len(records))
        return records
