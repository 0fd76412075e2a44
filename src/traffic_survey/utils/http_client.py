"""HTTPユーティリティ: 共通ヘッダー付きの JSON GET を提供する。

データ取得の失敗はすべて FetchFailure に変換する。自動リトライは行わず、
再取得は利用者が日付選択の変更などで行う。
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

import requests
from requests import Response, exceptions as req_exc

from ..domain.errors import FetchFailure
from ..logger.app_logger import get_logger

logger = get_logger(__name__)

DEFAULT_HEADERS: dict[str, str] = {
    "Accept": "application/json",
    "Accept-Language": "ja,en-US;q=0.9,en;q=0.8",
    "User-Agent": "traffic-survey-dashboard",
}
DEFAULT_TIMEOUT = 10

RequestFunc = Callable[..., Response]


def get_json(
    url: str,
    *,
    params: Mapping[str, str] | None = None,
    headers: Mapping[str, str] | None = None,
    timeout: int = DEFAULT_TIMEOUT,
    request_func: RequestFunc | None = None,
) -> Any:
    """
    GET リクエストを送り、レスポンス本文を JSON として返す。

    :param url: アクセス先URL
    :param params: クエリパラメータ
    :param headers: 追加または上書きしたいヘッダー
    :param timeout: リクエストタイムアウト秒
    :param request_func: テスト用の差し替え（requests.get 互換）
    :raises FetchFailure: 通信エラー、HTTP エラー、JSON でない応答
    """
    merged_headers = dict(DEFAULT_HEADERS)
    if headers:
        merged_headers.update(headers)

    send = request_func or requests.get
    try:
        response = send(url, params=dict(params or {}), headers=merged_headers, timeout=timeout)
        response.raise_for_status()
    except req_exc.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else None
        logger.warning("HTTP エラー %s: %s", status, url)
        raise FetchFailure(f"データの取得に失敗しました (HTTP {status})", url=url, status_code=status) from exc
    except req_exc.RequestException as exc:
        logger.warning("通信エラー: %s (%s)", url, exc)
        raise FetchFailure(f"データの取得中にエラーが発生しました: {exc}", url=url) from exc

    try:
        return response.json()
    except ValueError as exc:
        logger.warning("JSON ではない応答を受信しました: %s", url)
        raise FetchFailure("データの形式が不正です（JSON ではありません）", url=url) from exc
