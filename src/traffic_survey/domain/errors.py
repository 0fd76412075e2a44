"""
ドメイン層の例外定義

データ取得失敗とアップロード解析失敗の 2 種類のみを例外として扱う。
「選択範囲にデータがない」状態は例外ではなく、空の集計結果として表現する。
"""

from typing import List, Optional


class DashboardError(Exception):
    """ダッシュボード処理の基底例外"""

    retryable: bool = False


class FetchFailure(DashboardError):
    """データソースへのアクセスに失敗した（ネットワーク/HTTP エラー）"""

    retryable = True

    def __init__(self, message: str, *, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseFailure(DashboardError):
    """CSV アップロードを受理できない（拡張子不正、必須列不足、データ行なし）"""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]
