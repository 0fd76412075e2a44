"""
インフラ層のデータアクセスインターフェース

このモジュールは、レコード取得元のインターフェースを定義します。
責務: データソース（サンプルデータ / HTTP API / アップロード CSV）の抽象化
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from traffic_survey.domain.models import DateWindow, RecordKind


class IRecordSource(ABC):
    """レコード取得元のインターフェース"""

    @abstractmethod
    def fetch_records(self, kind: RecordKind, window: Optional[DateWindow] = None) -> List[Any]:
        """
        指定種別のレコードを取得

        window はサーバー側での絞り込みのヒントであり、呼び出し側は
        返却値を必ず自分で絞り込み直すこと。

        Raises:
            FetchFailure: 取得元へのアクセスに失敗した場合
        """
        pass


class IRecordStore(ABC):
    """アップロードされたレコードを保持するストアのインターフェース"""

    @abstractmethod
    def replace(self, kind: RecordKind, records: List[Any], source_name: Optional[str] = None) -> None:
        """種別のレコードを丸ごと置き換える"""
        pass

    @abstractmethod
    def clear(self, kind: RecordKind) -> None:
        """種別のレコードを消去する"""
        pass

    @abstractmethod
    def get(self, kind: RecordKind) -> Optional[List[Any]]:
        """保持しているレコード。アップロードが無ければ None"""
        pass
