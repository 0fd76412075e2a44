"""
アップロード CSV のレコードストア

アップロードされたレコードを種別ごとにメモリ上で保持します。
再アップロードは常に丸ごと置き換え（既存データとのマージはしない）、
クリアで「サンプルデータ使用」状態に戻ります。
ストアは 1 つのダッシュボードセッションが所有し、参照渡しで共有します。
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from traffic_survey.domain.models import KIND_LABELS, RecordKind
from traffic_survey.logger.app_logger import get_logger

from .data_interfaces import IRecordStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredUpload:
    """保持中のアップロード 1 件"""
    records: tuple
    source_name: Optional[str]
    uploaded_at: datetime


class RecordStore(IRecordStore):
    """種別ごとのアップロードレコードを保持するストア"""

    def __init__(self):
        self._uploads: Dict[RecordKind, StoredUpload] = {}

    def replace(self, kind: RecordKind, records: List[Any], source_name: Optional[str] = None) -> None:
        self._uploads[kind] = StoredUpload(
            records=tuple(records),
            source_name=source_name,
            uploaded_at=datetime.now(),
        )
        logger.info("%sを置き換えました: %d 件 (%s)", KIND_LABELS[kind], len(records), source_name or "-")

    def clear(self, kind: RecordKind) -> None:
        if self._uploads.pop(kind, None) is not None:
            logger.info("%sのアップロードを消去しました", KIND_LABELS[kind])

    def get(self, kind: RecordKind) -> Optional[List[Any]]:
        upload = self._uploads.get(kind)
        return list(upload.records) if upload is not None else None

    def is_using_upload(self, kind: RecordKind) -> bool:
        return kind in self._uploads

    def count(self, kind: RecordKind) -> int:
        upload = self._uploads.get(kind)
        return len(upload.records) if upload is not None else 0

    def status(self) -> Dict[str, Dict[str, Any]]:
        """種別ごとのデータソース状態"""
        result: Dict[str, Dict[str, Any]] = {}
        for kind in RecordKind:
            upload = self._uploads.get(kind)
            result[kind.value] = {
                "using_csv": upload is not None,
                "record_count": len(upload.records) if upload else 0,
                "source_name": upload.source_name if upload else None,
                "uploaded_at": upload.uploaded_at.isoformat() if upload else None,
            }
        return result

