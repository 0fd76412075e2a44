"""ダッシュボード 1 セッション分の状態と処理を司るコントローラー。"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..domain.models import (
    CONGESTION_SPEED_KMH,
    DateWindow,
    RecordKind,
    SeriesResult,
    WeatherSummary,
    parse_kind,
    record_to_dict,
)
from ..domain.services.aggregation import AggregationService, filter_records
from ..infrastructure.repositories.data_interfaces import IRecordSource
from ..infrastructure.repositories.record_store import RecordStore
from ..logger.app_logger import get_logger
from ..parser.csv_parser import ParsedUpload, parse_csv_upload


@dataclass(frozen=True)
class Selection:
    """取得要求の対象（種別と日付範囲）"""
    kind: RecordKind
    window: DateWindow


@dataclass(frozen=True)
class RequestTicket:
    """発行した取得要求の控え"""
    sequence: int
    selection: Selection


class SelectionTracker:
    """最新の選択に対する応答だけを採用するためのガード

    種別ごとに最後に発行した要求の番号を覚えておき、
    それより古い要求への応答は破棄する。
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest: Dict[RecordKind, int] = {}

    def issue(self, selection: Selection) -> RequestTicket:
        ticket = RequestTicket(sequence=next(self._counter), selection=selection)
        self._latest[selection.kind] = ticket.sequence
        return ticket

    def is_current(self, ticket: RequestTicket) -> bool:
        return self._latest.get(ticket.selection.kind) == ticket.sequence


@dataclass
class DashboardView:
    """1 つの選択に対する表示内容"""
    selection: Selection
    records: List[Any]
    series: SeriesResult
    breakdowns: Dict[str, list] = field(default_factory=dict)
    weather_summary: Optional[WeatherSummary] = None
    using_csv: bool = False
    usage_strategy: Optional[str] = None
    congestion_speed: float = CONGESTION_SPEED_KMH

    @property
    def is_empty(self) -> bool:
        return self.series.is_empty

    def to_dict(self, include_records: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "kind": self.selection.kind.value,
            "window": self.selection.window.to_dict(),
            "using_csv": self.using_csv,
            "empty": self.is_empty,
            "message": self.series.empty_message(),
            "series": self.series.to_dict(),
            "breakdowns": {
                name: [item.to_dict() for item in items]
                for name, items in self.breakdowns.items()
            },
        }
        if self.usage_strategy is not None:
            payload["usage_strategy"] = self.usage_strategy
        if self.weather_summary is not None:
            payload["weather_summary"] = self.weather_summary.to_dict()
        if include_records:
            payload["records"] = [record_to_dict(record, self.congestion_speed) for record in self.records]
        return payload


class DashboardController:
    """データ取得・アップロード・集計をまとめるコントローラー。"""

    logger = get_logger(__name__)

    def __init__(
        self,
        source: IRecordSource,
        store: Optional[RecordStore] = None,
        service: Optional[AggregationService] = None,
    ) -> None:
        """
        :param source: アップロードが無い場合のデータソース
        :param store: アップロード CSV のストア（セッションで共有する参照）
        :param service: 集計サービス
        """
        self.source = source
        self.store = store if store is not None else RecordStore()
        self.service = service or AggregationService()
        self.tracker = SelectionTracker()

    # ------------------------------------------------------------------
    # 取得
    # ------------------------------------------------------------------
    def begin(self, kind: Union[RecordKind, str], window: DateWindow) -> RequestTicket:
        """取得要求を発行する。以前の同種別の要求は古いものとして扱われる。"""
        return self.tracker.issue(Selection(kind=parse_kind(kind), window=window))

    def fetch(self, ticket: RequestTicket) -> List[Any]:
        """要求に対応するレコードを取得する（アップロードがあればそちらを優先）

        :raises FetchFailure: データソースへのアクセスに失敗した場合
        """
        return self._records_for(ticket.selection.kind, ticket.selection.window)

    def complete(self, ticket: RequestTicket, records: List[Any]) -> Optional[DashboardView]:
        """取得結果を表示内容へ変換する。古い要求への応答なら None を返して破棄する。"""
        if not self.tracker.is_current(ticket):
            self.logger.info(
                "古い選択への応答を破棄しました: %s %s",
                ticket.selection.kind.value,
                ticket.selection.window.to_dict(),
            )
            return None
        return self.build_view(ticket.selection, records)

    def load(self, kind: Union[RecordKind, str], window: DateWindow) -> DashboardView:
        """取得から表示内容の生成までを 1 回の呼び出しで行う

        呼び出し元が結果を直接受け取るため古い応答の判定は行わない。
        選択の切り替えに追従する画面側は begin / fetch / complete を使う。
        """
        selection = Selection(kind=parse_kind(kind), window=window)
        return self.build_view(selection, self._records_for(selection.kind, window))

    def build_view(self, selection: Selection, records: List[Any]) -> DashboardView:
        """レコードを絞り込み直し、時系列・カテゴリ集計をまとめる

        一覧・カテゴリ集計は時系列と同じ絞り込み結果を使うため、
        件数は常に sum(bucket.count) と一致する。
        """
        kind = selection.kind
        granularity = self.service.granularity_for(kind, selection.window)
        selected = filter_records(records, selection.window, granularity)
        series = self.service.get_series(kind, records, selection.window)

        breakdowns = {
            dimension: self.service.get_category_breakdown(kind, selected, dimension)
            for dimension in self.service.BREAKDOWN_DIMENSIONS[kind]
        }
        summary = None
        if kind is RecordKind.WEATHER:
            summary = self.service.summarize_weather(selected, selection.window)

        if not selected:
            self.logger.info("選択範囲にデータがありません: %s %s", kind.value, selection.window.to_dict())

        return DashboardView(
            selection=selection,
            records=sorted(selected, key=lambda record: record.partition_key),
            series=series,
            breakdowns=breakdowns,
            weather_summary=summary,
            using_csv=self.store.is_using_upload(kind),
            usage_strategy=self.service.usage_strategy(kind),
            congestion_speed=self.service.congestion_speed,
        )

    def list_records(self, kind: Union[RecordKind, str], window: Optional[DateWindow] = None) -> List[Any]:
        """範囲内のレコード一覧。window が無ければ全件"""
        records = self._records_for(parse_kind(kind), window)
        if window is None:
            return list(records)
        return filter_records(records, window)

    def _records_for(self, kind: RecordKind, window: Optional[DateWindow]) -> List[Any]:
        uploaded = self.store.get(kind)
        if uploaded is not None:
            return uploaded
        return self.source.fetch_records(kind, window)

    # ------------------------------------------------------------------
    # アップロード
    # ------------------------------------------------------------------
    def upload_csv(self, kind: Union[RecordKind, str], filename: str, content: Union[str, bytes]) -> ParsedUpload:
        """CSV を解析してストアの内容を置き換える

        :raises ParseFailure: 解析に失敗した場合（ストアは変更しない）
        """
        parsed = parse_csv_upload(kind, filename, content)
        self.store.replace(parsed.kind, parsed.records, source_name=filename)
        return parsed

    def clear_upload(self, kind: Union[RecordKind, str]) -> None:
        """アップロードを消去し、既定のデータソースへ戻す"""
        self.store.clear(parse_kind(kind))
