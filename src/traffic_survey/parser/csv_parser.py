"""アップロードされた CSV をレコードへ変換するパーサー

ヘッダー行の列名で必須列を確認し、各行をカンマで単純分割して
レコード型の from_mapping に渡す（数値列の型変換はレコード側で行う）。
引用符で囲まれたカンマには対応しない。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

from ..domain.errors import ParseFailure
from ..domain.models import KIND_LABELS, RECORD_TYPES, RecordKind, parse_kind
from ..logger.app_logger import get_logger

logger = get_logger(__name__)

CSV_EXTENSION = ".csv"


def required_columns(kind: RecordKind) -> Tuple[str, ...]:
    """種別ごとの必須列"""
    return RECORD_TYPES[kind].WIRE_FIELDS


def _split_line(line: str) -> List[str]:
    return [value.strip().replace('"', '') for value in line.split(',')]


@dataclass
class ParsedUpload:
    """CSV アップロードの解析結果"""
    kind: RecordKind
    filename: str
    columns: List[str]
    records: List[Any] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "filename": self.filename,
            "columns": list(self.columns),
            "record_count": self.record_count,
        }


class CsvUploadParser:
    """種別ごとの CSV パーサー"""

    def __init__(self, kind: Union[RecordKind, str]):
        self.kind = parse_kind(kind)
        self.record_type = RECORD_TYPES[self.kind]

    def parse(self, filename: str, content: Union[str, bytes]) -> ParsedUpload:
        """
        CSV テキストを解析してレコードのリストを返す

        Args:
            filename: アップロードされたファイル名（拡張子の確認に使用）
            content: CSV の内容（bytes の場合は UTF-8 として扱う）

        Returns:
            ParsedUpload: 解析結果

        Raises:
            ParseFailure: 拡張子が .csv でない、データ行が無い、必須列が不足している場合。
                一部だけ取り込むことはしない。
        """
        if not str(filename or "").lower().endswith(CSV_EXTENSION):
            raise ParseFailure("CSVファイルを選択してください")

        if isinstance(content, bytes):
            try:
                content = content.decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise ParseFailure("CSVファイルを UTF-8 として読み込めません") from exc
        text = content.lstrip("\ufeff").strip()
        lines = [line.rstrip("\r") for line in text.split("\n")]

        if len(lines) < 2:
            raise ParseFailure("CSVファイルにデータが含まれていません")

        headers = _split_line(lines[0])
        missing = [column for column in required_columns(self.kind) if column not in headers]
        if missing:
            raise ParseFailure(
                f"必要な列が不足しています: {', '.join(missing)}",
                errors=[f"Missing required column: {column}" for column in missing],
            )

        records = []
        for line in lines[1:]:
            if not line.strip():
                continue
            values = _split_line(line)
            row = {header: (values[index] if index < len(values) else "") for index, header in enumerate(headers)}
            records.append(self.record_type.from_mapping(row))

        if not records:
            raise ParseFailure("CSVファイルにデータが含まれていません")

        logger.info(
            "%sのCSVを読み込みました: %s (%d 件)",
            KIND_LABELS[self.kind], filename, len(records),
        )
        return ParsedUpload(kind=self.kind, filename=filename, columns=headers, records=records)


def parse_csv_upload(kind: Union[RecordKind, str], filename: str, content: Union[str, bytes]) -> ParsedUpload:
    """CSV アップロードを解析するヘルパー関数"""
    return CsvUploadParser(kind).parse(filename, content)
