#!/usr/bin/env python3
"""交通調査ダッシュボード - エントリポイント"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from traffic_survey.domain.errors import DashboardError
from traffic_survey.domain.models import RecordKind
from traffic_survey.logger.app_logger import get_logger
from traffic_survey.version import get_full_title

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """コマンドライン引数のパーサーを構成する。"""
    parser = argparse.ArgumentParser(
        prog="traffic-survey",
        description=get_full_title(),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="API サーバーを起動する")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="コード変更時に自動で再起動する")

    summarize = subparsers.add_parser("summarize", help="集計結果を JSON で表示する")
    summarize.add_argument("kind", choices=[kind.value for kind in RecordKind])
    summarize.add_argument("--csv", type=Path, help="集計に使う CSV ファイル（省略時はデータソース）")
    summarize.add_argument("--date", help="単日モードの日付（YYYY-MM-DD）")
    summarize.add_argument("--start", help="範囲モードの開始日（YYYY-MM-DD）")
    summarize.add_argument("--end", help="範囲モードの終了日（YYYY-MM-DD）")
    summarize.add_argument("--dimension", help="表示するカテゴリ集計の軸")
    summarize.add_argument("--output-dir", type=Path, help="時系列集計を CSV 保存する場合の出力先")
    summarize.add_argument("--records", action="store_true", help="レコード一覧も出力する")
    return parser


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    logger.info("API サーバーを起動します: %s:%d", args.host, args.port)
    uvicorn.run("traffic_survey.api.app:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _summarize(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    from traffic_survey.app_container import build_dashboard_controller
    from traffic_survey.domain.services.window import resolve_window
    from traffic_survey.exporter.csv_exporter import save_series_csv

    range_mode = bool(args.start or args.end)
    try:
        window = resolve_window(
            selected_date=args.date,
            start_date=args.start,
            end_date=args.end,
            range_mode=range_mode,
        )
    except ValueError as exc:
        parser.error(str(exc))

    controller = build_dashboard_controller()
    dimensions = controller.service.BREAKDOWN_DIMENSIONS[RecordKind(args.kind)]
    if args.dimension and args.dimension not in dimensions:
        parser.error(f"{args.kind} の集計軸は {', '.join(dimensions)} のいずれかです")

    try:
        if args.csv:
            controller.upload_csv(args.kind, args.csv.name, args.csv.read_bytes())
        view = controller.load(args.kind, window)
    except (DashboardError, OSError) as exc:
        logger.error("集計に失敗しました: %s", exc)
        print(f"エラー: {exc}", file=sys.stderr)
        return 1

    payload = view.to_dict(include_records=args.records)
    if args.dimension:
        payload["breakdowns"] = {args.dimension: payload["breakdowns"][args.dimension]}
    if args.output_dir:
        payload["saved_to"] = str(save_series_csv(view.series, args.output_dir))

    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def run(argv: Sequence[str] | None = None) -> int:
    """CLI入口（スタンドアロン起動用）。"""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        return _serve(args)
    return _summarize(args, parser)


def main() -> None:
    """スクリプトのエントリポイント。"""
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
