"""API 層で共通利用する定数定義。"""

import re

API_PREFIX = "/api"

OUTPUT_FORMATS: tuple[str, ...] = ("json", "csv")
DEFAULT_OUTPUT_FORMAT = "json"

# クエリの日付は YYYY-MM-DD のみ受け付ける
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

CSV_MEDIA_TYPE = "text/csv"
JSON_MEDIA_TYPE = "application/json"
