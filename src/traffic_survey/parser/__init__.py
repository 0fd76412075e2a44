# traffic_survey/parser/__init__.py
from .csv_parser import CsvUploadParser, ParsedUpload, parse_csv_upload, required_columns

__all__ = ["CsvUploadParser", "ParsedUpload", "parse_csv_upload", "required_columns"]
