"""
交通調査ダッシュボードのログ設定

config.yml の ``logging`` セクションを読み、コンソールとローテーション付き
ファイルの 2 系統へ出力する。
"""

import logging
import logging.handlers
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..utils.path_utils import get_package_root, get_project_root

CONFIG_FILENAME = 'config.yml'
DEFAULT_LOG_FILE = 'outputs/traffic_survey/app.log'
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_initialized = False


class ConfigError(Exception):
    """ログ設定の読み込みエラー"""


@dataclass(frozen=True)
class LogSettings:
    """ログ出力の設定値"""

    level: str = 'INFO'
    file: Path = get_project_root() / DEFAULT_LOG_FILE
    max_size_mb: int = 10
    backup_count: int = 5
    format: str = DEFAULT_LOG_FORMAT

    @property
    def numeric_level(self) -> int:
        return getattr(logging, self.level.upper(), logging.INFO)

    @classmethod
    def from_section(cls, section: Dict[str, Any]) -> "LogSettings":
        """``logging`` セクションの辞書から設定を作る。相対パスはプロジェクトルート基準。"""
        log_file = Path(section.get('file') or DEFAULT_LOG_FILE)
        if not log_file.is_absolute():
            log_file = get_project_root() / log_file
        return cls(
            level=str(section.get('level', 'INFO')),
            file=log_file,
            max_size_mb=int(section.get('max_size_mb', 10)),
            backup_count=int(section.get('backup_count', 5)),
            format=str(section.get('format', DEFAULT_LOG_FORMAT)),
        )


def load_log_settings(config_path: Optional[Union[str, Path]] = None) -> LogSettings:
    """
    設定ファイルからログ設定を読み込む

    ファイルが無い場合は既定値を返す。

    Raises:
        ConfigError: YAML が壊れている、または値の型が不正な場合
    """
    path = Path(config_path) if config_path else get_package_root() / CONFIG_FILENAME
    if not path.exists():
        return LogSettings()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}
        return LogSettings.from_section(config.get('logging') or {})
    except (OSError, yaml.YAMLError, TypeError, ValueError, AttributeError) as e:
        raise ConfigError(f"ログ設定の読み込みに失敗しました: {e}") from e


def setup_logging(config_path: Optional[Union[str, Path]] = None) -> LogSettings:
    """
    ルートロガーにハンドラを設定する

    コンソールには WARNING 以上のみ、ファイルには設定レベル以上を出力します。
    既存のハンドラは置き換えます。

    Returns:
        LogSettings: 適用した設定
    """
    global _initialized

    settings = load_log_settings(config_path)
    settings.file.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(settings.format)

    console = logging.StreamHandler()
    console.setLevel(logging.WARNING)

    rotating = logging.handlers.RotatingFileHandler(
        settings.file,
        maxBytes=settings.max_size_mb * 1024 * 1024,
        backupCount=settings.backup_count,
        encoding='utf-8',
    )
    rotating.setLevel(settings.numeric_level)

    root = logging.getLogger()
    root.setLevel(settings.numeric_level)
    root.handlers.clear()
    for handler in (console, rotating):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    _initialized = True
    return settings


def get_logger(name: str) -> logging.Logger:
    """名前付きロガーを返す。初回呼び出し時にログ設定を遅延初期化する。"""
    global _initialized
    if not _initialized:
        try:
            setup_logging()
        except (ConfigError, OSError) as exc:
            logging.basicConfig(level=logging.INFO)
            _initialized = True
            print(f"警告: ログ設定の初期化に失敗しました: {exc}", file=sys.stderr)
    return logging.getLogger(name)
