"""六甲山・摩耶山 交通調査ダッシュボードのバックエンドパッケージ。"""

from .version import __version__

__all__ = ["__version__"]
