"""バージョン情報管理モジュール"""

# バージョン情報
__version__ = "0.2.0"
__version_info__ = (0, 2, 0)

# アプリケーション情報
__app_name__ = "Rokko Traffic Survey Dashboard"
__description__ = "エッジ端末で収集した交通・駐車場・天気データを集計するダッシュボード API"
__author__ = "Rokko Traffic Survey Team"
__copyright__ = "2025"


def get_version():
    """バージョン文字列を取得する"""
    return __version__


def get_app_info():
    """アプリケーション情報を取得する"""
    return {
        "name": __app_name__,
        "version": __version__,
        "description": __description__,
        "author": __author__,
        "copyright": __copyright__
    }


def get_full_title():
    """完全なアプリケーションタイトルを取得する"""
    return f"{__app_name__} v{__version__}"
