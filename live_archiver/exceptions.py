class AppError(Exception):
    """アプリケーション基底例外"""
    pass


class ConfigError(AppError):
    """設定・リストファイル関連エラー（起動時に致命的）"""
    pass


class FeedFetchError(AppError):
    """配信フィード取得失敗（一時的）"""
    pass


class MetadataLookupError(AppError):
    """二次メタデータソースでの配信状態取得失敗"""
    pass
