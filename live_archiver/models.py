from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DurationClass(Enum):
    """ダウンローダーの失敗メッセージから読み取った待機区分"""
    IMMEDIATE = "immediate"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    YEARS = "years"
    MEMBER_GATE = "member-gate"
    TRANSIENT_DIFFICULTY = "transient-difficulty"


class FailureKind(Enum):
    """失敗メッセージの分類"""
    SCHEDULED = "scheduled"
    MEMBER_GATE = "member-gate"
    TRANSIENT = "transient"
    UNRECOGNIZED = "unrecognized"


class SessionState(Enum):
    """キャプチャセッションの状態"""
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    RECONCILE_LIVE = "reconcile-live"
    COMPLETED = "completed"
    FATAL = "fatal"


TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.FATAL})


class LiveStatus(Enum):
    """二次メタデータソースから取得した配信状態"""
    LIVE = "live"
    ENDED = "ended"
    UPCOMING = "upcoming"


@dataclass(frozen=True)
class FeedRecord:
    """フィードから取得した配信・プレースホルダー情報"""
    id: str
    channel_id: str
    title: str
    kind: str
    placeholder_type: Optional[str] = None
    status: Optional[str] = None
    link: Optional[str] = None


@dataclass(frozen=True)
class ChannelSets:
    """起動時に読み込む監視リスト（読み取り専用）"""
    archive: frozenset[str] = frozenset()
    check: frozenset[str] = frozenset()
    keywords: tuple[str, ...] = ()


@dataclass
class AppSettings:
    """アプリケーション設定"""
    poll_interval_seconds: int = 120
    retry_interval_seconds: int = 120
    max_upcoming_hours: int = 168
    archive_list_path: str = "lists/archive_list.txt"
    check_list_path: str = "lists/check_list.txt"
    keyword_list_path: str = "lists/key_words.txt"
    download_home: str = "downloads"
    download_temp: str = "active"
    socket_timeout: int = 60
    cookie_file: str = "resources/cookies.txt"
    external_live_only: bool = True
    log_dir: str = "logs"
    log_retention_days: int = 14


@dataclass
class DownloadOptions:
    """ダウンローダーに渡すオプション"""
    home: str = "downloads"
    temp: str = "active"
    live_only: bool = False
    cookie_file: Optional[str] = None
    socket_timeout: int = 60


@dataclass
class AttemptResult:
    """ダウンロード試行の結果。

    needs_reconcile は成功時に二次ソースでの配信状態確認が必要かどうかを示す。
    """
    success: bool
    failure_text: str = ""
    needs_reconcile: bool = False


@dataclass(frozen=True)
class FailureSignal:
    """失敗メッセージの分類結果"""
    kind: FailureKind
    token: str
    raw: str
    duration_class: Optional[DurationClass] = None
    magnitude: Optional[int] = None

