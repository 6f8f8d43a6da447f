import logging
import os
import sys
import threading
import time
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv

from live_archiver.capture_session import CaptureSession, build_options, start_session
from live_archiver.classifier import SeenSet, dispatch_new
from live_archiver.config_loader import load_channel_sets, load_settings, verify_credential_file
from live_archiver.downloader import Downloader, YtDlpDownloader
from live_archiver.exceptions import ConfigError
from live_archiver.feed_poller import FeedClient
from live_archiver.metadata_source import YouTubeMetadataSource
from live_archiver.models import AppSettings, ChannelSets

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def setup_logging(settings: AppSettings) -> None:
    """標準エラー出力と日次ローテーションのログファイルに出力する。"""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = TimedRotatingFileHandler(
        log_dir / "live_archiver.log",
        when="midnight",
        backupCount=settings.log_retention_days,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(stream_handler)
    root.addHandler(file_handler)


def make_spawner(
    settings: AppSettings,
    downloader: Downloader,
    metadata_source: YouTubeMetadataSource,
) -> Callable[[str], threading.Thread]:
    """取得対象ごとにセッションをスレッドで起動する関数を返す。"""

    def spawn(target: str) -> threading.Thread:
        session = CaptureSession(
            target=target,
            downloader=downloader,
            metadata_source=metadata_source,
            options=build_options(settings, target),
            credential_file=settings.cookie_file,
        )
        return start_session(session)

    return spawn


def run_cycle(
    feed_client: FeedClient,
    channel_sets: ChannelSets,
    seen: SeenSet,
    spawn: Callable[[str], threading.Thread],
    settings: AppSettings,
) -> list[str]:
    """フィードを1回取得し、新しい取得対象のセッションを起動する。"""
    records = feed_client.poll_until_success(settings.retry_interval_seconds)
    dispatched = dispatch_new(records, channel_sets, seen, spawn)
    logger.debug(
        "ポーリング完了 - レコード数: %d, 起動: %d, 起動済み合計: %d",
        len(records),
        len(dispatched),
        len(seen),
    )
    return dispatched


def main() -> None:
    """メイン処理フロー。

    1. 環境変数の検証
    2. 設定・監視リストの読み込み
    3. フィードを定期的に取得し、取得対象ごとにセッションを起動
    """
    # .envファイルから環境変数を読み込み（存在しない場合は無視）
    load_dotenv()

    holodex_api_key = os.environ.get("HOLODEX_API_KEY", "")
    youtube_api_key = os.environ.get("YOUTUBE_API_KEY", "")

    try:
        settings = load_settings(os.environ.get("LIVE_ARCHIVER_CONFIG", "config/settings.yml"))
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
        logger.error("設定エラー: %s", e)
        sys.exit(1)

    setup_logging(settings)

    if not holodex_api_key:
        logger.error("環境変数 HOLODEX_API_KEY が設定されていません")
        sys.exit(1)
    if not youtube_api_key:
        logger.error("環境変数 YOUTUBE_API_KEY が設定されていません")
        sys.exit(1)

    try:
        channel_sets = load_channel_sets(settings)
        verify_credential_file(settings)
    except ConfigError as e:
        logger.error("起動時エラー: %s", e)
        sys.exit(1)

    feed_client = FeedClient(holodex_api_key, max_upcoming_hours=settings.max_upcoming_hours)
    spawn = make_spawner(settings, YtDlpDownloader(), YouTubeMetadataSource(youtube_api_key))
    seen = SeenSet()

    logger.info("監視開始 - ポーリング間隔: %d秒", settings.poll_interval_seconds)

    while True:
        run_cycle(feed_client, channel_sets, seen, spawn, settings)
        time.sleep(settings.poll_interval_seconds)


if __name__ == "__main__":
    main()
