import logging
from pathlib import Path

import yaml

from live_archiver.exceptions import ConfigError
from live_archiver.models import AppSettings, ChannelSets

logger = logging.getLogger(__name__)


def load_settings(config_path: str = "config/settings.yml") -> AppSettings:
    """設定ファイルを読み込む。

    ファイルが存在しない場合は既定値で動作する。

    Args:
        config_path: 設定ファイルのパス

    Returns:
        アプリケーション設定

    Raises:
        ConfigError: 形式が不正、または値が範囲外の場合
    """
    path = Path(config_path)
    if not path.exists():
        logger.warning("設定ファイルが見つからないため既定値を使用します: %s", config_path)
        return AppSettings()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML構文エラー: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("設定ファイルの形式が不正です")

    settings = _parse_settings(data)
    logger.info("設定ファイル読み込み完了: %s", config_path)
    return settings


def _parse_settings(data: dict) -> AppSettings:
    defaults = AppSettings()

    lists = data.get("lists") or {}
    download = data.get("download") or {}
    if not isinstance(lists, dict):
        raise ConfigError("listsの形式が不正です")
    if not isinstance(download, dict):
        raise ConfigError("downloadの形式が不正です")

    poll_interval = _positive_int(data, "poll_interval_seconds", defaults.poll_interval_seconds)
    retry_interval = _positive_int(data, "retry_interval_seconds", defaults.retry_interval_seconds)
    max_upcoming_hours = _positive_int(data, "max_upcoming_hours", defaults.max_upcoming_hours)
    log_retention_days = _positive_int(data, "log_retention_days", defaults.log_retention_days)
    socket_timeout = _positive_int(download, "socket_timeout", defaults.socket_timeout, prefix="download.")

    cookie_file = download.get("cookie_file", defaults.cookie_file)
    if not cookie_file or not isinstance(cookie_file, str):
        raise ConfigError(f"download.cookie_fileを指定してください: {cookie_file}")

    external_live_only = download.get("external_live_only", defaults.external_live_only)
    if not isinstance(external_live_only, bool):
        raise ConfigError(
            f"download.external_live_onlyはtrue/falseで指定してください: {external_live_only}"
        )

    return AppSettings(
        poll_interval_seconds=poll_interval,
        retry_interval_seconds=retry_interval,
        max_upcoming_hours=max_upcoming_hours,
        archive_list_path=lists.get("archive", defaults.archive_list_path),
        check_list_path=lists.get("check", defaults.check_list_path),
        keyword_list_path=lists.get("keywords", defaults.keyword_list_path),
        download_home=download.get("home", defaults.download_home),
        download_temp=download.get("temp", defaults.download_temp),
        socket_timeout=socket_timeout,
        cookie_file=cookie_file,
        external_live_only=external_live_only,
        log_dir=data.get("log_dir", defaults.log_dir),
        log_retention_days=log_retention_days,
    )


def _positive_int(data: dict, key: str, default: int, prefix: str = "") -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{prefix}{key}は1以上の整数で指定してください: {value}")
    return value


def read_list(file_path: str) -> list[str]:
    """行単位のリストファイルを読み込む。

    各行は前後の空白を除去し、空行と「#」で始まる行は無視する。

    Raises:
        ConfigError: ファイルが存在しない、または読み込めない場合
    """
    path = Path(file_path)
    if not path.exists():
        raise ConfigError(f"リストファイルが見つかりません: {file_path}")

    try:
        with open(path, encoding="utf-8") as f:
            lines = [line.strip() for line in f]
    except OSError as e:
        raise ConfigError(f"リストファイル読み込み失敗: {file_path}: {e}") from e

    return [line for line in lines if line and not line.startswith("#")]


def normalize_text(text: str) -> str:
    """小文字化し、空白文字をすべて取り除く。"""
    return "".join(text.lower().split())


def load_channel_sets(settings: AppSettings) -> ChannelSets:
    """アーカイブ・チェック・キーワードの各リストを読み込む。

    キーワードリストが存在しない場合は空として扱う。

    Raises:
        ConfigError: アーカイブリストまたはチェックリストが読み込めない場合
    """
    archive = read_list(settings.archive_list_path)
    check = read_list(settings.check_list_path)

    try:
        raw_keywords = read_list(settings.keyword_list_path)
    except ConfigError as e:
        logger.error("キーワードリスト読み込み失敗のため空として扱います: %s", e)
        raw_keywords = []

    keywords = tuple(k for k in (normalize_text(w) for w in raw_keywords) if k)

    logger.info(
        "監視リスト読み込み完了 - アーカイブ: %d, チェック: %d, キーワード: %d",
        len(archive),
        len(check),
        len(keywords),
    )
    return ChannelSets(
        archive=frozenset(archive),
        check=frozenset(check),
        keywords=keywords,
    )


def verify_credential_file(settings: AppSettings) -> None:
    """メンバー限定配信用のCookieファイルが存在することを確認する。

    Raises:
        ConfigError: ファイルが存在しない場合
    """
    if not Path(settings.cookie_file).is_file():
        raise ConfigError(f"Cookieファイルが見つかりません: {settings.cookie_file}")
