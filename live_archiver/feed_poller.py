import logging
import time

import requests

from live_archiver.exceptions import FeedFetchError
from live_archiver.models import FeedRecord

logger = logging.getLogger(__name__)

LIVE_URL = "https://holodex.net/api/v2/live"
TIMEOUT_SECONDS = 30

# 取得失敗時の待機秒数（フィードの更新間隔に合わせて固定）
RETRY_INTERVAL_SECONDS = 120


class FeedClient:
    """Holodex の配信フィードを取得する。"""

    def __init__(self, api_key: str, max_upcoming_hours: int = 168):
        self._headers = {"X-APIKEY": api_key}
        self._params = {
            "type": "stream,placeholder",
            "max_upcoming_hours": str(max_upcoming_hours),
        }

    def fetch_live(self) -> list[FeedRecord]:
        """配信中・配信予定のレコードを1回だけ取得する。

        Returns:
            フィードレコードのリスト

        Raises:
            FeedFetchError: HTTPエラー、通信エラー、またはレスポンスが不正な場合
        """
        try:
            response = requests.get(
                LIVE_URL,
                params=self._params,
                headers=self._headers,
                timeout=TIMEOUT_SECONDS,
            )
        except requests.exceptions.RequestException as e:
            raise FeedFetchError(f"フィード取得失敗(ネットワークエラー): {e}") from e

        if not 200 <= response.status_code < 300:
            raise FeedFetchError(f"フィード取得失敗(HTTP {response.status_code})")

        try:
            payload = response.json()
        except ValueError as e:
            raise FeedFetchError(f"フィードのJSONパースに失敗: {e}") from e

        return parse_records(payload)

    def poll_until_success(self, retry_interval: int = RETRY_INTERVAL_SECONDS) -> list[FeedRecord]:
        """取得に成功するまで固定間隔で無期限にリトライする。

        一時的な失敗は呼び出し元に伝播しない。
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                records = self.fetch_live()
            except FeedFetchError as e:
                logger.warning(
                    "%s - %d秒後に再取得します（%d回目）", e, retry_interval, attempt
                )
                time.sleep(retry_interval)
                continue

            logger.debug("フィード取得完了 - レコード数: %d", len(records))
            return records


def parse_records(payload) -> list[FeedRecord]:
    """フィードのJSON配列をレコードのリストに変換する。

    Raises:
        FeedFetchError: ペイロードが配列でない場合
    """
    if not isinstance(payload, list):
        raise FeedFetchError("フィードの形式が不正です（配列ではありません）")

    records = []
    for item in payload:
        if not isinstance(item, dict):
            continue

        channel = item.get("channel") or {}
        record_id = item.get("id")
        channel_id = channel.get("id") if isinstance(channel, dict) else None

        if not record_id or not channel_id:
            logger.debug("id/channel.idのないレコードをスキップ: %s", item)
            continue

        records.append(
            FeedRecord(
                id=str(record_id),
                channel_id=str(channel_id),
                title=str(item.get("title") or ""),
                kind=item.get("type") or "",
                placeholder_type=item.get("placeholderType"),
                status=item.get("status"),
                link=item.get("link"),
            )
        )

    return records
