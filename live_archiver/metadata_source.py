import logging

import requests

from live_archiver.exceptions import MetadataLookupError
from live_archiver.models import LiveStatus

logger = logging.getLogger(__name__)

VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
TIMEOUT_SECONDS = 30
VIDEO_ID_LENGTH = 11

# liveBroadcastContent の値 -> 配信状態
BROADCAST_STATUS = {
    "live": LiveStatus.LIVE,
    "none": LiveStatus.ENDED,
    "upcoming": LiveStatus.UPCOMING,
}


class YouTubeMetadataSource:
    """YouTube Data API で動画の配信状態を確認する。"""

    def __init__(self, api_key: str):
        self._api_key = api_key

    def live_status(self, video_id: str) -> LiveStatus:
        """動画の現在の配信状態を返す。

        Args:
            video_id: 11文字の動画ID

        Returns:
            配信状態

        Raises:
            MetadataLookupError: 取得失敗、動画が存在しない・削除された、または想定外の値の場合
        """
        if len(video_id) != VIDEO_ID_LENGTH:
            raise MetadataLookupError(f"動画IDの形式が不正です: {video_id}")

        try:
            # セッションのスレッドから並行して呼ばれるため、呼び出しごとにリクエストする
            response = requests.get(
                VIDEOS_URL,
                params={"part": "snippet", "id": video_id, "key": self._api_key},
                timeout=TIMEOUT_SECONDS,
            )
        except requests.exceptions.RequestException as e:
            raise MetadataLookupError(f"YouTube API呼び出し失敗(ネットワークエラー): {e}") from e

        if response.status_code != 200:
            raise MetadataLookupError(
                f"YouTube API呼び出し失敗(HTTP {response.status_code}): {response.text[:200]}"
            )

        try:
            items = response.json().get("items") or []
        except (ValueError, AttributeError) as e:
            raise MetadataLookupError(f"YouTube APIレスポンスが不正です: {e}") from e

        if not items:
            raise MetadataLookupError(f"動画が見つかりません（削除された可能性があります）: {video_id}")

        content = (items[0].get("snippet") or {}).get("liveBroadcastContent")
        status = BROADCAST_STATUS.get(content)
        if status is None:
            raise MetadataLookupError(f"liveBroadcastContentが想定外の値です: {content}")

        logger.debug("%s: liveBroadcastContent=%s", video_id, content)
        return status
