import logging
from typing import Any, Callable, Iterable, Optional

from live_archiver.capture_session import normalize_target
from live_archiver.config_loader import normalize_text
from live_archiver.models import ChannelSets, FeedRecord

logger = logging.getLogger(__name__)

UNARCHIVED_MARKER = "unarchived"
EXTERNAL_PLACEHOLDER = "external-stream"

RULE_ARCHIVE = "archive"
RULE_KEYWORD = "keyword"
RULE_UNARCHIVED = "unarchived"
RULE_EXTERNAL = "external"


class SeenSet:
    """セッションを起動済みのレコードIDと取得先を管理する。

    メインループのみが書き込む。レコードIDの削除は行わない。
    取得先はセッションのスレッドが生きている間だけ重複起動を防ぐ。
    """

    def __init__(self):
        self._ids: set[str] = set()
        self._targets: dict[str, Any] = {}

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, record_id: str) -> bool:
        """IDを記録する。既に記録済みの場合はFalseを返す。"""
        if record_id in self._ids:
            return False
        self._ids.add(record_id)
        return True

    def target_active(self, target: str) -> bool:
        """取得先のセッションがまだ実行中かどうか。"""
        handle = self._targets.get(target)
        return handle is not None and handle.is_alive()

    def track_target(self, target: str, handle: Any) -> None:
        """取得先と実行中のセッション（is_alive を持つもの）を対応付ける。"""
        self._targets[target] = handle


def _is_live_external(record: FeedRecord) -> bool:
    return (
        record.placeholder_type == EXTERNAL_PLACEHOLDER
        and record.status == "live"
        and bool(record.link)
    )


def match_rule(record: FeedRecord, channel_sets: ChannelSets) -> Optional[str]:
    """レコードが取得対象かどうかを判定し、一致したルール名を返す。

    判定順（最初に一致したものを採用）:
        1. アーカイブリストのチャンネル
        2. チェックリストのチャンネルかつタイトルにキーワードを含む
        3. タイトルに「unarchived」を含む
        4. 配信中の外部配信プレースホルダー（リンクあり）

    アーカイブリストをタイトル判定より優先するため、配信中にタイトルが
    変わっても監視チャンネルを取りこぼさない。

    Returns:
        一致したルール名。どれにも一致しない場合はNone
    """
    if record.channel_id in channel_sets.archive:
        return RULE_ARCHIVE

    title = normalize_text(record.title)

    if record.channel_id in channel_sets.check:
        if any(keyword in title for keyword in channel_sets.keywords):
            return RULE_KEYWORD

    if UNARCHIVED_MARKER in title:
        return RULE_UNARCHIVED

    if _is_live_external(record):
        return RULE_EXTERNAL

    return None


def resolve_target(record: FeedRecord) -> Optional[str]:
    """ダウンロード対象（動画IDまたは外部リンク）を決定する。"""
    if record.kind == "stream":
        return record.id
    if _is_live_external(record):
        return record.link
    return None


def dispatch_new(
    records: Iterable[FeedRecord],
    channel_sets: ChannelSets,
    seen: SeenSet,
    spawn: Callable[[str], Any],
) -> list[str]:
    """未処理のレコードを判定し、取得対象ごとにセッションを起動する。

    Args:
        records: フィードレコード
        channel_sets: 監視リスト
        seen: 起動済みIDの集合（この関数のみが更新する）
        spawn: ダウンロード対象を受け取りセッションを起動し、is_alive を持つハンドルを返す関数

    Returns:
        今回セッションを起動したレコードIDのリスト
    """
    dispatched = []

    for record in records:
        if record.id in seen:
            logger.debug("起動済みのレコードを再検出: %s", record.id)
            continue

        rule = match_rule(record, channel_sets)
        if rule is None:
            logger.debug("対象外のレコード: %s (%s) %s", record.id, record.channel_id, record.title)
            continue

        target = resolve_target(record)
        if target is None:
            # 配信予定の外部プレースホルダーなど。次回以降に再判定する
            logger.warning(
                "対象と判定したが取得先を決定できません: %s (ルール: %s, 種別: %s, 状態: %s)",
                record.id,
                rule,
                record.placeholder_type or record.kind,
                record.status,
            )
            continue

        seen.add(record.id)
        target = normalize_target(target)
        if seen.target_active(target):
            # 別レコードが同じ取得先を指している（コラボ配信など）
            logger.info("取得先のセッションが実行中のためスキップ: %s -> %s", record.id, target)
            continue

        logger.info("取得対象を検出: %s -> %s (ルール: %s)", record.id, target, rule)
        seen.track_target(target, spawn(target))
        dispatched.append(record.id)

    return dispatched
