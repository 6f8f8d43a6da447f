from typing import Optional

from live_archiver.models import DurationClass

# 開始間近・一時的な配信トラブル
SHORT_WAIT_SECONDS = 15

# 分単位: 残り時間の半分（1分あたり30秒）、最大5分。早まった開始に備える
MINUTE_SCALE_SECONDS = 30
MINUTE_CAP_SECONDS = 300

HOUR_WAIT_SECONDS = 60 * 60
DAY_WAIT_SECONDS = 60 * 60 * 6
YEAR_WAIT_SECONDS = 60 * 60 * 24


def backoff_seconds(
    duration_class: Optional[DurationClass], magnitude: Optional[int] = None
) -> Optional[float]:
    """待機区分と大きさから再試行までの待機秒数を返す。

    同じ入力には常に同じ値を返す。時間・日・年単位は大きさを無視した固定値。

    Args:
        duration_class: 失敗メッセージから読み取った待機区分
        magnitude: 区分とともに読み取った数値（分単位でのみ使用）

    Returns:
        待機秒数。区分が不明な場合はNone（呼び出し元は致命的として扱う）
    """
    if duration_class in (DurationClass.IMMEDIATE, DurationClass.TRANSIENT_DIFFICULTY):
        return float(SHORT_WAIT_SECONDS)
    if duration_class == DurationClass.MINUTES:
        if magnitude is None:
            return float(MINUTE_CAP_SECONDS)
        return float(min(magnitude * MINUTE_SCALE_SECONDS, MINUTE_CAP_SECONDS))
    if duration_class == DurationClass.HOURS:
        return float(HOUR_WAIT_SECONDS)
    if duration_class == DurationClass.DAYS:
        return float(DAY_WAIT_SECONDS)
    if duration_class == DurationClass.YEARS:
        return float(YEAR_WAIT_SECONDS)
    if duration_class == DurationClass.MEMBER_GATE:
        # 認証情報を付与して即時再試行
        return 0.0
    return None
