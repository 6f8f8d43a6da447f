from typing import Optional

from live_archiver.models import DurationClass, FailureKind, FailureSignal

# 末尾トークン -> (分類, 待機区分)
TOKEN_TABLE: dict[str, tuple[FailureKind, DurationClass]] = {
    "moments.": (FailureKind.SCHEDULED, DurationClass.IMMEDIATE),
    "shortly": (FailureKind.SCHEDULED, DurationClass.IMMEDIATE),
    "minutes.": (FailureKind.SCHEDULED, DurationClass.MINUTES),
    "minutes": (FailureKind.SCHEDULED, DurationClass.MINUTES),
    "minute.": (FailureKind.SCHEDULED, DurationClass.MINUTES),
    "minute": (FailureKind.SCHEDULED, DurationClass.MINUTES),
    "hours.": (FailureKind.SCHEDULED, DurationClass.HOURS),
    "hours": (FailureKind.SCHEDULED, DurationClass.HOURS),
    "hour.": (FailureKind.SCHEDULED, DurationClass.HOURS),
    "hour": (FailureKind.SCHEDULED, DurationClass.HOURS),
    "days.": (FailureKind.SCHEDULED, DurationClass.DAYS),
    "days": (FailureKind.SCHEDULED, DurationClass.DAYS),
    "day.": (FailureKind.SCHEDULED, DurationClass.DAYS),
    "day": (FailureKind.SCHEDULED, DurationClass.DAYS),
    "years.": (FailureKind.SCHEDULED, DurationClass.YEARS),
    "years": (FailureKind.SCHEDULED, DurationClass.YEARS),
    "year.": (FailureKind.SCHEDULED, DurationClass.YEARS),
    "year": (FailureKind.SCHEDULED, DurationClass.YEARS),
    "perks.": (FailureKind.MEMBER_GATE, DurationClass.MEMBER_GATE),
    "difficulties.": (FailureKind.TRANSIENT, DurationClass.TRANSIENT_DIFFICULTY),
    "difficulties": (FailureKind.TRANSIENT, DurationClass.TRANSIENT_DIFFICULTY),
}


def classify_failure(text: str) -> FailureSignal:
    """ダウンローダーの失敗メッセージを分類する。

    メッセージ末尾の単語で判定し、直前の単語が整数であれば大きさとして取り出す。
    例: "This live event will begin in 10 minutes." -> (SCHEDULED, MINUTES, 10)

    Args:
        text: ダウンローダーが返した失敗メッセージ

    Returns:
        分類結果。元のメッセージは診断用に raw に保持する
    """
    words = text.strip().split(" ")
    token = words[-1] if words else ""
    entry = TOKEN_TABLE.get(token)

    if entry is None:
        return FailureSignal(kind=FailureKind.UNRECOGNIZED, token=token, raw=text)

    kind, duration_class = entry
    magnitude = _parse_magnitude(words[-2]) if len(words) >= 2 else None

    return FailureSignal(
        kind=kind,
        token=token,
        raw=text,
        duration_class=duration_class,
        magnitude=magnitude,
    )


def _parse_magnitude(word: str) -> Optional[int]:
    try:
        value = int(word)
    except ValueError:
        return None
    return value if value >= 0 else None
