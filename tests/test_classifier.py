import pytest

from live_archiver.classifier import (
    RULE_ARCHIVE,
    RULE_EXTERNAL,
    RULE_KEYWORD,
    RULE_UNARCHIVED,
    SeenSet,
    dispatch_new,
    match_rule,
    resolve_target,
)
from live_archiver.models import ChannelSets, FeedRecord

SETS = ChannelSets(
    archive=frozenset({"chanX"}),
    check=frozenset({"chanC"}),
    keywords=("announcement", "karaoke"),
)


def _record(id="A", channel_id="chanZ", title="anything", kind="stream", **kwargs):
    return FeedRecord(id=id, channel_id=channel_id, title=title, kind=kind, **kwargs)


def _external(id="P", status="live", link="https://www.twitch.tv/someone", channel_id="chanZ"):
    return _record(
        id=id,
        channel_id=channel_id,
        kind="placeholder",
        placeholder_type="external-stream",
        status=status,
        link=link,
    )


class FakeHandle:
    def __init__(self, alive=True):
        self.alive = alive

    def is_alive(self):
        return self.alive


class Spawner:
    def __init__(self):
        self.targets = []
        self.handles = []

    def __call__(self, target):
        self.targets.append(target)
        handle = FakeHandle()
        self.handles.append(handle)
        return handle


@pytest.mark.parametrize("title", ["anything", "", "UNARCHIVED karaoke", "announcement"])
def test_archive_channel_always_accepted(title):
    assert match_rule(_record(channel_id="chanX", title=title), SETS) == RULE_ARCHIVE


def test_check_channel_keyword_matches_normalized_title():
    record = _record(channel_id="chanC", title="Collab Announcement")
    assert match_rule(record, SETS) == RULE_KEYWORD


def test_check_channel_without_keyword_ignored():
    assert match_rule(_record(channel_id="chanC", title="Minecraft"), SETS) is None


def test_keyword_on_unchecked_channel_ignored():
    assert match_rule(_record(title="Big announcement"), SETS) is None


def test_unarchived_marker():
    assert match_rule(_record(title="【Un Archived】 karaoke"), SETS) == RULE_UNARCHIVED


def test_live_external_placeholder():
    assert match_rule(_external(), SETS) == RULE_EXTERNAL
    assert resolve_target(_external()) == "https://www.twitch.tv/someone"


@pytest.mark.parametrize("record", [_external(status="upcoming"), _external(link=None)])
def test_non_live_or_linkless_external_ignored(record):
    assert match_rule(record, SETS) is None


def test_scenario_archive_record_dispatched():
    seen = SeenSet()
    spawn = Spawner()
    dispatched = dispatch_new([_record(id="A", channel_id="chanX")], SETS, seen, spawn)
    assert dispatched == ["A"]
    assert spawn.targets == ["A"]
    assert "A" in seen


def test_seen_ids_never_dispatched_twice():
    seen = SeenSet()
    spawn = Spawner()
    record = _record(id="A", channel_id="chanX")
    dispatch_new([record, record], SETS, seen, spawn)
    dispatch_new([record], SETS, seen, spawn)
    assert spawn.targets == ["A"]
    assert len(seen) == 1


def test_external_dispatch_stores_record_id_and_targets_link():
    seen = SeenSet()
    spawn = Spawner()
    dispatch_new([_external(id="P")], SETS, seen, spawn)
    assert spawn.targets == ["https://www.twitch.tv/someone"]
    assert "P" in seen


def test_unresolvable_target_not_marked_seen():
    seen = SeenSet()
    spawn = Spawner()
    upcoming = _external(id="P", status="upcoming", channel_id="chanX")
    dispatch_new([upcoming], SETS, seen, spawn)
    assert spawn.targets == []
    assert "P" not in seen

    dispatch_new([_external(id="P", channel_id="chanX")], SETS, seen, spawn)
    assert spawn.targets == ["https://www.twitch.tv/someone"]
    assert "P" in seen


def test_ignored_records_not_marked_seen():
    seen = SeenSet()
    spawn = Spawner()
    dispatch_new([_record(id="B")], SETS, seen, spawn)
    assert "B" not in seen
    assert spawn.targets == []


def test_seen_set_add():
    seen = SeenSet()
    assert seen.add("A") is True
    assert seen.add("A") is False
    assert len(seen) == 1


def test_shared_link_spawns_one_session():
    seen = SeenSet()
    spawn = Spawner()
    collab = "https://www.twitch.tv/collab"
    records = [
        _external(id="P1", link=collab, channel_id="chanX"),
        _external(id="P2", link=collab, channel_id="chanC"),
    ]
    dispatched = dispatch_new(records, SETS, seen, spawn)
    assert dispatched == ["P1"]
    assert spawn.targets == [collab]
    assert "P1" in seen
    assert "P2" in seen


def test_youtube_url_and_video_id_share_one_session():
    seen = SeenSet()
    spawn = Spawner()
    records = [
        _record(id="abcdefghijk", channel_id="chanX"),
        _external(id="P", link="https://www.youtube.com/watch?v=abcdefghijk"),
    ]
    dispatch_new(records, SETS, seen, spawn)
    assert spawn.targets == ["abcdefghijk"]


def test_target_reused_after_session_finished():
    seen = SeenSet()
    spawn = Spawner()
    link = "https://www.twitch.tv/someone"
    dispatch_new([_external(id="P1", link=link)], SETS, seen, spawn)
    spawn.handles[0].alive = False
    dispatch_new([_external(id="P2", link=link)], SETS, seen, spawn)
    assert spawn.targets == [link, link]
