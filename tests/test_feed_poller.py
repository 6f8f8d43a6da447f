from unittest.mock import Mock, patch

import pytest
import requests

from live_archiver.exceptions import FeedFetchError
from live_archiver.feed_poller import LIVE_URL, FeedClient, parse_records


def _response(status_code=200, payload=None, json_error=False):
    response = Mock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("bad json")
    else:
        response.json.return_value = payload
    return response


SAMPLE = [
    {
        "id": "abcdefghijk",
        "type": "stream",
        "title": "Morning chat",
        "status": "live",
        "channel": {"id": "UC1"},
    },
    {
        "id": "ph1",
        "type": "placeholder",
        "placeholderType": "external-stream",
        "status": "live",
        "link": "https://www.twitch.tv/someone",
        "title": "Twitch",
        "channel": {"id": "UC2"},
    },
    {"id": "nochannel", "type": "stream", "title": "x"},
]


def test_parse_records():
    records = parse_records(SAMPLE)
    assert [r.id for r in records] == ["abcdefghijk", "ph1"]
    assert records[0].channel_id == "UC1"
    assert records[0].kind == "stream"
    assert records[1].placeholder_type == "external-stream"
    assert records[1].link == "https://www.twitch.tv/someone"


def test_parse_records_coerces_non_string_title():
    records = parse_records([{"id": "A", "type": "stream", "title": 2024, "channel": {"id": "UC1"}}])
    assert records[0].title == "2024"


def test_parse_records_rejects_non_array():
    with pytest.raises(FeedFetchError):
        parse_records({"message": "unauthorized"})


@patch("live_archiver.feed_poller.requests.get")
def test_fetch_live_sends_key_and_window(mock_get):
    mock_get.return_value = _response(payload=SAMPLE)
    records = FeedClient("secret", max_upcoming_hours=48).fetch_live()
    assert len(records) == 2
    args, kwargs = mock_get.call_args
    assert args[0] == LIVE_URL
    assert kwargs["headers"] == {"X-APIKEY": "secret"}
    assert kwargs["params"] == {"type": "stream,placeholder", "max_upcoming_hours": "48"}


@pytest.mark.parametrize(
    "response",
    [_response(status_code=503), _response(json_error=True), _response(payload="oops")],
)
def test_fetch_live_transient_errors(response):
    with patch("live_archiver.feed_poller.requests.get", return_value=response):
        with pytest.raises(FeedFetchError):
            FeedClient("secret").fetch_live()


@patch("live_archiver.feed_poller.requests.get")
def test_fetch_live_network_error(mock_get):
    mock_get.side_effect = requests.exceptions.ConnectionError("down")
    with pytest.raises(FeedFetchError):
        FeedClient("secret").fetch_live()


@patch("live_archiver.feed_poller.time.sleep")
@patch("live_archiver.feed_poller.requests.get")
def test_poll_until_success_retries_at_fixed_interval(mock_get, mock_sleep):
    mock_get.side_effect = [
        requests.exceptions.Timeout("slow"),
        _response(status_code=500),
        _response(json_error=True),
        _response(payload=SAMPLE),
    ]
    records = FeedClient("secret").poll_until_success(120)
    assert len(records) == 2
    assert mock_get.call_count == 4
    assert [c.args[0] for c in mock_sleep.call_args_list] == [120, 120, 120]
