from datetime import datetime, timezone

import pytest
import requests

from shortscore.app.services import youtube_client
from shortscore.app.services.errors import UpstreamFetchError, YouTubeQuotaExceededError
from shortscore.app.services.youtube_client import (
    YOUTUBE_CHANNELS_LIST,
    YOUTUBE_PLAYLIST_ITEMS_LIST,
    YOUTUBE_SEARCH_LIST,
    YOUTUBE_VIDEOS_LIST,
    extract_channel_hint,
    fetch_channel_info,
    fetch_recent_videos,
    resolve_channel_id,
    search_videos,
    youtube_api_get,
)

AFTER = datetime(2026, 9, 1, tzinfo=timezone.utc)
BEFORE = datetime(2026, 10, 1, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload


def route_api(monkeypatch, routes):
    """routes: url -> callable(params) -> payload dict (or raise)."""
    calls = []

    def fake_api_get(url, params, timeout=15):
        calls.append((url, dict(params)))
        return routes[url](params)

    monkeypatch.setattr(youtube_client, "youtube_api_get", fake_api_get)
    return calls


def test_api_get_returns_json(monkeypatch):
    monkeypatch.setattr(youtube_client.requests, "get", lambda *a, **k: FakeResponse(payload={"items": [1]}))
    assert youtube_api_get(YOUTUBE_VIDEOS_LIST, {}) == {"items": [1]}


def test_api_get_detects_quota(monkeypatch):
    monkeypatch.setattr(
        youtube_client.requests,
        "get",
        lambda *a, **k: FakeResponse(status_code=403, text='{"reason": "quotaExceeded"}'),
    )
    with pytest.raises(YouTubeQuotaExceededError) as excinfo:
        youtube_api_get(YOUTUBE_SEARCH_LIST, {})
    assert excinfo.value.to_content()["error_code"] == "youtube_quota_exhausted"


def test_api_get_embeds_status_in_error(monkeypatch):
    monkeypatch.setattr(youtube_client.requests, "get", lambda *a, **k: FakeResponse(status_code=503, text="down"))
    with pytest.raises(UpstreamFetchError) as excinfo:
        youtube_api_get(YOUTUBE_SEARCH_LIST, {})
    assert excinfo.value.status == 503
    assert excinfo.value.message == "YouTube search failed with status 503"
    assert excinfo.value.status_code == 500


def test_api_get_wraps_transport_errors(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("dns failure")

    monkeypatch.setattr(youtube_client.requests, "get", boom)
    with pytest.raises(UpstreamFetchError) as excinfo:
        youtube_api_get(YOUTUBE_VIDEOS_LIST, {})
    assert excinfo.value.status is None


def test_search_videos_joins_stats_by_id(monkeypatch):
    calls = route_api(
        monkeypatch,
        {
            YOUTUBE_SEARCH_LIST: lambda params: {
                "items": [
                    {"id": {"videoId": "a"}, "snippet": {"publishedAt": "2026-09-10T00:00:00Z"}},
                    {"id": {"videoId": "b"}, "snippet": {"publishedAt": "2026-09-11T00:00:00Z"}},
                    {"id": {"channelId": "UCxyz"}, "snippet": {}},
                ],
                "pageInfo": {"totalResults": 1000},
            },
            YOUTUBE_VIDEOS_LIST: lambda params: {
                "items": [
                    {"id": "b", "statistics": {"viewCount": "20", "likeCount": "2"}, "contentDetails": {"duration": "PT1M"}},
                    {"id": "a", "statistics": {"viewCount": "10"}, "contentDetails": {"duration": "PT30S"}},
                ]
            },
        },
    )

    window = search_videos("cats", "key", published_after=AFTER, published_before=BEFORE)

    assert window["totalResults"] == 1000
    assert window["videos"] == [
        {"id": "a", "publishedAt": "2026-09-10T00:00:00Z", "views": 10, "likes": 0, "duration": "PT30S"},
        {"id": "b", "publishedAt": "2026-09-11T00:00:00Z", "views": 20, "likes": 2, "duration": "PT1M"},
    ]
    search_params = calls[0][1]
    assert search_params["publishedAfter"] == "2026-09-01T00:00:00Z"
    assert search_params["publishedBefore"] == "2026-10-01T00:00:00Z"
    assert search_params["order"] == "viewCount"
    assert search_params["maxResults"] == 25
    assert calls[1][1]["id"] == "a,b"


def test_search_videos_missing_stats_become_zero(monkeypatch):
    route_api(
        monkeypatch,
        {
            YOUTUBE_SEARCH_LIST: lambda params: {"items": [{"id": {"videoId": "gone"}, "snippet": {}}]},
            YOUTUBE_VIDEOS_LIST: lambda params: {"items": []},
        },
    )
    window = search_videos("cats", "key", published_after=AFTER)
    assert window["videos"][0]["views"] == 0
    assert window["videos"][0]["duration"] == "PT0S"
    assert window["totalResults"] == 1


def test_search_videos_empty(monkeypatch):
    calls = route_api(monkeypatch, {YOUTUBE_SEARCH_LIST: lambda params: {"items": []}})
    assert search_videos("nothing", "key", published_after=AFTER) == {"videos": [], "totalResults": 0}
    assert len(calls) == 1


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("UCabcdefghijklmnopqrstuv", ("channel_id", "UCabcdefghijklmnopqrstuv")),
        ("@creator", ("handle", "creator")),
        ("https://www.youtube.com/channel/UC123abc", ("channel_id", "UC123abc")),
        ("https://youtube.com/@some.creator/videos", ("handle", "some.creator")),
        ("https://www.youtube.com/user/oldname", ("username", "oldname")),
        ("https://www.youtube.com/c/CustomName", ("query", "CustomName")),
        ("cooking with jim", ("query", "cooking with jim")),
    ],
)
def test_extract_channel_hint(raw, expected):
    assert extract_channel_hint(raw) == expected


def test_resolve_channel_id_direct_id_skips_network(monkeypatch):
    calls = route_api(monkeypatch, {})
    assert resolve_channel_id("UCabcdefghijklmnopqrstuv", "key") == "UCabcdefghijklmnopqrstuv"
    assert calls == []


def test_resolve_channel_id_handle_falls_back_to_search(monkeypatch):
    def handle_lookup(params):
        raise UpstreamFetchError("YouTube channels failed with status 400", status=400)

    calls = route_api(
        monkeypatch,
        {
            YOUTUBE_CHANNELS_LIST: handle_lookup,
            YOUTUBE_SEARCH_LIST: lambda params: {"items": [{"id": {"channelId": "UC_FOUND"}}]},
        },
    )
    assert resolve_channel_id("@creator", "key") == "UC_FOUND"
    assert calls[0][1]["forHandle"] == "creator"
    assert calls[1][1]["type"] == "channel"


def test_resolve_channel_id_quota_propagates(monkeypatch):
    def quota(params):
        raise YouTubeQuotaExceededError(status=403)

    route_api(monkeypatch, {YOUTUBE_CHANNELS_LIST: quota})
    with pytest.raises(YouTubeQuotaExceededError):
        resolve_channel_id("@creator", "key")


def test_resolve_channel_id_unresolved(monkeypatch):
    route_api(
        monkeypatch,
        {
            YOUTUBE_CHANNELS_LIST: lambda params: {"items": []},
            YOUTUBE_SEARCH_LIST: lambda params: {"items": []},
        },
    )
    assert resolve_channel_id("https://www.youtube.com/user/ghost", "key") is None


def test_fetch_channel_info(monkeypatch):
    route_api(
        monkeypatch,
        {
            YOUTUBE_CHANNELS_LIST: lambda params: {
                "items": [
                    {
                        "snippet": {"title": "Chan", "customUrl": "@chan"},
                        "statistics": {"subscriberCount": "10", "viewCount": "1000", "videoCount": "5"},
                        "contentDetails": {"relatedPlaylists": {"uploads": "UU1"}},
                    }
                ]
            }
        },
    )
    assert fetch_channel_info("UC1", "key") == {
        "id": "UC1",
        "title": "Chan",
        "handle": "@chan",
        "url": "https://www.youtube.com/channel/UC1",
        "subscribers": 10,
        "totalViews": 1000,
        "videoCount": 5,
        "uploadsPlaylistId": "UU1",
    }


def test_fetch_channel_info_without_uploads(monkeypatch):
    route_api(monkeypatch, {YOUTUBE_CHANNELS_LIST: lambda params: {"items": [{"contentDetails": {}}]}})
    assert fetch_channel_info("UC1", "key") is None


def test_fetch_recent_videos_paginates_and_hydrates(monkeypatch):
    def playlist(params):
        if params.get("pageToken") == "P2":
            return {
                "items": [
                    {"contentDetails": {"videoId": f"v{i}", "videoPublishedAt": "2026-09-01T00:00:00Z"}, "snippet": {"title": f"t{i}"}}
                    for i in range(2, 4)
                ]
            }
        return {
            "items": [
                {"contentDetails": {"videoId": f"v{i}"}, "snippet": {"title": f"t{i}", "publishedAt": "2026-08-01T00:00:00Z"}}
                for i in range(2)
            ],
            "nextPageToken": "P2",
        }

    def videos(params):
        return {
            "items": [
                {"id": vid, "statistics": {"viewCount": "100", "likeCount": "4"}, "contentDetails": {"duration": "PT58S"}}
                for vid in params["id"].split(",")
            ]
        }

    calls = route_api(monkeypatch, {YOUTUBE_PLAYLIST_ITEMS_LIST: playlist, YOUTUBE_VIDEOS_LIST: videos})
    result = fetch_recent_videos("UU1", "key", max_items=3)

    assert [v["id"] for v in result] == ["v0", "v1", "v2"]
    assert result[0] == {
        "id": "v0",
        "title": "t0",
        "publishedAt": "2026-08-01T00:00:00Z",
        "views": 100,
        "likes": 4,
        "durationSeconds": 58,
    }
    assert result[2]["publishedAt"] == "2026-09-01T00:00:00Z"
    assert calls[1][1]["maxResults"] == 1


def test_fetch_recent_videos_empty_playlist(monkeypatch):
    def missing(params):
        raise UpstreamFetchError("YouTube playlistItems failed with status 404", status=404)

    route_api(monkeypatch, {YOUTUBE_PLAYLIST_ITEMS_LIST: missing})
    assert fetch_recent_videos("UU1", "key") == []
