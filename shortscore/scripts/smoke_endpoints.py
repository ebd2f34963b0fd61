from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from starlette.requests import Request

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import shortscore.main as main_module
from shortscore.app.services.errors import QuotaExceededError


def make_request(ip: str = "127.0.0.1") -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/",
            "headers": [],
            "client": (ip, 8000),
            "query_string": b"",
            "server": ("test", 80),
            "scheme": "http",
            "http_version": "1.1",
        }
    )


def make_search_video(video_id: str, views: int) -> dict:
    return {
        "id": video_id,
        "publishedAt": "2026-01-01T00:00:00Z",
        "views": views,
        "likes": views // 50,
        "duration": "PT50S",
    }


def make_channel_video(video_id: str, days_ago: int, views: int) -> dict:
    published_at = (datetime.now(timezone.utc) - timedelta(days=days_ago)).isoformat().replace("+00:00", "Z")
    return {
        "id": video_id,
        "title": f"Video {video_id}",
        "publishedAt": published_at,
        "views": views,
        "likes": views // 40,
        "durationSeconds": 40,
    }


def assert_true(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def reset_state() -> None:
    main_module.CACHE_STORE.clear()
    main_module.USAGE_STORE.clear()
    os.environ.setdefault("YOUTUBE_API_KEY", "smoke-key")


def test_health() -> None:
    payload = main_module.health()
    assert_true(payload.get("ok") is True, "/health should return ok=true")


def test_niche_cache_and_quota() -> None:
    reset_state()
    call_count = {"search": 0}

    def fake_search_videos(topic, api_key, published_after, published_before=None, order="viewCount"):
        _ = (topic, api_key, published_after, order)
        call_count["search"] += 1
        views = [90000, 40000, 12000, 8000] if published_before is None else [20000, 10000]
        return {
            "videos": [make_search_video(f"s{i}", v) for i, v in enumerate(views)],
            "totalResults": 40,
        }

    with patch.object(main_module, "search_videos", side_effect=fake_search_videos):
        payload_1 = main_module.niche_analyzer(make_request("10.0.0.1"), main_module.NicheRequest(topic="smoke topic"))
        payload_2 = main_module.niche_analyzer(make_request("10.0.0.2"), main_module.NicheRequest(topic="Smoke Topic"))
        try:
            main_module.niche_analyzer(make_request("10.0.0.1"), main_module.NicheRequest(topic="other"))
            blocked = False
        except QuotaExceededError:
            blocked = True

    assert_true(payload_1 == payload_2, "/niche-analyzer cached response should be identical")
    assert_true(call_count["search"] == 2, "/niche-analyzer should fetch both windows once then cache")
    assert_true(0 <= payload_1["score"] <= 100, "/niche-analyzer score must be within 0..100")
    assert_true(blocked, "/niche-analyzer second analysis from the same IP should be blocked")


def test_channel_cache() -> None:
    reset_state()
    call_count = {"videos": 0}

    def fake_recent(playlist_id: str, api_key: str, max_items: int = 30):
        _ = (playlist_id, api_key, max_items)
        call_count["videos"] += 1
        return [make_channel_video(f"c{i}", i * 3 + 1, 5000 + i * 700) for i in range(6)]

    channel = {
        "id": "UC_SMOKE",
        "title": "Smoke Channel",
        "handle": "@smoke",
        "url": "https://www.youtube.com/channel/UC_SMOKE",
        "subscribers": 100,
        "totalViews": 1000,
        "videoCount": 6,
        "uploadsPlaylistId": "UU_SMOKE",
    }

    with (
        patch.object(main_module, "resolve_channel_id", return_value="UC_SMOKE"),
        patch.object(main_module, "fetch_channel_info", return_value=channel),
        patch.object(main_module, "fetch_recent_videos", side_effect=fake_recent),
    ):
        payload_1 = main_module.channel_analyzer(make_request("10.1.0.1"), main_module.ChannelRequest(channel="@smoke"))
        payload_2 = main_module.channel_analyzer(make_request("10.1.0.2"), main_module.ChannelRequest(channel="@smoke"))

    assert_true(call_count["videos"] == 1, "/channel-analyzer should fetch uploads once then cache")
    assert_true(payload_1 == payload_2, "/channel-analyzer cached response should be identical")
    assert_true(payload_1["metrics"]["shortsShare"] == 100, "/channel-analyzer shortsShare should count <=60s uploads")


def run() -> int:
    checks = [
        ("health", test_health),
        ("niche cache + quota", test_niche_cache_and_quota),
        ("channel cache", test_channel_cache),
    ]
    failures = []

    for check_name, check_fn in checks:
        try:
            check_fn()
            print(f"[PASS] {check_name}")
        except Exception as exc:  # pragma: no cover - smoke script output path
            failures.append((check_name, str(exc)))
            print(f"[FAIL] {check_name}: {exc}")

    if failures:
        print(f"\nSmoke checks failed: {len(failures)}")
        for check_name, message in failures:
            print(f"- {check_name}: {message}")
        return 1

    print("\nAll smoke checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
