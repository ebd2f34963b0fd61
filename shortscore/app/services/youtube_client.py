import logging
import re
from datetime import datetime, timezone
from typing import Any

import requests

from .errors import UpstreamFetchError, YouTubeQuotaExceededError
from .metrics import parse_duration

logger = logging.getLogger(__name__)

YOUTUBE_VIDEOS_LIST = "https://www.googleapis.com/youtube/v3/videos"
YOUTUBE_SEARCH_LIST = "https://www.googleapis.com/youtube/v3/search"
YOUTUBE_CHANNELS_LIST = "https://www.googleapis.com/youtube/v3/channels"
YOUTUBE_PLAYLIST_ITEMS_LIST = "https://www.googleapis.com/youtube/v3/playlistItems"

SEARCH_MAX_RESULTS = 25
CHANNEL_RECENT_VIDEOS = 30


def chunked(lst, n):
    for i in range(0, len(lst), n):
        yield lst[i:i + n]


def to_rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _count(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def youtube_api_get(url: str, params: dict[str, Any], timeout: int = 15) -> dict[str, Any]:
    endpoint = url.rsplit("/", 1)[-1]
    try:
        response = requests.get(url, params=params, timeout=timeout)
    except requests.RequestException as exc:
        logger.error("YouTube %s request failed: %s", endpoint, exc)
        raise UpstreamFetchError(f"YouTube {endpoint} request failed: {exc}") from exc

    if response.status_code == 200:
        return response.json()

    lowered = response.text.lower()
    if response.status_code in {403, 429} and (
        "quotaexceeded" in lowered or "quota exceeded" in lowered or "youtube.quota" in lowered
    ):
        logger.error("YouTube API quota exceeded on %s", endpoint)
        raise YouTubeQuotaExceededError(status=response.status_code)

    logger.error("YouTube %s failed with status %s", endpoint, response.status_code)
    raise UpstreamFetchError(
        f"YouTube {endpoint} failed with status {response.status_code}",
        status=response.status_code,
    )


# ---------------------------
# Niche search windows
# ---------------------------

def build_search_video(video_id: str, search_item: dict, stats_item: dict | None) -> dict[str, Any]:
    snippet = search_item.get("snippet") or {}
    stats_item = stats_item or {}
    statistics = stats_item.get("statistics") or {}
    details = stats_item.get("contentDetails") or {}
    return {
        "id": video_id,
        "publishedAt": snippet.get("publishedAt"),
        "views": _count(statistics.get("viewCount")),
        "likes": _count(statistics.get("likeCount")),
        "duration": details.get("duration") or "PT0S",
    }


def search_videos(
    topic: str,
    api_key: str,
    published_after: datetime,
    published_before: datetime | None = None,
    order: str = "viewCount",
) -> dict[str, Any]:
    """One search window: {"videos": [...], "totalResults": int}."""
    params: dict[str, Any] = {
        "part": "snippet",
        "q": topic,
        "type": "video",
        "order": order,
        "maxResults": SEARCH_MAX_RESULTS,
        "publishedAfter": to_rfc3339(published_after),
        "key": api_key,
    }
    if published_before is not None:
        params["publishedBefore"] = to_rfc3339(published_before)

    payload = youtube_api_get(YOUTUBE_SEARCH_LIST, params)
    items = [
        item for item in payload.get("items", [])
        if isinstance((item.get("id") or {}).get("videoId"), str)
    ]
    if not items:
        return {"videos": [], "totalResults": 0}

    video_ids = [item["id"]["videoId"] for item in items]
    stats_payload = youtube_api_get(
        YOUTUBE_VIDEOS_LIST,
        {
            "part": "statistics,contentDetails",
            "id": ",".join(video_ids),
            "key": api_key,
        },
    )
    stats_by_id = {item.get("id"): item for item in stats_payload.get("items", [])}

    videos = [
        build_search_video(item["id"]["videoId"], item, stats_by_id.get(item["id"]["videoId"]))
        for item in items
    ]
    reported_total = _count((payload.get("pageInfo") or {}).get("totalResults")) or len(items)
    return {"videos": videos, "totalResults": max(len(items), reported_total)}


# ---------------------------
# Channel resolution
# ---------------------------

def extract_channel_hint(raw_input: str) -> tuple[str, str]:
    """
    Parse common channel/profile input styles.
    Returns: (hint_type, hint_value)
    hint_type: channel_id | handle | username | query
    """
    raw = (raw_input or "").strip()

    # Accept direct UC... channel ids as input.
    if raw.startswith("UC") and len(raw) >= 24:
        return "channel_id", raw

    if raw.startswith("@"):
        return "handle", raw[1:].strip()

    m = re.search(r"youtube\.com/channel/(UC[A-Za-z0-9_-]+)", raw, flags=re.IGNORECASE)
    if m:
        return "channel_id", m.group(1)

    m = re.search(r"youtube\.com/@([A-Za-z0-9._-]+)", raw, flags=re.IGNORECASE)
    if m:
        return "handle", m.group(1)

    m = re.search(r"youtube\.com/user/([A-Za-z0-9._-]+)", raw, flags=re.IGNORECASE)
    if m:
        return "username", m.group(1)

    m = re.search(r"youtube\.com/c/([A-Za-z0-9._-]+)", raw, flags=re.IGNORECASE)
    if m:
        return "query", m.group(1)

    return "query", raw


def _first_channel_id(url: str, params: dict[str, Any], search: bool = False) -> str | None:
    try:
        payload = youtube_api_get(url, params)
    except YouTubeQuotaExceededError:
        raise
    except UpstreamFetchError as exc:
        logger.warning("Channel lookup failed, trying next strategy: %s", exc)
        return None
    items = payload.get("items") or []
    if not items:
        return None
    if search:
        return (items[0].get("id") or {}).get("channelId")
    return items[0].get("id")


def resolve_channel_id(raw_input: str, api_key: str) -> str | None:
    hint_type, hint_value = extract_channel_hint(raw_input)
    if not hint_value:
        return None
    if hint_type == "channel_id":
        return hint_value

    if hint_type == "handle":
        channel_id = _first_channel_id(
            YOUTUBE_CHANNELS_LIST,
            {"part": "id", "forHandle": hint_value, "key": api_key},
        )
        if channel_id:
            return channel_id

    if hint_type == "username":
        channel_id = _first_channel_id(
            YOUTUBE_CHANNELS_LIST,
            {"part": "id", "forUsername": hint_value, "key": api_key},
        )
        if channel_id:
            return channel_id

    return _first_channel_id(
        YOUTUBE_SEARCH_LIST,
        {"part": "snippet", "q": hint_value, "type": "channel", "maxResults": 1, "key": api_key},
        search=True,
    )


# ---------------------------
# Channel uploads
# ---------------------------

def fetch_channel_info(channel_id: str, api_key: str) -> dict[str, Any] | None:
    payload = youtube_api_get(
        YOUTUBE_CHANNELS_LIST,
        {
            "part": "snippet,statistics,contentDetails",
            "id": channel_id,
            "key": api_key,
        },
    )
    items = payload.get("items") or []
    if not items:
        return None
    item = items[0]
    uploads_playlist_id = (
        ((item.get("contentDetails") or {}).get("relatedPlaylists") or {}).get("uploads")
    )
    if not uploads_playlist_id:
        return None

    snippet = item.get("snippet") or {}
    statistics = item.get("statistics") or {}
    return {
        "id": channel_id,
        "title": snippet.get("title") or "Unknown",
        "handle": snippet.get("customUrl") or None,
        "url": f"https://www.youtube.com/channel/{channel_id}",
        "subscribers": _count(statistics.get("subscriberCount")),
        "totalViews": _count(statistics.get("viewCount")),
        "videoCount": _count(statistics.get("videoCount")),
        "uploadsPlaylistId": uploads_playlist_id,
    }


def fetch_playlist_entries(playlist_id: str, api_key: str, max_items: int) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = []
    page_token = None
    while len(entries) < max_items:
        params: dict[str, Any] = {
            "part": "snippet,contentDetails",
            "playlistId": playlist_id,
            "maxResults": min(50, max_items - len(entries)),
            "key": api_key,
        }
        if page_token:
            params["pageToken"] = page_token
        try:
            payload = youtube_api_get(YOUTUBE_PLAYLIST_ITEMS_LIST, params)
        except UpstreamFetchError as exc:
            # An uploads playlist with nothing in it comes back as 404.
            if exc.status == 404 and not isinstance(exc, YouTubeQuotaExceededError):
                break
            raise

        for item in payload.get("items", []):
            details = item.get("contentDetails") or {}
            snippet = item.get("snippet") or {}
            video_id = details.get("videoId")
            if not video_id:
                continue
            entries.append({
                "id": video_id,
                "title": snippet.get("title") or "Untitled",
                "publishedAt": details.get("videoPublishedAt") or snippet.get("publishedAt"),
            })
            if len(entries) >= max_items:
                break

        page_token = payload.get("nextPageToken")
        if not page_token:
            break

    return entries[:max_items]


def hydrate_video_metadata(video_ids: list[str], api_key: str) -> dict[str, dict]:
    hydrated: dict[str, dict] = {}
    for batch in chunked(video_ids, 50):
        payload = youtube_api_get(
            YOUTUBE_VIDEOS_LIST,
            {
                "part": "statistics,contentDetails,snippet",
                "id": ",".join(batch),
                "key": api_key,
            },
        )
        for item in payload.get("items", []):
            if item.get("id"):
                hydrated[item["id"]] = item
    return hydrated


def build_channel_video(entry: dict[str, Any], video: dict | None) -> dict[str, Any]:
    video = video or {}
    statistics = video.get("statistics") or {}
    details = video.get("contentDetails") or {}
    snippet = video.get("snippet") or {}
    return {
        "id": entry["id"],
        "title": entry.get("title") or snippet.get("title") or "Untitled",
        "publishedAt": entry.get("publishedAt") or snippet.get("publishedAt"),
        "views": _count(statistics.get("viewCount")),
        "likes": _count(statistics.get("likeCount")),
        "durationSeconds": parse_duration(details.get("duration") or "PT0S"),
    }


def fetch_recent_videos(
    playlist_id: str,
    api_key: str,
    max_items: int = CHANNEL_RECENT_VIDEOS,
) -> list[dict[str, Any]]:
    entries = fetch_playlist_entries(playlist_id, api_key, max_items)
    if not entries:
        return []
    hydrated = hydrate_video_metadata([e["id"] for e in entries], api_key)
    return [build_channel_video(entry, hydrated.get(entry["id"])) for entry in entries]
