from datetime import datetime, timezone
from typing import Any


def iso_timestamp(value: datetime | None = None) -> str:
    """UTC, millisecond precision, Z suffix (2024-05-01T12:00:00.000Z)."""
    value = (value or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def build_niche_report(topic: str, scored: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
    return {
        "topic": topic,
        "updatedAt": iso_timestamp(now),
        "sampleSize": scored["sampleSize"],
        "score": scored["score"],
        "verdict": dict(scored["verdict"]),
        "metrics": dict(scored["metrics"]),
        "risks": list(scored["risks"]),
        "actions": list(scored["actions"]),
    }


def build_channel_report(
    channel: dict[str, Any],
    videos: list[dict[str, Any]],
    metrics: dict[str, Any],
    now: datetime | None = None,
) -> dict[str, Any]:
    return {
        "channel": dict(channel),
        "metrics": dict(metrics),
        "videos": [dict(v) for v in videos],
        "sampleSize": len(videos),
        "updatedAt": iso_timestamp(now),
    }
