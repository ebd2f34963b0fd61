from datetime import datetime, timezone
from typing import Any

from .metrics import (
    average,
    clamp,
    likes_per_1k,
    median,
    parse_duration,
    parse_iso8601_datetime,
    round_half_up,
    standard_deviation,
)

SHORTS_MAX_SECONDS = 60
CADENCE_TARGET_UPLOADS_PER_WEEK = 4
VARIANCE_TOLERANCE = 1.5
DAYS_PER_MONTH = 30
SECONDS_PER_DAY = 24 * 60 * 60


def _published_dates(videos: list[dict[str, Any]]) -> list[datetime]:
    dates = []
    for video in videos:
        published_at = parse_iso8601_datetime(video.get("publishedAt"))
        if published_at is not None:
            dates.append(published_at)
    return dates


def compute_uploads_per_week(videos: list[dict[str, Any]]) -> float:
    if len(videos) < 2:
        return 0
    dates = sorted(_published_dates(videos))
    if len(dates) < 2:
        return 0
    days = max(1, (dates[-1] - dates[0]).total_seconds() / SECONDS_PER_DAY)
    weeks = days / 7
    return round_half_up(len(videos) / weeks, 1)


def compute_views_per_month(videos: list[dict[str, Any]], now: datetime) -> float:
    """Average of per-video views/day (age-adjusted), scaled to 30 days."""
    per_day = []
    for video in videos:
        published_at = parse_iso8601_datetime(video.get("publishedAt"))
        if published_at is None:
            continue
        age_days = max(1, (now - published_at).total_seconds() / SECONDS_PER_DAY)
        rate = int(video.get("views") or 0) / age_days
        if rate:
            per_day.append(rate)
    return average(per_day) * DAYS_PER_MONTH


def compute_shorts_share(durations: list[int]) -> int:
    if not durations:
        return 0
    shorts = sum(1 for seconds in durations if seconds <= SHORTS_MAX_SECONDS)
    return round_half_up(shorts / len(durations) * 100)


def compute_consistency_score(uploads_per_week: float, views: list[int]) -> int:
    cadence_score = clamp(uploads_per_week / CADENCE_TARGET_UPLOADS_PER_WEEK, 0, 1)
    mean_views = average(views) or 1
    variance_score = 1 - clamp(standard_deviation(views) / mean_views / VARIANCE_TOLERANCE, 0, 1)
    return round_half_up((cadence_score * 0.5 + variance_score * 0.5) * 100)


def compute_channel_metrics(videos: list[dict[str, Any]], now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    views = [int(v.get("views") or 0) for v in videos]
    likes = [int(v.get("likes") or 0) for v in videos]
    durations = [parse_duration(v.get("durationSeconds", v.get("duration"))) for v in videos]

    uploads_per_week = compute_uploads_per_week(videos)

    return {
        "avgViews": round_half_up(average(views)),
        "medianViews": round_half_up(median(views)),
        "uploadsPerWeek": uploads_per_week,
        "viewsPerMonth": round_half_up(compute_views_per_month(videos, now)),
        "engagementPer1k": round_half_up(likes_per_1k(views, likes), 1),
        "consistencyScore": compute_consistency_score(uploads_per_week, views),
        "avgDurationSeconds": round_half_up(average(durations)),
        "shortsShare": compute_shorts_share(durations),
    }
