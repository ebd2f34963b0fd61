"""
Niche confidence scoring.

Turns two windows of raw search results for a topic (last 30 days and the
30 days before that) into a 0-100 confidence score, a verdict, and fixed-order
risk/action lists. Everything here is pure: same windows in, same report out.
The tables below are the whole model; the functions only read them.
"""
from typing import Any, Callable

from .metrics import (
    average,
    clamp,
    compute_growth,
    likes_per_1k,
    median,
    parse_duration,
    round_half_up,
)


# Search windows are 30 days long; 30 / 7 ~= 4.3 weeks.
WEEKS_PER_WINDOW = 4.3
BREAKOUT_TOP_N = 3
STICKINESS_BASELINE_LIKES_PER_1K = 12
STICKINESS_MIN = 0.6
STICKINESS_MAX = 3.5
AUDIENCE_DURATION_CEILING_SECONDS = 600
AUDIENCE_ENGAGEMENT_CEILING_PER_1K = 25
AUDIENCE_HIGH_MIN = 0.66
AUDIENCE_MEDIUM_MIN = 0.33
PRODUCTION_FAVORABLE_MAX_SECONDS = 90
PRODUCTION_MODERATE_MAX_SECONDS = 480

NICHE_SCORE_WEIGHTS = {
    "demand": 0.25,
    "supply": 0.20,
    "breakout": 0.20,
    "audience": 0.15,
    "production": 0.10,
    "stickiness": 0.10,
}

AUDIENCE_LEVEL_SCORES = {"High": 1.0, "Medium": 0.6, "Low": 0.3}
PRODUCTION_LEVEL_SCORES = {"Favorable": 1.0, "Moderate": 0.6, "Challenging": 0.3}

# (min score, label, description), highest band first.
VERDICT_BANDS = [
    (75, "High Potential", "Momentum is strong with clear room for new entrants."),
    (60, "Promising", "Good signals, but expect competition and refine your angle."),
    (45, "Needs Validation", "Mixed signals. Test narrowly before committing."),
    (0, "High Risk", "Low momentum and heavy competition right now."),
]

RiskRule = tuple[Callable[[dict[str, Any]], bool], str]

RISK_RULES: list[RiskRule] = [
    (
        lambda m: m["uploadsPerWeek"] >= 60,
        "High upload velocity required to stay visible.",
    ),
    (
        lambda m: m["demandGrowth"] < 5,
        "Demand growth is flat, so early traction may be slower.",
    ),
    (
        lambda m: m["breakoutVelocity"] >= 4,
        "Outliers dominate views, which can hide smaller creators.",
    ),
    (
        lambda m: m["audienceValue"] == "Low",
        "Advertiser demand appears lower than average.",
    ),
    (
        lambda m: m["productionFit"] == "Challenging",
        "Production time may be high to match current leaders.",
    ),
]

FALLBACK_RISKS = [
    "Search intent is broad and needs a tighter angle.",
    "Existing creators have strong brand moats.",
]
MAX_RISKS = 3

NICHE_ACTIONS = [
    "Ship 3 test videos in 14 days.",
    "Model the top 2 winning formats in this niche.",
    "Pick a specific sub-angle and commit to it for 6 weeks.",
    "Lead with the outcome in the first 3 seconds.",
    "Create a repeatable series format before scaling volume.",
    "Optimize titles and thumbnails for one clear promise.",
]
MAX_ACTIONS = 4


def _video_duration_seconds(video: dict[str, Any]) -> int:
    if "durationSeconds" in video:
        return parse_duration(video.get("durationSeconds"))
    return parse_duration(video.get("duration"))


def compute_video_stats(videos: list[dict[str, Any]]) -> dict[str, Any]:
    """Aggregate view over one window. An empty window is all zeros."""
    if not videos:
        return {
            "avgViews": 0,
            "medianViews": 0,
            "avgDurationSeconds": 0,
            "likesPer1k": 0,
            "views": [],
        }

    views = [int(v.get("views") or 0) for v in videos]
    likes = [int(v.get("likes") or 0) for v in videos]
    durations = [_video_duration_seconds(v) for v in videos]

    return {
        "avgViews": average(views),
        "medianViews": median(views),
        "avgDurationSeconds": average(durations),
        "likesPer1k": likes_per_1k(views, likes),
        "views": views,
    }


def compute_uploads_per_week(total_results: int) -> int:
    return max(1, round_half_up((total_results or 0) / WEEKS_PER_WINDOW))


def compute_breakout_velocity(views: list[int]) -> float:
    """
    Mean of the top-N videos over the window median, 1 decimal.
    1 means evenly distributed; large values mean a few hits carry the niche.
    """
    if not views:
        return 1
    ordered = sorted(views, reverse=True)
    top_avg = average(ordered[:BREAKOUT_TOP_N])
    mid = median(ordered)
    if mid <= 0:
        return 1
    return round_half_up(top_avg / mid, 1)


def compute_stickiness(likes_per_thousand: float) -> float:
    ratio = likes_per_thousand / STICKINESS_BASELINE_LIKES_PER_1K
    return round_half_up(clamp(ratio, STICKINESS_MIN, STICKINESS_MAX), 1)


def compute_audience_value(avg_duration_seconds: float, likes_per_thousand: float) -> str:
    duration_score = clamp(avg_duration_seconds / AUDIENCE_DURATION_CEILING_SECONDS, 0, 1)
    engagement_score = clamp(likes_per_thousand / AUDIENCE_ENGAGEMENT_CEILING_PER_1K, 0, 1)
    blended = (duration_score + engagement_score) / 2
    if blended >= AUDIENCE_HIGH_MIN:
        return "High"
    if blended >= AUDIENCE_MEDIUM_MIN:
        return "Medium"
    return "Low"


def compute_production_fit(avg_duration_seconds: float) -> str:
    if avg_duration_seconds <= PRODUCTION_FAVORABLE_MAX_SECONDS:
        return "Favorable"
    if avg_duration_seconds <= PRODUCTION_MODERATE_MAX_SECONDS:
        return "Moderate"
    return "Challenging"


def compute_sub_scores(metrics: dict[str, Any]) -> dict[str, float]:
    return {
        "demand": clamp((metrics["demandGrowth"] + 30) / 100, 0, 1),
        # More uploads per week means more competition.
        "supply": clamp(1 - metrics["uploadsPerWeek"] / 80, 0, 1),
        "breakout": clamp((metrics["breakoutVelocity"] - 1) / 4, 0, 1),
        "audience": AUDIENCE_LEVEL_SCORES.get(metrics["audienceValue"], AUDIENCE_LEVEL_SCORES["Low"]),
        "production": PRODUCTION_LEVEL_SCORES.get(
            metrics["productionFit"], PRODUCTION_LEVEL_SCORES["Challenging"]
        ),
        "stickiness": clamp(metrics["stickiness"] / 3, 0, 1),
    }


def compute_confidence_score(
    metrics: dict[str, Any],
    weights: dict[str, float] | None = None,
) -> int:
    weights = NICHE_SCORE_WEIGHTS if weights is None else weights
    sub_scores = compute_sub_scores(metrics)
    weighted = sum(sub_scores[name] * weight for name, weight in weights.items())
    return int(clamp(round_half_up(weighted * 100), 0, 100))


def get_verdict(score: int, bands: list[tuple[int, str, str]] | None = None) -> dict[str, str]:
    bands = VERDICT_BANDS if bands is None else bands
    for min_score, label, description in bands:
        if score >= min_score:
            return {"label": label, "description": description}
    _, label, description = bands[-1]
    return {"label": label, "description": description}


def build_risks(
    metrics: dict[str, Any],
    rules: list[RiskRule] | None = None,
    fallback: list[str] | None = None,
) -> list[str]:
    """
    Matched rule messages in rule order. Fewer than two matches are padded
    with the fallback pair, so the list always holds 2 or 3 entries.
    """
    rules = RISK_RULES if rules is None else rules
    fallback = FALLBACK_RISKS if fallback is None else fallback
    matched = [text for predicate, text in rules if predicate(metrics)]
    if len(matched) >= 2:
        return matched[:MAX_RISKS]
    return (matched + list(fallback))[:MAX_RISKS]


def build_actions(actions: list[str] | None = None) -> list[str]:
    # Static list; not derived from metrics.
    actions = NICHE_ACTIONS if actions is None else actions
    return list(actions[:MAX_ACTIONS])


def build_niche_metrics(
    recent_window: dict[str, Any],
    previous_window: dict[str, Any],
) -> dict[str, Any]:
    recent_stats = compute_video_stats(recent_window.get("videos") or [])
    previous_stats = compute_video_stats(previous_window.get("videos") or [])

    return {
        "demandGrowth": compute_growth(recent_stats["avgViews"], previous_stats["avgViews"]),
        "uploadsPerWeek": compute_uploads_per_week(recent_window.get("totalResults") or 0),
        "breakoutVelocity": compute_breakout_velocity(recent_stats["views"]),
        "audienceValue": compute_audience_value(
            recent_stats["avgDurationSeconds"], recent_stats["likesPer1k"]
        ),
        "productionFit": compute_production_fit(recent_stats["avgDurationSeconds"]),
        "stickiness": compute_stickiness(recent_stats["likesPer1k"]),
    }


def score_niche(recent_window: dict[str, Any], previous_window: dict[str, Any]) -> dict[str, Any]:
    """
    Score one topic from its two search windows.

    The caller is expected to have rejected an empty recent window already;
    an empty previous window is fine and lands on the growth sentinels.
    """
    metrics = build_niche_metrics(recent_window, previous_window)
    score = compute_confidence_score(metrics)
    return {
        "sampleSize": len(recent_window.get("videos") or []),
        "score": score,
        "verdict": get_verdict(score),
        "metrics": metrics,
        "risks": build_risks(metrics),
        "actions": build_actions(),
    }
