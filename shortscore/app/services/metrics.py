import math
import re
from datetime import datetime, timezone
from typing import Iterable

DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


def parse_duration(value) -> int:
    """
    ISO-8601 video duration (PT#H#M#S) -> seconds.
    Already-resolved numbers pass through. Anything unparseable is 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value <= 0:
            return 0
        return int(value)
    if not isinstance(value, str):
        return 0
    match = DURATION_RE.match(value.strip())
    if not match:
        return 0
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    seconds = int(match.group(3) or 0)
    return hours * 3600 + minutes * 60 + seconds


def parse_iso8601_datetime(value):
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def round_half_up(value: float, digits: int = 0):
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    if digits == 0:
        return int(rounded)
    return rounded


def average(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0
    return sum(values) / len(values)


def median(values: Iterable[float]) -> float:
    ordered = sorted(values)
    if not ordered:
        return 0
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def standard_deviation(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0
    avg = average(values)
    variance = average((v - avg) ** 2 for v in values)
    return math.sqrt(variance)


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def compute_growth(recent: float, previous: float) -> int:
    # previous <= 0 has no meaningful baseline: +100 if anything appeared, else flat.
    if previous <= 0 and recent > 0:
        return 100
    if previous <= 0:
        return 0
    return round_half_up((recent - previous) / previous * 100)


def likes_per_1k(views: list[int], likes: list[int]) -> float:
    ratios = [(like / view) * 1000 if view else 0 for view, like in zip(views, likes)]
    return average(ratios)
