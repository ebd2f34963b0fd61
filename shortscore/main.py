import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

try:
    from shortscore.app.services.anonymous_usage import (
        ANONYMOUS_ANALYSES_LIMIT,
        check_anonymous_trial,
        record_anonymous_usage,
        usage_summary,
    )
    from shortscore.app.services.cache import (
        CACHE_TTL_SECONDS,
        channel_cache_key,
        get_cached_json,
        niche_cache_key,
        set_cached_json,
    )
    from shortscore.app.services.channel_scoring import compute_channel_metrics
    from shortscore.app.services.errors import (
        AnalyzerError,
        ConfigurationError,
        NotFoundError,
        QuotaExceededError,
        ValidationError,
    )
    from shortscore.app.services.kv_store import build_store
    from shortscore.app.services.niche_scoring import score_niche
    from shortscore.app.services.reports import build_channel_report, build_niche_report
    from shortscore.app.services.youtube_client import (
        fetch_channel_info,
        fetch_recent_videos,
        resolve_channel_id,
        search_videos,
    )
except ModuleNotFoundError:
    from app.services.anonymous_usage import (
        ANONYMOUS_ANALYSES_LIMIT,
        check_anonymous_trial,
        record_anonymous_usage,
        usage_summary,
    )
    from app.services.cache import (
        CACHE_TTL_SECONDS,
        channel_cache_key,
        get_cached_json,
        niche_cache_key,
        set_cached_json,
    )
    from app.services.channel_scoring import compute_channel_metrics
    from app.services.errors import (
        AnalyzerError,
        ConfigurationError,
        NotFoundError,
        QuotaExceededError,
        ValidationError,
    )
    from app.services.kv_store import build_store
    from app.services.niche_scoring import score_niche
    from app.services.reports import build_channel_report, build_niche_report
    from app.services.youtube_client import (
        fetch_channel_info,
        fetch_recent_videos,
        resolve_channel_id,
        search_videos,
    )


# ---------------------------
# Config
# ---------------------------

load_dotenv()

logging.basicConfig(
    level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

TOPIC_MAX_LENGTH = 120
NICHE_RECENT_WINDOW_DAYS = 30
NICHE_PREVIOUS_WINDOW_DAYS = 60

CACHE_STORE = build_store(os.getenv("CACHE_STORE_FILE"))
USAGE_STORE = build_store(os.getenv("USAGE_STORE_FILE"))


def require_youtube_api_key() -> str:
    api_key = (os.getenv("YOUTUBE_API_KEY") or "").strip()
    if not api_key:
        raise ConfigurationError("YouTube API key not configured")
    return api_key


def parse_cors_origins() -> tuple[list[str], bool]:
    raw = (os.getenv("CORS_ALLOWED_ORIGINS") or "").strip()
    if not raw:
        return ["http://localhost:5173"], True
    if raw == "*":
        return ["*"], False
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        return ["http://localhost:5173"], True
    return origins, True


class NicheRequest(BaseModel):
    topic: Any = None


class ChannelRequest(BaseModel):
    channel: Any = None


# ---------------------------
# Pipeline helpers
# ---------------------------

def enforce_anonymous_quota(request: Request) -> dict[str, Any]:
    usage = check_anonymous_trial(request, USAGE_STORE)
    if not usage["allowed"]:
        logger.info("Anonymous quota exhausted for %s", usage["ipHash"][:12])
        raise QuotaExceededError(usage["analysesUsed"], ANONYMOUS_ANALYSES_LIMIT)
    return usage


def record_usage(usage: dict[str, Any]) -> None:
    record_anonymous_usage(USAGE_STORE, usage["ipHash"], usage["analysesUsed"] + 1)


async def read_json_body(request: Request) -> Any:
    """Malformed or missing JSON reads as None; validation happens after the quota gate."""
    try:
        return await request.json()
    except ValueError:
        return None


def parse_payload(model: type[BaseModel], body: Any) -> BaseModel | None:
    if isinstance(body, model):
        return body
    if not isinstance(body, dict):
        return None
    try:
        return model.model_validate(body)
    except PydanticValidationError:
        return None


def clean_text_input(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def validate_topic(payload: NicheRequest | None) -> str:
    topic = clean_text_input(payload.topic if payload else None)
    if not topic:
        raise ValidationError("Topic is required")
    if len(topic) > TOPIC_MAX_LENGTH:
        raise ValidationError("Topic is too long")
    return topic


def validate_channel_input(payload: ChannelRequest | None) -> str:
    channel_input = clean_text_input(payload.channel if payload else None)
    if not channel_input:
        raise ValidationError("Channel URL or handle is required")
    return channel_input


def fetch_niche_windows(topic: str, api_key: str, now: datetime) -> tuple[dict, dict]:
    recent_start = now - timedelta(days=NICHE_RECENT_WINDOW_DAYS)
    previous_start = now - timedelta(days=NICHE_PREVIOUS_WINDOW_DAYS)

    recent = search_videos(topic, api_key, published_after=recent_start)
    if not recent["videos"]:
        raise NotFoundError("No recent videos found for this niche.")

    previous = search_videos(
        topic,
        api_key,
        published_after=previous_start,
        published_before=recent_start,
    )
    return recent, previous


# ---------------------------
# App setup
# ---------------------------

app = FastAPI()

cors_origins, cors_credentials = parse_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AnalyzerError)
async def analyzer_error_handler(request: Request, exc: AnalyzerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})


@app.on_event("startup")
def on_startup_check_config():
    if not os.getenv("YOUTUBE_API_KEY"):
        logger.warning("YOUTUBE_API_KEY is not set; analysis endpoints will return 500")
    logger.info(
        "Stores: cache=%s usage=%s",
        type(CACHE_STORE).__name__,
        type(USAGE_STORE).__name__,
    )


# ---------------------------
# Endpoints
# ---------------------------

@app.get("/health")
def health():
    return {"ok": True}


@app.get("/usage/check")
def usage_check(request: Request):
    usage = check_anonymous_trial(request, USAGE_STORE)
    return usage_summary(usage)


@app.post("/niche-analyzer")
async def niche_analyzer_route(request: Request):
    body = await read_json_body(request)
    return await run_in_threadpool(niche_analyzer, request, body)


@app.post("/channel-analyzer")
async def channel_analyzer_route(request: Request):
    body = await read_json_body(request)
    return await run_in_threadpool(channel_analyzer, request, body)


def niche_analyzer(request: Request, payload: Any = None):
    api_key = require_youtube_api_key()
    usage = enforce_anonymous_quota(request)
    topic = validate_topic(parse_payload(NicheRequest, payload))

    cache_key = niche_cache_key(topic)
    cached = get_cached_json(CACHE_STORE, cache_key)
    if cached is not None:
        logger.info("Cache hit for %s", cache_key)
        record_usage(usage)
        return cached

    logger.info("Cache miss for %s, fetching windows", cache_key)
    now = datetime.now(timezone.utc)
    recent, previous = fetch_niche_windows(topic, api_key, now)

    scored = score_niche(recent, previous)
    report = build_niche_report(topic, scored, now)

    set_cached_json(CACHE_STORE, cache_key, report, CACHE_TTL_SECONDS)
    record_usage(usage)
    logger.info("Niche analysis for %r scored %s (%s)", topic, report["score"], report["verdict"]["label"])
    return report


def channel_analyzer(request: Request, payload: Any = None):
    api_key = require_youtube_api_key()
    usage = enforce_anonymous_quota(request)
    channel_input = validate_channel_input(parse_payload(ChannelRequest, payload))

    channel_id = resolve_channel_id(channel_input, api_key)
    if not channel_id:
        raise NotFoundError("Unable to resolve channel. Try a full channel URL or @handle.")

    cache_key = channel_cache_key(channel_id)
    cached = get_cached_json(CACHE_STORE, cache_key)
    if cached is not None:
        logger.info("Cache hit for %s", cache_key)
        record_usage(usage)
        return cached

    channel = fetch_channel_info(channel_id, api_key)
    if not channel:
        raise NotFoundError("Channel not found.")

    videos = fetch_recent_videos(channel["uploadsPlaylistId"], api_key)
    if not videos:
        raise NotFoundError("No recent videos found for this channel.")

    now = datetime.now(timezone.utc)
    metrics = compute_channel_metrics(videos, now=now)
    report = build_channel_report(channel, videos, metrics, now)

    set_cached_json(CACHE_STORE, cache_key, report, CACHE_TTL_SECONDS)
    record_usage(usage)
    logger.info("Channel analysis for %s over %s videos", channel_id, report["sampleSize"])
    return report
