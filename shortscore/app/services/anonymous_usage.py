import hashlib
import logging
import os
from typing import Any

from starlette.requests import Request

from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)

ANONYMOUS_ANALYSES_LIMIT = 1
DEFAULT_IP_HASH_SALT = "default-salt-change-me-in-production"
USAGE_KEY_PREFIX = "anonymous_usage"


def get_client_ip(request: Request) -> str:
    cf_ip = (request.headers.get("cf-connecting-ip") or "").strip()
    if cf_ip:
        return cf_ip
    forwarded = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    logger.warning("Could not determine client IP address")
    return "unknown"


def hash_ip(ip: str, salt: str | None = None) -> str:
    """Salted SHA-256 of the client IP; the raw IP is never stored."""
    salt = salt or os.getenv("IP_HASH_SALT") or DEFAULT_IP_HASH_SALT
    if salt == DEFAULT_IP_HASH_SALT:
        logger.warning("IP_HASH_SALT not set, using the default salt")
    return hashlib.sha256(f"{ip}{salt}".encode("utf-8")).hexdigest()


def usage_key(ip_hash: str) -> str:
    return f"{USAGE_KEY_PREFIX}:{ip_hash}"


def is_dev_bypass_enabled() -> bool:
    return (os.getenv("APP_ENV") or "").strip().lower() == "development"


def get_analyses_used(store: KeyValueStore, ip_hash: str) -> int:
    raw = store.get(usage_key(ip_hash))
    try:
        return max(0, int(raw or 0))
    except (TypeError, ValueError):
        return 0


def check_anonymous_trial(request: Request, store: KeyValueStore) -> dict[str, Any]:
    ip_hash = hash_ip(get_client_ip(request))
    analyses_used = get_analyses_used(store, ip_hash)
    dev_bypass = is_dev_bypass_enabled()
    return {
        "allowed": dev_bypass or analyses_used < ANONYMOUS_ANALYSES_LIMIT,
        "ipHash": ip_hash,
        "analysesUsed": analyses_used,
        "isDevBypass": dev_bypass and analyses_used >= ANONYMOUS_ANALYSES_LIMIT,
    }


def record_anonymous_usage(store: KeyValueStore, ip_hash: str, analyses_used: int) -> int:
    try:
        store.set(usage_key(ip_hash), analyses_used)
    except (OSError, ValueError, TypeError) as exc:
        logger.warning("Failed to record anonymous usage for %s: %s", ip_hash[:12], exc)
    return analyses_used


def usage_summary(usage: dict[str, Any]) -> dict[str, Any]:
    used = usage["analysesUsed"]
    return {
        "tier": "anonymous",
        "analyses_used": used,
        "analyses_limit": ANONYMOUS_ANALYSES_LIMIT,
        "analyses_remaining": max(0, ANONYMOUS_ANALYSES_LIMIT - used),
        "can_analyze": used < ANONYMOUS_ANALYSES_LIMIT,
    }
