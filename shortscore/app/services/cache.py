import hashlib
import json
import logging
import re
from typing import Any

from .kv_store import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 24 * 60 * 60
DEFAULT_NAMESPACE = "analyzer"
SLUG_MAX_LENGTH = 80

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Used when the configured store cannot be written or read.
FALLBACK_CACHE = MemoryStore()


def slugify(value: str) -> str:
    slug = _NON_ALNUM_RE.sub("-", (value or "").lower().strip())
    # Trim again after truncation so a cut on a hyphen stays idempotent.
    return slug.strip("-")[:SLUG_MAX_LENGTH].rstrip("-")


def niche_cache_key(topic: str) -> str:
    slug = slugify(topic)
    if not slug:
        # Topics with no ASCII letters or digits would all share "niche:".
        normalized = " ".join((topic or "").lower().split())
        slug = "topic-" + hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:16]
    return f"niche:{slug}"


def channel_cache_key(channel_id: str) -> str:
    return f"channel:{channel_id}"


def _namespaced(key: str, namespace: str) -> str:
    return f"{namespace}:{key}"


def get_cached_json(store: KeyValueStore, key: str, namespace: str = DEFAULT_NAMESPACE) -> Any:
    full_key = _namespaced(key, namespace)
    try:
        cached = store.get(full_key)
        if cached is not None:
            return cached
    except (OSError, ValueError, TypeError) as exc:
        logger.warning("Cache read failed for %s, treating as miss: %s", full_key, exc)
    return FALLBACK_CACHE.get(full_key)


def set_cached_json(
    store: KeyValueStore,
    key: str,
    value: Any,
    ttl_seconds: int = CACHE_TTL_SECONDS,
    namespace: str = DEFAULT_NAMESPACE,
) -> None:
    full_key = _namespaced(key, namespace)
    try:
        # Round-trip so every backend stores exactly what JSON can carry.
        store.set(full_key, json.loads(json.dumps(value)), ttl_seconds)
        return
    except (OSError, ValueError, TypeError) as exc:
        logger.warning("Cache write failed for %s, using in-process fallback: %s", full_key, exc)
    FALLBACK_CACHE.set(full_key, value, ttl_seconds)
