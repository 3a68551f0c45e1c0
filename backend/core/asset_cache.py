"""Created-asset cache — remembers which server asset each full path became.

Keyed by externalId (the node's full path), so a later run or a lookup from
the table can find the asset id without listing the whole service.
Caching is best effort: Redis errors are logged, never raised.
"""

import json
import logging
from typing import Optional

import redis as redis_lib

from backend.core.config import settings
from backend.core.models import CreatedAsset
from backend.core.redis_client import get_redis_client

logger = logging.getLogger(__name__)

KEY_PREFIX = "assetsync:asset:"


def _key(external_id: str) -> str:
    return f"{KEY_PREFIX}{external_id}"


def cache_created_assets(assets: list[CreatedAsset], ttl_seconds: Optional[int] = None) -> int:
    """Store each asset under its externalId. Returns the number cached."""
    client = get_redis_client()
    if client is None:
        logger.debug("Redis client not initialized, skipping asset cache")
        return 0

    ttl = ttl_seconds or settings.asset_cache_ttl_seconds
    cached = 0
    try:
        pipe = client.pipeline()
        for asset in assets:
            if not asset.external_id or not asset.asset_id:
                logger.warning(f"Skipping cache for asset without externalId or assetId: {asset}")
                continue
            payload = {"assetId": asset.asset_id, "name": asset.name, "parentId": asset.parent_id}
            pipe.set(_key(asset.external_id), json.dumps(payload), ex=ttl)
            cached += 1
        pipe.execute()
    except redis_lib.RedisError as e:
        logger.error(f"Failed to cache created assets: {e}")
        return 0

    logger.info(f"Cached {cached} created assets")
    return cached


def get_cached_asset(external_id: str) -> Optional[CreatedAsset]:
    """Look up a previously created asset by externalId."""
    client = get_redis_client()
    if client is None:
        return None
    try:
        raw = client.get(_key(external_id))
    except redis_lib.RedisError as e:
        logger.error(f"Failed to read asset cache for {external_id}: {e}")
        return None
    if not raw:
        return None
    data = json.loads(raw)
    return CreatedAsset(
        asset_id=data["assetId"],
        name=data.get("name", ""),
        parent_id=data.get("parentId"),
        external_id=external_id,
    )
