"""Connection lifecycle for Postgres and Redis, plus key enumeration."""

import json
from typing import List, Optional

import asyncpg
import redis.asyncio as redis

from . import config


async def _init_connection(conn: asyncpg.Connection):
    # jsonb columns (product media, option values, variant combinations)
    await conn.set_type_codec(
        "jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
    )


async def connect_db(dsn: Optional[str] = None) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        dsn or config.DATABASE_URL,
        min_size=config.DB_POOL_MIN_SIZE,
        max_size=config.DB_POOL_MAX_SIZE,
        init=_init_connection,
    )


async def connect_redis(url: Optional[str] = None) -> redis.Redis:
    return redis.from_url(url or config.REDIS_URL, decode_responses=True)


async def get_all_keys(client: redis.Redis, pattern: str) -> List[str]:
    """
    Every key matching ``pattern``.

    Uses SCAN rather than KEYS so a large keyspace is walked in batches
    without blocking the server. SCAN may yield a key more than once, so
    the result is deduplicated before anyone counts it.
    """
    keys = [key async for key in client.scan_iter(match=pattern, count=config.SCAN_COUNT)]
    return list(dict.fromkeys(keys))
