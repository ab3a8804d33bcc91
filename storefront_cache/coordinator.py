"""
Cache-Aside Coordinator

One coordinator per cache family. Reads go through the cache; writes go to
Postgres and then bust the cache, which is rebuilt lazily on the next read:

1. get:  check the key, on miss load the row, validate, write it back
2. scan: compare the relational row count with the number of cached keys
         for the scope; equal counts mean the cached collection is trusted,
         a mismatch drops the scope and rebuilds it from Postgres
3. remove/drop: targeted or scope-wide invalidation after a mutation

The count comparison cannot see "same count, different rows". A single
corrupt value is discarded on read without forcing a rebuild; only a count
mismatch repairs a scope. Concurrent cold readers may each rebuild the same
scope; the writes are idempotent so the last one simply wins.
"""

import asyncio
import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    Type,
    TypeVar,
)

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError

from .codec import JsonCodec
from .keys import KeyScheme, Scope
from .schemas import CacheStats
from .store import get_all_keys

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

Enricher = Callable[[List[dict]], Awaitable[List[dict]]]


class RelationalProvider(Protocol):
    """What a coordinator needs from the query layer."""

    async def count(self, scope: Any = None) -> int: ...

    async def scan(self, scope: Any = None) -> List[Any]: ...

    async def get(self, identity: Any) -> Optional[Any]: ...


def by_created_at(entity: Any):
    return entity.created_at


class CacheCoordinator(Generic[T]):
    def __init__(
        self,
        redis_client: redis.Redis,
        provider: RelationalProvider,
        *,
        model: Type[T],
        keys: KeyScheme,
        ttl: Optional[int] = None,
        enrich: Optional[Enricher] = None,
        sort_key: Callable[[T], Any] = by_created_at,
        newest_first: bool = False,
        codec: Optional[JsonCodec] = None,
    ):
        self.redis = redis_client
        self.provider = provider
        self.model = model
        self.keys = keys
        self.ttl = ttl
        self.enrich = enrich
        self.sort_key = sort_key
        self.newest_first = newest_first
        self.codec = codec or JsonCodec()
        self.stats = {"hits": 0, "misses": 0, "rebuilds": 0, "invalid": 0}

    @property
    def name(self) -> str:
        return self.keys.prefix

    # Validation

    def parse(self, data: Any) -> T:
        """Strict validation; raises ``ValidationError`` on shape mismatch."""
        return self.model.model_validate(data)

    def safe_parse(self, raw: Optional[str]) -> Optional[T]:
        """Decode and validate a cached value, treating failure as absence."""
        data = self.codec.decode(raw)
        if data is None:
            if raw is not None:
                self.stats["invalid"] += 1
            return None
        try:
            return self.model.model_validate(data)
        except ValidationError as e:
            self.stats["invalid"] += 1
            logger.warning(
                f"Discarding invalid {self.name} cache value ({e.error_count()} errors)"
            )
            return None

    def serialize(self, value: Any) -> str:
        return self.codec.encode(self.parse(value))

    def _sorted(self, entities: Iterable[T]) -> List[T]:
        return sorted(entities, key=self.sort_key, reverse=self.newest_first)

    async def _materialize(self, rows: List[Any]) -> List[T]:
        if self.enrich is not None:
            rows = await self.enrich([dict(row) for row in rows])
        return [self.parse(row) for row in rows]

    # Cache-aside protocol

    async def get(self, identity: Any) -> Optional[T]:
        """
        Read-through accessor for a single entity.

        Returns None only when Postgres has no matching row either.
        """
        key = self.keys.build(identity)

        cached = self.safe_parse(await self.redis.get(key))
        if cached is not None:
            self.stats["hits"] += 1
            logger.debug(f"Cache HIT {key}")
            return cached

        self.stats["misses"] += 1
        logger.debug(f"Cache MISS {key}")

        row = await self.provider.get(identity)
        if row is None:
            return None

        (entity,) = await self._materialize([row])
        await self.add(entity)
        return entity

    async def scan(self, scope: Scope = None) -> List[T]:
        """Every entity in ``scope``, rebuilt from Postgres when stale."""
        pattern = self.keys.pattern(self.keys.scope_parts(scope))

        count, keys = await asyncio.gather(
            self.provider.count(scope),
            get_all_keys(self.redis, pattern),
        )

        if count != len(keys):
            logger.info(
                f"{self.name} cache stale for {pattern}: "
                f"{count} rows vs {len(keys)} keys, rebuilding"
            )
            return await self.rebuild(scope)

        if not keys:
            return []

        self.stats["hits"] += 1
        raw = await self.redis.mget(keys)
        parsed = (self.safe_parse(value) for value in raw)
        return self._sorted(entity for entity in parsed if entity is not None)

    async def rebuild(self, scope: Scope = None) -> List[T]:
        """Drop the scope, reload it from Postgres and repopulate the cache."""
        self.stats["rebuilds"] += 1

        # Drop before the refetch so no half-stale key survives the rewrite
        await self.drop(scope)

        rows = await self.provider.scan(scope)
        if not rows:
            return []

        entities = await self._materialize(rows)
        await self.batch(entities)
        return self._sorted(entities)

    async def add(self, value: Any):
        """Upsert a single entity with the family's expiration."""
        entity = self.parse(value)
        return await self.redis.set(
            self.keys.for_entity(entity), self.codec.encode(entity), ex=self.ttl
        )

    async def batch(self, values: Sequence[Any]):
        """Upsert many entities in one round trip."""
        if not values:
            return []

        # Serialize everything first so a bad value aborts before any write
        payload = []
        for value in values:
            entity = self.parse(value)
            payload.append((self.keys.for_entity(entity), self.codec.encode(entity)))

        async with self.redis.pipeline(transaction=True) as pipe:
            for key, data in payload:
                pipe.set(key, data, ex=self.ttl)
            return await pipe.execute()

    async def remove(self, identity: Any) -> int:
        """Delete the key of one concrete identity."""
        return await self.redis.delete(self.keys.build(identity))

    async def drop(self, scope: Scope = None) -> int:
        """Delete every key in ``scope`` (the whole family when unscoped)."""
        keys = await get_all_keys(self.redis, self.keys.pattern(self.keys.scope_parts(scope)))
        if not keys:
            return 0
        return await self.redis.delete(*keys)

    def get_stats(self) -> CacheStats:
        hits, misses = self.stats["hits"], self.stats["misses"]
        total = hits + misses
        hit_rate = hits / total if total > 0 else 0.0
        return CacheStats(
            hits=hits,
            misses=misses,
            rebuilds=self.stats["rebuilds"],
            invalid=self.stats["invalid"],
            hit_rate=round(hit_rate, 3),
        )

    def reset_stats(self):
        for name in self.stats:
            self.stats[name] = 0
