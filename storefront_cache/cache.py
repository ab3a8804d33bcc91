"""
Cache families.

Every family is a ``CacheCoordinator`` configured with its key scheme, its
query provider, its model and its expiration. Category, subcategory, product
type, media item and user are keyed by id; cart and wishlist are keyed by
``(user_id, product_id[, variant_id])`` and scanned per user.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Dict, List, Optional, Sequence

import redis.asyncio as redis

from . import config
from .coordinator import CacheCoordinator
from .enrichment import enrich_media
from .keys import KeyScheme
from .queries import Queries
from .schemas import (
    CachedCart,
    CachedCategory,
    CachedProductType,
    CachedSubcategory,
    CachedUser,
    CachedWishlist,
    MediaItem,
)

logger = logging.getLogger(__name__)


class MediaItemCache(CacheCoordinator[MediaItem]):
    """Media items, also resolvable as a batch of ids for enrichment."""

    async def scan(self, ids: Optional[Sequence[Any]] = None) -> List[MediaItem]:
        if not ids:
            return await super().scan()

        ids = list(dict.fromkeys(str(i) for i in ids))
        keys = [self.keys.build(i) for i in ids]

        count, raw = await asyncio.gather(
            self.provider.count(ids),
            self.redis.mget(keys),
        )
        cached = [item for item in (self.safe_parse(value) for value in raw) if item is not None]

        if len(cached) != count:
            logger.info(
                f"{self.name} cache stale for {len(ids)} ids: "
                f"{count} rows vs {len(cached)} cached, reloading"
            )
            self.stats["rebuilds"] += 1
            await self.redis.delete(*keys)

            rows = await self.provider.scan(ids)
            if not rows:
                return []

            items = [self.parse(row) for row in rows]
            await self.batch(items)
            return self._sorted(items)

        self.stats["hits"] += 1
        return self._sorted(cached)


def _cart_identity(cart: CachedCart):
    return cart.key


def _wishlist_identity(wishlist: CachedWishlist):
    return wishlist.key


class Cache:
    """All cache families, wired to one Redis client and one query layer."""

    def __init__(self, redis_client: redis.Redis, queries: Queries):
        self.redis = redis_client

        self.media_item = MediaItemCache(
            redis_client,
            queries.media_item,
            model=MediaItem,
            keys=KeyScheme("media-item"),
            ttl=config.MEDIA_ITEM_TTL,
            newest_first=True,
        )
        enrich = partial(enrich_media, media_items=self.media_item)

        self.category = CacheCoordinator(
            redis_client,
            queries.category,
            model=CachedCategory,
            keys=KeyScheme("category"),
            ttl=config.CATEGORY_TTL,
            newest_first=True,
        )
        self.subcategory = CacheCoordinator(
            redis_client,
            queries.subcategory,
            model=CachedSubcategory,
            keys=KeyScheme("subcategory"),
            ttl=config.CATEGORY_TTL,
            newest_first=True,
        )
        self.product_type = CacheCoordinator(
            redis_client,
            queries.product_type,
            model=CachedProductType,
            keys=KeyScheme("product-type"),
            ttl=config.CATEGORY_TTL,
            newest_first=True,
        )
        self.cart = CacheCoordinator(
            redis_client,
            queries.cart,
            model=CachedCart,
            keys=KeyScheme(
                "cart",
                fields=("user_id", "product_id", "variant_id"),
                identify=_cart_identity,
            ),
            ttl=config.CART_TTL,
            enrich=enrich,
        )
        self.wishlist = CacheCoordinator(
            redis_client,
            queries.wishlist,
            model=CachedWishlist,
            keys=KeyScheme(
                "wishlist",
                fields=("user_id", "product_id"),
                identify=_wishlist_identity,
            ),
            ttl=config.WISHLIST_TTL,
            enrich=enrich,
        )
        self.user = CacheCoordinator(
            redis_client,
            queries.user,
            model=CachedUser,
            keys=KeyScheme("user"),
            ttl=config.USER_TTL,
            newest_first=True,
        )

    @property
    def families(self) -> Dict[str, CacheCoordinator]:
        return {
            "category": self.category,
            "subcategory": self.subcategory,
            "product_type": self.product_type,
            "cart": self.cart,
            "wishlist": self.wishlist,
            "media_item": self.media_item,
            "user": self.user,
        }

    async def clear(self) -> int:
        """Drop every family and reset statistics."""
        dropped = 0
        for family in self.families.values():
            dropped += await family.drop()
            family.reset_stats()
        return dropped
