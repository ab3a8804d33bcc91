"""Pytest configuration and fixtures for storefront-cache tests."""

from datetime import datetime, timedelta, timezone
from fnmatch import fnmatchcase
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakePipeline:
    """Queues SET commands and applies them on execute."""

    def __init__(self, redis):
        self.redis = redis
        self.commands = []
        self.transaction = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.commands = []

    def set(self, key, value, ex=None):
        self.commands.append((key, value, ex))
        return self

    async def execute(self):
        self.redis.pipelines += 1
        results = []
        for key, value, ex in self.commands:
            results.append(await self.redis.set(key, value, ex=ex))
        self.commands = []
        return results


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` with decoded responses."""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.writes = 0
        self.pipelines = 0

    async def get(self, key):
        return self.store.get(key)

    async def mget(self, keys):
        return [self.store.get(key) for key in keys]

    async def set(self, key, value, ex=None):
        self.writes += 1
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        deleted = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    async def scan_iter(self, match=None, count=None):
        for key in list(self.store):
            if match is None or fnmatchcase(key, match):
                yield key

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def aclose(self):
        pass


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def mock_provider():
    """Query provider with no rows."""
    provider = AsyncMock()
    provider.count.return_value = 0
    provider.scan.return_value = []
    provider.get.return_value = None
    return provider


def stamp(minutes=0):
    return BASE_TIME + timedelta(minutes=minutes)


def make_category(name="Apparel", minutes=0, **overrides):
    row = {
        "id": uuid4(),
        "name": name,
        "slug": name.lower().replace(" ", "-"),
        "description": None,
        "created_at": stamp(minutes),
        "updated_at": stamp(minutes),
        "subcategories": 0,
    }
    row.update(overrides)
    return row


def make_media_item(minutes=0, **overrides):
    id = overrides.pop("id", uuid4())
    row = {
        "id": id,
        "uploader_id": "user_1",
        "url": f"https://cdn.example.com/{id}.png",
        "type": "image/png",
        "name": f"{id}.png",
        "alt": None,
        "size": 1024,
        "created_at": stamp(minutes),
        "updated_at": stamp(minutes),
    }
    row.update(overrides)
    return row


def make_variant(product_id, image=None, **overrides):
    row = {
        "id": uuid4(),
        "product_id": product_id,
        "image": image,
        "combinations": {"size": "M"},
        "price": 2500,
        "compare_at_price": None,
        "quantity": 10,
        "native_sku": "SKU-0001",
        "sku": None,
        "is_deleted": False,
    }
    row.update(overrides)
    return row


def make_product(media_ids=(), variants=None, **overrides):
    product_id = overrides.pop("id", uuid4())
    row = {
        "id": product_id,
        "title": "Linen Shirt",
        "slug": "linen-shirt",
        "price": 2500,
        "compare_at_price": None,
        "native_sku": "SKU-0001",
        "sku": None,
        "quantity": 10,
        "is_active": True,
        "is_published": True,
        "is_available": True,
        "is_deleted": False,
        "verification_status": "approved",
        "media": [{"id": media_id, "position": i} for i, media_id in enumerate(media_ids)],
        "variants": variants or [],
        "options": [],
        "category_id": uuid4(),
        "subcategory_id": uuid4(),
        "product_type_id": uuid4(),
        "product_has_variants": bool(variants),
    }
    row.update(overrides)
    return row


def make_cart(user_id="user_1", product=None, variant=None, minutes=0, **overrides):
    product = product or make_product()
    row = {
        "id": uuid4(),
        "user_id": user_id,
        "product_id": product["id"],
        "variant_id": variant["id"] if variant else None,
        "quantity": 1,
        "status": True,
        "created_at": stamp(minutes),
        "updated_at": stamp(minutes),
        "product": product,
        "variant": variant,
    }
    row.update(overrides)
    return row


def make_wishlist(user_id="user_1", product=None, minutes=0):
    product = product or make_product()
    return {
        "id": uuid4(),
        "user_id": user_id,
        "product_id": product["id"],
        "created_at": stamp(minutes),
        "updated_at": stamp(minutes),
        "product": product,
    }


def make_user(user_id="user_1", addresses=()):
    return {
        "id": user_id,
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "phone": None,
        "avatar_url": None,
        "is_email_verified": True,
        "is_phone_verified": False,
        "role": "user",
        "created_at": stamp(),
        "updated_at": stamp(),
        "addresses": list(addresses),
    }


def make_address(**overrides):
    row = {
        "id": uuid4(),
        "alias": "Home",
        "alias_slug": "home",
        "full_name": "Ada Lovelace",
        "street": "12 St James's Square",
        "city": "London",
        "state": "London",
        "zip": "SW1Y4JH",
        "phone": "4420794600",
        "type": "home",
        "is_primary": False,
    }
    row.update(overrides)
    return row
