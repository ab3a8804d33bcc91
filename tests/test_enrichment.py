from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from storefront_cache.enrichment import collect_media_ids, enrich_media
from storefront_cache.schemas import CachedCart, MediaItem

from conftest import make_cart, make_media_item, make_product, make_variant


@pytest.fixture
def media_items():
    resolver = AsyncMock()
    resolver.scan.return_value = []
    return resolver


def test_collect_media_ids_dedupes_in_order():
    shared = uuid4()
    product_id = uuid4()
    products = [
        make_product(media_ids=[shared], id=product_id),
        make_product(
            media_ids=[shared],
            variants=[make_variant(product_id, image=shared), make_variant(product_id)],
        ),
    ]

    assert collect_media_ids(products) == [str(shared)]


async def test_single_lookup_for_shared_media(media_items):
    image = make_media_item()
    media_items.scan.return_value = [MediaItem.model_validate(image)]
    rows = [
        make_cart(product=make_product(media_ids=[image["id"]])),
        make_cart(product=make_product(media_ids=[image["id"]]), minutes=1),
    ]

    enriched = await enrich_media(rows, media_items)

    media_items.scan.assert_awaited_once_with([str(image["id"])])
    for row in enriched:
        assert row["product"]["media"][0]["media_item"].id == image["id"]
        CachedCart.model_validate(row)


async def test_missing_media_resolves_to_none(media_items):
    product_id = uuid4()
    deleted = uuid4()
    variant = make_variant(product_id, image=deleted)
    product = make_product(media_ids=[deleted], variants=[variant], id=product_id)

    (row,) = await enrich_media([make_cart(product=product, variant=variant)], media_items)

    assert row["product"]["media"][0]["media_item"] is None
    assert row["product"]["variants"][0]["media_item"] is None


async def test_variant_without_image(media_items):
    product_id = uuid4()
    product = make_product(variants=[make_variant(product_id)], id=product_id)

    (row,) = await enrich_media([make_cart(product=product)], media_items)

    media_items.scan.assert_not_called()
    assert row["product"]["variants"][0]["media_item"] is None


async def test_enrichment_is_idempotent(media_items):
    image = make_media_item()
    media_items.scan.return_value = [MediaItem.model_validate(image)]
    rows = [make_cart(product=make_product(media_ids=[image["id"]]))]

    once = await enrich_media(rows, media_items)
    twice = await enrich_media(once, media_items)

    assert once == twice


async def test_rows_are_products(media_items):
    image = make_media_item()
    media_items.scan.return_value = [MediaItem.model_validate(image)]

    (product,) = await enrich_media(
        [make_product(media_ids=[image["id"]])], media_items, field=None
    )

    assert product["media"][0]["media_item"].url == image["url"]


async def test_no_rows(media_items):
    assert await enrich_media([], media_items) == []
    media_items.scan.assert_not_called()
