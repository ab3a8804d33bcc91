"""
Media enrichment for product-bearing rows.

Products reference media items by id only: ``product.media`` is a list of
``{id, position}`` and every variant may carry an ``image`` id. Before a cart
or wishlist row is validated, those ids are resolved through the media item
cache in a single batched lookup and embedded as ``media_item``. An id that
no longer resolves (the item was deleted or replaced) becomes ``None``.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence


class MediaResolver(Protocol):
    async def scan(self, ids: Optional[Sequence[str]] = None) -> List[Any]: ...


def collect_media_ids(products: Sequence[Dict[str, Any]]) -> List[str]:
    ids: Dict[str, None] = {}
    for product in products:
        for media in product.get("media") or []:
            ids[str(media["id"])] = None
        for variant in product.get("variants") or []:
            if variant.get("image"):
                ids[str(variant["image"])] = None
    return list(ids)


async def enrich_media(
    rows: List[Dict[str, Any]],
    media_items: MediaResolver,
    field: Optional[str] = "product",
) -> List[Dict[str, Any]]:
    """
    Return copies of ``rows`` with every media reference resolved.

    ``field`` names the key holding the product on each row; ``None`` means
    the rows are products themselves.
    """

    def get_product(row):
        return row[field] if field else row

    if not rows:
        return []

    media_ids = collect_media_ids([get_product(row) for row in rows])

    media_map: Dict[str, Any] = {}
    if media_ids:
        resolved = await media_items.scan(media_ids)
        media_map = {str(item.id): item for item in resolved}

    enriched = []
    for row in rows:
        product = get_product(row)
        new_product = {
            **product,
            "media": [
                {**media, "media_item": media_map.get(str(media["id"]))}
                for media in product.get("media") or []
            ],
            "variants": [
                {
                    **variant,
                    "media_item": media_map.get(str(variant["image"]))
                    if variant.get("image")
                    else None,
                }
                for variant in product.get("variants") or []
            ],
        }
        enriched.append({**row, field: new_product} if field else new_product)
    return enriched
