"""
Storefront API

Route handlers validate the request, read through the cache, write to
Postgres, and then invalidate the affected cache keys:

1. Reads go to the cache family (get/scan), which rebuilds itself on miss
2. Writes go to the query layer only
3. After a write the handler removes the entity's key, or drops the scope
   when the whole collection changed
"""

import logging
import re
import unicodedata
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response

from . import config
from .cache import Cache
from .queries import Queries
from .schemas import (
    Address,
    CachedCart,
    CachedCategory,
    CachedProductType,
    CachedSubcategory,
    CachedUser,
    CachedWishlist,
    Cart,
    CartKey,
    CacheStats,
    Category,
    CreateAddress,
    CreateCart,
    CreateCategory,
    CreateMediaItem,
    CreateSubcategory,
    CreateWishlist,
    MediaItem,
    Subcategory,
    UpdateAddress,
    UpdateCart,
    UpdateCategory,
    UpdateMediaItem,
    Wishlist,
    WishlistKey,
)
from .store import connect_db, connect_redis

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

NOT_FOUND = "The requested resource was not found"
CONFLICT = "The request could not be completed due to a conflict with the current state of the resource"
NOT_AVAILABLE = "This product is not available"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    db_pool = await connect_db()
    redis_client = await connect_redis()
    app.state.queries = Queries(db_pool)
    app.state.cache = Cache(redis_client, app.state.queries)
    yield
    # Shutdown
    await db_pool.close()
    await redis_client.aclose()


app = FastAPI(title="Storefront Cache", lifespan=lifespan)


def get_cache(request: Request) -> Cache:
    return request.app.state.cache


def get_queries(request: Request) -> Queries:
    return request.app.state.queries


def slugify(text: str, separator: str = "-") -> str:
    text = unicodedata.normalize("NFD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[^a-z0-9 ]", "", text.lower().strip())
    return re.sub(r"\s+", separator, text)


# Categories

@app.get("/categories", response_model=List[CachedCategory])
async def list_categories(cache: Cache = Depends(get_cache)):
    return await cache.category.scan()


@app.post("/categories", response_model=Category, status_code=201)
async def create_category(
    body: CreateCategory,
    queries: Queries = Depends(get_queries),
):
    """
    Create in Postgres only. The category count now differs from the
    cached key count, so the next scan rebuilds the family.
    """
    slug = slugify(body.name)
    if await queries.category.get_by_slug(slug):
        raise HTTPException(status_code=409, detail=CONFLICT)

    return await queries.category.create(body.name, slug, body.description)


@app.get("/categories/{category_id}", response_model=CachedCategory)
async def get_category(category_id: UUID, cache: Cache = Depends(get_cache)):
    category = await cache.category.get(str(category_id))
    if not category:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return category


@app.patch("/categories/{category_id}", response_model=Category)
async def update_category(
    category_id: UUID,
    body: UpdateCategory,
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    existing = await cache.category.get(str(category_id))
    if not existing:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    slug = slugify(body.name) if body.name else existing.slug
    if slug != existing.slug and await queries.category.get_by_slug(slug):
        raise HTTPException(status_code=409, detail=CONFLICT)

    values = {**body.model_dump(exclude_unset=True), "slug": slug}
    row = await queries.category.update(str(category_id), values)

    await cache.category.remove(str(category_id))
    return row


@app.delete("/categories/{category_id}", status_code=204)
async def delete_category(
    category_id: UUID,
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    if not await queries.category.delete(str(category_id)):
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    await cache.category.remove(str(category_id))


@app.get("/subcategories", response_model=List[CachedSubcategory])
async def list_subcategories(cache: Cache = Depends(get_cache)):
    return await cache.subcategory.scan()


@app.post("/subcategories", response_model=Subcategory, status_code=201)
async def create_subcategory(
    body: CreateSubcategory,
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    slug = slugify(body.name)
    if await queries.subcategory.get_by_slug(slug):
        raise HTTPException(status_code=409, detail=CONFLICT)

    if not await cache.category.get(str(body.category_id)):
        raise HTTPException(status_code=404, detail="Category not found")

    row = await queries.subcategory.create(body, slug)

    # The cached parent carries the subcategory count
    await cache.category.remove(str(body.category_id))
    return row


@app.get("/product-types", response_model=List[CachedProductType])
async def list_product_types(cache: Cache = Depends(get_cache)):
    return await cache.product_type.scan()


# Carts

def _cart_key(user_id: str, product_id: UUID, variant_id: Optional[UUID]) -> CartKey:
    return CartKey(user_id, str(product_id), str(variant_id) if variant_id else None)


@app.get("/carts", response_model=List[CachedCart])
async def list_cart(user_id: str = Query(min_length=1), cache: Cache = Depends(get_cache)):
    return await cache.cart.scan(user_id)


@app.post("/carts", response_model=Cart)
async def add_to_cart(
    body: CreateCart,
    response: Response,
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    """Add a line, or increment the quantity of an existing one."""
    if body.variant_id:
        variant = await queries.product.get_purchasable_variant(
            str(body.product_id), str(body.variant_id), body.quantity
        )
        if not variant:
            raise HTTPException(
                status_code=404, detail="The product variant was not found"
            )
    else:
        product = await queries.product.get_purchasable(str(body.product_id))
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        if (product["quantity"] or 0) < body.quantity:
            raise HTTPException(
                status_code=403,
                detail="The product is not available in the requested quantity",
            )

    key = _cart_key(body.user_id, body.product_id, body.variant_id)
    existing = await cache.cart.get(key)

    if not existing:
        response.status_code = 201
        return await queries.cart.create(body)

    row = await queries.cart.update(
        str(existing.id),
        {"quantity": existing.quantity + body.quantity, "status": True},
    )
    await cache.cart.remove(key)
    return row


@app.patch("/carts")
async def update_cart(
    body: UpdateCart,
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    if body.action == "move_to_wishlist":
        return await _move_to_wishlist(body, cache, queries)

    if body.product_id:
        key = _cart_key(body.user_id, body.product_id, body.variant_id)
        existing = await cache.cart.get(key)
        if not existing:
            raise HTTPException(status_code=404, detail="Cart item not found")

        if not existing.product.is_purchasable or (
            existing.variant and existing.variant.is_deleted
        ):
            raise HTTPException(status_code=400, detail=NOT_AVAILABLE)

        if body.quantity is not None:
            if body.quantity == existing.quantity:
                raise HTTPException(status_code=400, detail="No changes detected")

            stock = (
                existing.variant.quantity
                if existing.variant
                else (existing.product.quantity or 0)
            )
            if stock < body.quantity:
                raise HTTPException(status_code=400, detail="Not enough stock available")

        values = body.model_dump(include={"quantity", "status"}, exclude_none=True)
        if not values:
            raise HTTPException(status_code=400, detail="No changes detected")

        row = await queries.cart.update(str(existing.id), values)
        await cache.cart.remove(key)
        return Cart.model_validate(row)

    if body.status is not None:
        lines = await cache.cart.scan(body.user_id)
        if not lines:
            raise HTTPException(status_code=404, detail="No cart items found")

        rows = await queries.cart.set_status([line.id for line in lines], body.status)
        await cache.cart.drop(body.user_id)
        return [Cart.model_validate(row) for row in rows]

    raise HTTPException(status_code=400, detail="No valid update operation specified")


async def _move_to_wishlist(body: UpdateCart, cache: Cache, queries: Queries):
    if not body.product_id:
        raise HTTPException(status_code=400, detail="Product ID is required")

    key = _cart_key(body.user_id, body.product_id, body.variant_id)
    existing = await cache.cart.get(key)
    if not existing:
        raise HTTPException(status_code=404, detail="Cart item not found")

    if not existing.product.is_purchasable:
        raise HTTPException(status_code=400, detail=NOT_AVAILABLE)

    wishlist_key = WishlistKey(body.user_id, str(body.product_id))
    if await cache.wishlist.get(wishlist_key):
        raise HTTPException(status_code=409, detail="Product already in wishlist")

    await queries.wishlist.create(
        CreateWishlist(user_id=body.user_id, product_id=body.product_id)
    )
    await queries.cart.delete(body.user_id, [existing.id])
    await cache.cart.remove(key)

    return {"moved": "to_wishlist"}


@app.delete("/carts", status_code=204)
async def delete_cart_items(
    user_id: str = Query(min_length=1),
    ids: List[UUID] = Query(...),
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    lines = await cache.cart.scan(user_id)
    if not lines:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    to_delete = [line.id for line in lines if line.id in ids]
    if not to_delete:
        raise HTTPException(status_code=404, detail="No matching items found")

    await queries.cart.delete(user_id, to_delete)
    await cache.cart.drop(user_id)


# Wishlists

@app.get("/wishlists", response_model=List[CachedWishlist])
async def list_wishlist(user_id: str = Query(min_length=1), cache: Cache = Depends(get_cache)):
    return await cache.wishlist.scan(user_id)


@app.post("/wishlists", response_model=Wishlist, status_code=201)
async def add_to_wishlist(
    body: CreateWishlist,
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    if not await queries.product.get_purchasable(str(body.product_id)):
        raise HTTPException(status_code=404, detail="Product not found")

    key = WishlistKey(body.user_id, str(body.product_id))
    if await cache.wishlist.get(key):
        raise HTTPException(status_code=409, detail="Product already in wishlist")

    return await queries.wishlist.create(body)


@app.delete("/wishlists", status_code=204)
async def remove_from_wishlist(
    user_id: str = Query(min_length=1),
    product_id: UUID = Query(...),
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    key = WishlistKey(user_id, str(product_id))
    existing = await cache.wishlist.get(key)
    if not existing:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    await queries.wishlist.delete(str(existing.id))
    await cache.wishlist.remove(key)


# Media items

@app.get("/media-items", response_model=List[MediaItem])
async def list_media_items(cache: Cache = Depends(get_cache)):
    return await cache.media_item.scan()


@app.post("/media-items", response_model=List[MediaItem], status_code=201)
async def create_media_items(
    body: List[CreateMediaItem],
    queries: Queries = Depends(get_queries),
):
    return await queries.media_item.create(body)


@app.patch("/media-items/{media_item_id}", response_model=MediaItem)
async def update_media_item(
    media_item_id: UUID,
    body: UpdateMediaItem,
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    values = body.model_dump(exclude_unset=True)
    if not values:
        raise HTTPException(status_code=400, detail="No changes detected")

    row = await queries.media_item.update(str(media_item_id), values)
    if not row:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    await cache.media_item.remove(str(media_item_id))
    return row


@app.delete("/media-items", status_code=204)
async def delete_media_items(
    ids: List[UUID] = Query(...),
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    deleted = await queries.media_item.delete(ids)
    if not deleted:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    for row in deleted:
        await cache.media_item.remove(str(row["id"]))


# Users and addresses

@app.get("/users/{user_id}", response_model=CachedUser)
async def get_user(user_id: str, cache: Cache = Depends(get_cache)):
    user = await cache.user.get(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.post("/users/{user_id}/addresses", response_model=Address, status_code=201)
async def create_address(
    user_id: str,
    body: CreateAddress,
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    slug = slugify(body.alias)
    if await queries.address.get(user_id=user_id, slug=slug, type=body.type):
        raise HTTPException(status_code=409, detail=CONFLICT)

    row = await queries.address.create(user_id, slug, body)

    # The cached user embeds its addresses
    await cache.user.remove(user_id)
    return row


@app.patch("/users/{user_id}/addresses/{address_id}", response_model=Address)
async def update_address(
    user_id: str,
    address_id: UUID,
    body: UpdateAddress,
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    existing = await queries.address.get(id=str(address_id), user_id=user_id)
    if not existing:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    slug = slugify(body.alias)
    if slug != existing["alias_slug"]:
        clash = await queries.address.get(user_id=user_id, slug=slug, type=body.type)
        if clash:
            raise HTTPException(status_code=409, detail=CONFLICT)

    row = await queries.address.update(str(address_id), slug, body)

    await cache.user.remove(user_id)
    return row


@app.delete("/users/{user_id}/addresses/{address_id}", status_code=204)
async def delete_address(
    user_id: str,
    address_id: UUID,
    cache: Cache = Depends(get_cache),
    queries: Queries = Depends(get_queries),
):
    existing = await queries.address.get(id=str(address_id), user_id=user_id)
    if not existing:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    await queries.address.delete(str(address_id))
    await cache.user.remove(user_id)


# Cache management

@app.get("/stats", response_model=Dict[str, CacheStats])
async def get_stats(cache: Cache = Depends(get_cache)):
    """Hit/miss/rebuild counters per family."""
    return {name: family.get_stats() for name, family in cache.families.items()}


@app.post("/cache/clear", status_code=204)
async def clear_cache(cache: Cache = Depends(get_cache)):
    """Drop every cache family."""
    dropped = await cache.clear()
    logger.info(f"Cleared {dropped} cache keys")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
