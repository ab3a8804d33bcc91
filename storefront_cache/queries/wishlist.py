from typing import Any, Dict, List, Optional

from ..schemas import CreateWishlist, WishlistKey
from .base import BaseQuery, records
from .product import ProductQuery


class WishlistQuery(BaseQuery):
    def __init__(self, db_pool, products: ProductQuery):
        super().__init__(db_pool)
        self.products = products

    async def _join(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        products = await self.products.fetch_many([row["product_id"] for row in rows])
        return [
            {**row, "product": products[str(row["product_id"])]}
            for row in rows
            if str(row["product_id"]) in products
        ]

    async def count(self, user_id: str) -> int:
        return await self.db.fetchval(
            "SELECT count(*) FROM wishlists WHERE user_id = $1", user_id
        ) or 0

    async def scan(self, user_id: str) -> List[Dict[str, Any]]:
        rows = await self.db.fetch(
            "SELECT * FROM wishlists WHERE user_id = $1 ORDER BY created_at", user_id
        )
        if not rows:
            return []
        return await self._join(records(rows))

    async def get(self, key: WishlistKey) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow(
            "SELECT * FROM wishlists WHERE user_id = $1 AND product_id = $2",
            key.user_id, key.product_id
        )
        if not row:
            return None
        joined = await self._join([dict(row)])
        return joined[0] if joined else None

    async def create(self, values: CreateWishlist) -> Dict[str, Any]:
        row = await self.db.fetchrow(
            """
            INSERT INTO wishlists (user_id, product_id)
            VALUES ($1, $2)
            RETURNING *
            """,
            values.user_id, values.product_id
        )
        return dict(row)

    async def delete(self, id: str) -> bool:
        result = await self.db.execute("DELETE FROM wishlists WHERE id = $1", id)
        return result != "DELETE 0"
