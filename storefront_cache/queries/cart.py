from typing import Any, Dict, List, Optional, Sequence

from ..schemas import CartKey, CreateCart
from .base import BaseQuery, records, set_clause
from .product import ProductQuery


class CartQuery(BaseQuery):
    def __init__(self, db_pool, products: ProductQuery):
        super().__init__(db_pool)
        self.products = products

    async def _join(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Attach each line's product (with variants and options) and variant."""
        products = await self.products.fetch_many([row["product_id"] for row in rows])

        joined = []
        for row in rows:
            product = products.get(str(row["product_id"]))
            if product is None:
                continue
            variant = None
            if row["variant_id"] is not None:
                variant = next(
                    (v for v in product["variants"] if v["id"] == row["variant_id"]),
                    None,
                )
            joined.append({**row, "product": product, "variant": variant})
        return joined

    async def count(self, user_id: str) -> int:
        return await self.db.fetchval(
            "SELECT count(*) FROM carts WHERE user_id = $1", user_id
        ) or 0

    async def scan(self, user_id: str) -> List[Dict[str, Any]]:
        rows = await self.db.fetch(
            "SELECT * FROM carts WHERE user_id = $1 ORDER BY created_at", user_id
        )
        if not rows:
            return []
        return await self._join(records(rows))

    async def get(self, key: CartKey) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow(
            """
            SELECT * FROM carts
            WHERE user_id = $1 AND product_id = $2
              AND variant_id IS NOT DISTINCT FROM $3::uuid
            """,
            key.user_id, key.product_id, key.variant_id
        )
        if not row:
            return None
        joined = await self._join([dict(row)])
        return joined[0] if joined else None

    async def create(self, values: CreateCart) -> Dict[str, Any]:
        row = await self.db.fetchrow(
            """
            INSERT INTO carts (user_id, product_id, variant_id, quantity)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            values.user_id, values.product_id, values.variant_id, values.quantity
        )
        return dict(row)

    async def update(self, id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        assignments, args = set_clause(values, start=2)
        row = await self.db.fetchrow(
            f"UPDATE carts SET {assignments} WHERE id = $1 RETURNING *",
            id, *args
        )
        return dict(row) if row else None

    async def set_status(self, ids: Sequence[Any], status: bool) -> List[Dict[str, Any]]:
        rows = await self.db.fetch(
            """
            UPDATE carts SET status = $2, updated_at = CURRENT_TIMESTAMP
            WHERE id = ANY($1::uuid[])
            RETURNING *
            """,
            [str(i) for i in ids], status
        )
        return records(rows)

    async def delete(self, user_id: str, ids: Sequence[Any]) -> List[Dict[str, Any]]:
        rows = await self.db.fetch(
            """
            DELETE FROM carts
            WHERE user_id = $1 AND id = ANY($2::uuid[])
            RETURNING *
            """,
            user_id, [str(i) for i in ids]
        )
        return records(rows)
