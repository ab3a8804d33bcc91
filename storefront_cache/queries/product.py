import asyncio
from typing import Any, Dict, Optional, Sequence

from .base import BaseQuery, records


class ProductQuery(BaseQuery):
    """Read side of the catalog, as needed by cart and wishlist joins."""

    async def fetch_many(self, ids: Sequence[Any]) -> Dict[str, Dict[str, Any]]:
        """Products keyed by id, each with its variants and options attached."""
        ids = list({str(i) for i in ids})
        if not ids:
            return {}

        products, variants, options = await asyncio.gather(
            self.db.fetch("SELECT * FROM products WHERE id = ANY($1::uuid[])", ids),
            self.db.fetch(
                """
                SELECT * FROM product_variants
                WHERE product_id = ANY($1::uuid[])
                ORDER BY created_at
                """,
                ids,
            ),
            self.db.fetch(
                """
                SELECT * FROM product_options
                WHERE product_id = ANY($1::uuid[])
                ORDER BY position
                """,
                ids,
            ),
        )

        result = {}
        for product in records(products):
            product["variants"] = []
            product["options"] = []
            result[str(product["id"])] = product
        for variant in records(variants):
            result[str(variant["product_id"])]["variants"].append(variant)
        for option in records(options):
            result[str(option["product_id"])]["options"].append(option)
        return result

    async def get_purchasable(self, product_id: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow(
            """
            SELECT * FROM products
            WHERE id = $1
              AND is_available AND is_active AND is_published
              AND NOT is_deleted
              AND verification_status = 'approved'
            """,
            product_id,
        )
        return dict(row) if row else None

    async def get_purchasable_variant(
        self, product_id: str, variant_id: str, quantity: int
    ) -> Optional[Dict[str, Any]]:
        """The variant when it exists, has ``quantity`` in stock and its product is on sale."""
        row = await self.db.fetchrow(
            """
            SELECT v.* FROM product_variants v
            JOIN products p ON p.id = v.product_id
            WHERE v.id = $1 AND v.product_id = $2
              AND v.quantity >= $3 AND NOT v.is_deleted
              AND p.is_available AND p.is_active AND p.is_published
              AND NOT p.is_deleted
              AND p.verification_status = 'approved'
            """,
            variant_id,
            product_id,
            quantity,
        )
        return dict(row) if row else None
