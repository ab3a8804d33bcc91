from typing import Any, Dict, List, Optional

from ..schemas import CreateSubcategory
from .base import BaseQuery, records, set_clause

CATEGORY_SELECT = """
    SELECT c.*,
           (SELECT count(*) FROM subcategories s WHERE s.category_id = c.id)::int
               AS subcategories
    FROM categories c
"""

SUBCATEGORY_SELECT = """
    SELECT s.*,
           (SELECT count(*) FROM product_types t WHERE t.subcategory_id = s.id)::int
               AS product_types
    FROM subcategories s
"""


class CategoryQuery(BaseQuery):
    async def count(self, scope=None) -> int:
        return await self.db.fetchval("SELECT count(*) FROM categories") or 0

    async def scan(self, scope=None) -> List[Dict[str, Any]]:
        rows = await self.db.fetch(CATEGORY_SELECT + " ORDER BY c.created_at DESC")
        return records(rows)

    async def get(self, id: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow(CATEGORY_SELECT + " WHERE c.id = $1", id)
        return dict(row) if row else None

    async def get_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow(CATEGORY_SELECT + " WHERE c.slug = $1", slug)
        return dict(row) if row else None

    async def create(self, name: str, slug: str, description: Optional[str]) -> Dict[str, Any]:
        row = await self.db.fetchrow(
            """
            INSERT INTO categories (name, slug, description)
            VALUES ($1, $2, $3)
            RETURNING *
            """,
            name, slug, description
        )
        return dict(row)

    async def update(self, id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        assignments, args = set_clause(values, start=2)
        row = await self.db.fetchrow(
            f"UPDATE categories SET {assignments} WHERE id = $1 RETURNING *",
            id, *args
        )
        return dict(row) if row else None

    async def delete(self, id: str) -> bool:
        result = await self.db.execute("DELETE FROM categories WHERE id = $1", id)
        return result != "DELETE 0"


class SubcategoryQuery(BaseQuery):
    async def count(self, scope=None) -> int:
        return await self.db.fetchval("SELECT count(*) FROM subcategories") or 0

    async def scan(self, scope=None) -> List[Dict[str, Any]]:
        rows = await self.db.fetch(SUBCATEGORY_SELECT + " ORDER BY s.created_at DESC")
        return records(rows)

    async def get(self, id: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow(SUBCATEGORY_SELECT + " WHERE s.id = $1", id)
        return dict(row) if row else None

    async def get_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow(SUBCATEGORY_SELECT + " WHERE s.slug = $1", slug)
        return dict(row) if row else None

    async def create(self, values: CreateSubcategory, slug: str) -> Dict[str, Any]:
        row = await self.db.fetchrow(
            """
            INSERT INTO subcategories (category_id, name, slug, description)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            values.category_id, values.name, slug, values.description
        )
        return dict(row)


class ProductTypeQuery(BaseQuery):
    async def count(self, scope=None) -> int:
        return await self.db.fetchval("SELECT count(*) FROM product_types") or 0

    async def scan(self, scope=None) -> List[Dict[str, Any]]:
        rows = await self.db.fetch("SELECT * FROM product_types ORDER BY created_at DESC")
        return records(rows)

    async def get(self, id: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow("SELECT * FROM product_types WHERE id = $1", id)
        return dict(row) if row else None
