"""
Address book queries.

At most one address per user is primary. Creating or updating an address
with ``is_primary`` clears the flag on the user's other addresses inside the
same transaction as the write, so no reader ever sees two primaries.
"""

from typing import Any, Dict, Optional

from ..schemas import CreateAddress, UpdateAddress
from .base import BaseQuery, set_clause


class AddressQuery(BaseQuery):
    async def get(
        self,
        id: Optional[str] = None,
        user_id: Optional[str] = None,
        type: Optional[str] = None,
        slug: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        if not id and not user_id and not slug:
            raise ValueError("At least one of id, user_id, or slug must be provided")

        filters = {"id": id, "user_id": user_id, "type": type, "alias_slug": slug}
        filters = {column: value for column, value in filters.items() if value}
        where = " AND ".join(f"{column} = ${i}" for i, column in enumerate(filters, start=1))

        row = await self.db.fetchrow(
            f"SELECT * FROM addresses WHERE {where}", *filters.values()
        )
        return dict(row) if row else None

    async def create(self, user_id: str, alias_slug: str, values: CreateAddress) -> Dict[str, Any]:
        async with self.db.acquire() as conn:
            async with conn.transaction():
                if values.is_primary:
                    await conn.execute(
                        "UPDATE addresses SET is_primary = false WHERE user_id = $1",
                        user_id
                    )

                row = await conn.fetchrow(
                    """
                    INSERT INTO addresses
                        (user_id, alias, alias_slug, full_name, street, city,
                         state, zip, phone, type, is_primary)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    RETURNING *
                    """,
                    user_id, values.alias, alias_slug, values.full_name, values.street,
                    values.city, values.state, values.zip, values.phone, values.type,
                    values.is_primary
                )
        return dict(row)

    async def update(
        self, id: str, alias_slug: str, values: UpdateAddress
    ) -> Optional[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            async with conn.transaction():
                if values.is_primary:
                    await conn.execute(
                        """
                        UPDATE addresses SET is_primary = false
                        WHERE user_id = (SELECT user_id FROM addresses WHERE id = $1)
                          AND id <> $1
                        """,
                        id
                    )

                assignments, args = set_clause(
                    {**values.model_dump(), "alias_slug": alias_slug}, start=2
                )
                row = await conn.fetchrow(
                    f"UPDATE addresses SET {assignments} WHERE id = $1 RETURNING *",
                    id, *args
                )
        return dict(row) if row else None

    async def delete(self, id: str) -> bool:
        result = await self.db.execute("DELETE FROM addresses WHERE id = $1", id)
        return result != "DELETE 0"
