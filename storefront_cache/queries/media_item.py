from typing import Any, Dict, List, Optional, Sequence

from ..schemas import CreateMediaItem
from .base import BaseQuery, records, set_clause


class MediaItemQuery(BaseQuery):
    async def count(self, ids: Optional[Sequence[Any]] = None) -> int:
        if ids is None:
            return await self.db.fetchval("SELECT count(*) FROM media_items") or 0
        return await self.db.fetchval(
            "SELECT count(*) FROM media_items WHERE id = ANY($1::uuid[])",
            [str(i) for i in ids]
        ) or 0

    async def scan(self, ids: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        if ids is None:
            rows = await self.db.fetch("SELECT * FROM media_items ORDER BY created_at DESC")
        else:
            rows = await self.db.fetch(
                """
                SELECT * FROM media_items
                WHERE id = ANY($1::uuid[])
                ORDER BY created_at DESC
                """,
                [str(i) for i in ids]
            )
        return records(rows)

    async def get(self, id: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow("SELECT * FROM media_items WHERE id = $1", id)
        return dict(row) if row else None

    async def create(self, items: Sequence[CreateMediaItem]) -> List[Dict[str, Any]]:
        async with self.db.acquire() as conn:
            async with conn.transaction():
                rows = [
                    await conn.fetchrow(
                        """
                        INSERT INTO media_items (uploader_id, url, type, name, alt, size)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        RETURNING *
                        """,
                        item.uploader_id, item.url, item.type, item.name, item.alt, item.size
                    )
                    for item in items
                ]
        return records(rows)

    async def update(self, id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        assignments, args = set_clause(values, start=2)
        row = await self.db.fetchrow(
            f"UPDATE media_items SET {assignments} WHERE id = $1 RETURNING *",
            id, *args
        )
        return dict(row) if row else None

    async def delete(self, ids: Sequence[Any]) -> List[Dict[str, Any]]:
        rows = await self.db.fetch(
            "DELETE FROM media_items WHERE id = ANY($1::uuid[]) RETURNING *",
            [str(i) for i in ids]
        )
        return records(rows)
