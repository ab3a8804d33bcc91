from collections import defaultdict
from typing import Any, Dict, List, Optional

from .base import BaseQuery, records


class UserQuery(BaseQuery):
    """Users with their addresses preloaded."""

    async def _with_addresses(self, users: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not users:
            return []
        rows = await self.db.fetch(
            "SELECT * FROM addresses WHERE user_id = ANY($1::text[]) ORDER BY created_at",
            [user["id"] for user in users]
        )
        by_user = defaultdict(list)
        for address in records(rows):
            by_user[address["user_id"]].append(address)
        return [{**user, "addresses": by_user[user["id"]]} for user in users]

    async def count(self, scope=None) -> int:
        return await self.db.fetchval("SELECT count(*) FROM users") or 0

    async def scan(self, scope=None) -> List[Dict[str, Any]]:
        rows = await self.db.fetch("SELECT * FROM users ORDER BY created_at DESC")
        return await self._with_addresses(records(rows))

    async def get(self, id: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow("SELECT * FROM users WHERE id = $1", id)
        if not row:
            return None
        (user,) = await self._with_addresses([dict(row)])
        return user
