from typing import Any, Dict, List, Tuple

import asyncpg


class BaseQuery:
    def __init__(self, db_pool: asyncpg.Pool):
        self.db = db_pool


def set_clause(values: Dict[str, Any], start: int = 1) -> Tuple[str, List[Any]]:
    """
    ``col = $n`` assignments for an UPDATE, plus their arguments.

    Column names come from model field names, never from request data.
    """
    assignments = [f"{column} = ${i}" for i, column in enumerate(values, start=start)]
    assignments.append("updated_at = CURRENT_TIMESTAMP")
    return ", ".join(assignments), list(values.values())


def records(rows) -> List[Dict[str, Any]]:
    return [dict(row) for row in rows]
