"""
Dialect-aware INSERT ... ON CONFLICT DO UPDATE for the monitoring tables.
"""

from typing import Any, Dict, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


async def upsert(
    session: AsyncSession,
    model: Any,
    values: Dict[str, Any],
    index_elements: Sequence[str],
) -> None:
    """Insert `values` or overwrite the row matching `index_elements`."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise NotImplementedError(f"upsert not supported for dialect {dialect}")

    statement = insert(model).values(**values)
    statement = statement.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={key: statement.excluded[key] for key in values if key not in index_elements},
    )
    await session.execute(statement)
