"""Dialect-native INSERT ... ON CONFLICT DO UPDATE for deterministic upsert keys"""

from typing import Any, Dict, Iterable, List, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def chunked(rows: Sequence[Dict[str, Any]], size: int) -> Iterable[List[Dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield list(rows[start:start + size])


def upsert_rows(
    db: Session,
    model,
    rows: Sequence[Dict[str, Any]],
    conflict_key: Sequence[str],
    update_columns: Sequence[str],
    chunk_size: int = 1000,
) -> int:
    """
    Insert rows, overwriting update_columns when the conflict key already exists.

    Last write wins on the updated columns; updated_at is bumped on conflict.
    Returns the number of rows sent.
    """
    if not rows:
        return 0

    dialect = db.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}") from None

    for chunk in chunked(rows, chunk_size):
        stmt = insert(model.__table__).values(chunk)
        set_ = {column: stmt.excluded[column] for column in update_columns}
        if "updated_at" in model.__table__.c:
            set_["updated_at"] = func.now()
        db.execute(stmt.on_conflict_do_update(index_elements=list(conflict_key), set_=set_))

    # Core statements bypass the identity map
    db.expire_all()
    return len(rows)
