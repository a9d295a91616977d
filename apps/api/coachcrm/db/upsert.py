"""Dialect-aware INSERT ... ON CONFLICT constructors."""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(db: Session, model):
    """
    Return an ``insert(model)`` that supports ``on_conflict_do_update``.

    PostgreSQL in production, SQLite for local runs and tests.
    """
    dialect = db.get_bind().dialect.name
    try:
        insert = _INSERT_BY_DIALECT[dialect]
    except KeyError:
        raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'") from None
    return insert(model)
