"""Insert-or-update on a declared unique key.

Conflicts are resolved by the database (``ON CONFLICT``) so concurrent
writers racing on the same key converge on one row instead of one of them
failing with a unique violation.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from sqlalchemy.dialects import postgresql, sqlite


def _insert_for(session, model):
    dialect = session.get_bind().dialect.name
    if dialect == 'postgresql':
        return postgresql.insert(model)
    if dialect == 'sqlite':
        return sqlite.insert(model)
    raise NotImplementedError(f"upsert not supported for dialect {dialect!r}")


def upsert_row(
    session,
    model,
    values: dict,
    conflict_columns: Sequence[str],
    update_columns: Iterable[str] | None = None,
) -> None:
    """Insert ``values`` into ``model``; on key conflict update ``update_columns``.

    With no ``update_columns`` (or an empty list) an existing row is left
    untouched (``DO NOTHING``).  The caller owns the transaction.
    """
    stmt = _insert_for(session, model).values(**values)
    update_columns = list(update_columns or [])
    if update_columns:
        stmt = stmt.on_conflict_do_update(
            index_elements=list(conflict_columns),
            set_={column: stmt.excluded[column] for column in update_columns},
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))
    session.execute(stmt)


__all__ = ["upsert_row"]
