"""
Dialect-aware upsert helpers with IS DISTINCT FROM optimization.

Every writer in the pipeline goes through an "insert or update on conflict by
natural key" primitive; there are no blind inserts. PostgreSQL and SQLite both
support INSERT ... ON CONFLICT, so the statement is built with whichever
dialect-specific insert() the connection needs.
"""

from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection


def dialect_insert(conn: Connection, table: Any) -> Any:
    """
    Return an insert() construct supporting on_conflict_* for the connection's dialect.

    Raises:
        NotImplementedError: If the backend has no ON CONFLICT support wired up
    """
    name = conn.dialect.name
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upsert not supported for dialect {name!r}")


def upsert_with_distinct_check(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_columns: list[str],
    distinct_columns: list[str],
    update_columns: Optional[list[str]] = None,
    set_overrides: Optional[dict[str, Any]] = None,
) -> int:
    """
    Perform upsert with IS DISTINCT FROM optimization.

    Only updates rows where at least one of distinct_columns has actually
    changed, preventing unnecessary writes and updated_at churn. Re-running
    the same upsert is therefore a no-op.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., Booking)
        rows: List of row dicts to upsert
        conflict_columns: Natural key columns for ON CONFLICT
        distinct_columns: Columns to check for changes
        update_columns: Columns copied from the incoming row on conflict
            (default: distinct_columns + ["updated_at"])
        set_overrides: Extra SET expressions that replace plain excluded values

    Returns:
        int: Number of rows inserted or updated, as reported by the driver

    Example:
        >>> with engine.begin() as conn:
        ...     upsert_with_distinct_check(
        ...         conn=conn,
        ...         table=Booking,
        ...         rows=[{"property_id": 1, "source_key": "feed:3", ...}],
        ...         conflict_columns=["property_id", "source_key", "external_uid"],
        ...         distinct_columns=["check_in", "check_out", "summary"],
        ...     )
    """
    if not rows:
        return 0

    if update_columns is None:
        update_columns = [*distinct_columns, "updated_at"]

    stmt = dialect_insert(conn, table).values(rows)

    set_dict: dict[str, Any] = {col: getattr(stmt.excluded, col) for col in update_columns}
    if set_overrides:
        set_dict.update(set_overrides)

    distinct_check = or_(
        *(
            getattr(table, col).is_distinct_from(getattr(stmt.excluded, col))
            for col in distinct_columns
        )
    )

    stmt = stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_=set_dict,
        where=distinct_check,
    )

    result = conn.execute(stmt)
    return int(result.rowcount or 0)


def insert_ignore_existing(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_columns: list[str],
) -> int:
    """
    Insert rows, leaving any row whose natural key already exists untouched.

    Returns:
        int: Number of rows actually inserted
    """
    if not rows:
        return 0

    stmt = dialect_insert(conn, table).values(rows).on_conflict_do_nothing(
        index_elements=conflict_columns
    )
    result = conn.execute(stmt)
    return int(result.rowcount or 0)
