"""
Task API Database Module

User-scoped SQLite row store behind the task API:
- tasks: Task rows (recurrence rule stored as JSON)
- categories: Per-user categories
- outcomes / commitments: Goal tracking that tasks link to
- task_renegotiations: One record per renegotiation
- sessions: Hashed bearer tokens (see adhder.security.session)

Every select/insert/update/delete takes the owning user id; rows of
other users are never visible.
"""

import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Any, Iterable

from ...tasks.dates import now_iso
from . import DB_PATH

logger = logging.getLogger(__name__)


# column -> SQLite type, per table
SCHEMA: dict[str, dict[str, str]] = {
    "tasks": {
        "id": "TEXT PRIMARY KEY",
        "user_id": "TEXT NOT NULL",
        "title": "TEXT NOT NULL",
        "status": "TEXT NOT NULL DEFAULT 'active'",
        "due_date": "TEXT",
        "due_time": "TEXT",
        "priority": "TEXT",
        "category_id": "TEXT",
        "category_confidence": "REAL",
        "position": "INTEGER",
        "is_recurring": "INTEGER NOT NULL DEFAULT 0",
        "recurrence_rule": "TEXT",
        "recurrence_parent_id": "TEXT",
        "recurring_streak": "INTEGER NOT NULL DEFAULT 0",
        "completed_at": "TEXT",
        "dropped_at": "TEXT",
        "skipped_at": "TEXT",
        "outcome_id": "TEXT",
        "commitment_id": "TEXT",
        "parent_task_id": "TEXT",
        "estimated_minutes": "INTEGER",
        "renegotiation_count": "INTEGER NOT NULL DEFAULT 0",
        "original_due_date": "TEXT",
        "created_at": "TEXT NOT NULL",
        "updated_at": "TEXT",
    },
    "categories": {
        "id": "TEXT PRIMARY KEY",
        "user_id": "TEXT NOT NULL",
        "name": "TEXT NOT NULL",
        "color": "TEXT",
        "icon": "TEXT",
        "created_at": "TEXT NOT NULL",
        "updated_at": "TEXT",
    },
    "outcomes": {
        "id": "TEXT PRIMARY KEY",
        "user_id": "TEXT NOT NULL",
        "title": "TEXT NOT NULL",
        "description": "TEXT",
        "horizon": "TEXT NOT NULL",
        "status": "TEXT NOT NULL DEFAULT 'active'",
        "priority_rank": "INTEGER NOT NULL DEFAULT 0",
        "created_at": "TEXT NOT NULL",
        "updated_at": "TEXT",
    },
    "commitments": {
        "id": "TEXT PRIMARY KEY",
        "user_id": "TEXT NOT NULL",
        "outcome_id": "TEXT",
        "title": "TEXT NOT NULL",
        "description": "TEXT",
        "status": "TEXT NOT NULL DEFAULT 'active'",
        "created_at": "TEXT NOT NULL",
        "updated_at": "TEXT",
    },
    "task_renegotiations": {
        "id": "TEXT PRIMARY KEY",
        "user_id": "TEXT NOT NULL",
        "task_id": "TEXT NOT NULL",
        "action": "TEXT NOT NULL",
        "from_due_date": "TEXT",
        "to_due_date": "TEXT",
        "reason_code": "TEXT NOT NULL",
        "reason_text": "TEXT",
        "split_into_task_ids": "TEXT",
        "created_at": "TEXT NOT NULL",
    },
    "sessions": {
        "id": "TEXT PRIMARY KEY",
        "user_id": "TEXT NOT NULL",
        "token_hash": "TEXT UNIQUE NOT NULL",
        "created_at": "TEXT NOT NULL",
        "expires_at": "TEXT NOT NULL",
        "last_activity": "TEXT",
        "is_active": "INTEGER NOT NULL DEFAULT 1",
    },
}

INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_status ON tasks(user_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_outcome ON tasks(outcome_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_commitment ON tasks(commitment_id)",
    "CREATE INDEX IF NOT EXISTS idx_renegotiations_task ON task_renegotiations(task_id)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_token ON sessions(token_hash)",
)

JSON_COLUMNS = frozenset({"recurrence_rule", "split_into_task_ids"})
BOOL_COLUMNS = frozenset({"is_recurring", "is_active"})


class Database:
    """SQLite-backed row store. Opens a short-lived connection per call."""

    def __init__(self, path: Path | str = DB_PATH):
        self.path = Path(path)

    def connect(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path))
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables and indexes if missing."""
        conn = self.connect()
        try:
            cursor = conn.cursor()
            for table, columns in SCHEMA.items():
                column_sql = ",\n    ".join(f"{name} {kind}" for name, kind in columns.items())
                cursor.execute(f"CREATE TABLE IF NOT EXISTS {table} (\n    {column_sql}\n)")
            for statement in INDEXES:
                cursor.execute(statement)
            conn.commit()
        finally:
            conn.close()
        logger.debug(f"Database ready at {self.path}")

    def ping(self) -> bool:
        conn = self.connect()
        try:
            conn.execute("SELECT 1")
            return True
        finally:
            conn.close()

    # =========================================================================
    # Row helpers
    # =========================================================================

    @staticmethod
    def _columns(table: str) -> dict[str, str]:
        if table not in SCHEMA:
            raise ValueError(f"Unknown table: {table}")
        return SCHEMA[table]

    @staticmethod
    def _encode(column: str, value: Any) -> Any:
        if column in JSON_COLUMNS:
            return json.dumps(value) if value is not None else None
        if column in BOOL_COLUMNS:
            return 1 if value else 0
        return value

    @staticmethod
    def _decode(row: sqlite3.Row) -> dict[str, Any]:
        result = dict(row)
        for column in JSON_COLUMNS & result.keys():
            raw = result[column]
            if raw:
                try:
                    result[column] = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning(f"Bad JSON in column {column}, ignoring")
                    result[column] = None
        for column in BOOL_COLUMNS & result.keys():
            result[column] = bool(result[column])
        return result

    def _where(self, table: str, user_id: str, filters: dict[str, Any]) -> tuple[str, list[Any]]:
        columns = self._columns(table)
        clauses = ["user_id = ?"]
        params: list[Any] = [user_id]
        for column, value in filters.items():
            if column not in columns:
                raise ValueError(f"Unknown column: {table}.{column}")
            if value is None:
                clauses.append(f"{column} IS NULL")
            elif isinstance(value, (list, tuple, set, frozenset)):
                values = list(value)
                if not values:
                    clauses.append("0")
                    continue
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(self._encode(column, v) for v in values)
            else:
                clauses.append(f"{column} = ?")
                params.append(self._encode(column, value))
        return " AND ".join(clauses), params

    # =========================================================================
    # CRUD
    # =========================================================================

    def select(
        self,
        table: str,
        user_id: str,
        order_by: Iterable[str] = (),
        limit: int | None = None,
        **filters: Any,
    ) -> list[dict[str, Any]]:
        """
        Rows owned by user_id matching every filter.

        A filter value of None matches NULL; a list/tuple matches any of
        its values. order_by entries are column names, "-column" for
        descending.
        """
        where, params = self._where(table, user_id, filters)
        sql = f"SELECT * FROM {table} WHERE {where}"

        order_sql = []
        columns = self._columns(table)
        for entry in order_by:
            column = entry.lstrip("-")
            if column not in columns:
                raise ValueError(f"Unknown column: {table}.{column}")
            order_sql.append(f"{column} {'DESC' if entry.startswith('-') else 'ASC'}")
        if order_sql:
            sql += " ORDER BY " + ", ".join(order_sql)
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        conn = self.connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [self._decode(row) for row in rows]

    def get(self, table: str, user_id: str, row_id: str) -> dict[str, Any] | None:
        rows = self.select(table, user_id, id=row_id)
        return rows[0] if rows else None

    def insert(self, table: str, user_id: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a row for user_id; id and created_at are filled in when missing."""
        columns = self._columns(table)
        values = {k: v for k, v in row.items() if k in columns}
        values["user_id"] = user_id
        values.setdefault("id", str(uuid.uuid4()))
        values["id"] = values["id"] or str(uuid.uuid4())
        if "created_at" in columns and not values.get("created_at"):
            values["created_at"] = now_iso()

        names = list(values)
        sql = f"INSERT INTO {table} ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)})"
        conn = self.connect()
        try:
            conn.execute(sql, [self._encode(n, values[n]) for n in names])
            conn.commit()
        finally:
            conn.close()
        return self.get(table, user_id, values["id"]) or values

    def update(
        self,
        table: str,
        user_id: str,
        row_id: str,
        patch: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Apply a partial update; None if the row does not exist for this user."""
        columns = self._columns(table)
        values = {k: v for k, v in patch.items() if k in columns and k not in ("id", "user_id", "created_at")}
        if "updated_at" in columns and "updated_at" not in values:
            values["updated_at"] = now_iso()
        if not values:
            return self.get(table, user_id, row_id)

        assignments = ", ".join(f"{name} = ?" for name in values)
        params = [self._encode(n, v) for n, v in values.items()] + [row_id, user_id]
        conn = self.connect()
        try:
            cursor = conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ? AND user_id = ?", params)
            conn.commit()
            changed = cursor.rowcount
        finally:
            conn.close()
        if not changed:
            return None
        return self.get(table, user_id, row_id)

    def delete(self, table: str, user_id: str, row_id: str) -> bool:
        self._columns(table)
        conn = self.connect()
        try:
            cursor = conn.execute(f"DELETE FROM {table} WHERE id = ? AND user_id = ?", (row_id, user_id))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()


__all__ = ["Database", "SCHEMA"]
