"""
Host CMS storage access.

Reads allow-listed content tables page by page and writes tagged content back.
Table and column names come from a validated TableSpec, never from request
data, which is why they can be interpolated into the SQL.
"""

import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from autotranslate.config import IDENTIFIER_PATTERN, SITE_SCOPE_ID, TableSpec
from autotranslate.logger import get_logger

logger = get_logger(__name__)

ROW_ID = "__row_id"
SCOPE_ID = "__scope_id"


def _identifier(name: str) -> str:
    if not re.match(IDENTIFIER_PATTERN, name or ""):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


class HostContentStore:
    """Content tables of the host CMS, kept in a SQLite database."""

    def __init__(self, database: Union[str, Path]):
        self.database = Path(database)

    def _uri(self, mode: str) -> str:
        return f"{self.database.resolve().as_uri()}?mode={mode}"

    @contextmanager
    def _connect(self, mode: str = "ro"):
        # "ro" and "rw" both refuse to create a missing database file
        conn = sqlite3.connect(self._uri(mode), uri=True, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _scope_expression(self, spec: TableSpec) -> str:
        if spec.parent_table:
            return f"p.{spec.parent_scope_column}"
        if spec.scope_column:
            return f"t.{spec.scope_column}"
        return str(SITE_SCOPE_ID)

    def read_page(self, spec: TableSpec, after_id: int, limit: int,
                  scope_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Read up to `limit` rows with id greater than `after_id`, ordered by id.

        Each row carries the configured fields plus its id and resolved scope id.
        Rows whose parent row is gone are left out.
        """
        scope_expr = self._scope_expression(spec)
        columns = ", ".join(f"t.{name}" for name in spec.fields)
        sql = f"SELECT t.id AS {ROW_ID}, {scope_expr} AS {SCOPE_ID}, {columns} FROM {spec.table} t"
        if spec.parent_table:
            sql += f" JOIN {spec.parent_table} p ON p.id = t.{spec.parent_fk}"
        sql += " WHERE t.id > ?"
        params: List[Any] = [after_id]
        if scope_id is not None:
            sql += f" AND {scope_expr} = ?"
            params.append(scope_id)
        sql += " ORDER BY t.id LIMIT ?"
        params.append(limit)

        with self._connect() as conn:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]

    def write_field(self, table: str, row_id: int, field: str, text: str,
                    expected: Optional[str] = None) -> bool:
        """
        Persist `text` into one field.

        With `expected`, the write only happens if the field still holds that
        value, so an edit made after the scan is not clobbered.

        Returns:
            False when the row is gone or was changed meanwhile.
        """
        sql = f"UPDATE {_identifier(table)} SET {_identifier(field)} = ? WHERE id = ?"
        params: List[Any] = [text, row_id]
        if expected is not None:
            sql += f" AND {field} = ?"
            params.append(expected)
        with self._connect("rw") as conn:
            cursor = conn.execute(sql, params)
            return cursor.rowcount > 0
