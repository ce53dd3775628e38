"""
Content scanner for the tagging pass.

Walks the allow-listed host tables and yields one FieldRef per non-empty text
field. Scanning has no side effects and can be restarted at any time; every
call reads the host again.
"""

import sqlite3
from dataclasses import dataclass
from typing import Iterator, Optional

from autotranslate.config import TableSpec, TaggingConfig
from autotranslate.logger import get_logger
from autotranslate.tagging.host import ROW_ID, SCOPE_ID, HostContentStore

logger = get_logger(__name__)


class HostUnavailableError(Exception):
    """A configured host table could not be read."""

    def __init__(self, table: str, cause: Exception):
        super().__init__(f"Host table {table} could not be read: {cause}")
        self.table = table
        self.cause = cause


@dataclass
class FieldRef:
    """One text field of one host row."""
    scope_id: int
    field_path: str
    raw_content: str
    is_html: bool
    table: str
    row_id: int
    field: str
    scope_kind: str = "course"


def make_field_path(table: str, row_id: int, field: str) -> str:
    return f"{table}.{row_id}.{field}"


class ContentScanner:
    """Yields candidate text fields from the host, one page of rows at a time."""

    def __init__(self, tagging_config: TaggingConfig, host: HostContentStore):
        self.tagging_config = tagging_config
        self.host = host

    def scan(self, source_config: Optional[TaggingConfig] = None,
             scope_id: Optional[int] = None, strict: bool = False) -> Iterator[FieldRef]:
        """
        Lazily yield FieldRefs for every configured table.

        Args:
            source_config: Overrides the scanner's tagging config for this call.
            scope_id: Only yield fields belonging to this scope.
            strict: Raise HostUnavailableError instead of skipping a table
                that cannot be read.
        """
        config = source_config or self.tagging_config
        for spec in config.tables:
            yield from self._scan_table(spec, config.page_size, scope_id, strict)

    def _scan_table(self, spec: TableSpec, page_size: int,
                    scope_id: Optional[int], strict: bool) -> Iterator[FieldRef]:
        last_id = 0
        count = 0
        while True:
            try:
                rows = self.host.read_page(spec, last_id, page_size, scope_id=scope_id)
            except sqlite3.OperationalError as e:
                # Missing database, table or column, or the host is locked
                if strict:
                    raise HostUnavailableError(spec.table, e) from e
                logger.warning(f"Skipping table {spec.table}: {e}")
                return

            if not rows:
                break

            for row in rows:
                last_id = row[ROW_ID]
                for field_name, is_html in spec.fields.items():
                    value = row.get(field_name)
                    if not isinstance(value, str) or not value.strip():
                        continue
                    count += 1
                    yield FieldRef(
                        scope_id=int(row[SCOPE_ID] or 0),
                        field_path=make_field_path(spec.table, row[ROW_ID], field_name),
                        raw_content=value,
                        is_html=is_html,
                        table=spec.table,
                        row_id=row[ROW_ID],
                        field=field_name,
                        scope_kind=spec.scope_kind,
                    )

            if len(rows) < page_size:
                break

        logger.debug(f"Scanned {count} fields from {spec.table}")
