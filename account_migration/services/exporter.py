"""CSV snapshots and quick inspection of the source database."""

import csv
import logging
from pathlib import Path
from typing import List, Union

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from ..models.migration import WorkflowProfile

logger = logging.getLogger(__name__)

ROLES_SQL = "SELECT name FROM roles"


class TableExporter:
    """Dumps query results to files the CSV source and role seeding can read."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def export_query(self, sql: str, path: Union[str, Path]) -> int:
        """
        Write a query's rows to CSV with a header row.

        Returns:
            Number of data rows written
        """
        with self.engine.connect() as conn:
            result = conn.execute(text(sql))
            headers = list(result.keys())
            rows = result.fetchall()

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            for row in rows:
                writer.writerow(["" if value is None else value for value in row])

        logger.info(f"{len(rows)} rows saved to {path}")
        return len(rows)

    def export_pending(self, profile: WorkflowProfile, path: Union[str, Path, None] = None) -> int:
        """Snapshot the profile's eligible records."""
        return self.export_query(profile.select_sql, path or profile.snapshot_file)

    def export_roles(self, path: Union[str, Path] = "roles.txt", sql: str = ROLES_SQL) -> int:
        """Write role names, one per line."""
        with self.engine.connect() as conn:
            names = [str(row[0]) for row in conn.execute(text(sql))]

        Path(path).write_text("\n".join(names), encoding="utf-8")
        logger.info(f"{len(names)} roles saved to {path}")
        return len(names)

    def table_columns(self, table: str) -> List[str]:
        """Column names of a table, in declaration order."""
        return [column["name"] for column in inspect(self.engine).get_columns(table.strip('"'))]
