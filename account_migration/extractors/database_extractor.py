"""Record source backed by a SQL query."""

import logging
from typing import Any, List, Mapping

from sqlalchemy import text
from sqlalchemy.engine import Engine

from .base import BaseExtractor
from ..models.migration import WorkflowProfile

logger = logging.getLogger(__name__)


class DatabaseExtractor(BaseExtractor):
    """Runs the profile's select query once and maps each row."""

    def __init__(self, profile: WorkflowProfile, engine: Engine):
        super().__init__(profile)
        self.engine = engine

    @property
    def source_name(self) -> str:
        return f"database:{self.profile.table}"

    def read_rows(self) -> List[Mapping[str, Any]]:
        with self.engine.connect() as conn:
            result = conn.execute(text(self.profile.select_sql))
            return [dict(row) for row in result.mappings()]
