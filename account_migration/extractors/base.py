"""Base extractor interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from datetime import datetime
import logging

from ..models.record import SourceRecord, clean_value
from ..models.migration import WorkflowProfile

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Result of reading one snapshot of pending records."""
    source: str
    records: List[SourceRecord] = field(default_factory=list)
    total_read: int = 0
    skipped_migrated: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


class BaseExtractor(ABC):
    """
    Base class for record sources.

    A source reads one consistent snapshot and yields only records that
    have no identity reference yet. Re-running after a partial migration
    therefore sees a strictly smaller set.
    """

    def __init__(self, profile: WorkflowProfile):
        """
        Initialize the extractor.

        Args:
            profile: Workflow profile with the column mapping
        """
        self.profile = profile
        self._errors: List[Dict[str, Any]] = []

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Human-readable name of the snapshot origin."""

    @abstractmethod
    def read_rows(self) -> List[Mapping[str, Any]]:
        """Read the raw rows of the snapshot."""

    def extract(self) -> ExtractionResult:
        """Read the snapshot and keep eligible records."""
        self._errors = []
        result = ExtractionResult(source=self.source_name, started_at=datetime.utcnow())

        rows = self.read_rows()
        result.total_read = len(rows)

        for row_num, row in enumerate(rows, start=1):
            record = self.create_record(row, row_num)
            if record is None:
                continue
            if not record.is_eligible:
                result.skipped_migrated += 1
                continue
            result.records.append(record)

        result.errors = self._errors.copy()
        result.completed_at = datetime.utcnow()
        logger.info(
            f"Read {result.total_read} rows from {self.source_name}: "
            f"{len(result.records)} pending, {result.skipped_migrated} already migrated"
        )
        return result

    def fetch_pending(self) -> List[SourceRecord]:
        """Records still lacking an identity reference."""
        return self.extract().records

    def create_record(self, row: Mapping[str, Any], row_num: int) -> Optional[SourceRecord]:
        """
        Map a raw row onto a SourceRecord using the profile's field map.

        Rows without an id are reported and dropped.
        """
        record_id = clean_value(row.get(self.profile.id_column))
        if record_id is None:
            self.add_error(f"Row {row_num} has no {self.profile.id_column}", details={"row": row_num})
            return None

        def column(name: str) -> Optional[str]:
            key = self.profile.field_map.get(name)
            if not key:
                return None
            return clean_value(row.get(key))

        return SourceRecord(
            id=record_id,
            email=column("email"),
            first_name=column("first_name"),
            last_name=column("last_name"),
            phone=column("phone"),
            roles=column("roles"),
            identity_ref=column("identity_ref"),
            data=dict(row),
        )

    def add_error(
        self,
        message: str,
        record_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Add an error to the extraction."""
        error = {
            "message": message,
            "record_id": record_id,
            "timestamp": datetime.utcnow().isoformat(),
        }
        if details:
            error.update(details)
        self._errors.append(error)
        logger.error(f"Extraction error: {message}")
