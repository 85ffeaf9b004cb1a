"""Record models for migration data."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import datetime

# Values a file snapshot uses for an absent column.
NULL_MARKERS = ("", "null")


def clean_value(value: Any) -> Optional[str]:
    """Normalize a raw column value, mapping null markers to None."""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in NULL_MARKERS:
        return None
    return text


class RecordStatus(str, Enum):
    """Status of a record during migration."""
    PENDING = "pending"
    MIGRATED = "migrated"
    FAILED = "failed"


@dataclass
class SourceRecord:
    """A row read from the source system."""
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    roles: Optional[str] = None  # Comma-joined role names
    identity_ref: Optional[str] = None  # Set once migrated
    data: Dict[str, Any] = field(default_factory=dict)  # Full source row

    @property
    def is_eligible(self) -> bool:
        """Only records without an identity reference are migrated."""
        return clean_value(self.identity_ref) is None


@dataclass
class MigrationResult:
    """Outcome of migrating one record."""
    record_id: str
    status: RecordStatus = RecordStatus.PENDING
    identity_ref: Optional[str] = None
    username: Optional[str] = None
    roles_assigned: List[str] = field(default_factory=list)
    persisted: bool = False
    errors: List[str] = field(default_factory=list)
    completed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.status == RecordStatus.MIGRATED
