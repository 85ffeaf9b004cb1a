"""Migration execution models and workflow profiles."""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import datetime
import copy
import json
import uuid


class MigrationStatus(str, Enum):
    """Status of a migration run."""
    PENDING = "pending"
    EXTRACTING = "extracting"
    LOADING = "loading"
    COMPLETED = "completed"
    FAILED = "failed"


class UsernameStrategy(str, Enum):
    """How the primary username is chosen for a new identity."""
    PHONE_OR_EMAIL = "phone_or_email"
    EMAIL = "email"


# Exit codes reported by the CLI
EXIT_OK = 0
EXIT_RECORD_ERRORS = 1
EXIT_ABORTED = 2


USERS_SELECT_SQL = """
SELECT u.id, u.email, u.first_name, u.last_name, u."phoneNumber", u.keycloak_user_id,
       STRING_AGG(r.name, ',') AS roles
FROM "user" u
LEFT JOIN user_roles ur ON u.id = ur."userId"
LEFT JOIN roles r ON ur."roleId" = r.id
WHERE u.keycloak_user_id IS NULL
GROUP BY u.id, u.email, u.first_name, u.last_name, u."phoneNumber", u.keycloak_user_id
"""

CUSTOMERS_SELECT_SQL = """
SELECT id, email, name
FROM customer_user
WHERE keycloak_user_id IS NULL
"""


@dataclass
class WorkflowProfile:
    """
    Everything that differs between the migration variants.

    A profile selects the source query, how columns map onto record
    fields, the username strategy, roles every account receives, and
    which optional steps run.
    """
    name: str
    table: str
    select_sql: str
    id_column: str = "id"
    ref_column: str = "keycloak_user_id"
    field_map: Dict[str, str] = field(default_factory=lambda: {
        "email": "email",
        "first_name": "first_name",
        "last_name": "last_name",
        "phone": "phoneNumber",
        "roles": "roles",
        "identity_ref": "keycloak_user_id",
    })
    username_strategy: UsernameStrategy = UsernameStrategy.PHONE_OR_EMAIL
    phone_prefix: str = ""
    default_roles: List[str] = field(default_factory=list)
    ensure_roles: bool = False  # Create default_roles before the batch
    issue_password: bool = False
    log_file: str = "migration_log.csv"
    snapshot_file: str = "pending.csv"

    @property
    def migrated_sql(self) -> str:
        """Rows that already carry an identity reference."""
        email_column = self.field_map.get("email", "email")
        return (
            f'SELECT {self.id_column}, "{email_column}", {self.ref_column} '
            f"FROM {self.table} WHERE {self.ref_column} IS NOT NULL"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "table": self.table,
            "select_sql": self.select_sql,
            "id_column": self.id_column,
            "ref_column": self.ref_column,
            "field_map": self.field_map,
            "username_strategy": self.username_strategy.value,
            "phone_prefix": self.phone_prefix,
            "default_roles": self.default_roles,
            "ensure_roles": self.ensure_roles,
            "issue_password": self.issue_password,
            "log_file": self.log_file,
            "snapshot_file": self.snapshot_file,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: Optional["WorkflowProfile"] = None) -> "WorkflowProfile":
        """Create from dictionary representation, filling gaps from ``base``."""
        values = copy.deepcopy(base.to_dict()) if base else {}
        known = {f.name for f in fields(cls)}
        values.update({k: v for k, v in data.items() if k in known})

        if "field_map" in data and base:
            merged = dict(base.field_map)
            merged.update(data["field_map"])
            values["field_map"] = merged

        values["username_strategy"] = UsernameStrategy(
            values.get("username_strategy", UsernameStrategy.PHONE_OR_EMAIL.value)
        )
        return cls(**values)


BUILTIN_PROFILES: Dict[str, WorkflowProfile] = {
    "users": WorkflowProfile(
        name="users",
        table='"user"',
        select_sql=USERS_SELECT_SQL,
        username_strategy=UsernameStrategy.PHONE_OR_EMAIL,
        phone_prefix="1",
        log_file="migration_log.csv",
        snapshot_file="users_with_roles.csv",
    ),
    "customers": WorkflowProfile(
        name="customers",
        table="customer_user",
        select_sql=CUSTOMERS_SELECT_SQL,
        field_map={
            "email": "email",
            "first_name": "name",
            "identity_ref": "keycloak_user_id",
        },
        username_strategy=UsernameStrategy.EMAIL,
        default_roles=["CUSTOMER_USER"],
        ensure_roles=True,
        issue_password=True,
        log_file="customer_migration_log.csv",
        snapshot_file="customers.csv",
    ),
}


def load_profile(name: str, profile_file: Optional[str] = None) -> WorkflowProfile:
    """
    Resolve a workflow profile.

    Args:
        name: Built-in profile name, or a profile defined in ``profile_file``
        profile_file: Optional JSON file of ``{name: {overrides}}``

    Returns:
        The resolved WorkflowProfile
    """
    overrides: Dict[str, Any] = {}
    if profile_file:
        with open(profile_file, encoding="utf-8") as f:
            overrides = json.load(f).get(name, {})

    base = BUILTIN_PROFILES.get(name)
    if base is None and not overrides:
        raise ValueError(f"Unknown profile: {name}")

    if not overrides:
        return WorkflowProfile.from_dict({}, base=base)
    return WorkflowProfile.from_dict({"name": name, **overrides}, base=base)


@dataclass
class MigrationRun:
    """A complete migration run."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    profile: str = ""
    status: MigrationStatus = MigrationStatus.PENDING
    dry_run: bool = False

    # Timing
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Statistics
    records_found: int = 0
    records_processed: int = 0
    records_succeeded: int = 0
    records_failed: int = 0
    warnings: int = 0
    errors: int = 0
    token_refreshes: int = 0

    created_refs: Dict[str, str] = field(default_factory=dict)  # record id -> identity ref
    abort_reason: Optional[str] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def exit_code(self) -> int:
        """0 for a clean run, 1 when records had errors, 2 when aborted."""
        if self.status != MigrationStatus.COMPLETED:
            return EXIT_ABORTED
        if self.errors:
            return EXIT_RECORD_ERRORS
        return EXIT_OK

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "profile": self.profile,
            "status": self.status.value,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "records_found": self.records_found,
            "records_processed": self.records_processed,
            "records_succeeded": self.records_succeeded,
            "records_failed": self.records_failed,
            "warnings": self.warnings,
            "errors": self.errors,
            "token_refreshes": self.token_refreshes,
            "abort_reason": self.abort_reason,
        }
