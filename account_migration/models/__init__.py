"""Data models for the migration application."""

from .record import (
    SourceRecord,
    MigrationResult,
    RecordStatus,
    clean_value,
)
from .migration import (
    MigrationRun,
    MigrationStatus,
    UsernameStrategy,
    WorkflowProfile,
    BUILTIN_PROFILES,
    load_profile,
)
from .audit import (
    AuditAction,
    AuditStatus,
    CreateUserEntry,
    AssignRoleEntry,
    SetPasswordEntry,
    UpdateDbEntry,
    CreateRoleEntry,
    ResetDbEntry,
    MigrationEntry,
    parse_entry,
)

__all__ = [
    "SourceRecord",
    "MigrationResult",
    "RecordStatus",
    "clean_value",
    "MigrationRun",
    "MigrationStatus",
    "UsernameStrategy",
    "WorkflowProfile",
    "BUILTIN_PROFILES",
    "load_profile",
    "AuditAction",
    "AuditStatus",
    "CreateUserEntry",
    "AssignRoleEntry",
    "SetPasswordEntry",
    "UpdateDbEntry",
    "CreateRoleEntry",
    "ResetDbEntry",
    "MigrationEntry",
    "parse_entry",
]
