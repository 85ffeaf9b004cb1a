"""Pydantic models for audit log entries.

Each action kind has its own model; ``AuditEntry`` is the union of all of
them, discriminated by the ``action`` field.
"""

from typing import Annotated, Any, List, Literal, Optional, Union
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class AuditStatus(str, Enum):
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    INFO = "INFO"


class AuditAction(str, Enum):
    CREATE_USER = "CREATE_USER"
    ASSIGN_ROLE = "ASSIGN_ROLE"
    SET_PASSWORD = "SET_PASSWORD"
    UPDATE_DB = "UPDATE_DB"
    CREATE_ROLE = "CREATE_ROLE"
    RESET_DB = "RESET_DB"
    MIGRATION = "MIGRATION"


class _EntryBase(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    status: AuditStatus
    message: Optional[str] = None
    error: Optional[Any] = None  # Provider/database error context


class CreateUserEntry(_EntryBase):
    action: Literal["CREATE_USER"] = "CREATE_USER"
    record_id: str
    email: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    roles: Optional[str] = None
    identity_ref: Optional[str] = None


class AssignRoleEntry(_EntryBase):
    action: Literal["ASSIGN_ROLE"] = "ASSIGN_ROLE"
    identity_ref: str
    record_id: Optional[str] = None
    roles: List[str] = Field(default_factory=list)


class SetPasswordEntry(_EntryBase):
    action: Literal["SET_PASSWORD"] = "SET_PASSWORD"
    identity_ref: str
    email: Optional[str] = None
    temp_password: Optional[str] = None


class UpdateDbEntry(_EntryBase):
    action: Literal["UPDATE_DB"] = "UPDATE_DB"
    record_id: str
    identity_ref: Optional[str] = None


class CreateRoleEntry(_EntryBase):
    action: Literal["CREATE_ROLE"] = "CREATE_ROLE"
    role_name: str
    realm: Optional[str] = None


class ResetDbEntry(_EntryBase):
    action: Literal["RESET_DB"] = "RESET_DB"
    record_ids: List[str] = Field(default_factory=list)
    rows_updated: int = 0


class MigrationEntry(_EntryBase):
    action: Literal["MIGRATION"] = "MIGRATION"
    profile: Optional[str] = None
    records_found: Optional[int] = None


AuditEntry = Annotated[
    Union[
        CreateUserEntry,
        AssignRoleEntry,
        SetPasswordEntry,
        UpdateDbEntry,
        CreateRoleEntry,
        ResetDbEntry,
        MigrationEntry,
    ],
    Field(discriminator="action"),
]

audit_entry_adapter: TypeAdapter = TypeAdapter(AuditEntry)


def parse_entry(payload: str) -> BaseModel:
    """Parse one JSON payload from the log back into its typed entry."""
    return audit_entry_adapter.validate_json(payload)
