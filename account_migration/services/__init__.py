"""Workflow steps used by the migration orchestrator."""

from .audit_logger import AuditLogger, read_entries
from .identity_creator import IdentityCreator
from .role_assigner import RoleAssigner, parse_role_names
from .password_issuer import PasswordIssuer
from .mapping_writer import MappingWriter, collect_migrated_ids
from .exporter import TableExporter
from .role_migrator import RoleMigrator, read_role_file

__all__ = [
    "AuditLogger",
    "read_entries",
    "IdentityCreator",
    "RoleAssigner",
    "parse_role_names",
    "PasswordIssuer",
    "MappingWriter",
    "collect_migrated_ids",
    "TableExporter",
    "RoleMigrator",
    "read_role_file",
]
