"""Writes identity references back to the source table."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PersistenceError
from ..models.audit import AuditAction, AuditStatus, CreateUserEntry
from ..models.migration import WorkflowProfile
from ..models.record import SourceRecord, clean_value
from .audit_logger import read_entries

logger = logging.getLogger(__name__)


class MappingWriter:
    """
    Single-row updates of the profile's reference column.

    Each write commits on its own; a failure leaves the remote identity in
    place and is repaired by re-running the later steps by hand.
    """

    def __init__(self, engine: Engine, profile: WorkflowProfile):
        self.engine = engine
        self.profile = profile

    def persist_mapping(self, record_id: str, identity_ref: str) -> None:
        """
        Set the identity reference on one source row.

        Raises:
            PersistenceError: On a database error or when no row matched
        """
        sql = text(
            f"UPDATE {self.profile.table} SET {self.profile.ref_column} = :ref "
            f"WHERE {self.profile.id_column} = :id"
        )
        try:
            with self.engine.begin() as conn:
                result = conn.execute(sql, {"ref": identity_ref, "id": record_id})
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error updating {record_id}: {e}") from e

        if result.rowcount == 0:
            raise PersistenceError(f"No row with {self.profile.id_column}={record_id} to update")
        logger.info(f"Updated DB record {record_id} with identity ref: {identity_ref}")

    def clear_mappings(self, record_ids: Iterable[str]) -> int:
        """
        Reset the reference to NULL so the records become eligible again.

        Returns:
            Number of rows updated
        """
        ids = list(record_ids)
        if not ids:
            return 0

        sql = text(
            f"UPDATE {self.profile.table} SET {self.profile.ref_column} = NULL "
            f"WHERE {self.profile.id_column} IN :ids"
        ).bindparams(bindparam("ids", expanding=True))
        try:
            with self.engine.begin() as conn:
                result = conn.execute(sql, {"ids": ids})
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error resetting {len(ids)} records: {e}") from e
        return result.rowcount

    def fetch_migrated(self) -> List[SourceRecord]:
        """Records that already carry an identity reference."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(text(self.profile.migrated_sql)).mappings().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error reading migrated records: {e}") from e

        email_column = self.profile.field_map.get("email", "email")
        return [
            SourceRecord(
                id=str(row[self.profile.id_column]),
                email=clean_value(row.get(email_column)),
                identity_ref=clean_value(row.get(self.profile.ref_column)),
                data=dict(row),
            )
            for row in rows
        ]

    def find_by_identity_ref(self, identity_ref: str) -> Optional[dict]:
        """Look up the source row holding an identity reference."""
        sql = text(
            f"SELECT * FROM {self.profile.table} WHERE {self.profile.ref_column} = :ref"
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(sql, {"ref": identity_ref}).mappings().first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error looking up {identity_ref}: {e}") from e
        return dict(row) if row else None


def collect_migrated_ids(
    log_path: Union[str, Path],
    exclude: Iterable[str] = ()
) -> List[str]:
    """
    Record ids of successful account creations in a previous run's log.

    Args:
        log_path: Audit log written by AuditLogger
        exclude: Ids to leave out

    Returns:
        Ids in log order, without duplicates
    """
    excluded = set(exclude)
    ids: List[str] = []
    for entry in read_entries(log_path):
        if not isinstance(entry, CreateUserEntry):
            continue
        if entry.action != AuditAction.CREATE_USER.value or entry.status != AuditStatus.SUCCESS.value:
            continue
        if entry.record_id in excluded or entry.record_id in ids:
            continue
        ids.append(entry.record_id)
    return ids
