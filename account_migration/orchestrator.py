"""Migration orchestrator - drives the per-record provisioning workflow."""

import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from .config import Settings
from .errors import PersistenceError, ProvisioningError
from .extractors.base import BaseExtractor
from .loaders.keycloak_client import KeycloakAdminClient
from .loaders.token_provider import BearerToken, TokenProvider
from .models.audit import AuditStatus, CreateUserEntry, MigrationEntry, UpdateDbEntry
from .models.migration import MigrationRun, MigrationStatus, WorkflowProfile
from .models.record import MigrationResult, RecordStatus, SourceRecord
from .services.audit_logger import AuditLogger
from .services.identity_creator import IdentityCreator
from .services.mapping_writer import MappingWriter
from .services.password_issuer import PasswordIssuer
from .services.role_assigner import RoleAssigner
from .services.role_migrator import RoleMigrator

logger = logging.getLogger(__name__)


class MigrationOrchestrator:
    """
    Orchestrates one migration run.

    Records are processed strictly in order, one at a time:

    1. refresh the bearer token if it is due
    2. create the identity (a rejection skips the record)
    3. assign roles
    4. issue a temporary password, when the profile asks for it
    5. write the identity reference back to the source row

    The database write comes last so that a marked row has had every
    provider-side step attempted. A failed record is never retried within
    the run; re-running picks it up because it is still unmarked.
    """

    def __init__(
        self,
        profile: WorkflowProfile,
        settings: Settings,
        source: BaseExtractor,
        client: KeycloakAdminClient,
        token_provider: TokenProvider,
        mapping_writer: MappingWriter,
        audit: AuditLogger,
        dry_run: bool = False,
        limit: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the orchestrator.

        Args:
            profile: Workflow profile for this run
            settings: Pacing and password settings
            source: Record source producing the pending snapshot
            client: Identity provider admin client
            token_provider: Bearer token source
            mapping_writer: Writes references back to the database
            audit: Run-scoped audit logger
            dry_run: List pending records without writing anywhere
            limit: Process at most this many records
            sleep: Delay function between records
        """
        self.profile = profile
        self.settings = settings
        self.source = source
        self.client = client
        self.token_provider = token_provider
        self.mapping_writer = mapping_writer
        self.audit = audit
        self.dry_run = dry_run
        self.limit = limit
        self.sleep = sleep

        self.identity_creator = IdentityCreator(client, profile, audit)
        self.role_assigner = RoleAssigner(client, audit, profile.default_roles)
        self.password_issuer = PasswordIssuer(client, audit, settings.temp_password_template)
        self.role_migrator = RoleMigrator(client, audit)

        self.run: Optional[MigrationRun] = None
        self.results: List[MigrationResult] = []

    def run_migration(self) -> MigrationRun:
        """
        Run the complete migration.

        Returns:
            MigrationRun with results and statistics
        """
        self.run = MigrationRun(profile=self.profile.name, dry_run=self.dry_run)
        self.run.started_at = datetime.utcnow()
        self.run.status = MigrationStatus.EXTRACTING
        self.results = []
        self.audit.start()

        try:
            logger.info(f"Starting {self.profile.name} migration...")
            records = self.source.fetch_pending()
            if self.limit is not None:
                records = records[:self.limit]
            self.run.records_found = len(records)
            logger.info(f"Found {len(records)} {self.profile.name} to migrate")

            if not records:
                logger.info(f"No {self.profile.name} to migrate")
            elif self.dry_run:
                self._report_dry_run(records)
            else:
                self.run.status = MigrationStatus.LOADING
                self._run_batch(records)

            self.run.status = MigrationStatus.COMPLETED

        except Exception as e:
            logger.exception(f"Migration aborted: {e}")
            self.run.status = MigrationStatus.FAILED
            self.run.abort_reason = str(e)
            self.audit.record(MigrationEntry(
                status=AuditStatus.ERROR,
                profile=self.profile.name,
                records_found=self.run.records_found,
                message="Migration aborted",
                error=str(e),
            ))

        finally:
            self.run.completed_at = datetime.utcnow()
            self.run.warnings = self.audit.count(AuditStatus.WARNING)
            self.run.errors = self.audit.count(AuditStatus.ERROR)

        logger.info(
            f"Migration {self.run.status.value}: {self.run.records_processed} {self.profile.name} processed, "
            f"{self.run.records_succeeded} created, {self.run.records_failed} failed. "
            f"Check {self.audit.path} for details."
        )
        return self.run

    def _run_batch(self, records: List[SourceRecord]) -> None:
        if self.profile.issue_password:
            self.password_issuer.check_template()

        token = self.token_provider.acquire_token()

        if self.profile.ensure_roles and self.profile.default_roles:
            self.role_migrator.create_roles(self.profile.default_roles, token)

        total = len(records)
        for index, record in enumerate(records, start=1):
            if self.token_provider.is_expiring(token):
                logger.debug("Refreshing bearer token")
                token = self.token_provider.acquire_token()
                self.run.token_refreshes += 1

            result = self.migrate_record(record, token)
            self.results.append(result)
            self.run.records_processed += 1
            if result.success:
                self.run.records_succeeded += 1
                self.run.created_refs[record.id] = result.identity_ref
            else:
                self.run.records_failed += 1

            if index < total and self.settings.request_delay_seconds > 0:
                self.sleep(self.settings.request_delay_seconds)

            if self.settings.progress_every and index % self.settings.progress_every == 0:
                logger.info(f"Processed {index}/{total} {self.profile.name}")

    def migrate_record(self, record: SourceRecord, token: BearerToken) -> MigrationResult:
        """Run every step for one record. Per-record failures are logged, not raised."""
        result = MigrationResult(record_id=record.id)
        result.username, _ = self.identity_creator.choose_username(record)

        try:
            identity_ref = self.identity_creator.create_identity(record, token)
        except ProvisioningError as e:
            self.audit.record(CreateUserEntry(
                status=AuditStatus.ERROR,
                record_id=record.id,
                email=record.email,
                username=result.username,
                phone=record.phone,
                message=str(e),
                error=e.to_payload(),
            ))
            result.status = RecordStatus.FAILED
            result.errors.append(str(e))
            result.completed_at = datetime.utcnow()
            return result

        result.identity_ref = identity_ref
        self.audit.record(CreateUserEntry(
            status=AuditStatus.SUCCESS,
            record_id=record.id,
            email=record.email,
            username=result.username,
            first_name=record.first_name,
            last_name=record.last_name,
            phone=record.phone,
            roles=record.roles,
            identity_ref=identity_ref,
        ))

        result.roles_assigned = self.role_assigner.assign_roles(
            identity_ref, record.roles, token, record_id=record.id
        )

        if self.profile.issue_password:
            self.password_issuer.issue(identity_ref, record.email, token)

        try:
            self.mapping_writer.persist_mapping(record.id, identity_ref)
            result.persisted = True
        except PersistenceError as e:
            self.audit.record(UpdateDbEntry(
                status=AuditStatus.ERROR,
                record_id=record.id,
                identity_ref=identity_ref,
                message=str(e),
                error=str(e.__cause__ or e),
            ))
            result.errors.append(str(e))

        result.status = RecordStatus.MIGRATED
        result.completed_at = datetime.utcnow()
        return result

    def _report_dry_run(self, records: List[SourceRecord]) -> None:
        for record in records:
            username, fell_back = self.identity_creator.choose_username(record)
            note = " (email fallback)" if fell_back else ""
            logger.info(
                f"[dry-run] would create {username}{note} for record {record.id}, "
                f"roles: {record.roles or '-'}"
            )
