"""Command-line entry points for the account migration tools."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .config import Settings
from .database import create_db_engine
from .errors import MigrationError
from .extractors.base import BaseExtractor
from .extractors.csv_extractor import CSVExtractor
from .extractors.database_extractor import DatabaseExtractor
from .loaders.keycloak_client import KeycloakAdminClient
from .loaders.token_provider import TokenProvider
from .models.audit import AuditStatus, ResetDbEntry
from .models.migration import (
    EXIT_ABORTED,
    EXIT_OK,
    EXIT_RECORD_ERRORS,
    MigrationStatus,
    load_profile,
)
from .orchestrator import MigrationOrchestrator
from .services.audit_logger import AuditLogger
from .services.exporter import TableExporter
from .services.mapping_writer import MappingWriter, collect_migrated_ids
from .services.password_issuer import PasswordIssuer
from .services.role_assigner import RoleAssigner
from .services.role_migrator import FAILED, RoleMigrator, read_role_file

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="account-migration",
        description="Migrate database accounts into a Keycloak realm",
    )
    parser.add_argument("--env-file", help="dotenv file to load, e.g. .env.customer")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def add_profile_args(sub):
        sub.add_argument("--profile", default="users", help="Workflow profile (users, customers)")
        sub.add_argument("--profile-file", help="JSON file with profile overrides")

    # Run migration
    migrate_parser = subparsers.add_parser("migrate", help="Create pending accounts")
    add_profile_args(migrate_parser)
    migrate_parser.add_argument("--source", choices=["db", "csv"], default="db", help="Record source")
    migrate_parser.add_argument("--snapshot", help="CSV snapshot path for --source csv")
    migrate_parser.add_argument("--log-file", help="Audit log path (defaults to the profile's)")
    migrate_parser.add_argument("--dry-run", action="store_true", help="List pending records only")
    migrate_parser.add_argument("--limit", type=int, help="Process at most N records")
    migrate_parser.add_argument("--json", action="store_true", help="Print the run summary as JSON")

    # Snapshots
    export_parser = subparsers.add_parser("export", help="Export records to CSV")
    add_profile_args(export_parser)
    export_parser.add_argument("--table", help="Export a whole table instead of the pending records")
    export_parser.add_argument("--output", help="Output CSV path")

    roles_export_parser = subparsers.add_parser("export-roles", help="Export role names")
    roles_export_parser.add_argument("--output", default="roles.txt", help="Output file")

    # Roles
    create_roles_parser = subparsers.add_parser("create-roles", help="Create realm roles")
    create_roles_parser.add_argument("--file", help="File with one role name per line")
    create_roles_parser.add_argument("--role", action="append", default=[], help="Role name (repeatable)")
    create_roles_parser.add_argument("--log-file", default="role_log.csv", help="Audit log path")

    assign_parser = subparsers.add_parser("assign-roles", help="Assign roles to one identity")
    assign_parser.add_argument("--identity-ref", required=True, help="Identity reference")
    assign_parser.add_argument("--roles", required=True, help="Comma-separated role names")
    assign_parser.add_argument("--log-file", default="role_log.csv", help="Audit log path")

    # Passwords
    password_parser = subparsers.add_parser("set-passwords", help="Issue temporary passwords")
    add_profile_args(password_parser)
    password_parser.add_argument("--log-file", default="password_log.csv", help="Audit log path")

    # Reset
    reset_parser = subparsers.add_parser("reset", help="Clear references recorded in an audit log")
    add_profile_args(reset_parser)
    reset_parser.add_argument("--from-log", help="Audit log of the run to undo (defaults to the profile's)")
    reset_parser.add_argument("--keep", action="append", default=[], help="Record id to leave untouched")
    reset_parser.add_argument("--log-file", default="reset_log.csv", help="Audit log path")
    reset_parser.add_argument("--dry-run", action="store_true", help="Only list the ids")

    # Inspect
    inspect_parser = subparsers.add_parser("inspect", help="Look at the source table")
    add_profile_args(inspect_parser)
    inspect_parser.add_argument("--identity-ref", help="Find the row holding this reference")
    inspect_parser.add_argument("--columns", action="store_true", help="List the table's columns")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    commands = {
        "migrate": run_migrate,
        "export": run_export,
        "export-roles": run_export_roles,
        "create-roles": run_create_roles,
        "assign-roles": run_assign_roles,
        "set-passwords": run_set_passwords,
        "reset": run_reset,
        "inspect": run_inspect,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return EXIT_ABORTED

    settings = Settings.from_env(args.env_file)
    for problem in settings.validate():
        logger.warning(f"Configuration: {problem}")

    try:
        return handler(args, settings)
    except (MigrationError, SQLAlchemyError, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return EXIT_ABORTED


def build_client(settings: Settings) -> KeycloakAdminClient:
    return KeycloakAdminClient(
        settings.base_url,
        settings.realm,
        timeout=settings.http_timeout_seconds,
    )


def build_token_provider(settings: Settings, client: KeycloakAdminClient) -> TokenProvider:
    return TokenProvider(
        client,
        settings.client_id,
        settings.client_secret,
        refresh_after_seconds=settings.token_refresh_seconds,
    )


def run_migrate(args, settings: Settings) -> int:
    """Run the batch migration."""
    profile = load_profile(args.profile, args.profile_file)
    engine = create_db_engine(settings)

    source: BaseExtractor
    if args.source == "csv":
        source = CSVExtractor(profile, args.snapshot)
    else:
        source = DatabaseExtractor(profile, engine)

    log_file = args.log_file or profile.log_file
    if args.dry_run:
        log_file = str(Path(log_file).with_suffix(".dry-run.csv"))

    client = build_client(settings)
    orchestrator = MigrationOrchestrator(
        profile=profile,
        settings=settings,
        source=source,
        client=client,
        token_provider=build_token_provider(settings, client),
        mapping_writer=MappingWriter(engine, profile),
        audit=AuditLogger(log_file),
        dry_run=args.dry_run,
        limit=args.limit,
    )
    run = orchestrator.run_migration()

    if args.json:
        print(json.dumps(run.to_dict(), indent=2))
        return run.exit_code

    print("\n" + "=" * 60)
    print("MIGRATION COMPLETE" if run.status == MigrationStatus.COMPLETED else "MIGRATION ABORTED")
    print("=" * 60)
    print(f"Status: {run.status.value}")
    print(f"Records Found: {run.records_found}")
    print(f"Records Processed: {run.records_processed}")
    print(f"Created: {run.records_succeeded}")
    print(f"Failed: {run.records_failed}")
    print(f"Warnings: {run.warnings}")
    print(f"Errors: {run.errors}")
    if run.duration_seconds:
        print(f"Duration: {run.duration_seconds:.2f} seconds")
    print(f"Audit log: {log_file}")

    return run.exit_code


def run_export(args, settings: Settings) -> int:
    """Export the pending snapshot, or a whole table."""
    exporter = TableExporter(create_db_engine(settings))
    if args.table:
        output = args.output or f"{args.table.strip(chr(34))}.csv"
        exporter.export_query(f"SELECT * FROM {args.table}", output)
    else:
        profile = load_profile(args.profile, args.profile_file)
        exporter.export_pending(profile, args.output)
    return EXIT_OK


def run_export_roles(args, settings: Settings) -> int:
    exporter = TableExporter(create_db_engine(settings))
    exporter.export_roles(args.output)
    return EXIT_OK


def run_create_roles(args, settings: Settings) -> int:
    """Create realm roles from a file and/or the command line."""
    names = list(args.role)
    if args.file:
        names.extend(read_role_file(args.file))
    if not names:
        logger.error("No roles given; use --file or --role")
        return EXIT_ABORTED

    client = build_client(settings)
    token = build_token_provider(settings, client).acquire_token()
    audit = AuditLogger(args.log_file)
    audit.start()

    outcomes = RoleMigrator(client, audit).create_roles(names, token)
    return EXIT_RECORD_ERRORS if FAILED in outcomes.values() else EXIT_OK


def run_assign_roles(args, settings: Settings) -> int:
    client = build_client(settings)
    token = build_token_provider(settings, client).acquire_token()
    audit = AuditLogger(args.log_file)
    audit.start()

    RoleAssigner(client, audit).assign_roles(args.identity_ref, args.roles, token)
    return EXIT_RECORD_ERRORS if audit.count(AuditStatus.ERROR) else EXIT_OK


def run_set_passwords(args, settings: Settings) -> int:
    """Issue temporary passwords for every already-migrated record."""
    profile = load_profile(args.profile, args.profile_file)
    writer = MappingWriter(create_db_engine(settings), profile)
    records = writer.fetch_migrated()
    logger.info(f"Found {len(records)} {profile.name} to set passwords for")
    if not records:
        return EXIT_OK

    client = build_client(settings)
    audit = AuditLogger(args.log_file)
    audit.start()

    issuer = PasswordIssuer(client, audit, settings.temp_password_template)
    issuer.issue_all(records, build_token_provider(settings, client))
    return EXIT_RECORD_ERRORS if audit.count(AuditStatus.ERROR) else EXIT_OK


def run_reset(args, settings: Settings) -> int:
    """Clear identity references for records a previous run created."""
    profile = load_profile(args.profile, args.profile_file)
    log_path = args.from_log or profile.log_file

    ids = collect_migrated_ids(log_path, exclude=args.keep)
    if not ids:
        logger.info("No successfully migrated records found in log")
        return EXIT_OK

    logger.info(f"Found {len(ids)} records to reset")
    if args.dry_run:
        for record_id in ids:
            print(record_id)
        return EXIT_OK

    writer = MappingWriter(create_db_engine(settings), profile)
    updated = writer.clear_mappings(ids)

    audit = AuditLogger(args.log_file)
    audit.start()
    audit.record(ResetDbEntry(
        status=AuditStatus.SUCCESS,
        record_ids=ids,
        rows_updated=updated,
        message=f"Reset from {log_path}",
    ))
    logger.info(f"Reset complete: {updated} records updated")
    return EXIT_OK


def run_inspect(args, settings: Settings) -> int:
    profile = load_profile(args.profile, args.profile_file)
    engine = create_db_engine(settings)

    if args.columns:
        columns = TableExporter(engine).table_columns(profile.table)
        print(f"{profile.table} columns: {', '.join(columns)}")

    if args.identity_ref:
        row = MappingWriter(engine, profile).find_by_identity_ref(args.identity_ref)
        if row is None:
            print("Record not found")
            return EXIT_RECORD_ERRORS
        print(json.dumps(row, indent=2, default=str))

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
