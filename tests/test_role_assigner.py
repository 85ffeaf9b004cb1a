"""Tests for services.role_assigner."""

import pytest

from account_migration.models.audit import AuditStatus
from account_migration.services.audit_logger import read_entries
from account_migration.services.role_assigner import RoleAssigner, parse_role_names


@pytest.mark.parametrize("raw, expected", [
    (None, []),
    ("", []),
    ("   ", []),
    ("null", []),
    ("NULL", []),
    ("ADMIN", ["ADMIN"]),
    ("ADMIN, USER", ["ADMIN", "USER"]),
    ("ADMIN,,USER,ADMIN", ["ADMIN", "USER"]),
])
def test_parse_role_names(raw, expected):
    assert parse_role_names(raw) == expected


def test_parse_role_names_appends_extra_without_duplicates():
    assert parse_role_names("USER,CUSTOMER_USER", ["CUSTOMER_USER", "AUDIT"]) == [
        "USER", "CUSTOMER_USER", "AUDIT"
    ]


def test_assign_roles_single_bulk_call(fake_client, audit, token):
    assigner = RoleAssigner(fake_client, audit)
    assigned = assigner.assign_roles("kc-1", "ADMIN,USER", token, record_id="1")

    assert assigned == ["ADMIN", "USER"]
    assert fake_client.role_mappings == [("kc-1", ["ADMIN", "USER"])]
    assert read_entries(audit.path) == []


def test_assign_roles_none_makes_no_calls(fake_client, audit, token):
    assigner = RoleAssigner(fake_client, audit)

    assert assigner.assign_roles("kc-1", None, token) == []
    assert assigner.assign_roles("kc-1", "null", token) == []
    assert fake_client.role_lookups == []
    assert fake_client.role_mappings == []


def test_assign_roles_skips_unknown_role(fake_client, audit, token):
    assigner = RoleAssigner(fake_client, audit)
    assigned = assigner.assign_roles("kc-1", "ADMIN,GHOST", token, record_id="7")

    assert assigned == ["ADMIN"]
    assert fake_client.role_mappings == [("kc-1", ["ADMIN"])]
    entries = read_entries(audit.path)
    assert len(entries) == 1
    assert entries[0].action == "ASSIGN_ROLE"
    assert entries[0].status == "ERROR"
    assert entries[0].roles == ["GHOST"]
    assert entries[0].record_id == "7"


def test_assign_roles_all_unknown_makes_no_mapping_call(fake_client, audit, token):
    assigner = RoleAssigner(fake_client, audit)

    assert assigner.assign_roles("kc-1", "GHOST", token) == []
    assert fake_client.role_mappings == []
    assert audit.count(AuditStatus.ERROR) == 1


def test_assign_roles_caches_resolved_roles(fake_client, audit, token):
    assigner = RoleAssigner(fake_client, audit)
    assigner.assign_roles("kc-1", "ADMIN", token)
    assigner.assign_roles("kc-2", "ADMIN,USER", token)

    assert fake_client.role_lookups == ["ADMIN", "USER"]


def test_assign_roles_does_not_cache_misses(fake_client, audit, token):
    assigner = RoleAssigner(fake_client, audit)
    assigner.assign_roles("kc-1", "LATE", token)
    fake_client.roles["LATE"] = {"id": "role-LATE", "name": "LATE"}

    assert assigner.assign_roles("kc-2", "LATE", token) == ["LATE"]


def test_assign_roles_bulk_failure_logs_error(fake_client, audit, token):
    fake_client.fail_role_mapping = True
    assigner = RoleAssigner(fake_client, audit)

    assert assigner.assign_roles("kc-1", "ADMIN,USER", token) == []
    entries = read_entries(audit.path)
    assert [(e.action, e.status, e.roles) for e in entries] == [
        ("ASSIGN_ROLE", "ERROR", ["ADMIN", "USER"])
    ]


def test_default_roles_always_added(fake_client, audit, token):
    assigner = RoleAssigner(fake_client, audit, default_roles=["CUSTOMER_USER"])

    assert assigner.assign_roles("kc-1", None, token) == ["CUSTOMER_USER"]
