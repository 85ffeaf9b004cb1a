from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine, text

from account_migration.config import Settings
from account_migration.errors import AuthError, ProvisioningError, RoleResolutionError
from account_migration.loaders.token_provider import BearerToken, TokenProvider
from account_migration.models.migration import BUILTIN_PROFILES, WorkflowProfile
from account_migration.services.audit_logger import AuditLogger

SQLITE_USERS_SQL = """
SELECT u.id, u.email, u.first_name, u.last_name, u."phoneNumber", u.keycloak_user_id,
       group_concat(r.name, ',') AS roles
FROM "user" u
LEFT JOIN user_roles ur ON u.id = ur."userId"
LEFT JOIN roles r ON ur."roleId" = r.id
WHERE u.keycloak_user_id IS NULL
GROUP BY u.id
ORDER BY u.id
"""


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeKeycloakClient:
    """In-memory stand-in for KeycloakAdminClient."""

    realm = "test-realm"

    def __init__(self, roles=("ADMIN", "USER", "CUSTOMER_USER"), clock: Optional[FakeClock] = None,
                 seconds_per_create: float = 0.0):
        self.roles = {name: {"id": f"role-{name}", "name": name} for name in roles}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.create_calls: List[Dict[str, Any]] = []
        self.role_lookups: List[str] = []
        self.role_mappings: List[tuple] = []
        self.passwords: Dict[str, Dict[str, Any]] = {}
        self.created_roles: List[str] = []
        self.tokens_seen: List[str] = []
        self.reject_usernames = set()
        self.fail_role_mapping = False
        self.clock = clock
        self.seconds_per_create = seconds_per_create

    def create_user(self, payload, token):
        self.create_calls.append(payload)
        self.tokens_seen.append(token)
        if self.clock is not None:
            self.clock.advance(self.seconds_per_create)
        username = payload["username"]
        if username in self.reject_usernames or any(
            u["username"] == username for u in self.users.values()
        ):
            raise ProvisioningError(
                "Create user rejected with HTTP 409",
                status_code=409,
                detail={"errorMessage": "User exists with same username"},
            )
        ref = f"kc-{len(self.users) + 1}"
        self.users[ref] = payload
        return ref

    def get_realm_role(self, role_name, token):
        self.role_lookups.append(role_name)
        if role_name not in self.roles:
            raise RoleResolutionError(role_name, status_code=404, detail={"error": "Could not find role"})
        return self.roles[role_name]

    def add_realm_role_mappings(self, identity_ref, roles, token):
        if self.fail_role_mapping:
            raise ProvisioningError("Role mapping rejected with HTTP 500", status_code=500)
        self.role_mappings.append((identity_ref, [r["name"] for r in roles]))

    def reset_password(self, identity_ref, password, token, temporary=True):
        self.passwords[identity_ref] = {"value": password, "temporary": temporary}

    def create_realm_role(self, role_name, token):
        if role_name in self.roles:
            return False
        self.roles[role_name] = {"id": f"role-{role_name}", "name": role_name}
        self.created_roles.append(role_name)
        return True


class FakeTokenProvider(TokenProvider):
    """TokenProvider whose grant is local; expiry logic is the real one."""

    def __init__(self, clock: Optional[FakeClock] = None, refresh_after_seconds: float = 240.0,
                 fail: bool = False):
        super().__init__(
            client=None,
            client_id="migration",
            client_secret="secret",
            refresh_after_seconds=refresh_after_seconds,
            clock=clock or FakeClock(),
        )
        self.acquired: List[BearerToken] = []
        self.fail = fail

    def acquire_token(self) -> BearerToken:
        if self.fail:
            raise AuthError("Token request rejected with HTTP 401: invalid_client")
        token = BearerToken(value=f"token-{len(self.acquired) + 1}", acquired_at=self.clock())
        self.acquired.append(token)
        return token


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    return FakeKeycloakClient()


@pytest.fixture
def audit(tmp_path):
    logger = AuditLogger(tmp_path / "migration_log.csv")
    logger.start()
    return logger


@pytest.fixture
def token():
    return BearerToken(value="token-1", acquired_at=0.0)


@pytest.fixture
def settings():
    return Settings(request_delay_seconds=0.1, progress_every=50)


@pytest.fixture
def users_profile() -> WorkflowProfile:
    return WorkflowProfile.from_dict({"select_sql": SQLITE_USERS_SQL}, base=BUILTIN_PROFILES["users"])


@pytest.fixture
def customers_profile() -> WorkflowProfile:
    return WorkflowProfile.from_dict(
        {"select_sql": "SELECT id, email, name FROM customer_user WHERE keycloak_user_id IS NULL ORDER BY id"},
        base=BUILTIN_PROFILES["customers"],
    )


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'source.db'}")
    with engine.begin() as conn:
        conn.execute(text(
            'CREATE TABLE "user" (id INTEGER PRIMARY KEY, email TEXT, first_name TEXT, '
            'last_name TEXT, "phoneNumber" TEXT, keycloak_user_id TEXT)'
        ))
        conn.execute(text("CREATE TABLE roles (id INTEGER PRIMARY KEY, name TEXT)"))
        conn.execute(text('CREATE TABLE user_roles ("userId" INTEGER, "roleId" INTEGER)'))
        conn.execute(text(
            "CREATE TABLE customer_user (id INTEGER PRIMARY KEY, email TEXT, name TEXT, "
            "keycloak_user_id TEXT)"
        ))
    yield engine
    engine.dispose()


def insert_user(engine, id, email, phone=None, roles=(), first_name="First", last_name="Last",
                identity_ref=None):
    with engine.begin() as conn:
        conn.execute(
            text(
                'INSERT INTO "user" (id, email, first_name, last_name, "phoneNumber", keycloak_user_id) '
                "VALUES (:id, :email, :first, :last, :phone, :ref)"
            ),
            {"id": id, "email": email, "first": first_name, "last": last_name,
             "phone": phone, "ref": identity_ref},
        )
        for name in roles:
            role_id = conn.execute(text("SELECT id FROM roles WHERE name = :n"), {"n": name}).scalar()
            if role_id is None:
                conn.execute(text("INSERT INTO roles (name) VALUES (:n)"), {"n": name})
                role_id = conn.execute(text("SELECT id FROM roles WHERE name = :n"), {"n": name}).scalar()
            conn.execute(
                text('INSERT INTO user_roles ("userId", "roleId") VALUES (:u, :r)'),
                {"u": id, "r": role_id},
            )


def identity_ref_of(engine, id, table='"user"'):
    with engine.connect() as conn:
        return conn.execute(
            text(f"SELECT keycloak_user_id FROM {table} WHERE id = :id"), {"id": id}
        ).scalar()


def isolate_env(monkeypatch, *names):
    """Unset variables and make sure anything load_dotenv writes is undone."""
    for name in names:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
