"""Process-wide settings read from the environment."""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import URL

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass
class Settings:
    """Connection details and pacing knobs for a run."""

    # Identity provider
    keycloak_url: str = ""
    realm: str = ""
    client_id: str = ""
    client_secret: str = ""

    # Database
    db_host: str = ""
    db_port: Optional[int] = None
    db_name: str = ""
    db_user: str = ""
    db_password: str = ""
    database_url_override: Optional[str] = None

    # Pacing
    token_refresh_seconds: float = 240.0
    request_delay_seconds: float = 0.1
    progress_every: int = 50
    http_timeout_seconds: float = 30.0

    temp_password_template: Optional[str] = None

    @property
    def base_url(self) -> str:
        return self.keycloak_url.rstrip("/")

    @property
    def database_url(self):
        """SQLAlchemy URL for the source database."""
        if self.database_url_override:
            return self.database_url_override
        return URL.create(
            "postgresql+psycopg2",
            username=self.db_user or None,
            password=self.db_password or None,
            host=self.db_host or None,
            port=self.db_port,
            database=self.db_name or None,
        )

    def validate(self) -> List[str]:
        """
        List configuration problems.

        Missing values are not fatal here; the first call that needs them
        fails instead. The CLI prints these as warnings.
        """
        problems = []
        for attr, env_name in (
            ("keycloak_url", "KEYCLOAK_URL"),
            ("realm", "KEYCLOAK_REALM"),
            ("client_id", "KEYCLOAK_CLIENT_ID"),
            ("client_secret", "KEYCLOAK_CLIENT_SECRET"),
        ):
            if not getattr(self, attr):
                problems.append(f"{env_name} is not set")

        if not self.database_url_override and not self.db_name:
            problems.append("DB_NAME (or DATABASE_URL) is not set")

        if self.token_refresh_seconds <= 0:
            problems.append("TOKEN_REFRESH_SECONDS must be positive")

        if self.temp_password_template:
            try:
                self.temp_password_template.format(email="user@example.com")
            except (KeyError, IndexError, ValueError) as e:
                problems.append(f"TEMP_PASSWORD_TEMPLATE may only use {{email}}: {e!r}")

        return problems

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional dotenv file, e.g. ``.env.customer``. Values
                already present in the environment win.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        port = os.environ.get("DB_PORT")
        return cls(
            keycloak_url=os.environ.get("KEYCLOAK_URL", ""),
            realm=os.environ.get("KEYCLOAK_REALM", ""),
            client_id=os.environ.get("KEYCLOAK_CLIENT_ID", ""),
            client_secret=os.environ.get("KEYCLOAK_CLIENT_SECRET", ""),
            db_host=os.environ.get("DB_HOST", ""),
            db_port=int(port) if port and port.isdigit() else None,
            db_name=os.environ.get("DB_NAME", ""),
            db_user=os.environ.get("DB_USER", ""),
            db_password=os.environ.get("DB_PASSWORD", ""),
            database_url_override=os.environ.get("DATABASE_URL") or None,
            token_refresh_seconds=_env_float("TOKEN_REFRESH_SECONDS", 240.0),
            request_delay_seconds=_env_float("REQUEST_DELAY_SECONDS", 0.1),
            progress_every=_env_int("PROGRESS_EVERY", 50),
            http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 30.0),
            temp_password_template=os.environ.get("TEMP_PASSWORD_TEMPLATE") or None,
        )
