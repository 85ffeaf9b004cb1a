"""Seeds realm roles in the identity provider."""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Union

from ..errors import ProvisioningError
from ..loaders.keycloak_client import KeycloakAdminClient
from ..loaders.token_provider import BearerToken
from ..models.audit import AuditStatus, CreateRoleEntry
from .audit_logger import AuditLogger

logger = logging.getLogger(__name__)

CREATED = "created"
EXISTS = "exists"
FAILED = "failed"


def read_role_file(path: Union[str, Path]) -> List[str]:
    """Role names, one per line; blank lines are ignored."""
    text = Path(path).read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]


class RoleMigrator:
    """Creates realm roles, treating "already exists" as success."""

    def __init__(self, client: KeycloakAdminClient, audit: AuditLogger):
        self.client = client
        self.audit = audit

    def create_roles(self, names: Iterable[str], token: BearerToken) -> Dict[str, str]:
        """
        Create each role.

        Returns:
            Role name -> "created", "exists" or "failed"
        """
        outcomes = {}
        for name in names:
            try:
                created = self.client.create_realm_role(name, token.value)
            except ProvisioningError as e:
                self.audit.record(CreateRoleEntry(
                    status=AuditStatus.ERROR,
                    role_name=name,
                    realm=self.client.realm,
                    message=str(e),
                    error=e.to_payload(),
                ))
                outcomes[name] = FAILED
                continue

            if created:
                self.audit.record(CreateRoleEntry(
                    status=AuditStatus.SUCCESS,
                    role_name=name,
                    realm=self.client.realm,
                ))
                outcomes[name] = CREATED
            else:
                self.audit.record(CreateRoleEntry(
                    status=AuditStatus.INFO,
                    role_name=name,
                    realm=self.client.realm,
                    message="Role already exists",
                ))
                outcomes[name] = EXISTS

        logger.info(f"Role creation complete: {len(outcomes)} roles processed")
        return outcomes
