"""Resolves role names and attaches them to created identities."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..errors import ProvisioningError, RoleResolutionError
from ..loaders.keycloak_client import KeycloakAdminClient
from ..loaders.token_provider import BearerToken
from ..models.audit import AssignRoleEntry, AuditStatus
from ..models.record import clean_value
from .audit_logger import AuditLogger

logger = logging.getLogger(__name__)


def parse_role_names(raw: Optional[str], extra: Iterable[str] = ()) -> List[str]:
    """
    Split a comma-joined role list.

    ``None``, empty, whitespace-only and the literal ``"null"`` mean no
    roles. ``extra`` names are appended; duplicates are dropped keeping the
    first occurrence.
    """
    names: List[str] = []
    cleaned = clean_value(raw)
    if cleaned is not None:
        names.extend(part.strip() for part in cleaned.split(","))
    names.extend(extra)

    seen = set()
    result = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


class RoleAssigner:
    """
    Assigns realm roles with one bulk mapping call per identity.

    Roles that resolve are cached by name for the life of the assigner.
    """

    def __init__(
        self,
        client: KeycloakAdminClient,
        audit: AuditLogger,
        default_roles: Iterable[str] = ()
    ):
        self.client = client
        self.audit = audit
        self.default_roles = list(default_roles)
        self._role_cache: Dict[str, Dict[str, Any]] = {}

    def resolve_role(self, role_name: str, token: BearerToken) -> Dict[str, Any]:
        if role_name not in self._role_cache:
            self._role_cache[role_name] = self.client.get_realm_role(role_name, token.value)
        return self._role_cache[role_name]

    def assign_roles(
        self,
        identity_ref: str,
        role_names: Optional[str],
        token: BearerToken,
        record_id: Optional[str] = None
    ) -> List[str]:
        """
        Resolve and attach roles.

        Args:
            identity_ref: Target identity
            role_names: Comma-joined role names from the source record
            token: Current bearer token
            record_id: Source record, for the audit trail

        Returns:
            Names of the roles actually assigned
        """
        names = parse_role_names(role_names, self.default_roles)
        if not names:
            logger.debug(f"No roles to assign for {identity_ref}")
            return []

        resolved = []
        for name in names:
            try:
                resolved.append((name, self.resolve_role(name, token)))
            except RoleResolutionError as e:
                self.audit.record(AssignRoleEntry(
                    status=AuditStatus.ERROR,
                    identity_ref=identity_ref,
                    record_id=record_id,
                    roles=[name],
                    message=str(e),
                    error=e.to_payload(),
                ))

        if not resolved:
            return []

        assigned = [name for name, _ in resolved]
        try:
            self.client.add_realm_role_mappings(
                identity_ref, [role for _, role in resolved], token.value
            )
        except ProvisioningError as e:
            self.audit.record(AssignRoleEntry(
                status=AuditStatus.ERROR,
                identity_ref=identity_ref,
                record_id=record_id,
                roles=assigned,
                message=str(e),
                error=e.to_payload(),
            ))
            return []

        logger.info(f"Assigned roles {', '.join(assigned)} to user {identity_ref}")
        return assigned
