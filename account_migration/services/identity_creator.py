"""Creates provider-side accounts for source records."""

import logging
from typing import Any, Dict, Tuple

from ..loaders.keycloak_client import KeycloakAdminClient
from ..loaders.token_provider import BearerToken
from ..models.audit import AuditStatus, CreateUserEntry
from ..models.migration import UsernameStrategy, WorkflowProfile
from ..models.record import SourceRecord
from .audit_logger import AuditLogger

logger = logging.getLogger(__name__)


class IdentityCreator:
    """Maps a SourceRecord onto a user representation and creates it."""

    def __init__(
        self,
        client: KeycloakAdminClient,
        profile: WorkflowProfile,
        audit: AuditLogger
    ):
        self.client = client
        self.profile = profile
        self.audit = audit

    def choose_username(self, record: SourceRecord) -> Tuple[str, bool]:
        """
        Pick the primary username.

        Returns:
            ``(username, fell_back)`` where ``fell_back`` is True when the
            phone strategy had to use the email instead
        """
        if self.profile.username_strategy == UsernameStrategy.PHONE_OR_EMAIL:
            if record.phone:
                return record.phone, False
            return record.email or "", True
        return record.email or "", False

    def build_payload(self, record: SourceRecord, username: str) -> Dict[str, Any]:
        """User representation for the create call."""
        payload: Dict[str, Any] = {
            "username": username,
            "email": record.email,
            "firstName": record.first_name or "",
            "lastName": record.last_name or "",
            "enabled": True,
        }
        if self.profile.username_strategy == UsernameStrategy.PHONE_OR_EMAIL:
            phone = [f"{self.profile.phone_prefix}{record.phone}"] if record.phone else []
            payload["attributes"] = {"phoneNumber": phone}
        return payload

    def create_identity(self, record: SourceRecord, token: BearerToken) -> str:
        """
        Create the account and return its identity reference.

        Raises:
            ProvisioningError: If the provider rejects the account
        """
        username, fell_back = self.choose_username(record)
        if fell_back:
            self.audit.record(CreateUserEntry(
                status=AuditStatus.WARNING,
                record_id=record.id,
                email=record.email,
                username=username,
                message="Using email as username - no phone number",
            ))

        identity_ref = self.client.create_user(self.build_payload(record, username), token.value)
        logger.info(f"Created user: {record.email} - identity ref: {identity_ref}")
        return identity_ref
