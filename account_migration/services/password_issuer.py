"""Temporary password issuance for migrated accounts."""

import logging
import secrets
from typing import Iterable, Optional

from ..errors import ProvisioningError
from ..loaders.keycloak_client import KeycloakAdminClient
from ..loaders.token_provider import BearerToken, TokenProvider
from ..models.audit import AuditStatus, SetPasswordEntry
from ..models.record import SourceRecord
from .audit_logger import AuditLogger

logger = logging.getLogger(__name__)


class PasswordIssuer:
    """
    Sets a temporary password the user must change at first login.

    With ``template`` set, the password is ``template.format(email=...)``;
    otherwise a random URL-safe value is generated. The issued value is
    written to the audit log, which is how operators hand it out.
    """

    def __init__(
        self,
        client: KeycloakAdminClient,
        audit: AuditLogger,
        template: Optional[str] = None
    ):
        self.client = client
        self.audit = audit
        self.template = template

    def check_template(self) -> None:
        """Raise ValueError when the template uses anything besides {email}."""
        if not self.template:
            return
        try:
            self.template.format(email="user@example.com")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid TEMP_PASSWORD_TEMPLATE {self.template!r}: {e!r}") from e

    def make_password(self, email: Optional[str]) -> str:
        if self.template:
            return self.template.format(email=email or "")
        return secrets.token_urlsafe(12)

    def issue(self, identity_ref: str, email: Optional[str], token: BearerToken) -> bool:
        """Set the password. Failures are logged, not raised."""
        try:
            password = self.make_password(email)
        except (KeyError, IndexError, ValueError) as e:
            self.audit.record(SetPasswordEntry(
                status=AuditStatus.ERROR,
                identity_ref=identity_ref,
                email=email,
                message="Could not build temporary password",
                error=repr(e),
            ))
            return False

        try:
            self.client.reset_password(identity_ref, password, token.value, temporary=True)
        except ProvisioningError as e:
            self.audit.record(SetPasswordEntry(
                status=AuditStatus.ERROR,
                identity_ref=identity_ref,
                email=email,
                message=str(e),
                error=e.to_payload(),
            ))
            return False

        self.audit.record(SetPasswordEntry(
            status=AuditStatus.SUCCESS,
            identity_ref=identity_ref,
            email=email,
            temp_password=password,
        ))
        return True

    def issue_all(self, records: Iterable[SourceRecord], token_provider: TokenProvider) -> int:
        """
        Issue passwords for records that already carry an identity reference.

        Returns:
            Number of passwords set

        Raises:
            AuthError: If a token cannot be acquired
            ValueError: If the password template is invalid
        """
        self.check_template()
        token = token_provider.acquire_token()
        issued = 0
        for record in records:
            if not record.identity_ref:
                continue
            if token_provider.is_expiring(token):
                token = token_provider.acquire_token()
            if self.issue(record.identity_ref, record.email, token):
                issued += 1
        logger.info(f"Password setting complete: {issued} passwords set")
        return issued
