"""Exception types raised by the migration workflow."""

from typing import Any, Optional


class MigrationError(Exception):
    """Base class for all migration errors."""


class AuthError(MigrationError):
    """Token acquisition failed. Nothing can proceed without a token."""


class IdentityProviderError(MigrationError):
    """The identity provider rejected a request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Any = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    def to_payload(self) -> Any:
        """Error context suitable for an audit entry."""
        if self.detail is not None:
            return self.detail
        return str(self)


class ProvisioningError(IdentityProviderError):
    """Account creation, role mapping or password reset was rejected."""


class RoleResolutionError(IdentityProviderError):
    """A role name did not resolve to a provider-side role."""

    def __init__(self, role_name: str, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(f"Role '{role_name}' not found", status_code, detail)
        self.role_name = role_name


class PersistenceError(MigrationError):
    """Writing the identity reference back to the database failed."""
