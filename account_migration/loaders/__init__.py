"""Identity provider access."""

from .keycloak_client import KeycloakAdminClient
from .token_provider import BearerToken, TokenProvider

__all__ = [
    "KeycloakAdminClient",
    "BearerToken",
    "TokenProvider",
]
