"""Bearer token acquisition for the identity provider."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from ..errors import AuthError
from .keycloak_client import KeycloakAdminClient, error_detail

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BearerToken:
    """An access token and the monotonic time it was acquired."""
    value: str
    acquired_at: float
    expires_in: Optional[int] = None

    def __str__(self) -> str:
        return self.value


class TokenProvider:
    """
    Exchanges client credentials for bearer tokens.

    The provider holds no token itself; callers keep the current token and
    ask ``is_expiring`` before each call.
    """

    def __init__(
        self,
        client: KeycloakAdminClient,
        client_id: str,
        client_secret: str,
        refresh_after_seconds: float = 240.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the token provider.

        Args:
            client: Admin client supplying the session and token URL
            client_id: Confidential client id
            client_secret: Confidential client secret
            refresh_after_seconds: Token age at which a refresh is due
            clock: Monotonic time source
        """
        self.client = client
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_after_seconds = refresh_after_seconds
        self.clock = clock

    def acquire_token(self) -> BearerToken:
        """
        Run a client-credentials grant.

        Raises:
            AuthError: On transport failure, non-2xx, or a body without a token
        """
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }

        try:
            response = self.client.session.post(
                self.client.token_url, data=data, timeout=self.client.timeout
            )
        except requests.RequestException as e:
            raise AuthError(f"Token request failed: {e}") from e

        if not response.ok:
            raise AuthError(
                f"Token request rejected with HTTP {response.status_code}: {error_detail(response)}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise AuthError("Token response is not JSON") from e

        if not isinstance(body, dict):
            raise AuthError("Token response is not a JSON object")

        access_token = body.get("access_token")
        if not access_token:
            raise AuthError("Token response has no access_token")

        logger.debug(f"Acquired token, expires_in={body.get('expires_in')}")
        return BearerToken(
            value=access_token,
            acquired_at=self.clock(),
            expires_in=body.get("expires_in"),
        )

    def is_expiring(self, token: BearerToken, now: Optional[float] = None) -> bool:
        """True once the token's age reaches the refresh threshold."""
        if now is None:
            now = self.clock()
        return now - token.acquired_at >= self.refresh_after_seconds
