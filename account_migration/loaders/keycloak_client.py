"""Client for the identity provider's admin REST API."""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import ProvisioningError, RoleResolutionError

logger = logging.getLogger(__name__)


def error_detail(response: requests.Response) -> Any:
    """Best-effort error body: parsed JSON when available, else text."""
    try:
        return response.json()
    except ValueError:
        return response.text or response.reason


class KeycloakAdminClient:
    """
    Thin wrapper over the realm admin endpoints the migration needs.

    Every call takes the bearer token explicitly so the caller owns token
    lifetime. Non-2xx responses raise the matching MigrationError.
    """

    def __init__(
        self,
        base_url: str,
        realm: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Provider root URL, e.g. ``https://sso.example.com``
            realm: Realm holding the users and roles
            timeout: Per-request timeout in seconds
            session: Custom requests session
        """
        self.base_url = base_url.rstrip("/")
        self.realm = realm
        self.timeout = timeout
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session that retries idempotent reads only."""
        session = requests.Session()

        retries = Retry(
            total=3,
            backoff_factor=1.0,
            status_forcelist=[502, 503, 504],
            allowed_methods=frozenset(["GET"]),
        )

        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        session.headers["Accept"] = "application/json"

        return session

    @property
    def session(self) -> requests.Session:
        return self._session

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/realms/{self.realm}/protocol/openid-connect/token"

    @property
    def admin_url(self) -> str:
        return f"{self.base_url}/admin/realms/{self.realm}"

    def _request(
        self,
        method: str,
        path: str,
        token: str,
        **kwargs
    ) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {token}"
        url = f"{self.admin_url}{path}"
        logger.debug(f"{method} {url}")
        return self._session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)

    def create_user(self, payload: Dict[str, Any], token: str) -> str:
        """
        Create a user and return its identity reference.

        The reference is the last path segment of the ``Location`` header.

        Raises:
            ProvisioningError: If the provider rejects the request
        """
        try:
            response = self._request("POST", "/users", token, json=payload)
        except requests.RequestException as e:
            raise ProvisioningError(f"Create user request failed: {e}") from e

        if not response.ok:
            raise ProvisioningError(
                f"Create user rejected with HTTP {response.status_code}",
                status_code=response.status_code,
                detail=error_detail(response),
            )

        location = response.headers.get("Location") or response.headers.get("location")
        identity_ref = location.rstrip("/").split("/")[-1] if location else ""
        if not identity_ref:
            raise ProvisioningError(
                "Create user response carried no Location header",
                status_code=response.status_code,
            )
        return identity_ref

    def get_realm_role(self, role_name: str, token: str) -> Dict[str, Any]:
        """
        Fetch a realm role representation by name.

        Raises:
            RoleResolutionError: If the role does not resolve
        """
        try:
            response = self._request("GET", f"/roles/{quote(role_name, safe='')}", token)
        except requests.RequestException as e:
            raise RoleResolutionError(role_name, detail=str(e)) from e

        if not response.ok:
            raise RoleResolutionError(
                role_name,
                status_code=response.status_code,
                detail=error_detail(response),
            )
        try:
            return response.json()
        except ValueError as e:
            raise RoleResolutionError(
                role_name,
                status_code=response.status_code,
                detail=response.text,
            ) from e

    def add_realm_role_mappings(
        self,
        identity_ref: str,
        roles: List[Dict[str, Any]],
        token: str
    ) -> None:
        """Attach realm roles to a user in a single call."""
        try:
            response = self._request(
                "POST", f"/users/{identity_ref}/role-mappings/realm", token, json=roles
            )
        except requests.RequestException as e:
            raise ProvisioningError(f"Role mapping request failed: {e}") from e

        if not response.ok:
            raise ProvisioningError(
                f"Role mapping rejected with HTTP {response.status_code}",
                status_code=response.status_code,
                detail=error_detail(response),
            )

    def reset_password(
        self,
        identity_ref: str,
        password: str,
        token: str,
        temporary: bool = True
    ) -> None:
        """Set a password credential, temporary by default."""
        body = {"type": "password", "value": password, "temporary": temporary}
        try:
            response = self._request("PUT", f"/users/{identity_ref}/reset-password", token, json=body)
        except requests.RequestException as e:
            raise ProvisioningError(f"Password reset request failed: {e}") from e

        if not response.ok:
            raise ProvisioningError(
                f"Password reset rejected with HTTP {response.status_code}",
                status_code=response.status_code,
                detail=error_detail(response),
            )

    def create_realm_role(self, role_name: str, token: str) -> bool:
        """
        Create a realm role.

        Returns:
            True if created, False if it already existed

        Raises:
            ProvisioningError: For any other rejection
        """
        try:
            response = self._request("POST", "/roles", token, json={"name": role_name})
        except requests.RequestException as e:
            raise ProvisioningError(f"Create role request failed: {e}") from e

        if response.status_code == 409:
            return False
        if not response.ok:
            raise ProvisioningError(
                f"Create role rejected with HTTP {response.status_code}",
                status_code=response.status_code,
                detail=error_detail(response),
            )
        return True
