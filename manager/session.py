"""Authenticated session against the array management REST API."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional

import httpx

from common.exceptions import AuthError, RequestError

logger = logging.getLogger(__name__)

# Versions this client can speak, in ascending precedence.
SUPPORTED_REST_VERSIONS: tuple[str, ...] = (
    "1.0", "1.1", "1.2", "1.3", "1.4", "1.5",
    "1.6", "1.7", "1.8", "1.9", "1.10", "1.11",
)


class SessionState(str, Enum):
    """Lifecycle of a management session."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


def negotiate_version(
    offered: list[str],
    supported: tuple[str, ...] = SUPPORTED_REST_VERSIONS,
) -> Optional[str]:
    """Pick the highest-precedence version present in both sets.

    Precedence is the order of ``supported``, so "1.10" outranks "1.9".
    Returns None when the sets do not intersect.
    """
    offered_set = set(offered)
    for version in reversed(supported):
        if version in offered_set:
            return version
    return None


class ManagementSession:
    """Session against the management endpoint of a storage array.

    Use :meth:`connect` to build one; it negotiates the REST version and logs
    in before returning. Calls are issued sequentially by a single
    coordinator, so the session is not shared across threads.
    """

    API_VERSION_PATH = "/api/api_version"
    LOGIN_PATH = "/api/login"
    LOGOUT_PATH = "/api/logout"
    AUTH_HEADER = "x-auth-token"

    def __init__(
        self,
        endpoint: str,
        api_token: str,
        verify_ssl: bool = False,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.rest_version: Optional[str] = None
        self.state = SessionState.UNAUTHENTICATED

        self._api_token = api_token
        self._auth_token: Optional[str] = None
        self._client = httpx.Client(
            base_url=self.base_url,
            verify=verify_ssl,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def connect(
        cls,
        endpoint: str,
        api_token: str,
        verify_ssl: bool = False,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "ManagementSession":
        """Negotiate a REST version and log in."""
        session = cls(endpoint, api_token, verify_ssl=verify_ssl, timeout=timeout, transport=transport)
        try:
            session._negotiate()
            session._login()
        except AuthError:
            session._client.close()
            raise
        return session

    @property
    def base_url(self) -> str:
        if "://" in self.endpoint:
            return self.endpoint.rstrip("/")
        return f"https://{self.endpoint}"

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED and bool(self._auth_token)

    def _negotiate(self) -> None:
        try:
            response = self._client.get(self.API_VERSION_PATH)
            response.raise_for_status()
            offered = response.json().get("versions", [])
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            raise AuthError(f"Unable to query REST versions from {self.endpoint}: {e}") from e

        version = negotiate_version(offered)
        if version is None:
            raise AuthError(
                f"Array at {self.endpoint} is incompatible with all supported REST versions "
                f"(offered: {', '.join(map(str, offered)) or 'none'})"
            )
        self.rest_version = version
        logger.debug(f"Negotiated REST version {version} with {self.endpoint}")

    def _login(self) -> None:
        try:
            response = self._client.post(self.LOGIN_PATH, headers={"api-token": self._api_token})
        except httpx.HTTPError as e:
            raise AuthError(f"Login to {self.endpoint} failed: {e}") from e

        if not response.is_success:
            raise AuthError(f"Login to {self.endpoint} failed with status {response.status_code}")

        token = response.headers.get(self.AUTH_HEADER)
        if not token:
            raise AuthError(f"Login to {self.endpoint} returned no session token")

        self._auth_token = token
        self.state = SessionState.AUTHENTICATED
        logger.info(f"Logged in to {self.endpoint} (REST {self.rest_version})")

    def _path(self, path: str) -> str:
        return f"/api/{self.rest_version}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, str]] = None,
        body: Optional[Any] = None,
    ) -> bytes:
        """Issue an authenticated call and return the raw response body."""
        if not self.is_authenticated:
            raise RequestError(
                f"Not logged in to {self.endpoint}, unable to send {method} {path}"
            )

        headers = {
            self.AUTH_HEADER: self._auth_token,
            "Accept": "application/json",
        }
        content = None
        if body is not None:
            content = json.dumps(body).encode()
            headers["Content-Type"] = "application/json"

        try:
            response = self._client.request(
                method,
                self._path(path),
                params=params,
                content=content,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise RequestError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            raise RequestError(
                f"[error {response.status_code}] {method} {response.request.url} did not succeed: "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )

        logger.debug(f"{method} {path} -> {response.status_code}")
        return response.content

    def request_json(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, str]] = None,
        body: Optional[Any] = None,
    ) -> dict:
        """Issue an authenticated call and decode the JSON response."""
        content = self.request(method, path, params=params, body=body)
        if not content:
            return {}
        try:
            return json.loads(content)
        except ValueError as e:
            raise RequestError(f"{method} {path} returned invalid JSON: {e}") from e

    def list_items(self, path: str, params: Optional[dict[str, str]] = None) -> list[dict]:
        """List a collection, following continuation tokens."""
        items: list[dict] = []
        query = dict(params or {})
        while True:
            page = self.request_json("GET", path, params=query)
            items.extend(page.get("items") or [])

            token = (page.get("pagination_info") or {}).get("continuation_token")
            if not token:
                return items
            query["continuation_token"] = token

    def close(self) -> None:
        """Log out. Failures are logged and otherwise ignored."""
        if self.state == SessionState.CLOSED:
            return

        if self._auth_token:
            try:
                self._client.post(self.LOGOUT_PATH, headers={self.AUTH_HEADER: self._auth_token})
            except httpx.HTTPError as e:
                logger.warning(f"Logout from {self.endpoint} failed: {e}")

        self._auth_token = None
        self.state = SessionState.CLOSED
        self._client.close()
        logger.debug(f"Closed session to {self.endpoint}")

    def __enter__(self) -> "ManagementSession":
        return self

    def __exit__(self, *args) -> None:
        self.close()
