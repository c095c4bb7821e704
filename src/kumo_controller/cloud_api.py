"""Kumo Cloud API client.

Three endpoints are used: ``/login`` (token plus the account's site tree),
``/getDeviceUpdates`` (status of one zone) and ``/sendDeviceCommands/v2``.
HTTP and decoding failures are translated into the kumo_controller exception
hierarchy here, so callers never see aiohttp exceptions.
"""

from __future__ import annotations

import json
from typing import NamedTuple, cast

import aiohttp

from kumo_controller.const import KUMO_API_BASE, KUMO_API_TIMEOUT, KUMO_APP_VERSION, KUMO_DEFAULT_HEADERS
from kumo_controller.exceptions import AuthError, MalformedResponseError, TransportError
from kumo_controller.instrumentation import timed_async
from kumo_controller.logging_abstraction import get_logger
from kumo_controller.structs import AuthTokenDict, Credentials, RemoteStatusDict, SecurityToken, SiteDict

logger = get_logger(__name__)

__all__ = ["KumoCloudAPI", "LoginResult"]


class LoginResult(NamedTuple):
    token: SecurityToken
    site: SiteDict | None


class KumoCloudAPI:
    """Kumo Cloud API client.

    Owns its aiohttp session unless one is injected, in which case closing the
    session is left to the caller.
    """

    lp: str = "KumoCloudAPI"

    def __init__(
        self,
        base_url: str = KUMO_API_BASE,
        api_timeout: float = KUMO_API_TIMEOUT,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url: str = base_url.rstrip("/")
        self.api_timeout: float = api_timeout
        self.http_session: aiohttp.ClientSession | None = http_session
        self._owns_session: bool = http_session is None

    async def close(self) -> None:
        """Close the aiohttp session if this client created it."""
        lp = f"{self.lp}:close:"
        if self._owns_session and self.http_session and not self.http_session.closed:
            logger.debug("%s Closing aiohttp ClientSession", lp)
            await self.http_session.close()
            self.http_session = None

    async def _check_session(self) -> aiohttp.ClientSession:
        if not self.http_session or self.http_session.closed:
            logger.debug("%s:_check_session: Creating new aiohttp ClientSession", self.lp)
            self.http_session = aiohttp.ClientSession()
            self._owns_session = True
        return self.http_session

    async def _post(self, path: str, payload: object) -> object:
        """POST ``payload`` as JSON and return the decoded response body.

        Raises:
            TransportError: on connection failure, timeout, HTTP error status or
                an undecodable body.

        """
        lp = f"{self.lp}:post:"
        sesh = await self._check_session()
        url = f"{self.base_url}{path}"
        try:
            r = await sesh.post(
                url,
                json=payload,
                headers=KUMO_DEFAULT_HEADERS,
                timeout=aiohttp.ClientTimeout(total=self.api_timeout),
            )
            r.raise_for_status()
            return cast("object", await r.json(content_type=None))
        except aiohttp.ClientResponseError as e:
            logger.warning("%s %s returned HTTP %s", lp, path, e.status, extra={"status": e.status, "path": path})
            raise TransportError("remote", f"{path} returned HTTP {e.status}", status=e.status) from e
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.warning("%s %s failed: %s", lp, path, e, extra={"error_type": type(e).__name__, "path": path})
            raise TransportError("remote", f"{path} failed: {e!r}") from e
        except json.JSONDecodeError as e:
            logger.warning("%s %s returned invalid JSON", lp, path, extra={"path": path})
            raise TransportError("remote", f"{path} returned invalid JSON") from e

    @timed_async("kumo_login")
    async def login(self, credentials: Credentials | None) -> LoginResult:
        """Log in and return a fresh token with the account's site tree.

        Raises:
            AuthError: credentials missing or rejected, or the cloud was unreachable.
            MalformedResponseError: the response carries no auth token.

        """
        lp = f"{self.lp}:login:"
        if credentials is None or not credentials.username or not credentials.password:
            raise AuthError("missing_credentials")

        logger.debug("%s Logging in as %s", lp, credentials.username)
        try:
            payload = await self._post(
                "/login",
                {
                    "username": credentials.username,
                    "password": credentials.password,
                    "appVersion": KUMO_APP_VERSION,
                },
            )
        except TransportError as e:
            reason = "rejected" if e.status is not None and 400 <= e.status < 500 else "unreachable"
            raise AuthError(reason, status=e.status) from e

        if not isinstance(payload, list) or not payload:
            raise MalformedResponseError("login", "expected a non-empty array")
        items = cast("list[object]", payload)

        auth = items[0]
        if not isinstance(auth, dict) or not isinstance(cast("AuthTokenDict", auth).get("token"), str):
            raise MalformedResponseError("login", "missing auth token")
        token = SecurityToken(token_id=cast("AuthTokenDict", auth)["token"])

        site: SiteDict | None = None
        if len(items) > 2 and isinstance(items[2], dict):
            site = cast("SiteDict", items[2])
        else:
            logger.warning("%s Login response carried no site tree", lp)

        logger.info("%s Logged in, token valid until %s", lp, token.expires_at.isoformat())
        return LoginResult(token=token, site=site)

    @timed_async("kumo_get_device_updates")
    async def get_device_updates(self, token_id: str | None, serial: str) -> RemoteStatusDict:
        """Fetch the cloud's latest status record for one zone."""
        if not token_id:
            raise TransportError("remote", "no session token")

        payload = await self._post("/getDeviceUpdates", [token_id, [serial]])
        try:
            status = cast("list[list[list[object]]]", payload)[2][0][0]
        except (IndexError, KeyError, TypeError) as e:
            raise MalformedResponseError("getDeviceUpdates", f"no status record for {serial}") from e
        if not isinstance(status, dict):
            raise MalformedResponseError("getDeviceUpdates", f"status record for {serial} is not an object")
        return cast("RemoteStatusDict", status)

    @timed_async("kumo_send_device_commands")
    async def send_device_commands(self, token_id: str | None, serial: str, command: dict[str, object]) -> None:
        """Relay a command to one zone; the response is an acknowledgement only."""
        if not token_id:
            raise TransportError("remote", "no session token")

        _ = await self._post("/sendDeviceCommands/v2", [token_id, {serial: command}])
        logger.debug("%s:send_device_commands: %s <- %s", self.lp, serial, command)
