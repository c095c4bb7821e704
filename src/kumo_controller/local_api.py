"""Direct LAN access to Kumo Wi-Fi adapters.

Every request is ``PUT http://{ip}/api?m={digest}`` with a body of the form
``{"c":{"indoorUnit":{"status":{...}}}}``. An empty status object asks for the
current status, a populated one applies those fields.
"""

from __future__ import annotations

import json
from typing import cast

import aiohttp

from kumo_controller.const import KUMO_LOCAL_HEADERS, KUMO_LOCAL_TIMEOUT
from kumo_controller.exceptions import MalformedResponseError, TransportError
from kumo_controller.instrumentation import timed_async
from kumo_controller.local_auth import encode
from kumo_controller.logging_abstraction import get_logger
from kumo_controller.structs import LocalTransport, StatusDict

logger = get_logger(__name__)

__all__ = ["KumoLocalAPI", "serialize_body"]


def serialize_body(command: dict[str, object]) -> str:
    """Compact JSON body; these exact bytes are both digested and sent."""
    return json.dumps({"c": {"indoorUnit": {"status": command}}}, separators=(",", ":"))


class KumoLocalAPI:
    lp: str = "KumoLocalAPI"

    def __init__(
        self,
        api_timeout: float = KUMO_LOCAL_TIMEOUT,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.api_timeout: float = api_timeout
        self.http_session: aiohttp.ClientSession | None = http_session
        self._owns_session: bool = http_session is None

    async def close(self) -> None:
        if self._owns_session and self.http_session and not self.http_session.closed:
            logger.debug("%s:close: Closing aiohttp ClientSession", self.lp)
            await self.http_session.close()
            self.http_session = None

    async def _check_session(self) -> aiohttp.ClientSession:
        if not self.http_session or self.http_session.closed:
            logger.debug("%s:_check_session: Creating new aiohttp ClientSession", self.lp)
            self.http_session = aiohttp.ClientSession()
            self._owns_session = True
        return self.http_session

    async def _put(self, target: LocalTransport, command: dict[str, object]) -> object:
        lp = f"{self.lp}:put:{target.ip}:"
        sesh = await self._check_session()
        body = serialize_body(command)
        url = f"http://{target.ip}/api"
        try:
            r = await sesh.put(
                url,
                params={"m": encode(body, target.password, target.crypto_serial)},
                data=body.encode("utf-8"),
                headers=KUMO_LOCAL_HEADERS,
                timeout=aiohttp.ClientTimeout(total=self.api_timeout),
            )
            r.raise_for_status()
            return cast("object", await r.json(content_type=None))
        except aiohttp.ClientResponseError as e:
            logger.warning("%s adapter returned HTTP %s", lp, e.status, extra={"status": e.status})
            raise TransportError("local", f"{target.ip} returned HTTP {e.status}", status=e.status) from e
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.warning("%s request failed: %s", lp, e, extra={"error_type": type(e).__name__})
            raise TransportError("local", f"{target.ip} unreachable: {e!r}") from e
        except json.JSONDecodeError as e:
            logger.warning("%s adapter returned invalid JSON", lp)
            raise TransportError("local", f"{target.ip} returned invalid JSON") from e

    @timed_async("kumo_local_query")
    async def query_status(self, target: LocalTransport) -> StatusDict:
        """Read the indoor unit status (``r.indoorUnit.status``)."""
        data = await self._put(target, {})
        try:
            status = cast("dict[str, dict[str, dict[str, object]]]", data)["r"]["indoorUnit"]["status"]
        except (KeyError, TypeError) as e:
            raise MalformedResponseError("local status", "missing r.indoorUnit.status") from e
        if not isinstance(status, dict):
            raise MalformedResponseError("local status", "r.indoorUnit.status is not an object")
        return cast("StatusDict", status)

    @timed_async("kumo_local_command")
    async def send_command(self, target: LocalTransport, command: dict[str, object]) -> None:
        _ = await self._put(target, command)
        logger.debug("%s:send_command: %s <- %s", self.lp, target.ip, command)
