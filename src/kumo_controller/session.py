"""Cloud session ownership: the single security token and its expiry timer."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

from kumo_controller.cloud_api import KumoCloudAPI, LoginResult
from kumo_controller.const import KUMO_TOKEN_FALLBACK_DELAY
from kumo_controller.correlation import correlation_context
from kumo_controller.exceptions import AuthError, KumoError
from kumo_controller.logging_abstraction import get_logger
from kumo_controller.structs import Credentials, SecurityToken

logger = get_logger(__name__)

__all__ = ["ExpiryCallback", "SessionManager"]

ExpiryCallback = Callable[[], Awaitable[object]]


class SessionManager:
    """Holds the current SecurityToken and re-arms a refresh timer after every login attempt.

    The manager is the token's only writer. A successful login replaces the
    token wholesale; a failed one leaves the previous token in place. The timer
    fires at the token's expiry, or after KUMO_TOKEN_FALLBACK_DELAY seconds when
    there is no usable token, and runs the registered expiry callback (a full
    discovery pass in the client). Without a callback it simply logs in again.
    """

    lp: str = "SessionManager"

    def __init__(
        self,
        cloud_api: KumoCloudAPI,
        credentials: Credentials | None = None,
        fallback_delay: float = KUMO_TOKEN_FALLBACK_DELAY,
    ) -> None:
        self.cloud_api: KumoCloudAPI = cloud_api
        self.credentials: Credentials | None = credentials
        self.fallback_delay: float = fallback_delay
        self.token: SecurityToken | None = None
        self.next_refresh_delay: float | None = None
        self._on_expiry: ExpiryCallback | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._stopped: bool = False

    @property
    def token_id(self) -> str | None:
        return self.token.token_id if self.token else None

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def has_credentials(self) -> bool:
        return bool(self.credentials and self.credentials.username and self.credentials.password)

    def set_expiry_callback(self, callback: ExpiryCallback | None) -> None:
        self._on_expiry = callback

    async def acquire_session(self, credentials: Credentials | None = None) -> LoginResult:
        """Log in, store the new token and re-arm the expiry timer.

        Raises:
            AuthError: credentials missing or rejected, or login unreachable.
            MalformedResponseError: login response without a token.

        """
        lp = f"{self.lp}:acquire_session:"
        if credentials is not None:
            self.credentials = credentials
        if not self.has_credentials:
            raise AuthError("missing_credentials")

        self._cancel_timer()
        try:
            result = await self.cloud_api.login(self.credentials)
            self.token = result.token
        except KumoError as e:
            if self.token is not None:
                logger.warning("%s Login failed, keeping previous token: %s", lp, e)
            raise
        finally:
            self._arm_timer()
        return result

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm_timer(self) -> None:
        if self._stopped:
            return
        remaining = self.token.seconds_remaining() if self.token else 0.0
        delay = remaining if remaining > 0 else self.fallback_delay
        self.next_refresh_delay = delay
        self._timer = asyncio.get_running_loop().call_later(delay, self._on_timer)
        logger.debug("%s Token refresh scheduled in %.1fs", self.lp, delay)

    def _on_timer(self) -> None:
        self._timer = None
        self._refresh_task = asyncio.create_task(self._run_expiry(), name="kumo-session-refresh")

    async def _run_expiry(self) -> None:
        lp = f"{self.lp}:refresh:"
        with correlation_context("refresh", fresh=True):
            logger.info("%s Session token expiring, refreshing", lp)
            try:
                if self._on_expiry is not None:
                    _ = await self._on_expiry()
                else:
                    _ = await self.acquire_session()
            except KumoError as e:
                logger.warning("%s Token refresh failed: %s", lp, e, extra={"error_type": type(e).__name__})
            except Exception:
                logger.exception("%s Unexpected error during token refresh", lp)
            finally:
                # The callback may fail before ever reaching acquire_session()
                if self._timer is None and not self._stopped:
                    self._arm_timer()

    def start(self) -> None:
        """Allow logins to arm the expiry timer again after a stop()."""
        self._stopped = False

    async def stop(self) -> None:
        """Cancel the pending timer and any timer-driven refresh in flight."""
        self._stopped = True
        self._cancel_timer()
        task = self._refresh_task
        self._refresh_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            _ = task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
