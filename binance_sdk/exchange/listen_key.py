"""
User data stream session (listen key) management.

Opens a listen key, keeps it alive on a timer, rotates it before the
exchange expires it (moving a live user data socket onto the new key), and
closes it on shutdown.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional

from .connection_registry import ConnectionRegistry
from .events import StatusEventBus
from .exceptions import ExchangeAPIError, ExchangeError, MissingCredentialsError
from .exchange_config import ClientConfig
from .models import (
    APIResponse,
    ListenKeyResponse,
    SessionToken,
    StatusCategory,
    StreamIdentity
)
from .rest_client import SignedRequestExecutor
from ..utils.logger import get_logger, log_system_event, EventType
from ..utils.timer import RecurringTimer

logger = get_logger(__name__)

def _short(listen_key: Optional[str]) -> str:
    return (listen_key[:8] + "...") if listen_key else ""


class SessionKeyManager:
    """
    Owns the single listen key of a client instance.

    ensure_started, rotate, stop and the keep-alive callback run under one
    lock so two "open a new key" sequences never overlap. Failures are
    published as status events; only misuse (missing API key) raises.
    """

    def __init__(
        self,
        executor: SignedRequestExecutor,
        registry: ConnectionRegistry,
        events: StatusEventBus,
        config: Optional[ClientConfig] = None
    ):
        """
        Initialize session manager.

        Args:
            executor: Request executor for the user data stream endpoints
            registry: Registry of open sockets (closed on stop and rotation)
            events: Status event channel
            config: Client configuration (timer intervals, stream base URL)
        """
        self.executor = executor
        self.registry = registry
        self.events = events
        self.config = config or executor.config

        self._token: Optional[SessionToken] = None
        self._lock = asyncio.Lock()
        self._user_stream_reopener: Optional[Callable[[], Awaitable[bool]]] = None

        self._keep_alive_timer = RecurringTimer("listen_key_keep_alive", self.config.keep_alive_interval, self._keep_alive)
        self._rotation_timer = RecurringTimer("listen_key_rotation", self.config.reset_interval, self.rotate)

    # ========================================================================
    # State
    # ========================================================================

    @property
    def is_active(self) -> bool:
        return self._token is not None and self._token.is_active

    @property
    def token(self) -> Optional[SessionToken]:
        return self._token

    @property
    def listen_key(self) -> Optional[str]:
        return self._token.listen_key if self.is_active else None

    @property
    def user_data_url(self) -> Optional[str]:
        """URL of the user data stream for the current key, or None without a key."""
        if not self.is_active:
            return None
        return self.config.stream_url(StreamIdentity.user_data().path(self.listen_key))

    @property
    def keep_alive_armed(self) -> bool:
        return self._keep_alive_timer.is_armed

    @property
    def rotation_armed(self) -> bool:
        return self._rotation_timer.is_armed

    def set_user_stream_reopener(self, reopener: Callable[[], Awaitable[bool]]) -> None:
        """Register the coroutine that reopens the user data socket after rotation."""
        self._user_stream_reopener = reopener

    async def _emit(self, message: str, category: StatusCategory = StatusCategory.CONNECTION_STATUS) -> None:
        await self.events.emit(message, category, self.is_active)

    async def _emit_error(self, result: APIResponse) -> None:
        await self._emit(f"!ERROR! {result.code} - {result.msg}", StatusCategory.CONNECTION_STATUS_ERROR)

    # ========================================================================
    # Public operations
    # ========================================================================

    async def ensure_started(self) -> bool:
        """
        Make sure a listen key is active, opening one if needed.

        Returns:
            True if a key is active afterwards

        Raises:
            MissingCredentialsError: If no API key is configured
        """
        if not self.executor.has_api_key:
            raise MissingCredentialsError("API key is not set; cannot open a user data stream")

        async with self._lock:
            if self.is_active:
                return True

            if not await self._open():
                return False

        await self._emit("User data stream STARTED.")
        return True

    async def stop(self) -> None:
        """Cancel all connections, close the key (best effort), disarm timers."""
        async with self._lock:
            await self._stop_locked()

    async def close(self) -> APIResponse:
        """Close the current listen key on the server. Timers and registry are left alone."""
        if self._token is None:
            return APIResponse()

        listen_key = self._token.listen_key
        try:
            await self.executor.key_authenticated_call("stream_close", listenKey=listen_key)
        except ExchangeAPIError as e:
            return APIResponse(code=e.error_code, msg=e.reason)
        except ExchangeError as e:
            return APIResponse(msg=str(e))

        log_system_event(logger, EventType.LISTEN_KEY_CLOSED, "Listen key closed", listen_key=_short(listen_key))
        return APIResponse()

    async def rotate(self) -> None:
        """
        Replace the listen key, moving a live user data socket onto the new one.

        Steps run strictly in order: disarm keep-alive, snapshot and quietly
        close the user data socket, close the old key, open a new key, re-arm
        keep-alive, reopen the socket if it existed, announce the new key.
        """
        async with self._lock:
            if not self.is_active:
                logger.debug("Rotation skipped, no active listen key")
                return

            logger.info("Max session length reached, resetting listen key", listen_key=_short(self.listen_key))

            await self._keep_alive_timer.disarm()

            # Snapshot: reopen only if the socket existed when rotation began
            reopen_user_stream = self.registry.request_close(self.user_data_url, quiet=True)

            close_result = await self.close()
            if close_result.has_errors:
                await self._emit_error(close_result)
            self._token = None

            if not await self._open():
                # No active key remains; the next stream open retries ensure_started
                await self._keep_alive_timer.disarm()
                await self._rotation_timer.disarm()
                return

            new_key = self.listen_key

        if reopen_user_stream and self._user_stream_reopener is not None:
            await self._user_stream_reopener()

        log_system_event(logger, EventType.LISTEN_KEY_ROTATED, "Listen key rotated", listen_key=_short(new_key))
        await self._emit(f"New listen key received. ({new_key})")

    # ========================================================================
    # Internals (caller holds the lock)
    # ========================================================================

    async def _open(self) -> bool:
        """Request a new key, store it and arm both timers."""
        try:
            listen_key = await self.executor.key_authenticated_call("stream_get_listen_key")
            if listen_key:
                result = ListenKeyResponse(listen_key=listen_key)
            else:
                result = ListenKeyResponse(msg="Response did not contain a listenKey")
        except MissingCredentialsError:
            raise
        except ExchangeAPIError as e:
            result = ListenKeyResponse(code=e.error_code, msg=e.reason)
        except ExchangeError as e:
            result = ListenKeyResponse(msg=str(e))

        if result.has_errors:
            logger.error("Failed to open listen key", code=result.code, error=result.msg)
            await self._emit_error(result)
            return False

        self._token = SessionToken(listen_key=result.listen_key, created_at=datetime.utcnow())
        self._keep_alive_timer.arm()
        self._rotation_timer.arm()

        log_system_event(logger, EventType.LISTEN_KEY_OPENED, "Listen key obtained", listen_key=_short(result.listen_key))
        return True

    async def _stop_locked(self) -> None:
        cancelled = self.registry.request_close_all()

        if self._token is not None:
            result = await self.close()
            if result.has_errors:
                await self._emit_error(result)

        await self._keep_alive_timer.disarm()
        await self._rotation_timer.disarm()
        self._token = None

        log_system_event(logger, EventType.SHUTDOWN, "User data stream terminated", connections_cancelled=cancelled)
        await self._emit("User data stream terminated.")

    async def _keep_alive(self) -> None:
        async with self._lock:
            if not self.is_active:
                return

            listen_key = self._token.listen_key
            try:
                await self.executor.key_authenticated_call("stream_keepalive", listenKey=listen_key)
            except ExchangeAPIError as e:
                await self._emit_error(APIResponse(code=e.error_code, msg=e.reason))
                await self._stop_locked()
                return
            except ExchangeError as e:
                # Transport failure: report and let the next tick try again
                logger.warning("Listen key keep-alive failed", error=str(e))
                await self._emit_error(APIResponse(msg=str(e)))
                return

            self._token.last_keep_alive = datetime.utcnow()
            log_system_event(logger, EventType.LISTEN_KEY_REFRESHED, "Listen key refreshed", listen_key=_short(listen_key))

        await self._emit("Keep alive.")
