import asyncio
import enum
import logging
from typing import Optional

from .auth import MALPKCEAuth
from .errors import AuthenticationError
from .token_manager import TokenManager

logger = logging.getLogger(__name__)


class RefreshState(enum.Enum):
    DIRECT = "direct"
    REFRESHED = "refreshed"


class RefreshCoordinator:
    """Makes sure an access token exists before a call goes out.

    Concurrent callers that all find the access token missing share one
    refresh exchange instead of each starting their own.
    """

    def __init__(self, token_manager: TokenManager, auth: MALPKCEAuth, *, auto_refresh: bool = False):
        self.token_manager = token_manager
        self.auth = auth
        self.auto_refresh = auto_refresh
        self._inflight: Optional["asyncio.Future[None]"] = None

    async def preflight(self) -> RefreshState:
        if self.token_manager.access_token:
            return RefreshState.DIRECT

        if not self.auto_refresh:
            raise AuthenticationError(
                "access token must be set to use this function while auto refresh is turned off"
            )
        if not self.token_manager.refresh_token:
            raise AuthenticationError("access token and/or refresh token must be set to use this function")

        logger.debug("No access token; refreshing before request")
        await self._refresh_once()
        return RefreshState.REFRESHED

    async def _refresh_once(self) -> None:
        task = self._inflight
        if task is None or task.done():
            task = asyncio.ensure_future(self._run_refresh())
            self._inflight = task
        else:
            logger.debug("Joining refresh already in flight")
        # A cancelled waiter must not cancel the refresh other callers await.
        await asyncio.shield(task)

    async def _run_refresh(self) -> None:
        try:
            await self.auth.exchange_refresh_token()
        finally:
            self._inflight = None
