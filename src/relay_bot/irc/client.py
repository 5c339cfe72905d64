"""IRC client for the relay bot connection."""

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import pydle

if TYPE_CHECKING:
    from relay_bot.core.router import EventRouter

logger = logging.getLogger(__name__)


class ConnectionLostError(ConnectionError):
    """The IRC connection dropped and every reconnect attempt failed."""


class BotClient(pydle.Client):
    """Single bot IRC client.

    pydle drives the connection loop as a background task and calls the
    on_* handlers below; the router does the actual work. An unexpected
    disconnect is retried with pydle's reconnect delays; run_forever()
    only returns once the session is over for good.
    """

    def __init__(
        self,
        nickname: str,
        router: "EventRouter",
        nickserv_password: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(nickname, **kwargs)
        self._router = router
        self._nickserv_password = nickserv_password
        self._ready = asyncio.Event()
        self._finished = asyncio.Event()
        self._connection_lost = False

    async def on_connect(self) -> None:
        """Handle successful connection."""
        # Resets pydle's reconnect attempt counter
        await super().on_connect()
        logger.info(f"[{self.nickname}] Connected to server")

        # Identify with NickServ if password provided
        if self._nickserv_password:
            await self.message("NickServ", f"IDENTIFY {self._nickserv_password}")
            # Give NickServ a moment
            await asyncio.sleep(1)

        await self._router.on_connect(self)
        self._ready.set()

    async def on_message(self, target: str, source: str, message: str) -> None:
        """Handle incoming channel/private messages."""
        try:
            await self._router.handle_message(self, source, target, message)
        except Exception:
            logger.exception(f"[{self.nickname}] Error handling message")

    async def send_message(self, target: str, content: str) -> None:
        """Send one line to a channel or nick."""
        await self._ready.wait()
        await self.message(target, content)
        logger.info(f"MSG_SENT: [{self.nickname}] -> {target}: {content}")

    async def wait_ready(self) -> None:
        """Wait until the client is connected and in the channel."""
        await self._ready.wait()

    async def on_disconnect(self, expected: bool) -> None:
        """Reconnect after an unexpected drop, or finish the session."""
        self._ready.clear()

        if expected:
            logger.info(f"[{self.nickname}] Disconnected")
            self._finished.set()
            return

        if self.RECONNECT_ON_ERROR and (
            self.RECONNECT_MAX_ATTEMPTS is None
            or self._reconnect_attempts < self.RECONNECT_MAX_ATTEMPTS
        ):
            logger.warning(
                f"[{self.nickname}] Connection lost, reconnect attempt "
                f"{self._reconnect_attempts + 1}"
            )
            try:
                await super().on_disconnect(expected)
            except (OSError, asyncio.TimeoutError) as e:
                logger.error(f"[{self.nickname}] Reconnect failed: {e}")
                await self.on_disconnect(False)
            return

        logger.error(
            f"[{self.nickname}] Connection lost, giving up after "
            f"{self._reconnect_attempts} reconnect attempts"
        )
        self._connection_lost = True
        self._finished.set()

    async def run_forever(self) -> None:
        """Run until the session ends.

        Returns after a requested disconnect. Raises ConnectionLostError once
        the connection has dropped and reconnecting has given up.
        """
        # pydle already runs handle_forever() as a background task
        await self._finished.wait()
        if self._connection_lost:
            raise ConnectionLostError(f"Lost connection as {self.nickname}")
