"""The relay service context tying all components together."""

import logging

from relay_bot.config import Config, build_nickname
from relay_bot.core import ActivityLog, EventRouter, QueryDispatcher
from relay_bot.core.logging import SessionStats
from relay_bot.irc.client import BotClient

logger = logging.getLogger(__name__)


class RelayService:
    """Owns every component of one relay: one session, one channel.

    Constructed once at startup and shared by reference; there is no other
    process-wide state.
    """

    def __init__(self, config: Config, nickname: str | None = None):
        """Initialize the service with all components.

        Args:
            config: Validated application configuration
            nickname: Display name to use; built from the nick seed if None
        """
        self._config = config
        self.channel = config.irc.channel.strip()
        self.nickname = nickname or build_nickname(config.irc)

        api_key = config.llm.api_key.get_secret_value() if config.llm.api_key else ""

        self.stats = SessionStats()
        self.activity_log = ActivityLog(config.relay.log_path, stats=self.stats)
        self.dispatcher = QueryDispatcher(
            api_key=api_key,
            endpoint=config.llm.endpoint,
            model=config.llm.model,
            timeout_seconds=config.llm.timeout_seconds,
            stats=self.stats,
        )
        self.router = EventRouter(
            channel=self.channel,
            activity_log=self.activity_log,
            dispatcher=self.dispatcher,
            max_segment_len=config.relay.max_segment_len,
            inter_segment_delay=config.relay.inter_segment_delay,
            stats=self.stats,
        )

        self._client: BotClient | None = None

        logger.info("RelayService initialized")

    def create_client(self) -> BotClient:
        """Create the IRC session bound to this service's router."""
        irc_cfg = self._config.irc
        nickserv = (
            irc_cfg.nickserv_password.get_secret_value()
            if irc_cfg.nickserv_password
            else None
        )
        return BotClient(
            nickname=self.nickname,
            router=self.router,
            nickserv_password=nickserv,
        )

    async def start(self) -> None:
        """Connect to IRC and relay until the connection ends."""
        irc_cfg = self._config.irc
        password = (
            irc_cfg.server_password.get_secret_value()
            if irc_cfg.server_password
            else None
        )

        self._client = self.create_client()

        logger.info(f"Connecting to {irc_cfg.server}:{irc_cfg.port} as {self.nickname}...")
        await self._client.connect(
            hostname=irc_cfg.server,
            port=irc_cfg.port,
            password=password,
            tls=irc_cfg.ssl,
        )
        await self._client.wait_ready()

        logger.info("Connected! Running forever...")
        await self._client.run_forever()

    async def close(self) -> None:
        """Disconnect, release the HTTP session and log the final counters."""
        if self._client is not None and self._client.connected:
            await self._client.disconnect(expected=True)
        await self.dispatcher.close()
        logger.info(f"SESSION_STATS (final): {self.stats.summary_line()}")
