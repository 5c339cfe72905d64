"""Routing of inbound IRC messages through the relay pipeline."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from relay_bot.core.activity_log import ActivityLog
from relay_bot.core.dispatcher import Failure, QueryDispatcher
from relay_bot.core.logging import SessionStats
from relay_bot.core.pacer import INTER_SEGMENT_DELAY, MAX_SEGMENT_LENGTH, deliver, send_segments
from relay_bot.core.trigger import detect

logger = logging.getLogger(__name__)

CHANNEL_PREFIXES = ("#", "&", "+", "!")

# How often to log session stats (every N messages)
STATS_LOG_INTERVAL = 50


def normalize_target(target: str) -> str:
    """Normalize a channel or nick for comparison."""
    return target.strip().lower()


@dataclass(frozen=True)
class ChannelMessage:
    """An inbound PRIVMSG as seen by the bot."""

    sender: str
    target: str
    text: str
    received_at: datetime = field(default_factory=lambda: datetime.now().astimezone())

    @property
    def is_private(self) -> bool:
        """True for direct messages to the bot rather than a channel."""
        return not self.target.startswith(CHANNEL_PREFIXES)

    def __str__(self) -> str:
        return f"[{self.target}] <{self.sender}> {self.text}"


class Session(Protocol):
    """The parts of the IRC session the router uses."""

    @property
    def nickname(self) -> str: ...

    async def send_message(self, target: str, content: str) -> None: ...


class Joinable(Session, Protocol):
    """A session that can join channels."""

    async def join(self, channel: str) -> None: ...


class EventRouter:
    """Routes inbound messages: log, detect address, query, reply.

    Messages are handled one at a time in arrival order. An upstream call
    or reply pacing delay holds up the following messages.
    """

    def __init__(
        self,
        channel: str,
        activity_log: ActivityLog,
        dispatcher: QueryDispatcher,
        max_segment_len: int = MAX_SEGMENT_LENGTH,
        inter_segment_delay: float = INTER_SEGMENT_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        stats: SessionStats | None = None,
    ):
        self.channel = channel.strip()
        self._activity_log = activity_log
        self._dispatcher = dispatcher
        self._max_segment_len = max_segment_len
        self._inter_segment_delay = inter_segment_delay
        self._sleep = sleep
        self.stats = stats or SessionStats()
        self._lock = asyncio.Lock()

    def is_watched_channel(self, target: str) -> bool:
        return normalize_target(target) == normalize_target(self.channel)

    def reply_target(self, message: ChannelMessage) -> str:
        """Where to send the answer to an addressed message."""
        if message.is_private:
            return message.sender
        return message.target

    async def on_connect(self, session: Joinable) -> None:
        """Join the watched channel once the session is up."""
        await session.join(self.channel)
        logger.info(f"[{session.nickname}] Joined {self.channel}")

    async def handle_message(
        self, session: Session, sender: str, target: str, text: str
    ) -> None:
        """Handle one inbound message."""
        async with self._lock:
            await self._handle(session, ChannelMessage(sender=sender, target=target, text=text))

    async def _handle(self, session: Session, message: ChannelMessage) -> None:
        own_nick = session.nickname
        if normalize_target(message.sender) == normalize_target(own_nick):
            return

        logger.info(f"MSG_RECEIVED: {message}")

        stats = self.stats
        if stats.increment("received") % STATS_LOG_INTERVAL == 0:
            logger.info(f"SESSION_STATS: {stats.summary_line()}")

        if self.is_watched_channel(message.target):
            self._activity_log.append(message.sender, message.text)

        trigger = detect(own_nick, message.text)
        if not trigger.is_addressed:
            return

        if not trigger.payload:
            logger.debug(f"TRIGGER: empty payload from {message.sender}, ignoring")
            return

        stats.increment("triggers")
        logger.info(f"TRIGGER: {message.sender} asked: {trigger.payload}")

        outcome = await self._dispatcher.ask(trigger.payload)

        if isinstance(outcome, Failure):
            # Already logged by the dispatcher
            logger.debug(f"TRIGGER: no reply for {message.sender}: {outcome}")
            return

        segments = deliver(outcome, self._max_segment_len, self._inter_segment_delay)
        target = self.reply_target(message)

        async def send(text: str) -> None:
            await session.send_message(target, text)
            stats.increment("segments_sent")

        await send_segments(segments, send, sleep=self._sleep)
