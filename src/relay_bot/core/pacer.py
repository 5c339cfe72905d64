"""Splitting and pacing of replies for IRC delivery."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from relay_bot.core.activity_log import normalize_line
from relay_bot.core.dispatcher import Failure, QueryOutcome

logger = logging.getLogger(__name__)

# IRC has a 512 byte limit per message including protocol overhead, and
# networks drop or penalize rapid-fire messages (flood control).
MAX_SEGMENT_LENGTH = 250
INTER_SEGMENT_DELAY = 3.0  # Seconds between consecutive segments


@dataclass(frozen=True)
class OutboundSegment:
    """One piece of a reply, sent after waiting `delay` seconds."""

    text: str
    delay: float = 0.0


def split_text(text: str, max_length: int = MAX_SEGMENT_LENGTH) -> list[str]:
    """Slice text into consecutive chunks of exactly max_length characters.

    The last chunk may be shorter. No attempt is made to split at word
    boundaries.
    """
    if max_length < 1:
        raise ValueError(f"max_length must be at least 1, got {max_length}")
    if len(text) <= max_length:
        return [text]
    return [text[i:i + max_length] for i in range(0, len(text), max_length)]


def deliver(
    outcome: QueryOutcome,
    max_segment_len: int = MAX_SEGMENT_LENGTH,
    inter_segment_delay: float = INTER_SEGMENT_DELAY,
) -> list[OutboundSegment]:
    """Plan the segments to send for a query outcome.

    Failures produce nothing (the dispatcher already logged them). A
    successful reply is flattened to a single line and sliced; every segment
    after the first waits `inter_segment_delay` seconds.
    """
    if isinstance(outcome, Failure):
        return []

    text = normalize_line(outcome.text)
    if not text:
        return []

    chunks = split_text(text, max_segment_len)
    return [
        OutboundSegment(text=chunk, delay=0.0 if i == 0 else inter_segment_delay)
        for i, chunk in enumerate(chunks)
    ]


async def send_segments(
    segments: Sequence[OutboundSegment],
    send: Callable[[str], Awaitable[None]],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Send segments in order, waiting each segment's delay first.

    Returns:
        Number of segments sent
    """
    sent = 0
    for segment in segments:
        if segment.delay > 0:
            await sleep(segment.delay)
        await send(segment.text)
        sent += 1
    if sent > 1:
        logger.debug(f"Delivered reply in {sent} segments")
    return sent
