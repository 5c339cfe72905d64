"""Core relay logic."""

from .activity_log import ActivityLog, LogRecord
from .dispatcher import ErrorKind, Failure, QueryDispatcher, QueryOutcome, Success
from .pacer import OutboundSegment, deliver, send_segments, split_text
from .router import ChannelMessage, EventRouter
from .trigger import TriggerResult, detect

__all__ = [
    "ActivityLog",
    "ChannelMessage",
    "ErrorKind",
    "EventRouter",
    "Failure",
    "LogRecord",
    "OutboundSegment",
    "QueryDispatcher",
    "QueryOutcome",
    "Success",
    "TriggerResult",
    "deliver",
    "detect",
    "send_segments",
    "split_text",
]
