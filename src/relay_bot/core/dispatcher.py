"""Query dispatch to an OpenAI-compatible chat completion endpoint."""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum, auto

import aiohttp
from pydantic import BaseModel, ValidationError

from relay_bot.core.logging import SessionStats, log_upstream_request, log_upstream_response

logger = logging.getLogger(__name__)

INSTRUCTION_PREFIX = (
    "Answer in plain text only, with no markdown, markup or formatting. "
    "Keep the whole answer under 250 characters and be as concise as possible"
)

NO_RESPONSE_TEXT = "No response received."


class ErrorKind(Enum):
    """Why a query failed."""

    TRANSPORT = auto()  # Network failure or timeout reaching the service
    PROTOCOL = auto()  # Response body was not the expected shape
    UPSTREAM = auto()  # Service returned a structured error


@dataclass(frozen=True)
class Success:
    """Query answered with text."""

    text: str


@dataclass(frozen=True)
class Failure:
    """Query failed; the channel gets no reply."""

    reason: ErrorKind
    detail: str

    def __str__(self) -> str:
        return f"{self.reason.name}: {self.detail}"


QueryOutcome = Success | Failure


class ChatMessage(BaseModel):
    """A single chat message in a request or response."""

    role: str = "assistant"
    content: str | None = None


class Choice(BaseModel):
    """One completion choice."""

    message: ChatMessage


class APIError(BaseModel):
    """Structured error payload returned by the service."""

    message: str = ""
    type: str | None = None
    param: str | None = None
    code: str | int | None = None


class ChatCompletionResponse(BaseModel):
    """The parts of a chat completion response that we read."""

    choices: list[Choice] | None = None
    error: APIError | None = None


def build_request(model: str, payload: str) -> dict:
    """Build the single-turn request body for a payload."""
    return {
        "model": model,
        "messages": [
            {"role": "user", "content": f"{INSTRUCTION_PREFIX}: {payload}"},
        ],
    }


def parse_response(body: str) -> QueryOutcome:
    """Map a raw response body to a query outcome."""
    try:
        parsed = ChatCompletionResponse.model_validate_json(body)
    except ValidationError:
        return Failure(ErrorKind.PROTOCOL, body)

    if parsed.error is not None:
        return Failure(ErrorKind.UPSTREAM, parsed.error.message)

    if not parsed.choices:
        return Success(NO_RESPONSE_TEXT)

    return Success(parsed.choices[0].message.content or "")


class QueryDispatcher:
    """Sends payloads to the text-generation service.

    One request per call, no retries. Every failure is logged and returned
    as a Failure outcome; nothing is raised to the caller.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str = "https://api.openai.com/v1/chat/completions",
        model: str = "gpt-3.5-turbo",
        timeout_seconds: float = 30.0,
        stats: SessionStats | None = None,
    ):
        self._api_key = api_key
        self._endpoint = endpoint
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._session: aiohttp.ClientSession | None = None
        self.stats = stats or SessionStats()

    @property
    def model(self) -> str:
        return self._model

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def ask(self, payload: str) -> QueryOutcome:
        """Ask the service about a payload.

        Args:
            payload: Text the user addressed to the bot

        Returns:
            Success with the reply text, or Failure with the error kind
        """
        request = build_request(self._model, payload)

        log_upstream_request(self._endpoint, request)

        stats = self.stats
        stats.count_api_call(self._model)
        started = time.monotonic()

        try:
            session = await self._get_session()
            async with session.post(
                self._endpoint, json=request, headers=self._headers()
            ) as response:
                status = response.status
                body = await response.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            detail = str(e) or type(e).__name__
            logger.error(f"QUERY: transport failure calling {self._endpoint}: {detail}")
            stats.increment("queries_failed")
            return Failure(ErrorKind.TRANSPORT, detail)

        log_upstream_response(status, body)
        elapsed = time.monotonic() - started

        outcome = parse_response(body)
        if isinstance(outcome, Failure):
            if outcome.reason == ErrorKind.PROTOCOL:
                logger.error(f"QUERY: unexpected response (HTTP {status}): {body}")
            else:
                logger.error(f"QUERY: upstream error (HTTP {status}): {outcome.detail}")
            stats.increment("queries_failed")
            return outcome

        preview = outcome.text[:80] + "..." if len(outcome.text) > 80 else outcome.text
        logger.info(f"QUERY: model={self._model} HTTP {status} in {elapsed:.2f}s -> {preview!r}")
        stats.increment("queries_ok")
        return outcome
