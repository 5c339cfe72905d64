"""Pytest configuration and fixtures."""

import inspect
import json
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from relay_bot.config import Config, IRCConfig, LLMConfig, RelayConfig
from relay_bot.core.logging import SessionStats


@pytest.fixture
def stats() -> SessionStats:
    """Counters shared by the components under test."""
    return SessionStats()


@pytest.fixture
def default_config() -> Config:
    """Provide a default configuration for testing."""
    return Config()


@pytest.fixture
def bot_nick() -> str:
    """Standard bot nickname for testing."""
    return "asr3342"


@pytest.fixture
def full_config(tmp_path: Path) -> Config:
    """A configuration with every required field set."""
    return Config(
        irc=IRCConfig(
            server="irc.test.net",
            nick="asr33",
            server_password="hunter2",
            channel="#test",
        ),
        llm=LLMConfig(api_key="sk-test"),
        relay=RelayConfig(log_path=tmp_path / "activity.log"),
    )


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_content = """
irc:
  server: "test.irc.net"
  port: 6667
  ssl: false
  nick: "yamlbot"
  channel: "#yaml"

llm:
  model: "gpt-4o-mini"
  timeout_seconds: 5

relay:
  max_segment_len: 100
  inter_segment_delay: 1.5
"""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(config_content)
    return config_path


class FakeSession:
    """Stand-in for the IRC session that records what it sends."""

    def __init__(self, nickname: str):
        self.nickname = nickname
        self.sent: list[tuple[str, str]] = []
        self.joined: list[str] = []

    async def send_message(self, target: str, content: str) -> None:
        self.sent.append((target, content))

    async def join(self, channel: str) -> None:
        self.joined.append(channel)


@pytest.fixture
def fake_session(bot_nick: str) -> FakeSession:
    return FakeSession(bot_nick)


class RecordingSleep:
    """Replacement for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@asynccontextmanager
async def upstream_server(
    respond: Callable[[dict], Any] | None = None,
) -> AsyncIterator[tuple[str, list[dict]]]:
    """Run a local chat completion endpoint.

    `respond` maps the request body to a response and may be a coroutine
    function. Yields the endpoint URL and a list collecting each request as
    {"headers": ..., "body": ...}.
    """
    requests: list[dict] = []

    async def handler(request: web.Request) -> web.StreamResponse:
        raw = await request.text()
        body = json.loads(raw)
        requests.append({"headers": dict(request.headers), "body": body})
        if respond is None:
            return web.json_response(
                {"choices": [{"message": {"role": "assistant", "content": "pong"}}]}
            )
        response = respond(body)
        if inspect.isawaitable(response):
            response = await response
        return response

    app = web.Application()
    app.router.add_post("/v1/chat/completions", handler)

    async with TestServer(app) as server:
        yield str(server.make_url("/v1/chat/completions")), requests


@pytest.fixture
def make_upstream():
    """Factory for local chat completion endpoints (see upstream_server)."""
    return upstream_server
