"""Tests for RelayService wiring and the IRC client glue."""

import asyncio
import logging

import pydle.client
import pytest

from relay_bot.config import Config
from relay_bot.irc.client import BotClient, ConnectionLostError
from relay_bot.service import RelayService


class RecordingRouter:
    """Router double that records delegated calls."""

    def __init__(self, fail: bool = False):
        self.messages: list[tuple[str, str, str]] = []
        self.connects = 0
        self.fail = fail

    async def on_connect(self, session) -> None:
        self.connects += 1

    async def handle_message(self, session, sender: str, target: str, text: str) -> None:
        self.messages.append((sender, target, text))
        if self.fail:
            raise RuntimeError("boom")


class TestRelayService:
    """Tests for RelayService construction."""

    def test_components_share_config(self, full_config: Config):
        service = RelayService(full_config, nickname="asr3307")

        assert service.nickname == "asr3307"
        assert service.channel == "#test"
        assert service.router.channel == "#test"
        assert service.activity_log.path == full_config.relay.log_path
        assert service.dispatcher.model == "gpt-3.5-turbo"

    def test_nickname_from_seed(self, full_config: Config):
        service = RelayService(full_config)
        assert service.nickname.startswith("asr33")
        assert len(service.nickname) == len("asr33") + 2

    def test_channel_is_trimmed(self, full_config: Config):
        full_config.irc.channel = "  #test "
        assert RelayService(full_config).channel == "#test"

    def test_components_share_stats(self, full_config: Config):
        service = RelayService(full_config)
        assert service.activity_log.stats is service.stats
        assert service.dispatcher.stats is service.stats
        assert service.router.stats is service.stats

    @pytest.mark.asyncio
    async def test_close_without_start(self, full_config: Config):
        service = RelayService(full_config)
        await service.close()

    @pytest.mark.asyncio
    async def test_close_logs_final_stats(self, full_config: Config, caplog):
        service = RelayService(full_config)
        service.stats.increment("triggers", 4)

        with caplog.at_level(logging.INFO, logger="relay_bot.service"):
            await service.close()

        assert "SESSION_STATS (final):" in caplog.text
        assert "triggers=4" in caplog.text


class TestBotClient:
    """Tests for the pydle client's delegation to the router."""

    @pytest.mark.asyncio
    async def test_messages_go_to_router(self):
        router = RecordingRouter()
        client = BotClient(nickname="asr3342", router=router)

        await client.on_message("#test", "alice", "hello")

        assert router.messages == [("alice", "#test", "hello")]

    @pytest.mark.asyncio
    async def test_handler_errors_are_contained(self):
        router = RecordingRouter(fail=True)
        client = BotClient(nickname="asr3342", router=router)

        await client.on_message("#test", "alice", "hello")

        assert router.messages == [("alice", "#test", "hello")]

    @pytest.mark.asyncio
    async def test_service_creates_client(self, full_config: Config):
        service = RelayService(full_config)
        client = service.create_client()
        assert isinstance(client, BotClient)


class FakeReconnect:
    """Stands in for pydle's reconnect step (sleep, then connect again)."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0
        self.gate = asyncio.Event()

    async def __call__(self, client: BotClient, expected: bool) -> None:
        self.calls += 1
        client._reconnect_attempts += 1
        if self.fail:
            raise ConnectionRefusedError("connection refused")
        await self.gate.wait()


@pytest.fixture
def fake_reconnect(monkeypatch: pytest.MonkeyPatch) -> FakeReconnect:
    fake = FakeReconnect()

    async def on_disconnect(client, expected):
        await fake(client, expected)

    monkeypatch.setattr(pydle.client.BasicClient, "on_disconnect", on_disconnect)
    return fake


class TestBotClientLifecycle:
    """Tests for how long run_forever() lasts across disconnects."""

    @pytest.mark.asyncio
    async def test_on_connect_marks_ready_and_resets_attempts(self):
        router = RecordingRouter()
        client = BotClient(nickname="asr3342", router=router)
        client._reconnect_attempts = 2

        await client.on_connect()

        assert router.connects == 1
        assert client._reconnect_attempts == 0
        await asyncio.wait_for(client.wait_ready(), timeout=1)

    @pytest.mark.asyncio
    async def test_keeps_running_while_reconnecting(self, fake_reconnect: FakeReconnect):
        client = BotClient(nickname="asr3342", router=RecordingRouter())
        run = asyncio.create_task(client.run_forever())

        reconnect = asyncio.create_task(client.on_disconnect(False))
        await asyncio.sleep(0.05)
        assert fake_reconnect.calls == 1
        assert not run.done()

        fake_reconnect.gate.set()
        await reconnect
        await asyncio.sleep(0.05)
        assert not run.done()

        await client.on_disconnect(True)
        await asyncio.wait_for(run, timeout=1)

    @pytest.mark.asyncio
    async def test_requested_disconnect_returns(self):
        client = BotClient(nickname="asr3342", router=RecordingRouter())
        run = asyncio.create_task(client.run_forever())

        await client.on_disconnect(True)

        assert await asyncio.wait_for(run, timeout=1) is None

    @pytest.mark.asyncio
    async def test_gives_up_after_failed_reconnects(self, fake_reconnect: FakeReconnect):
        fake_reconnect.fail = True
        client = BotClient(nickname="asr3342", router=RecordingRouter())

        await client.on_disconnect(False)

        assert fake_reconnect.calls == client.RECONNECT_MAX_ATTEMPTS
        with pytest.raises(ConnectionLostError):
            await asyncio.wait_for(client.run_forever(), timeout=1)

    @pytest.mark.asyncio
    async def test_no_attempts_left(self, fake_reconnect: FakeReconnect):
        client = BotClient(nickname="asr3342", router=RecordingRouter())
        client._reconnect_attempts = client.RECONNECT_MAX_ATTEMPTS

        await client.on_disconnect(False)

        assert fake_reconnect.calls == 0
        with pytest.raises(ConnectionLostError):
            await asyncio.wait_for(client.run_forever(), timeout=1)
