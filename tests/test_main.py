import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from levelcord import main


def test_resolve_base_dir_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("LEVELCORD_HOME", str(tmp_path))

    assert main.resolve_base_dir() == tmp_path.resolve()


def test_resolve_base_dir_compiled(tmp_path, monkeypatch):
    monkeypatch.delenv("LEVELCORD_HOME", raising=False)
    monkeypatch.setattr(sys, "frozen", True, raising=False)
    monkeypatch.setattr(sys, "argv", [str(tmp_path / "levelcord.exe")])

    assert main.resolve_base_dir() == tmp_path.resolve()


def test_resolve_base_dir_source(monkeypatch):
    monkeypatch.delenv("LEVELCORD_HOME", raising=False)
    monkeypatch.setattr(sys, "frozen", False, raising=False)
    monkeypatch.setattr(sys, "compiled", False, raising=False)

    assert main.resolve_base_dir() == main.Path(main.__file__).resolve().parents[2]


def test_load_environment_requires_token(monkeypatch):
    monkeypatch.setattr(main, "load_dotenv", lambda **kwargs: None)
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)

    with pytest.raises(SystemExit):
        main.load_environment()

    monkeypatch.setenv("DISCORD_BOT_TOKEN", "token-123")
    assert main.load_environment() == "token-123"


def test_build_intents_enables_members():
    intents = main.build_intents()

    assert intents.members
    assert intents.guilds
    assert intents.messages


def test_load_cogs_registers_all_cogs():
    added = []
    bot = SimpleNamespace(add_cog=added.append)

    main.load_cogs(bot, MagicMock())

    assert [type(cog).__name__ for cog in added] == [
        "EventsListenerCog",
        "MessageListenerCog",
        "LevelCog",
        "LevelAdminCog",
    ]


@pytest.mark.asyncio
async def test_shutdown_runtime_closes_everything_in_order():
    calls = []
    bot = MagicMock()
    bot.is_closed.return_value = False
    bot.close = AsyncMock(side_effect=lambda: calls.append("bot"))
    service = MagicMock()
    service.shutdown = AsyncMock(side_effect=lambda: calls.append("service"))
    store = MagicMock()
    store.close = AsyncMock(side_effect=lambda: calls.append("store"))

    await main.shutdown_runtime(bot, service, store)

    assert calls == ["bot", "service", "store"]


@pytest.mark.asyncio
async def test_shutdown_runtime_continues_after_errors():
    service = MagicMock()
    service.shutdown = AsyncMock(side_effect=RuntimeError("flush failed"))
    store = MagicMock()
    store.close = AsyncMock()

    await main.shutdown_runtime(None, service, store)

    store.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_async_main_fails_when_database_cannot_open(monkeypatch):
    monkeypatch.setattr(main, "load_environment", lambda: "token")
    failing_store = MagicMock()
    failing_store.initialize = AsyncMock(side_effect=RuntimeError("read-only filesystem"))
    monkeypatch.setattr(main, "RecordStore", lambda: failing_store)

    assert await main.async_main() == 1
