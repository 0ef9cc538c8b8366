"""
Tests for the Discord client's event handling and per-user ordering.
"""
import asyncio
import itertools
from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import discord
import pytest
import pytest_asyncio

from relaybot.core.bot import RelayBot
from relaybot.dispatch import DispatchState

BOT_ID = 99999
_message_ids = itertools.count(112233)


class MockUser:
    def __init__(self, id, bot=False):
        self.id = id
        self.bot = bot


class MockMessage:
    def __init__(self, content, author_id=12345, channel_type=discord.ChannelType.private, mentions=()):
        self.id = next(_message_ids)
        self.content = content
        self.author = MockUser(author_id)
        self.channel = MagicMock()
        self.channel.id = 456
        self.channel.type = channel_type
        self.mentions = list(mentions)
        self.attachments = []
        self.reply = AsyncMock()


@pytest.fixture
def dispatcher():
    dispatcher = MagicMock()
    dispatcher.handle = AsyncMock(return_value=DispatchState.DONE)
    return dispatcher


@pytest_asyncio.fixture
async def bot(dispatcher):
    bot = RelayBot(intents=discord.Intents.default(), dispatcher=dispatcher)
    with patch.object(RelayBot, "user", new_callable=PropertyMock, return_value=MockUser(BOT_ID, bot=True)):
        yield bot
    tasks = list(bot._user_processors.values())
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def _drain(bot, user_id="12345"):
    await asyncio.wait_for(bot._get_user_queue(user_id).join(), timeout=2)


@pytest.mark.asyncio
async def test_dm_is_dispatched(bot, dispatcher):
    await bot.on_message(MockMessage("Hello"))
    await _drain(bot)

    dispatcher.handle.assert_awaited_once()
    inbound, channel = dispatcher.handle.await_args.args
    assert inbound.content == "Hello"
    assert inbound.author_id == "12345"


@pytest.mark.asyncio
async def test_bot_authors_never_queued(bot, dispatcher):
    message = MockMessage("beep")
    message.author.bot = True

    await bot.on_message(message)

    assert bot._user_queues == {}
    dispatcher.handle.assert_not_called()


@pytest.mark.asyncio
async def test_unaddressed_guild_message_not_queued(bot, dispatcher):
    await bot.on_message(MockMessage("chatter", channel_type=discord.ChannelType.text))
    assert bot._user_queues == {}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "channel_type",
    [discord.ChannelType.public_thread, discord.ChannelType.private_thread, discord.ChannelType.voice],
)
async def test_unaddressed_thread_message_not_queued(bot, dispatcher, channel_type):
    await bot.on_message(MockMessage("chatter in a thread", channel_type=channel_type))
    assert bot._user_queues == {}
    dispatcher.handle.assert_not_called()


@pytest.mark.asyncio
async def test_addressed_guild_message_queued(bot, dispatcher):
    message = MockMessage(
        f"<@{BOT_ID}> hi", channel_type=discord.ChannelType.text, mentions=[MockUser(BOT_ID, bot=True)]
    )

    await bot.on_message(message)
    await _drain(bot)

    inbound, _ = dispatcher.handle.await_args.args
    assert inbound.addressed is True
    assert inbound.content == "hi"


@pytest.mark.asyncio
async def test_messages_from_one_user_processed_in_order(bot, dispatcher):
    seen = []
    active = 0

    async def handle(inbound, channel):
        nonlocal active
        active += 1
        assert active == 1
        await asyncio.sleep(0.01)
        seen.append(inbound.content)
        active -= 1
        return DispatchState.DONE

    dispatcher.handle.side_effect = handle

    for text in ("first", "second", "third"):
        await bot.on_message(MockMessage(text))
    await _drain(bot)

    assert seen == ["first", "second", "third"]


@pytest.mark.asyncio
async def test_failed_message_does_not_stop_processor(bot, dispatcher):
    dispatcher.handle.side_effect = [RuntimeError("boom"), DispatchState.DONE]

    await bot.on_message(MockMessage("one"))
    await bot.on_message(MockMessage("two"))
    await _drain(bot)

    assert dispatcher.handle.await_count == 2


@pytest.mark.asyncio
async def test_setup_hook_builds_dispatcher_from_config():
    bot = RelayBot(intents=discord.Intents.default(), config={"GEMINI_API_KEYS": ["k"]})
    built = MagicMock()
    with patch("relaybot.core.bot.MessageDispatcher.from_config", return_value=built) as from_config:
        await bot.setup_hook()
    from_config.assert_called_once_with({"GEMINI_API_KEYS": ["k"]})
    assert bot.dispatcher is built
