"""Tests for per-chat ordered update processing."""

import asyncio
from datetime import datetime, timezone

import pytest
from telegram import Chat, Message, Update

from app.bot.processor import ChatOrderedUpdateProcessor


def _update(update_id: int, chat_id: int) -> Update:
    message = Message(
        message_id=update_id,
        date=datetime.now(timezone.utc),
        chat=Chat(id=chat_id, type=Chat.PRIVATE),
    )
    return Update(update_id=update_id, message=message)


class TestChatOrderedUpdateProcessor:
    """Test ordering and concurrency guarantees."""

    def test_chat_key(self):
        assert ChatOrderedUpdateProcessor.chat_key(_update(1, 42)) == 42
        assert ChatOrderedUpdateProcessor.chat_key(Update(update_id=2)) is None
        assert ChatOrderedUpdateProcessor.chat_key("not an update") is None

    @pytest.mark.asyncio
    async def test_same_chat_serialized_other_chats_concurrent(self):
        """Test a chat's second update waits while another chat proceeds."""
        processor = ChatOrderedUpdateProcessor(max_concurrent_updates=8)
        await processor.initialize()

        order: list[str] = []
        gate = asyncio.Event()

        async def slow_first():
            order.append("a-start")
            await gate.wait()
            order.append("a-end")

        async def second():
            order.append("b")

        async def other_chat():
            order.append("c")

        tasks = [
            asyncio.create_task(processor.process_update(_update(1, 100), slow_first())),
            asyncio.create_task(processor.process_update(_update(2, 100), second())),
            asyncio.create_task(processor.process_update(_update(3, 200), other_chat())),
        ]
        await asyncio.sleep(0.05)

        assert order == ["a-start", "c"]
        assert processor.pending_chats == 1

        gate.set()
        await asyncio.gather(*tasks)

        assert order == ["a-start", "c", "a-end", "b"]
        assert processor.pending_chats == 0

    @pytest.mark.asyncio
    async def test_failure_does_not_block_chat(self):
        """Test a failing handler releases the chat for the next update."""
        processor = ChatOrderedUpdateProcessor(max_concurrent_updates=8)
        await processor.initialize()
        handled: list[int] = []

        async def failing():
            raise RuntimeError("handler failed")

        async def succeeding():
            handled.append(2)

        first = asyncio.create_task(processor.process_update(_update(1, 100), failing()))
        second = asyncio.create_task(processor.process_update(_update(2, 100), succeeding()))

        with pytest.raises(RuntimeError):
            await first
        await second

        assert handled == [2]
        assert processor.pending_chats == 0

    @pytest.mark.asyncio
    async def test_arrival_order_kept(self):
        """Test many updates of one chat complete in arrival order."""
        processor = ChatOrderedUpdateProcessor(max_concurrent_updates=16)
        await processor.initialize()
        seen: list[int] = []

        async def handler(n: int):
            # Later updates finish faster when run unordered
            await asyncio.sleep(0.01 * (5 - n))
            seen.append(n)

        await asyncio.gather(*[
            processor.process_update(_update(n, 100), handler(n)) for n in range(5)
        ])

        assert seen == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_queued_updates_leave_slots_free(self):
        """Test a chat's backlog does not hold slots another chat needs."""
        processor = ChatOrderedUpdateProcessor(max_concurrent_updates=2)
        await processor.initialize()
        gate = asyncio.Event()
        handled: list[str] = []

        async def blocked():
            await gate.wait()
            handled.append("busy")

        async def queued(n: int):
            handled.append(f"queued-{n}")

        async def other_chat():
            handled.append("other")

        backlog = [asyncio.create_task(processor.process_update(_update(1, 100), blocked()))]
        backlog += [
            asyncio.create_task(processor.process_update(_update(n, 100), queued(n)))
            for n in range(2, 6)
        ]
        await asyncio.sleep(0.01)

        await asyncio.wait_for(processor.process_update(_update(9, 200), other_chat()), 1)

        assert handled == ["other"]

        gate.set()
        await asyncio.gather(*backlog)

        assert handled == ["other", "busy", "queued-2", "queued-3", "queued-4", "queued-5"]
