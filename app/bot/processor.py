"""
Per-chat ordered update processing.

Updates from different chats run concurrently. Updates from one chat run
one at a time, in arrival order, so a chat's session is never touched by two
handlers at once.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional

from telegram import Update
from telegram.ext import BaseUpdateProcessor

logger = logging.getLogger(__name__)


class ChatOrderedUpdateProcessor(BaseUpdateProcessor):
    """
    Serializes updates per chat while letting chats run in parallel.

    Each chat keeps the completion future of its latest update; a new update
    waits for that future before running and publishes its own. The wait
    happens before a concurrency slot is taken, so a burst from one chat
    never occupies slots other chats need. Updates without a chat (e.g.
    poll answers) run unordered.
    """

    def __init__(self, max_concurrent_updates: int = 256):
        super().__init__(max_concurrent_updates=max_concurrent_updates)
        self._tails: dict[int, asyncio.Future] = {}

    @staticmethod
    def chat_key(update: object) -> Optional[int]:
        """Chat ID an update belongs to, or None."""
        if isinstance(update, Update) and update.effective_chat is not None:
            return update.effective_chat.id
        return None

    @property
    def pending_chats(self) -> int:
        """Number of chats with an update in flight."""
        return len(self._tails)

    async def process_update(self, update: object, coroutine: Awaitable[Any]) -> None:
        key = self.chat_key(update)
        if key is None:
            await super().process_update(update, coroutine)
            return

        previous = self._tails.get(key)
        done = asyncio.get_running_loop().create_future()
        self._tails[key] = done

        try:
            if previous is not None:
                await previous
            # Takes the concurrency slot only once this chat's turn has come
            await super().process_update(update, coroutine)
        finally:
            done.set_result(None)
            if self._tails.get(key) is done:
                del self._tails[key]

    async def do_process_update(self, update: object, coroutine: Awaitable[Any]) -> None:
        await coroutine

    async def initialize(self) -> None:
        self._tails.clear()

    async def shutdown(self) -> None:
        if self._tails:
            logger.warning(f"Shutting down with updates pending for {len(self._tails)} chat(s)")
        self._tails.clear()
