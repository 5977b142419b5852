"""Redis-based conversation session storage."""

import logging
from datetime import datetime, timezone
from typing import Optional

from redis.exceptions import RedisError

from app.config import settings
from app.infra.redis import get_redis, APP_PREFIX
from .models import ConversationSession


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)

logger = logging.getLogger(__name__)

# Session key prefix (extends existing APP_PREFIX)
SESSION_PREFIX = f"{APP_PREFIX}session:"


class SessionManager:
    """
    Redis-based session manager keyed by chat ID.

    Key pattern: booking:v1:session:{chat_id}

    Gracefully handles Redis unavailability with in-memory fallback.
    """

    def __init__(self, ttl: Optional[int] = None):
        """Initialize session manager."""
        self._ttl = ttl or settings.session_ttl
        self._in_memory_fallback: dict[str, ConversationSession] = {}

    def _key(self, chat_id: str) -> str:
        """Generate Redis key."""
        return f"{SESSION_PREFIX}{chat_id}"

    async def get(self, chat_id: str) -> Optional[ConversationSession]:
        """
        Get session for a chat.

        Args:
            chat_id: Chat identifier

        Returns:
            ConversationSession or None if not found
        """
        redis = await get_redis()

        if redis:
            try:
                data = await redis.get(self._key(chat_id))
            except RedisError as e:
                logger.error(f"Failed to read session {chat_id}: {e}")
                return self._in_memory_fallback.get(chat_id)

            if data:
                return ConversationSession.from_json(data)
            return None
        else:
            # Fallback to in-memory
            return self._in_memory_fallback.get(chat_id)

    async def get_or_create(self, chat_id: str) -> ConversationSession:
        """
        Get existing session or create a new idle one.

        The new session is not stored until save() is called.

        Args:
            chat_id: Chat identifier

        Returns:
            Existing or new ConversationSession
        """
        session = await self.get(chat_id)
        if session:
            return session

        logger.debug(f"Session created for chat {chat_id}")
        return ConversationSession(chat_id=chat_id)

    async def save(self, session: ConversationSession) -> bool:
        """
        Save session, refreshing its TTL.

        Args:
            session: ConversationSession to save

        Returns:
            True if stored in Redis, False if only kept in memory
        """
        session.updated_at = _utcnow()

        redis = await get_redis()

        if redis:
            try:
                await redis.setex(self._key(session.chat_id), self._ttl, session.to_json())
                logger.debug(f"Session saved: {session.chat_id}")
                return True
            except RedisError as e:
                logger.error(f"Failed to save session {session.chat_id}: {e}")

        # Fallback to in-memory
        self._in_memory_fallback[session.chat_id] = session
        return False

    async def delete(self, chat_id: str) -> bool:
        """
        Delete a session.

        Args:
            chat_id: Chat identifier

        Returns:
            True if deleted
        """
        removed = self._in_memory_fallback.pop(chat_id, None) is not None

        redis = await get_redis()

        if redis:
            try:
                deleted = await redis.delete(self._key(chat_id))
            except RedisError as e:
                logger.error(f"Failed to delete session {chat_id}: {e}")
                return removed
            if deleted:
                logger.debug(f"Session deleted: {chat_id}")
            return bool(deleted) or removed

        return removed


# Singleton
_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """Get singleton SessionManager."""
    global _manager
    if _manager is None:
        _manager = SessionManager()
    return _manager
