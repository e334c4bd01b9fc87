# =============================================================================
# Session Memory: Bounded, Expiring Conversation Histories
# =============================================================================
#
# Server-held chat histories keyed by session id.
#
# WINDOW: each session keeps at most `max_messages` messages of any role in a
# sliding FIFO window. System messages are NOT protected: on a long enough
# conversation the system prompt itself falls out of the window.
#
# EXPIRY: the id → session table is a cachetools.TTLCache. Every access
# re-inserts the session, which restarts its TTL. An idle session is
# invisible as soon as its TTL runs out; it is physically removed by
# TTLCache.expire(), which runs on create_session(), active_session_count()
# and on every insert.
#
# CONCURRENCY:
#   _table_lock     → guards the TTLCache (get-or-create, refresh, delete,
#                     expire)
#   _Session.lock   → guards one session's window; appends to the same id
#                     are linearizable, different ids never contend
#   Lock order is always session lock, then table lock. A write re-checks
#   under both locks that the session is still the live one, so it never
#   lands in a session that was deleted or expired in between.
#
# UNKNOWN IDS:
#   get_messages(unknown)     → []
#   add_*_message(unknown)    → session auto-created and a warning logged,
#                               or SessionNotFoundError when auto_create=False
# =============================================================================

from __future__ import annotations

import logging
import math
import threading
import time
import uuid
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from cachetools import TTLCache

from report_qa.errors import SessionNotFoundError
from report_qa.models.domain import ChatMessage, MessageRole

logger = logging.getLogger(__name__)


@dataclass
class _Session:
    messages: deque[ChatMessage]
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionMemory:
    """
    Thread-safe table of bounded chat histories.

    Args:
        max_messages: Window size per session, all roles counted.
        session_timeout: Idle seconds after which a session expires.
        auto_create: Whether appends to an unknown id create the session.
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        max_messages: int = 20,
        session_timeout: float = 1800.0,
        auto_create: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_messages <= 0:
            raise ValueError("max_messages must be a positive integer")
        if session_timeout <= 0:
            raise ValueError("session_timeout must be positive")

        self.max_messages = max_messages
        self.session_timeout = session_timeout
        self.auto_create = auto_create
        self._sessions: TTLCache[str, _Session] = TTLCache(
            maxsize=math.inf, ttl=session_timeout, timer=clock,
        )
        self._table_lock = threading.Lock()

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def create_session(self) -> str:
        session_id = str(uuid.uuid4())
        with self._table_lock:
            self._sessions[session_id] = self._new_session()
        logger.info("Created session %s", session_id)
        self._sweep()
        return session_id

    def clear_session(self, session_id: str) -> None:
        """Empty a session's history; the id stays registered."""
        with self._locked(session_id, create=False) as session:
            if session is None:
                return
            session.messages.clear()
        logger.info("Cleared session %s", session_id)

    def delete_session(self, session_id: str) -> None:
        with self._table_lock:
            self._sessions.pop(session_id, None)
        logger.info("Deleted session %s", session_id)

    def session_exists(self, session_id: str) -> bool:
        with self._table_lock:
            return session_id in self._sessions

    def active_session_count(self) -> int:
        self._sweep()
        with self._table_lock:
            return len(self._sessions)

    # -----------------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------------

    def add_system_message(self, session_id: str, content: str) -> None:
        self._append(session_id, ChatMessage(MessageRole.SYSTEM, content))

    def add_user_message(self, session_id: str, content: str) -> None:
        self._append(session_id, ChatMessage(MessageRole.USER, content))

    def add_ai_message(self, session_id: str, content: str) -> None:
        self._append(session_id, ChatMessage(MessageRole.AI, content))

    def get_messages(self, session_id: str) -> list[ChatMessage]:
        """Snapshot of the session's window; [] for an unknown id."""
        with self._locked(session_id, create=False) as session:
            if session is None:
                logger.warning("Session %s not found, returning empty history", session_id)
                return []
            return list(session.messages)

    def start_turn(
        self, session_id: str, system_prompt: str, user_prompt: str,
    ) -> list[ChatMessage]:
        """
        Record the user side of one exchange and return the window to send.

        The system prompt is stored only when the history is empty. The
        check and both appends happen under the session lock, so concurrent
        first turns store it once.
        """
        with self._locked(session_id) as session:
            if not session.messages:
                session.messages.append(ChatMessage(MessageRole.SYSTEM, system_prompt))
                logger.debug("Session %s: stored system prompt", session_id)
            session.messages.append(ChatMessage(MessageRole.USER, user_prompt))
            return list(session.messages)

    # -----------------------------------------------------------------------
    # Internal Helpers
    # -----------------------------------------------------------------------

    def _new_session(self) -> _Session:
        return _Session(messages=deque(maxlen=self.max_messages))

    def _get_or_create(self, session_id: str) -> _Session:
        with self._table_lock:
            session = self._sessions.get(session_id)
            if session is None:
                if not self.auto_create:
                    raise SessionNotFoundError(session_id)
                logger.warning("Session %s not found, creating it", session_id)
                session = self._new_session()
                self._sessions[session_id] = session
            return session

    @contextmanager
    def _locked(self, session_id: str, create: bool = True) -> Iterator[_Session | None]:
        """
        Yield the live session with its lock held and its TTL refreshed.

        Yields None for an unknown id when `create` is False.
        """
        while True:
            if create:
                session = self._get_or_create(session_id)
            else:
                with self._table_lock:
                    session = self._sessions.get(session_id)
                if session is None:
                    yield None
                    return

            with session.lock:
                with self._table_lock:
                    live = self._sessions.get(session_id) is session
                    if live:
                        self._sessions[session_id] = session
                if live:
                    yield session
                    return
            logger.debug("Session %s replaced while waiting, retrying", session_id)

    def _append(self, session_id: str, message: ChatMessage) -> None:
        with self._locked(session_id) as session:
            session.messages.append(message)
        logger.debug("Session %s: added %s message", session_id, message.role.value)

    def _sweep(self) -> None:
        with self._table_lock:
            before = len(self._sessions)
            self._sessions.expire()
            expired = before - len(self._sessions)
        if expired:
            logger.info("Expired %d idle sessions", expired)
