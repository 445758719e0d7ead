"""In-memory session store with serialized per-session mutation."""

import asyncio
import copy
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from uuid import uuid4

from photo_studio.domain.sessions import SessionRecord
from photo_studio.services.errors import SessionNotFoundError

_logger = logging.getLogger(__name__)

CrashHandler = Callable[[BaseException], Awaitable[None]]


@dataclass
class InMemorySessionStore:
    """Process-wide session map that also owns background generation tasks.

    Writers go through ``mutate`` which holds a lock per session, so concurrent
    provider and iteration tasks never interleave updates to the same record.
    Readers get deep copies and never observe a half-applied write.
    """

    _sessions: dict[str, SessionRecord]
    _locks: dict[str, asyncio.Lock]
    _tasks: dict[str, asyncio.Task[None]]

    def __init__(self) -> None:
        self._sessions = {}
        self._locks = {}
        self._tasks = {}

    def create(self, source_image: str, original_name: str) -> SessionRecord:
        """Create a session for an uploaded image and return a snapshot."""
        session = SessionRecord(
            id=uuid4().hex,
            source_image=source_image,
            original_name=original_name,
        )
        self._sessions[session.id] = session
        self._locks[session.id] = asyncio.Lock()
        return copy.deepcopy(session)

    def exists(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> SessionRecord:
        """Return a snapshot of a session."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return copy.deepcopy(session)

    def list_sessions(self) -> list[SessionRecord]:
        return [copy.deepcopy(session) for session in self._sessions.values()]

    @asynccontextmanager
    async def mutate(self, session_id: str) -> AsyncIterator[SessionRecord]:
        """Yield the live session record while holding its lock."""
        lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFoundError(session_id)
        async with lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            yield session

    def supervise(
        self,
        session_id: str,
        work: Coroutine[object, object, None],
        on_crash: CrashHandler,
    ) -> asyncio.Task[None]:
        """Run background work for a session and keep its task handle."""
        if session_id not in self._sessions:
            work.close()
            raise SessionNotFoundError(session_id)
        task = asyncio.create_task(self._guard(session_id, work, on_crash))
        self._tasks[session_id] = task
        return task

    def task_for(self, session_id: str) -> asyncio.Task[None] | None:
        return self._tasks.get(session_id)

    async def delete(self, session_id: str) -> bool:
        """Cancel running work and drop the session."""
        task = self._tasks.pop(session_id, None)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._locks.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None

    async def aclose(self) -> None:
        """Cancel all background work."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def _guard(
        self,
        session_id: str,
        work: Coroutine[object, object, None],
        on_crash: CrashHandler,
    ) -> None:
        try:
            await work
        except asyncio.CancelledError:
            _logger.info("Background work cancelled: session=%s", session_id)
            raise
        except Exception as exc:
            _logger.exception("Background work crashed: session=%s", session_id)
            try:
                await on_crash(exc)
            except SessionNotFoundError:
                _logger.warning("Session %s vanished before crash handling", session_id)
        finally:
            if self._tasks.get(session_id) is asyncio.current_task():
                self._tasks.pop(session_id, None)
