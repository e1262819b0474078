from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LazyConnection(Generic[T]):
    """Lazily created shared handle with single-flight initialisation.

    Concurrent first callers await one in-flight ``factory()`` call rather
    than each creating their own handle. A failed attempt is not cached, so
    the next caller starts a fresh one. An attempt that finishes after
    ``close()`` is closed on arrival and its waiters get ``ConnectionError``.
    """

    def __init__(
        self,
        factory: Callable[[], Awaitable[T]],
        closer: Callable[[T], Awaitable[None]] | None = None,
        name: str = "connection",
    ) -> None:
        self._factory = factory
        self._closer = closer
        self._name = name
        self._conn: T | None = None
        self._pending: asyncio.Future[T] | None = None
        self._abandoned: set[asyncio.Future[T]] = set()
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._conn is not None

    async def get(self) -> T:
        if self._conn is not None:
            return self._conn

        async with self._lock:
            if self._conn is not None:
                return self._conn
            if self._pending is None:
                self._pending = asyncio.ensure_future(self._factory())
            pending = self._pending

        try:
            conn = await asyncio.shield(pending)
        except Exception as exc:
            logger.error(f"{self._name} initialisation failed: {exc}")
            async with self._lock:
                self._abandoned.discard(pending)
                if self._pending is pending:
                    self._pending = None
            raise

        async with self._lock:
            if self._pending is pending:
                if self._conn is None:
                    self._conn = conn
                    logger.info(f"{self._name} initialised")
                return self._conn
            # close() ran while this attempt was in flight
            orphaned = pending in self._abandoned
            self._abandoned.discard(pending)

        if orphaned and self._closer is not None:
            await self._closer(conn)
        raise ConnectionError(f"{self._name} was closed while connecting")

    async def close(self) -> None:
        async with self._lock:
            conn, pending = self._conn, self._pending
            self._conn = self._pending = None
            if conn is None and pending is not None:
                self._abandoned.add(pending)
        if conn is not None and self._closer is not None:
            await self._closer(conn)
