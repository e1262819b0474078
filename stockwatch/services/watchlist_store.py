from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Protocol

from stockwatch.models.schemas import WatchlistEntry

logger = logging.getLogger(__name__)


class WatchlistStore(Protocol):
    """Keyed-record store for watchlist rows; one row per ``(user_id, symbol)``."""

    async def list_entries(self, user_id: str) -> list[WatchlistEntry]:  # pragma: no cover - protocol
        ...

    async def list_symbols_for_user(self, user_id: str) -> list[str]:  # pragma: no cover - protocol
        ...

    async def add_symbol(self, user_id: str, symbol: str, company: str) -> bool:  # pragma: no cover - protocol
        ...

    async def remove_symbol(self, user_id: str, symbol: str) -> bool:  # pragma: no cover - protocol
        ...

    async def clear_all(self, user_id: str) -> int:  # pragma: no cover - protocol
        ...


class InMemoryWatchlistStore:
    """Process-local :class:`WatchlistStore`. Entries are listed most recently added first."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], WatchlistEntry] = {}
        self._lock = asyncio.Lock()

    async def list_entries(self, user_id: str) -> list[WatchlistEntry]:
        rows = [row for (owner, _), row in self._rows.items() if owner == user_id]
        # insertion order breaks ties between identical timestamps
        ordered = sorted(enumerate(rows), key=lambda pair: (pair[1].added_at, pair[0]), reverse=True)
        return [row for _, row in ordered]

    async def list_symbols_for_user(self, user_id: str) -> list[str]:
        return [entry.symbol for entry in await self.list_entries(user_id)]

    async def add_symbol(self, user_id: str, symbol: str, company: str) -> bool:
        async with self._lock:
            key = (user_id, symbol)
            if key in self._rows:
                return False
            self._rows[key] = WatchlistEntry(
                user_id=user_id,
                symbol=symbol,
                company=company,
                added_at=datetime.now(timezone.utc),
            )
        logger.info(f"Added {symbol} to watchlist of user {user_id}")
        return True

    async def remove_symbol(self, user_id: str, symbol: str) -> bool:
        async with self._lock:
            removed = self._rows.pop((user_id, symbol), None)
        return removed is not None

    async def clear_all(self, user_id: str) -> int:
        async with self._lock:
            keys = [key for key in self._rows if key[0] == user_id]
            for key in keys:
                del self._rows[key]
        return len(keys)


async def connect_memory_store() -> InMemoryWatchlistStore:
    return InMemoryWatchlistStore()
