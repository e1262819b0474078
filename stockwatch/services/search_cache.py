from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from stockwatch.models.schemas import SearchResult


class SearchCache:
    """Memoises search results for one logical operation (one HTTP request).

    Build a new instance per request and drop it afterwards; nothing is
    shared across requests. Concurrent lookups of the same key share one
    in-flight fetch.
    """

    def __init__(self) -> None:
        self._entries: dict[str, asyncio.Future[list[SearchResult]]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[list[SearchResult]]],
    ) -> list[SearchResult]:
        pending = self._entries.get(key)
        if pending is None:
            pending = asyncio.ensure_future(fetch())
            self._entries[key] = pending
        return list(await asyncio.shield(pending))
