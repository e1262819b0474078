from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from stockwatch.core.connection import LazyConnection
from stockwatch.core.errors import NotAuthenticatedError
from stockwatch.models.schemas import (
    SearchResult,
    StockView,
    User,
    WatchlistActionResult,
    WatchlistEntry,
    WatchlistRow,
)
from stockwatch.services.finnhub_client import FinnhubClient, mark_watchlist
from stockwatch.services.search_cache import SearchCache
from stockwatch.services.watchlist_store import WatchlistStore

logger = logging.getLogger(__name__)

ERROR_VALUE = "Error"


class IdentityProvider(Protocol):
    async def current_user(self) -> Optional[User]:  # pragma: no cover - protocol
        ...


class StockDetailsProvider(Protocol):
    async def get_stock_details(self, symbol: str) -> StockView:  # pragma: no cover - protocol
        ...


def merge_row(entry: WatchlistEntry, view: StockView) -> WatchlistRow:
    return WatchlistRow(
        symbol=entry.symbol,
        company=view.company or entry.company,
        added_at=entry.added_at,
        current_price=view.current_price,
        price_formatted=view.price_formatted,
        change_formatted=view.change_formatted,
        change_percent=view.change_percent,
        market_cap=view.market_cap_formatted,
        pe_ratio=view.pe_ratio,
    )


def error_row(entry: WatchlistEntry) -> WatchlistRow:
    return WatchlistRow(
        symbol=entry.symbol,
        company=entry.company,
        added_at=entry.added_at,
        current_price=0.0,
        price_formatted=ERROR_VALUE,
        change_formatted=ERROR_VALUE,
        change_percent=0.0,
        market_cap=ERROR_VALUE,
        pe_ratio=ERROR_VALUE,
    )


class WatchlistService:
    """Composes the signed-in user's stored watchlist with live stock data."""

    def __init__(
        self,
        store: LazyConnection[WatchlistStore],
        identity: IdentityProvider,
        aggregator: StockDetailsProvider,
    ) -> None:
        self._store = store
        self._identity = identity
        self._aggregator = aggregator

    async def _require_user(self) -> User:
        user = await self._identity.current_user()
        if user is None:
            raise NotAuthenticatedError()
        return user

    async def get_watchlist_with_data(self) -> list[WatchlistRow]:
        """One row per stored symbol, most recently added first.

        A symbol whose details cannot be fetched keeps its position with
        "Error" values instead of failing the whole list.
        """
        entries = await self.get_user_watchlist()
        if not entries:
            return []
        return list(await asyncio.gather(*(self._row_for(entry) for entry in entries)))

    async def _row_for(self, entry: WatchlistEntry) -> WatchlistRow:
        try:
            view = await self._aggregator.get_stock_details(entry.symbol)
        except Exception as exc:
            logger.error(f"Error fetching details for {entry.symbol}: {exc!r}")
            return error_row(entry)
        return merge_row(entry, view)

    async def get_user_watchlist(self) -> list[WatchlistEntry]:
        user = await self._require_user()
        store = await self._store.get()
        entries = await store.list_entries(user.id)
        return sorted(entries, key=lambda e: e.added_at, reverse=True)

    async def get_watchlist_symbols(self) -> list[str]:
        user = await self._require_user()
        store = await self._store.get()
        return await store.list_symbols_for_user(user.id)

    async def add_to_watchlist(self, symbol: str, company: str) -> WatchlistActionResult:
        user = await self._require_user()
        store = await self._store.get()
        symbol = symbol.strip().upper()
        company = company.strip() or symbol

        if not await store.add_symbol(user.id, symbol, company):
            return WatchlistActionResult(success=False, error="Stock already in watchlist")
        return WatchlistActionResult(success=True, message="Stock added to watchlist")

    async def remove_from_watchlist(self, symbol: str) -> WatchlistActionResult:
        user = await self._require_user()
        store = await self._store.get()
        await store.remove_symbol(user.id, symbol.strip().upper())
        return WatchlistActionResult(success=True, message="Stock removed from watchlist")

    async def clear_watchlist(self) -> bool:
        user = await self._require_user()
        store = await self._store.get()
        deleted = await store.clear_all(user.id)
        logger.info(f"Cleared {deleted} watchlist items for user {user.id}")
        return deleted > 0

    async def search(self, client: FinnhubClient, query: Optional[str], cache: SearchCache) -> list[SearchResult]:
        """Search with ``is_in_watchlist`` stitched in.

        Anonymous callers, or a store that cannot be read, get all flags false.
        """
        results = await client.search(query, cache=cache)
        user = await self._identity.current_user()
        if user is None:
            return results
        try:
            store = await self._store.get()
            symbols = await store.list_symbols_for_user(user.id)
        except Exception as exc:
            logger.error(f"Could not load watchlist of user {user.id} for search: {exc!r}")
            return results
        return mark_watchlist(results, symbols)
