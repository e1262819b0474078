from typing import Optional

import aiohttp
from fastapi import Depends, Header, Request

from stockwatch.core.config import Settings, get_settings
from stockwatch.models.schemas import User
from stockwatch.services.fetcher import ResilientFetcher
from stockwatch.services.finnhub_client import FinnhubClient
from stockwatch.services.news_service import NewsSelector
from stockwatch.services.search_cache import SearchCache
from stockwatch.services.stock_service import StockAggregator
from stockwatch.services.watchlist_service import WatchlistService


async def create_http_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession()


async def close_http_session(session: aiohttp.ClientSession) -> None:
    await session.close()


class HeaderIdentityProvider:
    """Identity taken from the ``X-User-Id`` header set by the auth proxy."""

    def __init__(self, user_id: Optional[str]) -> None:
        self._user_id = (user_id or "").strip()

    async def current_user(self) -> Optional[User]:
        if not self._user_id:
            return None
        return User(id=self._user_id)


async def get_fetcher(request: Request, settings: Settings = Depends(get_settings)) -> ResilientFetcher:
    session = await request.app.state.http_session.get()
    return ResilientFetcher(
        session,
        timeout=settings.request_timeout_seconds,
        max_attempts=settings.max_attempts,
        backoff_base=settings.backoff_base_seconds,
    )


async def get_finnhub_client(
    fetcher: ResilientFetcher = Depends(get_fetcher),
    settings: Settings = Depends(get_settings),
) -> FinnhubClient:
    return FinnhubClient(fetcher, settings.finnhub_api_key, settings.finnhub_base_url)


async def get_aggregator(client: FinnhubClient = Depends(get_finnhub_client)) -> StockAggregator:
    return StockAggregator(client)


async def get_news_selector(client: FinnhubClient = Depends(get_finnhub_client)) -> NewsSelector:
    return NewsSelector(client)


async def get_search_cache() -> SearchCache:
    # FastAPI resolves this once per request, which is exactly the cache's lifetime.
    return SearchCache()


async def get_identity(x_user_id: Optional[str] = Header(None)) -> HeaderIdentityProvider:
    return HeaderIdentityProvider(x_user_id)


async def get_watchlist_service(
    request: Request,
    identity: HeaderIdentityProvider = Depends(get_identity),
    aggregator: StockAggregator = Depends(get_aggregator),
) -> WatchlistService:
    return WatchlistService(request.app.state.watchlist_store, identity, aggregator)
