from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from stockwatch.core.errors import ConfigurationError
from stockwatch.models.schemas import Metrics, Profile, Quote, RawNewsArticle, SearchHit, SearchResult
from stockwatch.services.fetcher import ResilientFetcher
from stockwatch.services.search_cache import SearchCache

logger = logging.getLogger(__name__)

FINNHUB_BASE_URL = "https://finnhub.io/api/v1"

POPULAR_STOCK_SYMBOLS = [
    "AAPL", "MSFT", "GOOGL", "AMZN", "TSLA", "META", "NVDA", "NFLX", "ORCL", "CRM",
    "ADBE", "INTC", "AMD", "PYPL", "UBER", "ZOOM", "SPOT", "SQ", "SHOP", "ROKU",
]
POPULAR_LISTING_SIZE = 10
MAX_SEARCH_RESULTS = 15

PROFILE_REVALIDATE_SECONDS = 3600
SEARCH_REVALIDATE_SECONDS = 1800
NEWS_REVALIDATE_SECONDS = 300


class FinnhubClient:
    """Endpoint-specific wrapper around :class:`ResilientFetcher` for the Finnhub REST API.

    Detail and news calls raise :class:`ConfigurationError` without a token;
    ``search`` backs an interactive picker and degrades to an empty list instead.
    """

    def __init__(self, fetcher: ResilientFetcher, api_key: str, base_url: str = FINNHUB_BASE_URL) -> None:
        self._fetcher = fetcher
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _require_token(self) -> str:
        if not self._api_key:
            raise ConfigurationError()
        return self._api_key

    async def _get(self, path: str, revalidate_seconds: Optional[int] = None, **params: Any) -> Any:
        params["token"] = self._require_token()
        return await self._fetcher.fetch_json(
            f"{self._base_url}{path}",
            params=params,
            revalidate_seconds=revalidate_seconds,
        )

    async def get_quote(self, symbol: str) -> Quote:
        return Quote.model_validate(await self._get("/quote", symbol=symbol))

    async def get_profile(self, symbol: str, revalidate_seconds: Optional[int] = None) -> Profile:
        return Profile.model_validate(await self._get("/stock/profile2", revalidate_seconds, symbol=symbol))

    async def get_metrics(self, symbol: str) -> Metrics:
        return Metrics.model_validate(await self._get("/stock/metric", symbol=symbol, metric="all"))

    async def company_news(self, symbol: str, from_date: str, to_date: str) -> list[RawNewsArticle]:
        raw = await self._get(
            "/company-news",
            NEWS_REVALIDATE_SECONDS,
            symbol=symbol,
            **{"from": from_date, "to": to_date},
        )
        return _parse_articles(raw)

    async def general_news(self, category: str = "general") -> list[RawNewsArticle]:
        raw = await self._get("/news", NEWS_REVALIDATE_SECONDS, category=category)
        return _parse_articles(raw)

    async def search(self, query: Optional[str] = None, cache: Optional[SearchCache] = None) -> list[SearchResult]:
        """Search symbols, or list popular ones for an empty query.

        Never raises: a missing token or an upstream failure yields ``[]``.
        With a ``cache``, repeated queries reuse the first result.
        """
        key = query or ""
        if cache is None:
            return await self._search(key)
        return await cache.get_or_fetch(key, lambda: self._search(key))

    async def _search(self, query: str) -> list[SearchResult]:
        if not self.configured:
            logger.error(
                "FINNHUB API key is not configured. Set FINNHUB_API_KEY in your environment or .env file"
            )
            return []

        trimmed = query.strip()
        if not trimmed:
            return await self._popular_stocks()

        try:
            data = await self._get("/search", SEARCH_REVALIDATE_SECONDS, q=trimmed)
        except Exception as exc:
            logger.error(f"Search error for {trimmed!r}: {exc!r}")
            return []

        hits = data.get("result") if isinstance(data, dict) else None
        if not isinstance(hits, list):
            return []

        results = []
        for item in hits[:MAX_SEARCH_RESULTS]:
            hit = SearchHit.model_validate(item)
            if not hit.symbol:
                continue
            results.append(
                SearchResult(
                    symbol=hit.symbol,
                    name=hit.description or hit.symbol,
                    exchange="US",
                    type=hit.type or "Stock",
                )
            )
        return results

    async def _popular_stocks(self) -> list[SearchResult]:
        symbols = POPULAR_STOCK_SYMBOLS[:POPULAR_LISTING_SIZE]
        rows = await asyncio.gather(*(self._popular_row(symbol) for symbol in symbols))
        return [row for row in rows if row is not None]

    async def _popular_row(self, symbol: str) -> Optional[SearchResult]:
        try:
            profile = await self.get_profile(symbol, PROFILE_REVALIDATE_SECONDS)
        except Exception as exc:
            logger.warning(f"Dropping {symbol} from popular stocks: {exc!r}")
            return None
        return SearchResult(
            symbol=symbol,
            name=profile.name or symbol,
            exchange=profile.exchange or "US",
            type="Stock" if profile.industry else "Crypto",
        )


def mark_watchlist(results: list[SearchResult], watchlist_symbols: list[str]) -> list[SearchResult]:
    """Return copies of ``results`` with ``is_in_watchlist`` set from the user's symbols."""
    owned = {symbol.upper() for symbol in watchlist_symbols}
    return [r.model_copy(update={"is_in_watchlist": r.symbol.upper() in owned}) for r in results]


def _parse_articles(raw: Any) -> list[RawNewsArticle]:
    if not isinstance(raw, list):
        return []
    return [RawNewsArticle.model_validate(item) for item in raw]
