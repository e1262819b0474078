from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Optional, Protocol

from stockwatch.core.errors import ConfigurationError
from stockwatch.models.schemas import NewsArticle, RawNewsArticle

logger = logging.getLogger(__name__)

MAX_ARTICLES = 6
GENERAL_POOL_SIZE = 20
NEWS_WINDOW_DAYS = 5


class NewsClientProtocol(Protocol):
    async def company_news(self, symbol: str, from_date: str, to_date: str) -> list[RawNewsArticle]:  # pragma: no cover - protocol
        ...

    async def general_news(self) -> list[RawNewsArticle]:  # pragma: no cover - protocol
        ...


def get_date_range(days: int, today: Optional[date] = None) -> tuple[str, str]:
    """Return ``(from, to)`` ISO dates covering the trailing ``days`` days."""
    to_date = today or date.today()
    from_date = to_date - timedelta(days=days)
    return from_date.isoformat(), to_date.isoformat()


def is_valid_article(article: RawNewsArticle) -> bool:
    return all(
        (
            article.headline,
            article.summary,
            article.url,
            article.image,
            article.datetime,
            article.source,
        )
    )


def to_news_article(article: RawNewsArticle, symbol: Optional[str] = None) -> NewsArticle:
    return NewsArticle(
        id=article.id,
        title=article.headline,
        summary=article.summary,
        url=article.url,
        image=article.image,
        datetime=article.datetime,
        source=article.source,
        symbol=symbol,
    )


def clean_symbols(symbols: Optional[list[str]]) -> list[str]:
    cleaned: list[str] = []
    for symbol in symbols or []:
        symbol = (symbol or "").strip().upper()
        if symbol and symbol not in cleaned:
            cleaned.append(symbol)
    return cleaned


def round_robin(
    symbols: list[str],
    per_symbol: dict[str, list[RawNewsArticle]],
    limit: int = MAX_ARTICLES,
) -> list[NewsArticle]:
    """Take one article per symbol per round, front of each list first, until ``limit``.

    Exhausted symbols are skipped. ``per_symbol`` lists are consumed.
    """
    collected: list[NewsArticle] = []
    for _ in range(limit):
        for symbol in symbols:
            articles = per_symbol.get(symbol) or []
            if not articles:
                continue
            article = articles.pop(0)
            if not is_valid_article(article):
                continue
            collected.append(to_news_article(article, symbol))
            if len(collected) >= limit:
                return collected
    return collected


def unique_articles(articles: list[RawNewsArticle], pool_size: int = GENERAL_POOL_SIZE) -> list[NewsArticle]:
    """Valid articles deduplicated by (id, url, headline), in upstream order, at most ``pool_size``."""
    seen: set[tuple] = set()
    unique: list[NewsArticle] = []
    for article in articles:
        if not is_valid_article(article):
            continue
        key = (article.id, article.url, article.headline)
        if key in seen:
            continue
        seen.add(key)
        unique.append(to_news_article(article))
        if len(unique) >= pool_size:
            break
    return unique


class NewsSelector:
    def __init__(
        self,
        client: NewsClientProtocol,
        max_articles: int = MAX_ARTICLES,
        general_pool: int = GENERAL_POOL_SIZE,
        window_days: int = NEWS_WINDOW_DAYS,
    ) -> None:
        self._client = client
        self._max_articles = max_articles
        self._general_pool = general_pool
        self._window_days = window_days

    async def get_news(self, symbols: Optional[list[str]] = None, today: Optional[date] = None) -> list[NewsArticle]:
        """Company news for ``symbols`` interleaved fairly, newest first.

        Falls back to the general feed when no symbols are given or none of
        them produced an article. Per-symbol failures only empty that symbol;
        a general-feed failure propagates.
        """
        cleaned = clean_symbols(symbols)

        if cleaned:
            from_date, to_date = get_date_range(self._window_days, today)
            lists = await asyncio.gather(
                *(self._company_news(symbol, from_date, to_date) for symbol in cleaned)
            )
            per_symbol = dict(zip(cleaned, lists))

            collected = round_robin(cleaned, per_symbol, self._max_articles)
            if collected:
                collected.sort(key=lambda a: a.datetime or 0, reverse=True)
                return collected[: self._max_articles]
            logger.info(f"No company news for {', '.join(cleaned)}; using general news")

        general = await self._client.general_news()
        return unique_articles(general, self._general_pool)[: self._max_articles]

    async def _company_news(self, symbol: str, from_date: str, to_date: str) -> list[RawNewsArticle]:
        try:
            articles = await self._client.company_news(symbol, from_date, to_date)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.error(f"Error fetching company news for {symbol}: {exc!r}")
            return []
        return [article for article in articles if is_valid_article(article)]
