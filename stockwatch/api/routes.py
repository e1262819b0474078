from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from stockwatch.api.dependencies import (
    get_aggregator,
    get_finnhub_client,
    get_news_selector,
    get_search_cache,
    get_watchlist_service,
)
from stockwatch.models.schemas import (
    AddToWatchlistRequest,
    NewsArticle,
    SearchResult,
    StockView,
    WatchlistActionResult,
    WatchlistRow,
)
from stockwatch.services.finnhub_client import FinnhubClient
from stockwatch.services.news_service import NewsSelector
from stockwatch.services.search_cache import SearchCache
from stockwatch.services.stock_service import StockAggregator
from stockwatch.services.watchlist_service import WatchlistService

router = APIRouter(prefix="/api")


@router.get("/search", response_model=List[SearchResult])
async def search_stocks(
    q: str = Query("", description="Free-text query; empty lists popular stocks."),
    client: FinnhubClient = Depends(get_finnhub_client),
    cache: SearchCache = Depends(get_search_cache),
    watchlist: WatchlistService = Depends(get_watchlist_service),
) -> List[SearchResult]:
    return await watchlist.search(client, q, cache)


@router.get("/stocks/{symbol}", response_model=StockView)
async def stock_details(symbol: str, aggregator: StockAggregator = Depends(get_aggregator)) -> StockView:
    return await aggregator.get_stock_details(symbol.strip().upper())


@router.get("/news", response_model=List[NewsArticle])
async def news(
    symbols: Optional[str] = Query(None, description="Comma-separated ticker symbols."),
    selector: NewsSelector = Depends(get_news_selector),
) -> List[NewsArticle]:
    return await selector.get_news(symbols.split(",") if symbols else None)


@router.get("/watchlist", response_model=List[WatchlistRow])
async def watchlist_with_data(watchlist: WatchlistService = Depends(get_watchlist_service)) -> List[WatchlistRow]:
    return await watchlist.get_watchlist_with_data()


@router.post("/watchlist", response_model=WatchlistActionResult)
async def add_to_watchlist(
    payload: AddToWatchlistRequest,
    watchlist: WatchlistService = Depends(get_watchlist_service),
) -> WatchlistActionResult:
    return await watchlist.add_to_watchlist(payload.symbol, payload.company)


@router.delete("/watchlist/{symbol}", response_model=WatchlistActionResult)
async def remove_from_watchlist(
    symbol: str,
    watchlist: WatchlistService = Depends(get_watchlist_service),
) -> WatchlistActionResult:
    return await watchlist.remove_from_watchlist(symbol)


@router.delete("/watchlist")
async def clear_watchlist(watchlist: WatchlistService = Depends(get_watchlist_service)) -> dict:
    return {"cleared": await watchlist.clear_watchlist()}
