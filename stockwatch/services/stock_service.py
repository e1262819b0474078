from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional, Protocol

from stockwatch.models.schemas import Metrics, Profile, Quote, StockView

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


class MarketDataClientProtocol(Protocol):
    """Typed subset of the Finnhub client used by the aggregator."""

    async def get_quote(self, symbol: str) -> Quote:  # pragma: no cover - protocol
        ...

    async def get_profile(self, symbol: str) -> Profile:  # pragma: no cover - protocol
        ...

    async def get_metrics(self, symbol: str) -> Metrics:  # pragma: no cover - protocol
        ...


def _present(value: Optional[float]) -> bool:
    """True for a usable non-zero number; zero is the upstream "no data" sentinel."""
    return value is not None and math.isfinite(value) and value != 0


# (threshold, suffix), largest first
_MARKET_CAP_UNITS = ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1.0, ""))


def format_market_cap(market_cap: Optional[float]) -> str:
    """Compact dollar figure; a value that rounds up to the next threshold uses that unit."""
    if market_cap is None or not math.isfinite(market_cap) or market_cap <= 0:
        return NOT_AVAILABLE
    for index, (unit, suffix) in enumerate(_MARKET_CAP_UNITS):
        if market_cap < unit:
            continue
        if index > 0:
            larger, larger_suffix = _MARKET_CAP_UNITS[index - 1]
            if round(market_cap / unit, 2) >= larger / unit:
                unit, suffix = larger, larger_suffix
        return f"${market_cap / unit:.2f}{suffix}"
    return f"${market_cap:.2f}"


def format_price(price: Optional[float]) -> str:
    if not _present(price):
        return NOT_AVAILABLE
    return f"${price:.2f}"


def format_change(change: Optional[float], change_percent: Optional[float]) -> str:
    if not _present(change):
        return NOT_AVAILABLE
    sign = "+" if change > 0 else ""
    percent = f"{change_percent:.2f}" if _present(change_percent) else "0.00"
    return f"{sign}{change:.2f} ({percent}%)"


def format_pe_ratio(pe_ratio: Optional[float]) -> str:
    if pe_ratio is None or not math.isfinite(pe_ratio):
        return NOT_AVAILABLE
    return f"{pe_ratio:.2f}"


def build_stock_view(symbol: str, quote: Quote, profile: Profile, metrics: Metrics) -> StockView:
    """Join one symbol's quote, profile and metrics into a display-ready view."""
    market_cap = profile.market_capitalization
    if not _present(market_cap):
        market_cap = metrics.market_capitalization

    return StockView(
        symbol=symbol,
        company=profile.name or symbol,
        current_price=quote.current_price if _present(quote.current_price) else 0.0,
        price_formatted=format_price(quote.current_price),
        change_formatted=format_change(quote.change, quote.change_percent),
        change_percent=quote.change_percent if _present(quote.change_percent) else 0.0,
        market_cap_formatted=format_market_cap(market_cap),
        pe_ratio=format_pe_ratio(metrics.pe_normalized_annual),
    )


class StockAggregator:
    def __init__(self, client: MarketDataClientProtocol) -> None:
        self._client = client

    async def get_stock_details(self, symbol: str) -> StockView:
        """Fetch quote, profile and metrics concurrently and build a :class:`StockView`.

        All three calls are allowed to settle; if any failed, the first
        failure is raised and no partial view is returned.
        """
        results = await asyncio.gather(
            self._client.get_quote(symbol),
            self._client.get_profile(symbol),
            self._client.get_metrics(symbol),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                logger.error(f"Error fetching stock details for {symbol}: {result!r}")
                raise result

        quote, profile, metrics = results
        return build_stock_view(symbol, quote, profile, metrics)
