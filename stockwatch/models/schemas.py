import math
import datetime as dt
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _text_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


class UpstreamRecord(BaseModel):
    """Base for records parsed from Finnhub payloads.

    Upstream responses are frequently partial: a non-object body parses as
    an empty record and a field of the wrong type is treated as absent.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _coerce_body(cls, data: Any) -> Any:
        return data if isinstance(data, dict) else {}


# ---- upstream records ----


class Quote(UpstreamRecord):
    current_price: Optional[float] = Field(None, validation_alias="c")
    change: Optional[float] = Field(None, validation_alias="d")
    change_percent: Optional[float] = Field(None, validation_alias="dp")
    high: Optional[float] = Field(None, validation_alias="h")
    low: Optional[float] = Field(None, validation_alias="l")
    open: Optional[float] = Field(None, validation_alias="o")
    previous_close: Optional[float] = Field(None, validation_alias="pc")
    timestamp: Optional[int] = Field(None, validation_alias="t")

    @field_validator("current_price", "change", "change_percent", "high", "low", "open", "previous_close", mode="before")
    @classmethod
    def _numbers(cls, value: Any) -> Optional[float]:
        return _number_or_none(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: Any) -> Optional[int]:
        value = _number_or_none(value)
        return None if value is None or not math.isfinite(value) else int(value)


class Profile(UpstreamRecord):
    name: Optional[str] = None
    ticker: Optional[str] = None
    exchange: Optional[str] = None
    industry: Optional[str] = Field(None, validation_alias="finnhubIndustry")
    market_capitalization: Optional[float] = Field(None, validation_alias="marketCapitalization")
    country: Optional[str] = None
    currency: Optional[str] = None
    logo: Optional[str] = None
    weburl: Optional[str] = None

    @field_validator("name", "ticker", "exchange", "industry", "country", "currency", "logo", "weburl", mode="before")
    @classmethod
    def _texts(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)

    @field_validator("market_capitalization", mode="before")
    @classmethod
    def _market_cap(cls, value: Any) -> Optional[float]:
        return _number_or_none(value)


class Metrics(UpstreamRecord):
    pe_normalized_annual: Optional[float] = Field(None, validation_alias="peNormalizedAnnual")
    market_capitalization: Optional[float] = Field(None, validation_alias="marketCapitalization")
    week_52_high: Optional[float] = Field(None, validation_alias="52WeekHigh")
    week_52_low: Optional[float] = Field(None, validation_alias="52WeekLow")
    beta: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_metric(cls, data: Any) -> Any:
        # /stock/metric nests the ratios under "metric".
        if not isinstance(data, dict):
            return {}
        metric = data.get("metric")
        return metric if isinstance(metric, dict) else {}

    @field_validator("pe_normalized_annual", "market_capitalization", "week_52_high", "week_52_low", "beta", mode="before")
    @classmethod
    def _numbers(cls, value: Any) -> Optional[float]:
        return _number_or_none(value)


class SearchHit(UpstreamRecord):
    symbol: Optional[str] = None
    description: Optional[str] = None
    display_symbol: Optional[str] = Field(None, validation_alias="displaySymbol")
    type: Optional[str] = None

    @field_validator("symbol", "description", "display_symbol", "type", mode="before")
    @classmethod
    def _texts(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)


class RawNewsArticle(UpstreamRecord):
    id: Optional[int] = None
    headline: Optional[str] = None
    summary: Optional[str] = None
    url: Optional[str] = None
    image: Optional[str] = None
    datetime: Optional[int] = None
    source: Optional[str] = None

    @field_validator("headline", "summary", "url", "image", "source", mode="before")
    @classmethod
    def _texts(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)

    @field_validator("id", "datetime", mode="before")
    @classmethod
    def _integers(cls, value: Any) -> Optional[int]:
        value = _number_or_none(value)
        return None if value is None or not math.isfinite(value) else int(value)


# ---- view models ----


class StockView(BaseModel):
    symbol: str
    company: str
    current_price: float = 0.0
    price_formatted: str = "N/A"
    change_formatted: str = "N/A"
    change_percent: float = 0.0
    market_cap_formatted: str = "N/A"
    pe_ratio: str = "N/A"


class SearchResult(BaseModel):
    symbol: str
    name: str
    exchange: str
    type: str
    is_in_watchlist: bool = False


class NewsArticle(BaseModel):
    id: Optional[int] = None
    title: str
    summary: str
    url: str
    image: str
    datetime: int
    source: str
    symbol: Optional[str] = None


class User(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


class WatchlistEntry(BaseModel):
    user_id: str
    symbol: str
    company: str
    added_at: dt.datetime


class WatchlistRow(BaseModel):
    symbol: str
    company: str
    added_at: dt.datetime
    current_price: float = 0.0
    price_formatted: str = "N/A"
    change_formatted: str = "N/A"
    change_percent: float = 0.0
    market_cap: str = "N/A"
    pe_ratio: str = "N/A"


class WatchlistActionResult(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class AddToWatchlistRequest(BaseModel):
    symbol: str = Field(..., min_length=1, description="Ticker symbol, e.g. AAPL.")
    company: str = Field("", description="Company name snapshot shown in the watchlist.")


class ErrorResponse(BaseModel):
    detail: str
