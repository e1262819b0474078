from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from stockwatch.api.dependencies import get_aggregator, get_finnhub_client, get_news_selector
from stockwatch.core.connection import LazyConnection
from stockwatch.core.errors import ConfigurationError, RequestTimeoutError, UpstreamHTTPError
from stockwatch.main import app
from stockwatch.models.schemas import NewsArticle, SearchResult, StockView
from stockwatch.services.watchlist_store import connect_memory_store

AAPL_VIEW = StockView(
    symbol="AAPL",
    company="Apple Inc",
    current_price=150.25,
    price_formatted="$150.25",
    change_formatted="+2.50 (1.69%)",
    change_percent=1.69,
    market_cap_formatted="$2.50T",
    pe_ratio="28.46",
)


@pytest.fixture
def mock_aggregator():
    aggregator = MagicMock()
    aggregator.get_stock_details = AsyncMock(return_value=AAPL_VIEW)
    return aggregator


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.search = AsyncMock(
        return_value=[SearchResult(symbol="AAPL", name="Apple Inc", exchange="US", type="Stock")]
    )
    return client


@pytest.fixture
def mock_selector():
    selector = MagicMock()
    selector.get_news = AsyncMock(return_value=[])
    return selector


@pytest.fixture
def api(mock_aggregator, mock_client, mock_selector):
    app.state.watchlist_store = LazyConnection(connect_memory_store, name="watchlist store")
    app.dependency_overrides[get_aggregator] = lambda: mock_aggregator
    app.dependency_overrides[get_finnhub_client] = lambda: mock_client
    app.dependency_overrides[get_news_selector] = lambda: mock_selector
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_check(api):
    response = api.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_stock_details(api, mock_aggregator):
    response = api.get("/api/stocks/aapl")

    assert response.status_code == 200
    assert response.json()["price_formatted"] == "$150.25"
    mock_aggregator.get_stock_details.assert_awaited_once_with("AAPL")


@pytest.mark.parametrize(
    "error, status",
    [
        (RequestTimeoutError(), 504),
        (UpstreamHTTPError(404, "https://finnhub.test/api/v1/quote"), 502),
        (ConfigurationError(), 503),
    ],
)
def test_stock_details_errors_return_user_message(api, mock_aggregator, error, status):
    mock_aggregator.get_stock_details.side_effect = error

    response = api.get("/api/stocks/AAPL")

    assert response.status_code == status
    assert response.json() == {"detail": error.message}


def test_news_splits_symbols(api, mock_selector):
    mock_selector.get_news.return_value = [
        NewsArticle(
            id=1,
            title="Apple news",
            summary="Summary",
            url="https://news.test/1",
            image="https://news.test/1.png",
            datetime=1700000000,
            source="Reuters",
            symbol="AAPL",
        )
    ]

    response = api.get("/api/news", params={"symbols": "AAPL,MSFT"})

    assert response.status_code == 200
    assert response.json()[0]["title"] == "Apple news"
    mock_selector.get_news.assert_awaited_once_with(["AAPL", "MSFT"])


def test_news_without_symbols(api, mock_selector):
    api.get("/api/news")

    mock_selector.get_news.assert_awaited_once_with(None)


def test_watchlist_requires_user(api):
    response = api.get("/api/watchlist")

    assert response.status_code == 401
    assert response.json() == {"detail": "User not authenticated"}


def test_watchlist_round_trip(api):
    headers = {"X-User-Id": "user-1"}

    added = api.post("/api/watchlist", json={"symbol": "aapl", "company": "Apple Inc"}, headers=headers)
    duplicate = api.post("/api/watchlist", json={"symbol": "AAPL", "company": "Apple Inc"}, headers=headers)
    listing = api.get("/api/watchlist", headers=headers)

    assert added.json()["success"] is True
    assert duplicate.json() == {"success": False, "message": None, "error": "Stock already in watchlist"}
    rows = listing.json()
    assert [r["symbol"] for r in rows] == ["AAPL"]
    assert rows[0]["market_cap"] == "$2.50T"

    removed = api.delete("/api/watchlist/AAPL", headers=headers)
    assert removed.json()["success"] is True
    assert api.get("/api/watchlist", headers=headers).json() == []


def test_clear_watchlist(api):
    headers = {"X-User-Id": "user-1"}
    api.post("/api/watchlist", json={"symbol": "MSFT", "company": "Microsoft"}, headers=headers)

    assert api.delete("/api/watchlist", headers=headers).json() == {"cleared": True}
    assert api.delete("/api/watchlist", headers=headers).json() == {"cleared": False}


def test_search_marks_watchlist_members(api, mock_client):
    headers = {"X-User-Id": "user-1"}
    api.post("/api/watchlist", json={"symbol": "AAPL", "company": "Apple Inc"}, headers=headers)

    response = api.get("/api/search", params={"q": "apple"}, headers=headers)

    assert response.status_code == 200
    assert response.json()[0]["is_in_watchlist"] is True
    _, kwargs = mock_client.search.call_args
    assert kwargs["cache"] is not None
