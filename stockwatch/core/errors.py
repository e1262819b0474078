"""Error taxonomy shared by the fetch, aggregation and watchlist layers.

Every error exposes a ``message`` that is safe to show to an end user:
upstream response bodies and URLs (which carry the access token) stay in
the logs.
"""

from __future__ import annotations


class StockwatchError(Exception):
    message = "Something went wrong. Please try again later."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ConfigurationError(StockwatchError):
    message = "FINNHUB_API_KEY is not configured"


class NotAuthenticatedError(StockwatchError):
    message = "User not authenticated"


class UpstreamError(StockwatchError):
    message = "Failed to fetch data. Please try again later."


class UpstreamHTTPError(UpstreamError):
    message = "Request failed. Please try again later."

    def __init__(self, status: int, url: str) -> None:
        self.status = status
        self.url = url
        super().__init__()

    @property
    def retryable(self) -> bool:
        return self.status == 429 or self.status >= 500

    def __str__(self) -> str:
        return f"HTTP error! status: {self.status}"


class RequestTimeoutError(UpstreamError):
    message = "Request took too long to complete. Please try again later."


class ServiceUnreachableError(UpstreamError):
    message = "Unable to connect to the server. Please check your internet connection."
