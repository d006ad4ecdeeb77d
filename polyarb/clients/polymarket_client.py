"""
Polymarket HTTP client.
Market metadata from the Gamma API, top-of-book quotes from the CLOB API.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from ..exceptions import ExchangeError, MarketNotFoundError
from ..models import Market, PriceQuote, utc_now
from ..utils.logger import get_logger
from .base import ExchangeClient

logger = get_logger("polymarket")

RETRY_STATUSES = {429, 500, 502, 503, 504}


class PolymarketClient(ExchangeClient):
    """
    Client for the public Polymarket APIs.

    Neither endpoint requires authentication. Requests are retried with
    exponential backoff on network errors, rate limiting and 5xx responses.
    """

    def __init__(
        self,
        clob_url: str = "https://clob.polymarket.com",
        gamma_url: str = "https://gamma-api.polymarket.com",
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        retry_backoff_seconds: float = 0.5
    ):
        """
        Initialize Polymarket client.

        Args:
            clob_url: CLOB API base URL (order books)
            gamma_url: Gamma API base URL (markets)
            timeout_seconds: Total timeout per request
            max_retries: Retries after the first failed attempt
            retry_backoff_seconds: Base delay, doubled on each retry
        """
        self.clob_url = clob_url.rstrip("/")
        self.gamma_url = gamma_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"Content-Type": "application/json"}
            )
        logger.info("Polymarket client initialized")

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def _request(self, url: str, params: Optional[dict] = None) -> Any:
        """GET a JSON document, retrying transient failures."""
        if not self._session:
            await self.initialize()

        last_error: Optional[str] = None

        for attempt in range(self.max_retries + 1):
            try:
                async with self._session.get(url, params=params) as response:
                    if response.status in RETRY_STATUSES:
                        last_error = f"HTTP {response.status}"
                    elif response.status >= 400:
                        raise ExchangeError(f"HTTP {response.status} for {url}", status=response.status)
                    else:
                        return await response.json(content_type=None)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = str(e) or type(e).__name__

            if attempt < self.max_retries:
                delay = self.retry_backoff_seconds * (2 ** attempt)
                logger.warning(
                    f"Retrying request (attempt {attempt + 1}): {last_error}",
                    extra={"url": url, "delay": delay}
                )
                await asyncio.sleep(delay)

        logger.error(f"Polymarket request failed: {last_error}", extra={"url": url})
        raise ExchangeError(f"Request to {url} failed after {self.max_retries + 1} attempts: {last_error}")

    async def get_markets(self, limit: int = 100, offset: int = 0) -> list[Market]:
        """
        Fetch one page of active markets.

        Args:
            limit: Page size
            offset: Page offset

        Returns:
            List of markets
        """
        data = await self._request(
            f"{self.gamma_url}/markets",
            params={"active": "true", "closed": "false", "limit": limit, "offset": offset}
        )
        markets = [parse_market(item) for item in data or []]
        logger.info(f"Fetched {len(markets)} markets")
        return markets

    async def _get_market_data(self, market_id: str) -> dict:
        try:
            data = await self._request(f"{self.gamma_url}/markets/{market_id}")
        except ExchangeError as e:
            if e.status == 404:
                raise MarketNotFoundError(market_id) from None
            raise
        if not data:
            raise MarketNotFoundError(market_id)
        return data

    async def get_market(self, market_id: str) -> Market:
        return parse_market(await self._get_market_data(market_id))

    async def get_market_prices(self, market_id: str) -> list[PriceQuote]:
        """
        Fetch best bid/ask for every outcome of a market.

        Last price comes from the market's outcome prices, bid and ask
        from each outcome token's order book.
        """
        data = await self._get_market_data(market_id)
        market = parse_market(data)
        last_prices = [_to_float(p) for p in parse_list_field(data.get("outcomePrices"))]

        books = await asyncio.gather(*(self._get_order_book(t) for t in market.token_ids))

        prices = []
        for i, (outcome, book) in enumerate(zip(market.outcomes, books)):
            prices.append(PriceQuote(
                market_id=market.market_id,
                outcome=outcome,
                bid_price=_best_price(book.get("bids", []), highest=True),
                ask_price=_best_price(book.get("asks", []), highest=False),
                last_price=last_prices[i] if i < len(last_prices) else 0.0,
                observed_at=_parse_book_timestamp(book.get("timestamp")),
            ))

        logger.debug(f"Fetched {len(prices)} prices for market {market_id}")
        return prices

    async def _get_order_book(self, token_id: str) -> dict:
        return await self._request(f"{self.clob_url}/book", params={"token_id": token_id}) or {}

    async def get_trending_markets(self, limit: int = 20) -> list[Market]:
        data = await self._request(
            f"{self.gamma_url}/markets",
            params={"active": "true", "closed": "false", "limit": limit,
                    "order": "volume", "ascending": "false"}
        )
        return [parse_market(item) for item in data or []]

    async def health_check(self) -> bool:
        if not self._session:
            await self.initialize()
        try:
            async with self._session.get(f"{self.clob_url}/") as response:
                return response.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Polymarket health check failed: {e}")
            return False


def parse_list_field(raw: Any) -> list[str]:
    """Parse a field that may be a list, a JSON array string or comma-separated."""
    if raw is None or raw == "":
        return []
    if isinstance(raw, list):
        return [str(item).strip() for item in raw]
    raw = str(raw)
    if raw.startswith("["):
        try:
            return [str(item).strip() for item in json.loads(raw)]
        except json.JSONDecodeError:
            raw = raw.strip("[]")
    return [item.strip().strip('"') for item in raw.split(",") if item.strip()]


def parse_market(data: dict) -> Market:
    """Parse a Gamma API market document."""
    end_date = None
    end_date_str = data.get("endDate") or data.get("end_date_iso")
    if end_date_str:
        try:
            end_date = datetime.fromisoformat(str(end_date_str).replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable end date {end_date_str!r}")

    return Market(
        market_id=str(data.get("id", "")),
        question=data.get("question", ""),
        description=data.get("description", "") or "",
        outcomes=parse_list_field(data.get("outcomes")),
        active=bool(data.get("active", True)) and not data.get("closed", False),
        volume=_to_float(data.get("volumeNum", data.get("volume"))),
        liquidity=_to_float(data.get("liquidityNum", data.get("liquidity"))),
        end_date=end_date,
        token_ids=parse_list_field(data.get("clobTokenIds")),
    )


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _best_price(levels: list[dict], highest: bool) -> float:
    prices = [_to_float(level.get("price")) for level in levels]
    if not prices:
        return 0.0
    return max(prices) if highest else min(prices)


def _parse_book_timestamp(raw: Any) -> datetime:
    value = _to_float(raw)
    if value <= 0:
        return utc_now()
    if value > 1e12:  # Milliseconds
        value /= 1000
    return datetime.fromtimestamp(value, tz=timezone.utc)
