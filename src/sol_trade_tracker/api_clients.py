import time
import logging
from typing import Optional, List, Dict, Any
import requests

from .config import Config
from .models import PriceInfo, PriceCandle
from .utils import safe_float, safe_int

# Set up logging
logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class APIError(Exception):
    """Raised when an external API returns an unusable response."""


class TransactionFetchError(APIError):
    """Raised when a wallet's swap history cannot be fetched."""


class BaseAPIClient:
    """JSON-over-HTTP client with bounded retry on transient failures."""

    def __init__(self, config: Config, base_url: str):
        self.config = config
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _make_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET an endpoint and decode its JSON body, retrying 429/5xx and transport errors."""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        attempts = max(self.config.max_retries, 0) + 1

        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1
            delay = self.config.retry_base_delay * (2 ** attempt)
            try:
                response = self.session.get(
                    url, params=params, timeout=self.config.request_timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                if last_attempt:
                    raise
                logger.warning(
                    f"{self.__class__.__name__} /{endpoint} transport error ({e}), "
                    f"retry {attempt + 1}/{self.config.max_retries} in {delay:.1f}s")
                time.sleep(delay)
                continue

            if response.status_code in RETRYABLE_STATUS_CODES and not last_attempt:
                logger.warning(
                    f"{self.__class__.__name__} /{endpoint} returned {response.status_code}, "
                    f"retry {attempt + 1}/{self.config.max_retries} in {delay:.1f}s")
                time.sleep(delay)
                continue

            response.raise_for_status()
            return response.json()


class HeliusClient(BaseAPIClient):
    """Client for the Helius enhanced transactions API."""

    def __init__(self, config: Config):
        super().__init__(config, config.helius_base_url)
        self.api_key = config.helius_api_key

    def get_swap_transactions(self, address: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Get the most recent SWAP transactions for a wallet."""
        if limit is None:
            limit = self.config.max_transactions

        params = {
            "api-key": self.api_key,
            "type": "SWAP",
            "limit": limit,
        }

        try:
            data = self._make_request(f"addresses/{address}/transactions", params)
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else "unknown"
            raise TransactionFetchError(f"Helius API error: {status}") from e
        except (requests.RequestException, ValueError) as e:
            raise TransactionFetchError(f"Helius API request failed: {e}") from e

        if not isinstance(data, list):
            message = data.get("error") if isinstance(data, dict) else None
            raise TransactionFetchError(
                f"Helius API error: {message or 'unexpected response'}")

        return data


class DexScreenerClient(BaseAPIClient):
    """Client for DexScreener spot prices and token metadata."""

    def __init__(self, config: Config):
        super().__init__(config, config.dexscreener_base_url)

    def get_token_price(self, mint: str) -> Optional[PriceInfo]:
        """Get price info from the first Solana pair listing the mint."""
        try:
            data = self._make_request(f"latest/dex/tokens/{mint}")
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"DexScreener lookup failed for {mint}: {e}")
            return None

        pairs = data.get("pairs") if isinstance(data, dict) else None
        solana_pairs = [p for p in pairs or [] if p.get("chainId") == "solana"]
        if not solana_pairs:
            logger.info(f"No Solana pair found on DexScreener for {mint}")
            return None

        pair = solana_pairs[0]
        base_token = pair.get("baseToken") or {}
        price_change = pair.get("priceChange") or {}

        return PriceInfo(
            price=_optional_float(pair.get("priceUsd")),
            symbol=base_token.get("symbol"),
            name=base_token.get("name"),
            market_cap=_optional_float(pair.get("marketCap")),
            price_change_24h=_optional_float(price_change.get("h24")),
            pair_address=pair.get("pairAddress"),
        )


class GeckoTerminalClient(BaseAPIClient):
    """Client for GeckoTerminal pool OHLCV history."""

    def __init__(self, config: Config, network: str = "solana"):
        super().__init__(config, config.geckoterminal_base_url)
        self.network = network

    def get_price_history(self, pair_address: str) -> List[PriceCandle]:
        """Get hourly candles for a pool; an empty list on any failure."""
        params = {
            "aggregate": 1,
            "limit": self.config.candle_limit,
        }
        endpoint = f"networks/{self.network}/pools/{pair_address}/ohlcv/hour"

        try:
            data = self._make_request(endpoint, params)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"GeckoTerminal OHLCV failed for {pair_address}: {e}")
            return []

        if not isinstance(data, dict):
            return []
        ohlcv_list = ((data.get("data") or {}).get("attributes") or {}).get("ohlcv_list") or []
        return parse_ohlcv_list(ohlcv_list)


def parse_ohlcv_list(rows: List[Any]) -> List[PriceCandle]:
    """Convert raw ``[ts, open, high, low, close, volume]`` rows into candles."""
    candles = []
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 5:
            logger.debug(f"Skipping malformed candle: {row!r}")
            continue
        candles.append(PriceCandle(
            timestamp=safe_int(row[0]),
            open=safe_float(row[1]),
            high=safe_float(row[2]),
            low=safe_float(row[3]),
            close=safe_float(row[4]),
            volume=safe_float(row[5]) if len(row) > 5 else 0.0,
        ))
    return candles


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
