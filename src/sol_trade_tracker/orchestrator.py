"""
Per-wallet analysis run: fetch swaps, classify, then enrich each token with
market data under a bounded, paced worker pool.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Protocol, Dict, Any

from .config import Config
from .models import PriceCandle, PriceInfo, TokenPosition, TokenReport
from .utils import (
    parse_swap_transactions,
    group_trades_by_token,
    compute_price_extrema,
    analyze_position,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class TransactionProvider(Protocol):
    def get_swap_transactions(self, address: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        ...


class PriceProvider(Protocol):
    def get_token_price(self, mint: str) -> Optional[PriceInfo]:
        ...


class CandleProvider(Protocol):
    def get_price_history(self, pair_address: str) -> List[PriceCandle]:
        ...


class RequestPacer:
    """
    Spaces external calls at least ``min_interval`` seconds apart.

    Slots are reserved under a lock and slept on outside it, so the spacing
    holds across all worker threads sharing one pacer.
    """

    def __init__(self, min_interval: float,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot: Optional[float] = None

    def wait(self) -> None:
        with self._lock:
            now = self._clock()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = slot + self.min_interval
        delay = slot - now
        if delay > 0:
            self._sleep(delay)


class ReportOrchestrator:
    """Coordinates one analysis run; all arithmetic lives in ``utils``."""

    def __init__(self, config: Config,
                 transaction_client: TransactionProvider,
                 price_client: PriceProvider,
                 candle_client: CandleProvider,
                 pacer: Optional[RequestPacer] = None,
                 on_progress: Optional[ProgressCallback] = None):
        self.config = config
        self.transaction_client = transaction_client
        self.price_client = price_client
        self.candle_client = candle_client
        self.pacer = pacer or RequestPacer(config.rate_limit_delay)
        self.on_progress = on_progress

    def _progress(self, message: str) -> None:
        logger.info(message)
        if self.on_progress:
            self.on_progress(message)

    def analyze_wallet(self, wallet_address: str) -> List[TokenReport]:
        """
        Build one report per traded token, in first-seen order.

        A failed transaction fetch raises ``TransactionFetchError`` and no
        reports are produced.
        """
        self._progress("Fetching transactions from Helius...")
        self.pacer.wait()
        transactions = self.transaction_client.get_swap_transactions(
            wallet_address, self.config.max_transactions)
        self._progress(
            f"Found {len(transactions)} swap transactions. Processing...")

        trades = parse_swap_transactions(transactions, wallet_address)
        self._progress(f"Processed {len(trades)} trades. Grouping by token...")

        positions = group_trades_by_token(trades)
        self._progress(
            f"Found {len(positions)} unique tokens. Fetching price data...")

        return self.analyze_positions(list(positions.values()))

    def analyze_positions(self, positions: List[TokenPosition]) -> List[TokenReport]:
        """Enrich and analyze positions with at most N lookups in flight."""
        if not positions:
            return []

        total = len(positions)
        workers = max(1, self.config.max_concurrent_lookups)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # map() yields results in submission order
            return list(executor.map(
                self._analyze_token, positions, range(1, total + 1), [total] * total))

    def _analyze_token(self, position: TokenPosition, index: int, total: int) -> TokenReport:
        self._progress(f"Analyzing {index}/{total}: {position.mint[:8]}...")

        position.apply_price_info(self._lookup_price(position.mint))

        candles: List[PriceCandle] = []
        if position.pair_address:
            candles = self._lookup_candles(position.pair_address)

        extrema = compute_price_extrema(
            [b.timestamp for b in position.buys],
            [s.timestamp for s in position.sells],
            candles,
            position.current_price,
        )
        return analyze_position(
            position,
            extrema,
            roundtrip_multiplier=self.config.roundtrip_multiplier,
            dust_threshold=self.config.holding_dust_threshold,
        )

    def _lookup_price(self, mint: str) -> Optional[PriceInfo]:
        self.pacer.wait()
        try:
            return self.price_client.get_token_price(mint)
        except Exception as e:
            logger.warning(f"Price lookup failed for {mint}: {e}")
            return None

    def _lookup_candles(self, pair_address: str) -> List[PriceCandle]:
        self.pacer.wait()
        try:
            return self.candle_client.get_price_history(pair_address)
        except Exception as e:
            logger.warning(f"Candle fetch failed for {pair_address}: {e}")
            return []
