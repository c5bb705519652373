"""
Data models for Solana wallet trade analysis.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, NamedTuple, Tuple, Union

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
STABLE_MINTS = frozenset({USDC_MINT, USDT_MINT})

SOL_DECIMALS = 9


class TradeDirection(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class PositionStatus(str, Enum):
    HOLDING = "HOLDING"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class AssetRef:
    """A tradeable SPL asset identified by its mint."""
    mint: str
    decimals: int = SOL_DECIMALS

    @property
    def is_stable(self) -> bool:
        """Native SOL and the known stablecoins count as the quote side."""
        return self.mint == SOL_MINT or self.mint in STABLE_MINTS


@dataclass(frozen=True)
class NativeAmount:
    """Native SOL moved by a swap, in SOL (not lamports)."""
    amount: float

    @property
    def asset(self) -> AssetRef:
        return AssetRef(mint=SOL_MINT, decimals=SOL_DECIMALS)


@dataclass(frozen=True)
class TokenAmount:
    """SPL token moved by a swap, in UI units."""
    asset: AssetRef
    amount: float


SwapLeg = Union[NativeAmount, TokenAmount]


@dataclass(frozen=True)
class Trade:
    """A swap normalized into a buy or sell of one non-stable asset."""
    signature: str
    timestamp: int
    direction: TradeDirection
    asset_mint: str
    asset_amount: float
    stable_amount: float
    unit_price: float
    stable_mint: str


@dataclass
class PriceInfo:
    """Spot market data for an asset's most relevant trading pair."""
    price: Optional[float]
    symbol: Optional[str] = None
    name: Optional[str] = None
    market_cap: Optional[float] = None
    price_change_24h: Optional[float] = None
    pair_address: Optional[str] = None


class PriceCandle(NamedTuple):
    """One hourly OHLCV sample."""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass
class PriceExtrema:
    """Price extremes observed after the first buy and after the last sell.

    The ``has_*_basis`` flags are false when no current price and no
    qualifying candle fed the matching extreme, so it carries no signal.
    """
    max_price_after_buy: float
    min_price_after_buy: float
    max_price_after_sell: float
    has_buy_basis: bool = True
    has_sell_basis: bool = True


@dataclass
class TokenPosition:
    """Per-mint accumulator of trades plus market metadata."""
    mint: str
    buys: List[Trade] = field(default_factory=list)
    sells: List[Trade] = field(default_factory=list)
    symbol: Optional[str] = None
    name: Optional[str] = None
    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    pair_address: Optional[str] = None
    price_change_24h: Optional[float] = None

    def add_trade(self, trade: Trade) -> None:
        if trade.direction == TradeDirection.BUY:
            self.buys.append(trade)
        else:
            self.sells.append(trade)

    def apply_price_info(self, info: Optional[PriceInfo]) -> None:
        """Copy lookup results onto the position; a failed lookup leaves nulls."""
        if info is None:
            return
        self.symbol = info.symbol
        self.name = info.name
        self.current_price = info.price
        self.market_cap = info.market_cap
        self.pair_address = info.pair_address
        self.price_change_24h = info.price_change_24h


@dataclass(frozen=True)
class TokenReport:
    """Complete performance analysis of one traded asset."""
    mint: str
    buys: Tuple[Trade, ...]
    sells: Tuple[Trade, ...]
    symbol: Optional[str]
    name: Optional[str]
    current_price: Optional[float]
    market_cap: Optional[float]
    pair_address: Optional[str]
    price_change_24h: Optional[float]

    total_buy_amount: float
    total_buy_tokens: float
    avg_buy_price: float
    total_sell_amount: float
    total_sell_tokens: float
    avg_sell_price: float

    realized_pnl: float
    realized_pnl_percent: float
    tokens_held: float
    unrealized_value: float
    cost_basis: float
    unrealized_pnl: float
    unrealized_pnl_percent: float

    max_price_after_buy: float
    min_price_after_buy: float
    max_price_after_sell: float
    max_gain_possible: float
    max_drawdown: float
    missed_gains: float
    missed_gains_percent: float

    is_roundtrip: bool
    status: PositionStatus

    @property
    def total_pnl(self) -> float:
        return self.realized_pnl + self.unrealized_pnl

    @property
    def last_trade_timestamp(self) -> int:
        timestamps = [t.timestamp for t in self.buys + self.sells]
        return max(timestamps) if timestamps else 0


@dataclass
class PortfolioSummary:
    """Wallet-level totals across all token reports."""
    tokens_traded: int
    total_invested: float
    total_realized_pnl: float
    total_unrealized_pnl: float
    total_missed_gains: float
    winners: int
    win_rate: float
    roundtrips: int
