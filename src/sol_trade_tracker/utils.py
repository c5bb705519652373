"""
Trade classification, aggregation and position analysis.
"""

from typing import List, Dict, Any, Optional, Iterable, Sequence
import math
import re
import time
import logging

from .models import (
    AssetRef,
    NativeAmount,
    TokenAmount,
    SwapLeg,
    Trade,
    TradeDirection,
    TokenPosition,
    PriceCandle,
    PriceExtrema,
    TokenReport,
    PositionStatus,
    PortfolioSummary,
    SOL_DECIMALS,
)

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1e9
MIN_DECIMALS = 0
MAX_DECIMALS = 255
DEFAULT_ROUNDTRIP_MULTIPLIER = 1.5
DEFAULT_DUST_THRESHOLD = 0.001

SORT_KEYS = ("pnl", "missed", "invested", "recent")

_BASE58_ADDRESS = re.compile(r'^[1-9A-HJ-NP-Za-km-z]{32,44}$')


def is_valid_solana_address(address: str) -> bool:
    """Check if a string looks like a base58 Solana public key."""
    if not address:
        return False
    return bool(_BASE58_ADDRESS.match(address))


def safe_float(value: Any) -> float:
    """Parse a numeric field, falling back to 0 for missing or malformed input."""
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def safe_int(value: Any) -> int:
    return int(safe_float(value))


# ----------------------------------------------------------------------
# Swap classification
# ----------------------------------------------------------------------

def resolve_swap_leg(native: Optional[Dict[str, Any]],
                     token_transfers: Optional[List[Dict[str, Any]]]) -> Optional[SwapLeg]:
    """
    Resolve one side of a swap into a single leg.

    The first token transfer wins over a native SOL transfer when both are
    present; only the first entry of the token list is consulted.
    """
    if isinstance(token_transfers, list) and token_transfers:
        first = token_transfers[0]
        mint = first.get("mint") if isinstance(first, dict) else None
        if mint and isinstance(mint, str):
            raw = first.get("rawTokenAmount")
            if not isinstance(raw, dict):
                raw = {}
            decimals = parse_decimals(raw.get("decimals"))
            amount = safe_float(raw.get("tokenAmount")) / (10 ** decimals)
            return TokenAmount(asset=AssetRef(mint=mint, decimals=decimals), amount=amount)

    if isinstance(native, dict):
        return NativeAmount(amount=safe_float(native.get("amount")) / LAMPORTS_PER_SOL)

    return None


def parse_decimals(value: Any) -> int:
    """SPL decimals fit in a u8; anything missing or out of range means 9."""
    if value is None:
        return SOL_DECIMALS
    decimals = safe_int(value)
    if not MIN_DECIMALS <= decimals <= MAX_DECIMALS:
        logger.debug(f"Ignoring out-of-range decimals {value!r}")
        return SOL_DECIMALS
    return decimals


def parse_swap_transaction(tx: Dict[str, Any], wallet_address: str) -> Optional[Trade]:
    """
    Convert one Helius enhanced transaction into a Trade.

    Returns None for anything that is not a stable/native <-> token swap.
    ``wallet_address`` is accepted for provenance checks but does not affect
    the direction logic.
    """
    if not isinstance(tx, dict):
        return None
    events = tx.get("events")
    swap = events.get("swap") if isinstance(events, dict) else None
    if not isinstance(swap, dict) or not swap:
        return None

    signature = str(tx.get("signature", ""))
    leg_in = resolve_swap_leg(swap.get("nativeInput"), swap.get("tokenInputs"))
    leg_out = resolve_swap_leg(swap.get("nativeOutput"), swap.get("tokenOutputs"))

    if leg_in is None or leg_out is None:
        logger.debug(f"Skipping swap {signature}: unresolved input or output")
        return None

    stable_in = leg_in.asset.is_stable
    stable_out = leg_out.asset.is_stable

    if stable_in and not stable_out:
        direction = TradeDirection.BUY
        asset_leg, stable_leg = leg_out, leg_in
    elif not stable_in and stable_out:
        direction = TradeDirection.SELL
        asset_leg, stable_leg = leg_in, leg_out
    else:
        # Token to token (or stable to stable) swaps are out of scope
        logger.debug(f"Skipping swap {signature}: not a directional trade")
        return None

    if asset_leg.amount <= 0 or stable_leg.amount <= 0:
        logger.warning(
            f"Skipping swap {signature} with non-positive amounts: "
            f"asset={asset_leg.amount}, stable={stable_leg.amount}")
        return None

    unit_price = stable_leg.amount / asset_leg.amount if asset_leg.amount > 0 else 0.0

    return Trade(
        signature=signature,
        timestamp=safe_int(tx.get("timestamp")),
        direction=direction,
        asset_mint=asset_leg.asset.mint,
        asset_amount=asset_leg.amount,
        stable_amount=stable_leg.amount,
        unit_price=unit_price,
        stable_mint=stable_leg.asset.mint,
    )


def parse_swap_transactions(raw_transactions: List[Dict[str, Any]],
                            wallet_address: str) -> List[Trade]:
    """Classify every raw swap, dropping the ones that yield no trade."""
    trades = []

    if not raw_transactions:
        return trades

    for tx in raw_transactions:
        if not isinstance(tx, dict):
            logger.warning(f"Skipping malformed transaction record: {tx!r}")
            continue
        trade = parse_swap_transaction(tx, wallet_address)
        if trade is not None:
            trades.append(trade)

    logger.info(
        f"Parsed {len(trades)} trades from {len(raw_transactions)} raw transactions")
    return trades


# ----------------------------------------------------------------------
# Aggregation
# ----------------------------------------------------------------------

def group_trades_by_token(trades: Iterable[Trade]) -> Dict[str, TokenPosition]:
    """Group trades by traded mint, keeping input order within each side."""
    positions: Dict[str, TokenPosition] = {}
    seen_signatures = set()

    for trade in trades:
        if trade.signature in seen_signatures:
            logger.debug(f"Duplicate signature {trade.signature} counted again")
        seen_signatures.add(trade.signature)

        position = positions.get(trade.asset_mint)
        if position is None:
            position = positions[trade.asset_mint] = TokenPosition(mint=trade.asset_mint)
        position.add_trade(trade)

    logger.info(f"Grouped trades into {len(positions)} unique tokens")
    return positions


# ----------------------------------------------------------------------
# Price history
# ----------------------------------------------------------------------

def compute_price_extrema(buy_timestamps: Sequence[int],
                          sell_timestamps: Sequence[int],
                          candles: Iterable[PriceCandle],
                          current_price: Optional[float]) -> PriceExtrema:
    """
    Find the highest and lowest prices after the first buy and the highest
    price after the last sell.

    Candles may arrive in any order, so the whole series is scanned once.
    Extremes start from the current price so a quiet history still reports
    where the asset trades now.
    """
    first_buy_time = min(buy_timestamps) if buy_timestamps else 0
    last_sell_time = max(sell_timestamps) if sell_timestamps else 0

    max_after_buy = current_price or 0.0
    min_after_buy = current_price or math.inf
    max_after_sell = current_price or 0.0
    has_buy_basis = has_sell_basis = bool(current_price)

    for candle in candles:
        if candle.timestamp > first_buy_time:
            max_after_buy = max(max_after_buy, candle.high)
            min_after_buy = min(min_after_buy, candle.low)
            has_buy_basis = True

        if last_sell_time > 0 and candle.timestamp > last_sell_time:
            max_after_sell = max(max_after_sell, candle.high)
            has_sell_basis = True

    return PriceExtrema(
        max_price_after_buy=max_after_buy,
        min_price_after_buy=0.0 if math.isinf(min_after_buy) else min_after_buy,
        max_price_after_sell=max_after_sell,
        has_buy_basis=has_buy_basis,
        has_sell_basis=has_sell_basis,
    )


# ----------------------------------------------------------------------
# Position analysis
# ----------------------------------------------------------------------

def analyze_position(position: TokenPosition,
                     extrema: PriceExtrema,
                     roundtrip_multiplier: float = DEFAULT_ROUNDTRIP_MULTIPLIER,
                     dust_threshold: float = DEFAULT_DUST_THRESHOLD) -> TokenReport:
    """
    Compute PnL and opportunity-cost metrics for one position.

    Averages are weighted by token amount. Every ratio falls back to 0 when
    its denominator is zero, so the report never contains NaN or infinity.
    """
    total_buy_amount = sum(b.stable_amount for b in position.buys)
    total_buy_tokens = sum(b.asset_amount for b in position.buys)
    avg_buy_price = total_buy_amount / total_buy_tokens if total_buy_tokens > 0 else 0.0

    total_sell_amount = sum(s.stable_amount for s in position.sells)
    total_sell_tokens = sum(s.asset_amount for s in position.sells)
    avg_sell_price = total_sell_amount / total_sell_tokens if total_sell_tokens > 0 else 0.0

    # Proceeds minus the average cost of the tokens actually sold
    realized_pnl = total_sell_amount - total_sell_tokens * avg_buy_price
    realized_pnl_percent = 0.0
    if total_sell_tokens > 0 and avg_buy_price > 0:
        realized_pnl_percent = (avg_sell_price - avg_buy_price) / avg_buy_price * 100

    current_price = position.current_price
    tokens_held = total_buy_tokens - total_sell_tokens
    cost_basis = tokens_held * avg_buy_price
    unrealized_value = 0.0
    unrealized_pnl = 0.0
    unrealized_pnl_percent = 0.0
    # Without a current price the holding cannot be valued at all
    if current_price is not None:
        unrealized_value = tokens_held * current_price
        unrealized_pnl = unrealized_value - cost_basis
        if cost_basis > 0:
            unrealized_pnl_percent = unrealized_pnl / cost_basis * 100

    max_gain_possible = 0.0
    max_drawdown = 0.0
    if avg_buy_price > 0 and extrema.has_buy_basis:
        max_gain_possible = (extrema.max_price_after_buy - avg_buy_price) / avg_buy_price * 100
        max_drawdown = (extrema.min_price_after_buy - avg_buy_price) / avg_buy_price * 100

    missed_gains = 0.0
    missed_gains_percent = 0.0
    if position.sells and avg_sell_price > 0 and extrema.has_sell_basis:
        missed_gains = (extrema.max_price_after_sell - avg_sell_price) * total_sell_tokens
        missed_gains_percent = (extrema.max_price_after_sell - avg_sell_price) / avg_sell_price * 100

    is_roundtrip = (
        tokens_held > 0 and
        extrema.max_price_after_buy > avg_buy_price * roundtrip_multiplier and
        current_price is not None and
        current_price < avg_buy_price
    )

    status = PositionStatus.HOLDING if tokens_held > dust_threshold else PositionStatus.CLOSED

    return TokenReport(
        mint=position.mint,
        buys=tuple(position.buys),
        sells=tuple(position.sells),
        symbol=position.symbol,
        name=position.name,
        current_price=current_price,
        market_cap=position.market_cap,
        pair_address=position.pair_address,
        price_change_24h=position.price_change_24h,
        total_buy_amount=total_buy_amount,
        total_buy_tokens=total_buy_tokens,
        avg_buy_price=avg_buy_price,
        total_sell_amount=total_sell_amount,
        total_sell_tokens=total_sell_tokens,
        avg_sell_price=avg_sell_price,
        realized_pnl=realized_pnl,
        realized_pnl_percent=realized_pnl_percent,
        tokens_held=tokens_held,
        unrealized_value=unrealized_value,
        cost_basis=cost_basis,
        unrealized_pnl=unrealized_pnl,
        unrealized_pnl_percent=unrealized_pnl_percent,
        max_price_after_buy=extrema.max_price_after_buy,
        min_price_after_buy=extrema.min_price_after_buy,
        max_price_after_sell=extrema.max_price_after_sell,
        max_gain_possible=max_gain_possible,
        max_drawdown=max_drawdown,
        missed_gains=missed_gains,
        missed_gains_percent=missed_gains_percent,
        is_roundtrip=is_roundtrip,
        status=status,
    )


def summarize_reports(reports: Sequence[TokenReport]) -> PortfolioSummary:
    """Roll token reports up into wallet-level totals."""
    winners = sum(1 for r in reports if r.realized_pnl > 0 or r.unrealized_pnl > 0)
    return PortfolioSummary(
        tokens_traded=len(reports),
        total_invested=sum(r.total_buy_amount for r in reports),
        total_realized_pnl=sum(r.realized_pnl for r in reports),
        total_unrealized_pnl=sum(r.unrealized_pnl for r in reports),
        total_missed_gains=sum(r.missed_gains for r in reports if r.missed_gains > 0),
        winners=winners,
        win_rate=winners / len(reports) * 100 if reports else 0.0,
        roundtrips=sum(1 for r in reports if r.is_roundtrip),
    )


def sort_reports(reports: Sequence[TokenReport], sort_by: str = "pnl") -> List[TokenReport]:
    """Return reports ordered for display, largest first."""
    keys = {
        "pnl": lambda r: r.total_pnl,
        "missed": lambda r: r.missed_gains_percent,
        "invested": lambda r: r.total_buy_amount,
        "recent": lambda r: r.last_trade_timestamp,
    }
    if sort_by not in keys:
        raise ValueError(
            f"Unknown sort key '{sort_by}', expected one of: {', '.join(SORT_KEYS)}")
    return sorted(reports, key=keys[sort_by], reverse=True)


# ----------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------

def _is_missing(value: Optional[float]) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def format_usd(number: Optional[float], decimals: int = 2) -> str:
    """Format a dollar amount with K/M/B suffixes."""
    if _is_missing(number):
        return "-"
    sign = "-" if number < 0 else ""
    num = abs(number)
    if num >= 1_000_000_000:
        return f"{sign}${num / 1_000_000_000:.{decimals}f}B"
    elif num >= 1_000_000:
        return f"{sign}${num / 1_000_000:.{decimals}f}M"
    elif num >= 1_000:
        return f"{sign}${num / 1_000:.{decimals}f}K"
    return f"{sign}${num:.{decimals}f}"


def format_price(price: Optional[float]) -> str:
    """Format a unit price with precision scaled to its magnitude."""
    if _is_missing(price) or not price:
        return "-"
    if price < 0.00000001:
        return f"${price:.2e}"
    if price < 0.0001:
        return f"${price:.10f}"
    if price < 0.01:
        return f"${price:.8f}"
    if price < 1:
        return f"${price:.6f}"
    if price < 100:
        return f"${price:.4f}"
    return f"${price:.2f}"


def format_percent(pct: Optional[float]) -> str:
    if _is_missing(pct):
        return "-"
    sign = "+" if pct >= 0 else ""
    return f"{sign}{pct:.2f}%"


def shorten_address(address: Optional[str]) -> str:
    if not address:
        return ""
    return f"{address[:4]}...{address[-4:]}"


def time_ago(timestamp: int, now: Optional[float] = None) -> str:
    """Render a Unix timestamp relative to now."""
    if now is None:
        now = time.time()
    seconds = int(now - timestamp)
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"
