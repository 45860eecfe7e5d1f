"""
Dividend accrual for the monthly simulation.

Dividends are credited to cash, never reinvested as shares directly; the
rebalancer deploys them together with the month's contribution.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional, Sequence

from adaptive_backtest.data.normalizer import add_months, month_start
from adaptive_backtest.models import AssetConfig, DividendEvent, DividendMode, Holding


MONTHS_PER_YEAR = Decimal("12")
DEFAULT_MIN_DIVIDEND = Decimal("0.01")

# Share of the annual yield paid in each calendar month in seasonal mode
SEASONAL_WEIGHTS: dict[int, Decimal] = {
    3: Decimal("0.333"),
    8: Decimal("0.333"),
    10: Decimal("0.334"),
}


@dataclass(frozen=True)
class DividendCredit:
    """A dividend payable to one position for one month."""
    ticker: str
    shares: int
    price: Decimal
    per_share: Decimal
    amount: Decimal


def _per_share_from_yield(
    asset: AssetConfig,
    price: Optional[Decimal],
    as_of: date,
    mode: DividendMode,
) -> Decimal:
    dividend_yield = asset.average_dividend_yield or Decimal("0")
    if dividend_yield <= 0 or price is None or price <= 0:
        return Decimal("0")

    if mode is DividendMode.YIELD:
        return price * dividend_yield / MONTHS_PER_YEAR
    if mode is DividendMode.SEASONAL:
        weight = SEASONAL_WEIGHTS.get(as_of.month, Decimal("0"))
        return price * dividend_yield * weight
    raise ValueError(f"Dividend mode {mode} does not use yields")


def _per_share_from_events(
    events: Sequence[DividendEvent],
    as_of: date,
) -> Decimal:
    """Sum of per-share amounts with ex-date in the month ending at as_of."""
    period_end = month_start(as_of)
    period_start = add_months(period_end, -1)
    return sum(
        (
            e.amount_per_share
            for e in events
            if period_start < e.ex_date <= period_end and e.amount_per_share > 0
        ),
        Decimal("0"),
    )


def calculate_monthly_dividends(
    holdings: Mapping[str, Holding],
    assets: Sequence[AssetConfig],
    prices: Mapping[str, Decimal],
    month_index: int,
    as_of: date,
    mode: DividendMode = DividendMode.YIELD,
    events: Optional[Mapping[str, Sequence[DividendEvent]]] = None,
    min_amount: Decimal = DEFAULT_MIN_DIVIDEND,
) -> list[DividendCredit]:
    """
    Calculate dividend credits for the month.

    Args:
        holdings: Current holdings by ticker
        assets: Configured assets (yields come from here)
        prices: Valuation price by ticker for the month
        month_index: Index of the month; month 0 never pays
        as_of: Month date
        mode: How to derive per-share dividends
        events: Ex-dividend events by ticker (EVENTS mode)
        min_amount: Credits below this amount are discarded

    Returns:
        List of DividendCredit in asset configuration order
    """
    if month_index == 0:
        return []

    credits = []
    for asset in assets:
        holding = holdings.get(asset.ticker)
        if holding is None or holding.shares <= 0:
            continue

        price = prices.get(asset.ticker)
        if mode is DividendMode.EVENTS:
            per_share = _per_share_from_events(
                (events or {}).get(asset.ticker, ()), as_of
            )
        else:
            per_share = _per_share_from_yield(asset, price, as_of, mode)

        if per_share <= 0:
            continue

        amount = (holding.shares * per_share).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        if amount < min_amount:
            continue

        credits.append(
            DividendCredit(
                ticker=asset.ticker,
                shares=holding.shares,
                price=price if price is not None else Decimal("0"),
                per_share=per_share,
                amount=amount,
            )
        )

    return credits
