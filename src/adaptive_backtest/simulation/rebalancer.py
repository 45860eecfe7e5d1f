"""
Whole-share rebalancing toward target allocations.

The rebalancer brings priced assets back toward their target weights using
only whole shares and the cash available in the month's ledger. Sales are
executed first so their proceeds can fund purchases; an asset is never both
sold and bought in the same pass.

Target values use an asymmetric basis:
- Overallocated assets target ``holdings_value x weight`` so only the
  excess over the invested base is sold.
- Other assets target ``(holdings_value + cash) x weight`` so idle cash is
  counted toward what they should be brought up to.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Iterable, Mapping, Sequence

from adaptive_backtest.models import AssetConfig, Holding, TransactionType
from adaptive_backtest.simulation.ledger import CashLedger

logger = logging.getLogger(__name__)

DEFAULT_MIN_SELL_VALUE = Decimal("100")


class RebalanceError(Exception):
    """Raised when a rebalance pass produces an inconsistent set of trades."""
    pass


@dataclass(frozen=True)
class RebalanceOutcome:
    """
    Result of one rebalance pass.

    Attributes:
        holdings: Holdings by ticker after the pass
        sold: Tickers sold, in execution order
        bought: Tickers bought, in execution order
    """
    holdings: dict[str, Holding]
    sold: tuple[str, ...] = ()
    bought: tuple[str, ...] = ()


@dataclass(frozen=True)
class _Position:
    ticker: str
    weight: Decimal
    price: Decimal
    holding: Holding
    value: Decimal
    allocation: Decimal
    target_shares: int

    @property
    def net_shares(self) -> int:
        return self.target_shares - self.holding.shares


def renormalize_allocations(
    assets: Sequence[AssetConfig],
    available: Iterable[str],
) -> dict[str, Decimal]:
    """
    Rescale target weights over the assets available this month.

    Args:
        assets: Configured assets
        available: Tickers with genuine data for the month

    Returns:
        Weights by ticker summing to 1.0, in configuration order; empty when
        no configured asset is available or all available weights are zero
    """
    available_set = set(available)
    selected = [a for a in assets if a.ticker in available_set]
    total = sum((a.target_allocation for a in selected), Decimal("0"))
    if total <= 0:
        return {}
    return {a.ticker: a.target_allocation / total for a in selected}


def _floor_shares(value: Decimal, price: Decimal) -> int:
    if value <= 0:
        return 0
    return int((value / price).to_integral_value(rounding=ROUND_FLOOR))


def _build_positions(
    holdings: Mapping[str, Holding],
    prices: Mapping[str, Decimal],
    targets: Mapping[str, Decimal],
    cash: Decimal,
) -> list[_Position]:
    priced = {
        ticker: prices[ticker]
        for ticker in targets
        if prices.get(ticker) is not None and prices[ticker] > 0
    }
    for ticker in targets:
        if ticker not in priced:
            logger.debug("%s has no price this month; excluded from rebalance", ticker)

    values = {
        ticker: holdings.get(ticker, Holding()).market_value(price)
        for ticker, price in priced.items()
    }
    holdings_value = sum(values.values(), Decimal("0"))
    total_value = holdings_value + cash
    if total_value <= 0:
        return []

    positions = []
    for ticker, price in priced.items():
        weight = targets[ticker]
        allocation = values[ticker] / total_value
        if allocation > weight:
            target_value = holdings_value * weight
        else:
            target_value = total_value * weight
        positions.append(
            _Position(
                ticker=ticker,
                weight=weight,
                price=price,
                holding=holdings.get(ticker, Holding()),
                value=values[ticker],
                allocation=allocation,
                target_shares=_floor_shares(target_value, price),
            )
        )
    return positions


def rebalance(
    holdings: Mapping[str, Holding],
    prices: Mapping[str, Decimal],
    targets: Mapping[str, Decimal],
    ledger: CashLedger,
    allow_sells: bool = True,
    min_sell_value: Decimal = DEFAULT_MIN_SELL_VALUE,
) -> RebalanceOutcome:
    """
    Move priced holdings toward target weights with whole shares.

    Sales run first, most profitable position first; a sale worth less than
    min_sell_value is deferred. Purchases follow, most underweight position
    first, each limited by the cash left in the ledger. Purchases are
    journaled as REBALANCE_BUY when the pass sold anything, otherwise as
    CONTRIBUTION. Leftover cash is recorded as a reserve entry.

    Args:
        holdings: Holdings by ticker before the pass
        prices: Valuation price by ticker for the month
        targets: Renormalized target weights by ticker
        ledger: The month's cash ledger (credited and debited in place)
        allow_sells: False for a buy-only pass
        min_sell_value: Minimum value of a sale

    Returns:
        RebalanceOutcome with the updated holdings

    Raises:
        RebalanceError: If the same ticker would be sold and bought
    """
    new_holdings = dict(holdings)
    positions = _build_positions(holdings, prices, targets, ledger.balance())
    sold: list[str] = []
    bought: list[str] = []

    if allow_sells:
        sells = [p for p in positions if p.net_shares < 0]
        sells.sort(key=lambda p: (-p.holding.unrealized_return(p.price), p.ticker))
        for position in sells:
            quantity = -position.net_shares
            proceeds = quantity * position.price
            if proceeds < min_sell_value:
                logger.debug(
                    "%s: deferring sale of %d shares worth %s",
                    position.ticker, quantity, proceeds,
                )
                continue

            holding = position.holding
            remaining = holding.shares - quantity
            basis = holding.total_invested * remaining / holding.shares
            new_holdings[position.ticker] = Holding(shares=remaining, total_invested=basis)
            ledger.credit(
                proceeds,
                TransactionType.REBALANCE_SELL,
                ticker=position.ticker,
                price=position.price,
                shares_added=-quantity,
                total_shares=remaining,
                total_invested=basis,
            )
            sold.append(position.ticker)

    buy_type = TransactionType.REBALANCE_BUY if sold else TransactionType.CONTRIBUTION
    buys = [p for p in positions if p.net_shares > 0]
    buys.sort(key=lambda p: (-(p.weight - p.allocation), p.ticker))
    for position in buys:
        affordable = _floor_shares(ledger.balance(), position.price)
        quantity = min(position.net_shares, affordable)
        if quantity <= 0:
            continue

        cost = quantity * position.price
        holding = new_holdings.get(position.ticker, Holding())
        updated = Holding(
            shares=holding.shares + quantity,
            total_invested=holding.total_invested + cost,
        )
        new_holdings[position.ticker] = updated
        ledger.debit(
            cost,
            buy_type,
            ticker=position.ticker,
            price=position.price,
            shares_added=quantity,
            total_shares=updated.shares,
            total_invested=updated.total_invested,
        )
        bought.append(position.ticker)

    collisions = set(sold) & set(bought)
    if collisions:
        raise RebalanceError(
            f"Tickers both sold and bought in one pass: {sorted(collisions)}"
        )

    ledger.reserve()

    return RebalanceOutcome(
        holdings=new_holdings,
        sold=tuple(sold),
        bought=tuple(bought),
    )
