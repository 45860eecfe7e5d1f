"""
Core simulation engine for monthly adaptive backtests.

The simulation is a fold over month indexes: ``step`` takes an immutable
SimulationState and returns the next one. Each month values holdings at the
month's prices, credits dividends and contributions, rebalances toward the
targets of the assets that have genuine data, and records a snapshot plus a
reconciled transaction history.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Mapping, Optional

from adaptive_backtest.config import EngineSettings
from adaptive_backtest.data.normalizer import NormalizedSeries
from adaptive_backtest.models import (
    BacktestParams,
    DividendEvent,
    Holding,
    HoldingValue,
    MonthlyPortfolioHistory,
    PortfolioSnapshot,
    TransactionType,
)
from adaptive_backtest.simulation.dividends import calculate_monthly_dividends
from adaptive_backtest.simulation.ledger import CashLedger
from adaptive_backtest.simulation.rebalancer import rebalance, renormalize_allocations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketData:
    """
    Read-only market data for one run.

    Attributes:
        month_dates: Expected month dates of the simulation
        series: Normalized price series by ticker
        dividends: Ex-dividend events by ticker
    """
    month_dates: tuple[date, ...]
    series: Mapping[str, NormalizedSeries]
    dividends: Mapping[str, tuple[DividendEvent, ...]] = field(default_factory=dict)

    def available_tickers(self, month_date: date) -> set[str]:
        """Tickers with a genuine observation for the month."""
        return {
            ticker for ticker, series in self.series.items()
            if series.is_available(month_date)
        }

    def prices_for(self, month_date: date) -> dict[str, Decimal]:
        """Valuation prices for the month, forward filled where needed."""
        prices = {}
        for ticker, series in self.series.items():
            price = series.price_on(month_date)
            if price is not None:
                prices[ticker] = price
        return prices


@dataclass(frozen=True)
class SimulationState:
    """
    State carried between months.

    Attributes:
        cash: Cash balance at the end of the last simulated month
        holdings: Holdings by ticker
        last_value: Portfolio value of the last snapshot (None before the first)
        total_contributions: Initial capital and contributions actually credited
        total_dividends: Dividends credited so far
        capital_deposited: Whether the initial capital has been credited
        skipped_months: Month dates with no available asset
        snapshots: Recorded month-end snapshots
        history: Recorded monthly histories
    """
    cash: Decimal = Decimal("0")
    holdings: Mapping[str, Holding] = field(default_factory=dict)
    last_value: Optional[Decimal] = None
    total_contributions: Decimal = Decimal("0")
    total_dividends: Decimal = Decimal("0")
    capital_deposited: bool = False
    skipped_months: tuple[date, ...] = ()
    snapshots: tuple[PortfolioSnapshot, ...] = ()
    history: tuple[MonthlyPortfolioHistory, ...] = ()

    @property
    def missed_contributions(self) -> int:
        return len(self.skipped_months)

    @property
    def final_value(self) -> Decimal:
        if not self.snapshots:
            return Decimal("0")
        return self.snapshots[-1].value


def step(
    state: SimulationState,
    month_index: int,
    market: MarketData,
    params: BacktestParams,
    settings: EngineSettings,
) -> SimulationState:
    """
    Simulate one month.

    Args:
        state: State after the previous month
        month_index: Index into market.month_dates
        market: Read-only market data
        params: Backtest parameters
        settings: Engine settings

    Returns:
        The state after this month
    """
    month_date = market.month_dates[month_index]
    available = market.available_tickers(month_date) & set(params.tickers)
    targets = renormalize_allocations(params.assets, available)

    if not targets:
        logger.warning(
            "Month %d (%s): no asset has data; contribution skipped",
            month_index, month_date,
        )
        return replace(state, skipped_months=state.skipped_months + (month_date,))

    prices = market.prices_for(month_date)
    ledger = CashLedger(state.cash, month_index, month_date)

    dividends = calculate_monthly_dividends(
        holdings=state.holdings,
        assets=params.assets,
        prices=prices,
        month_index=month_index,
        as_of=month_date,
        mode=settings.dividend_mode,
        events=market.dividends,
        min_amount=settings.min_dividend,
    )
    month_dividends = Decimal("0")
    for credit in dividends:
        holding = state.holdings[credit.ticker]
        ledger.credit(
            credit.amount,
            TransactionType.DIVIDEND_PAYMENT,
            ticker=credit.ticker,
            price=credit.price,
            total_shares=holding.shares,
            total_invested=holding.total_invested,
            dividend_amount=credit.amount,
        )
        month_dividends += credit.amount

    contribution = Decimal("0")
    if not state.capital_deposited and params.initial_capital > 0:
        ledger.credit(params.initial_capital, TransactionType.CASH_CREDIT)
        contribution += params.initial_capital
    if params.monthly_contribution > 0:
        ledger.credit(params.monthly_contribution, TransactionType.CASH_CREDIT)
        contribution += params.monthly_contribution

    rebalanced = params.rebalance_frequency.is_rebalance_month(month_index)
    outcome = rebalance(
        holdings=state.holdings,
        prices=prices,
        targets=targets,
        ledger=ledger,
        allow_sells=rebalanced,
        min_sell_value=settings.min_sell_value,
    )
    cash = ledger.reconcile()

    holding_values = []
    for ticker in sorted(outcome.holdings):
        holding = outcome.holdings[ticker]
        if holding.shares == 0:
            continue
        price = prices.get(ticker, Decimal("0"))
        holding_values.append(
            HoldingValue(
                ticker=ticker,
                shares=holding.shares,
                price=price,
                value=holding.market_value(price),
            )
        )

    value = cash + sum((h.value for h in holding_values), Decimal("0"))
    previous = state.last_value
    if previous is None or previous == 0:
        monthly_return = Decimal("0")
    else:
        monthly_return = (value - previous - contribution) / previous

    snapshot = PortfolioSnapshot(
        month=month_index,
        date=month_date,
        value=value,
        cash=cash,
        holdings={h.ticker: h.shares for h in holding_values},
        monthly_return=monthly_return,
        contribution=contribution,
    )
    history = MonthlyPortfolioHistory(
        month=month_index,
        date=month_date,
        total_contribution=contribution,
        portfolio_value=value,
        cash_balance_before=state.cash,
        cash_balance=cash,
        total_dividends_received=month_dividends,
        transactions=ledger.transactions,
        holdings=tuple(holding_values),
        rebalanced=rebalanced,
    )

    if outcome.sold or outcome.bought:
        logger.debug(
            "Month %d: sold %s, bought %s, cash %s",
            month_index, list(outcome.sold), list(outcome.bought), cash,
        )

    return replace(
        state,
        cash=cash,
        holdings=outcome.holdings,
        last_value=value,
        total_contributions=state.total_contributions + contribution,
        total_dividends=state.total_dividends + month_dividends,
        capital_deposited=state.capital_deposited or params.initial_capital > 0,
        snapshots=state.snapshots + (snapshot,),
        history=state.history + (history,),
    )


def run_simulation(
    params: BacktestParams,
    market: MarketData,
    settings: Optional[EngineSettings] = None,
) -> SimulationState:
    """
    Run the month loop over every month date in the market data.

    Args:
        params: Backtest parameters
        market: Normalized market data
        settings: Engine settings (defaults when omitted)

    Returns:
        Final SimulationState
    """
    settings = settings or EngineSettings()
    state = SimulationState()

    logger.info(
        "Simulating %d months for %s",
        len(market.month_dates), ", ".join(params.tickers),
    )

    for month_index in range(len(market.month_dates)):
        state = step(state, month_index, market, params, settings)

    logger.info(
        "Simulation complete: final value %s, %d months skipped",
        state.final_value, state.missed_contributions,
    )
    return state
