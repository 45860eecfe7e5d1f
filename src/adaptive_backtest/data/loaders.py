"""
Data loading and saving functions for CSV/Parquet files.

Handles ingestion of monthly prices and dividend events, as well as output
of the transaction journal and the monthly portfolio evolution.
"""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from adaptive_backtest.models import (
    DividendEvent,
    MonthlyAssetTransaction,
    PortfolioSnapshot,
    PricePoint,
    TransactionType,
)
from adaptive_backtest.data.schemas import (
    DIVIDENDS_SCHEMA,
    PRICES_SCHEMA,
    TRANSACTIONS_SCHEMA,
    FileSchema,
)


class DataLoadError(Exception):
    """Raised when data cannot be loaded or is invalid."""
    pass


def _to_decimal(value) -> Optional[Decimal]:
    if value is None or pd.isna(value):
        return None
    return Decimal(str(value))


def load_price_history(
    file_path: str | Path,
    tickers: Optional[list[str]] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> dict[str, list[PricePoint]]:
    """
    Load monthly price history from a CSV file.

    Args:
        file_path: Path to CSV file with columns: ticker, date, close
            and optionally adjusted_close (defaults to close)
        tickers: Optional list of tickers to filter to
        start_date: Optional first date to keep (inclusive)
        end_date: Optional last date to keep (inclusive)

    Returns:
        Dictionary mapping ticker -> date-sorted list of PricePoint

    Raises:
        DataLoadError: If file cannot be loaded or is invalid
    """
    file_path = Path(file_path)
    df = _load_csv(file_path, PRICES_SCHEMA)

    try:
        df["date"] = pd.to_datetime(df["date"]).dt.date
    except (ValueError, TypeError) as e:
        raise DataLoadError(f"Invalid date in {file_path}: {e}")
    df["ticker"] = df["ticker"].astype(str).str.upper().str.strip()

    if tickers:
        tickers_upper = [t.upper().strip() for t in tickers]
        df = df[df["ticker"].isin(tickers_upper)]
    if start_date is not None:
        df = df[df["date"] >= start_date]
    if end_date is not None:
        df = df[df["date"] <= end_date]

    df = df.sort_values(["ticker", "date"])
    has_adjusted = "adjusted_close" in df.columns

    history: dict[str, list[PricePoint]] = {}
    for _, row in df.iterrows():
        close = _to_decimal(row["close"])
        if close is None:
            continue
        adjusted = _to_decimal(row["adjusted_close"]) if has_adjusted else None
        history.setdefault(str(row["ticker"]), []).append(
            PricePoint(
                date=row["date"],
                price=close,
                adjusted_close=adjusted if adjusted is not None else close,
            )
        )

    return history


def load_dividend_events(
    file_path: str | Path,
    tickers: Optional[list[str]] = None,
) -> dict[str, list[DividendEvent]]:
    """
    Load ex-dividend events from a CSV file.

    Args:
        file_path: Path to CSV file with columns: ticker, ex_date, amount_per_share
        tickers: Optional list of tickers to filter to

    Returns:
        Dictionary mapping ticker -> date-sorted list of DividendEvent

    Raises:
        DataLoadError: If file cannot be loaded or is invalid
    """
    file_path = Path(file_path)
    df = _load_csv(file_path, DIVIDENDS_SCHEMA)

    try:
        df["ex_date"] = pd.to_datetime(df["ex_date"]).dt.date
    except (ValueError, TypeError) as e:
        raise DataLoadError(f"Invalid ex_date in {file_path}: {e}")
    df["ticker"] = df["ticker"].astype(str).str.upper().str.strip()

    if tickers:
        tickers_upper = [t.upper().strip() for t in tickers]
        df = df[df["ticker"].isin(tickers_upper)]

    df = df.sort_values(["ticker", "ex_date"])

    events: dict[str, list[DividendEvent]] = {}
    for _, row in df.iterrows():
        amount = _to_decimal(row["amount_per_share"])
        if amount is None or amount <= 0:
            continue
        events.setdefault(str(row["ticker"]), []).append(
            DividendEvent(ex_date=row["ex_date"], amount_per_share=amount)
        )

    return events


def _optional_str(value: Optional[Decimal]) -> str:
    return "" if value is None else str(value)


def save_transactions(
    transactions: Sequence[MonthlyAssetTransaction],
    output_path: str | Path,
) -> Path:
    """
    Save the transaction journal to CSV file.

    Monetary columns are written as exact decimal strings.

    Args:
        transactions: Journal entries in chronological order
        output_path: Path for output CSV file

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    records = []
    for t in transactions:
        records.append({
            "month": t.month,
            "date": t.date.isoformat(),
            "ticker": t.ticker,
            "transaction_type": t.transaction_type.value,
            "contribution": str(t.contribution),
            "price": str(t.price),
            "shares_added": t.shares_added,
            "total_shares": t.total_shares,
            "total_invested": str(t.total_invested),
            "cash_reserved": _optional_str(t.cash_reserved),
            "dividend_amount": _optional_str(t.dividend_amount),
            "cash_balance": str(t.cash_balance),
        })

    df = pd.DataFrame(records, columns=TRANSACTIONS_SCHEMA.all_columns)
    df.to_csv(output_path, index=False)

    return output_path


def load_transactions(file_path: str | Path) -> list[MonthlyAssetTransaction]:
    """
    Load a transaction journal saved by save_transactions.

    Args:
        file_path: Path to the journal CSV

    Returns:
        List of MonthlyAssetTransaction

    Raises:
        DataLoadError: If file cannot be loaded or is invalid
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")
    try:
        df = pd.read_csv(file_path, dtype=str, keep_default_na=False)
    except Exception as e:
        raise DataLoadError(f"Failed to load CSV file {file_path}: {e}")

    is_valid, missing = TRANSACTIONS_SCHEMA.validate_columns(df.columns.tolist())
    if not is_valid:
        raise DataLoadError(
            f"File {file_path} is missing required columns: {missing}"
        )

    transactions = []
    for _, row in df.iterrows():
        try:
            transactions.append(
                MonthlyAssetTransaction(
                    month=int(row["month"]),
                    date=date.fromisoformat(row["date"]),
                    ticker=row["ticker"],
                    transaction_type=TransactionType(row["transaction_type"]),
                    contribution=Decimal(row["contribution"]),
                    price=Decimal(row["price"]),
                    shares_added=int(row["shares_added"]),
                    total_shares=int(row["total_shares"]),
                    total_invested=Decimal(row["total_invested"]),
                    cash_reserved=Decimal(row["cash_reserved"]) if row.get("cash_reserved") else None,
                    dividend_amount=Decimal(row["dividend_amount"]) if row.get("dividend_amount") else None,
                    cash_balance=Decimal(row["cash_balance"]),
                )
            )
        except (ValueError, ArithmeticError) as e:
            raise DataLoadError(f"Invalid transaction row in {file_path}: {e}")

    return transactions


def save_portfolio_evolution(
    snapshots: Sequence[PortfolioSnapshot],
    output_path: str | Path,
) -> Path:
    """
    Save month-end snapshots to CSV file.

    Args:
        snapshots: Snapshots in chronological order
        output_path: Path for output CSV file

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    records = []
    for s in snapshots:
        records.append({
            "month": s.month,
            "date": s.date.isoformat(),
            "value": float(s.value),
            "cash": float(s.cash),
            "contribution": float(s.contribution),
            "monthly_return": float(s.monthly_return),
            "num_positions": len(s.holdings),
        })

    df = pd.DataFrame(records)
    df.to_csv(output_path, index=False)

    return output_path


def _load_csv(file_path: Path, schema: FileSchema) -> pd.DataFrame:
    """
    Load a CSV file and validate against schema.

    Args:
        file_path: Path to CSV file
        schema: Expected file schema

    Returns:
        Loaded DataFrame

    Raises:
        DataLoadError: If file cannot be loaded or has missing columns
    """
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    # Support both CSV and Parquet
    if file_path.suffix.lower() == ".parquet":
        try:
            df = pd.read_parquet(file_path)
        except Exception as e:
            raise DataLoadError(f"Failed to load parquet file {file_path}: {e}")
    else:
        try:
            df = pd.read_csv(file_path)
        except Exception as e:
            raise DataLoadError(f"Failed to load CSV file {file_path}: {e}")

    # Validate columns
    is_valid, missing = schema.validate_columns(df.columns.tolist())
    if not is_valid:
        raise DataLoadError(
            f"File {file_path} is missing required columns: {missing}"
        )

    return df
