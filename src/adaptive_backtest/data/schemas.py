"""
Data schemas for CSV/Parquet file validation.

Defines expected columns and data types for all input and output files.
"""

from dataclasses import dataclass


@dataclass
class ColumnSchema:
    """Schema definition for a single column."""
    name: str
    dtype: str  # pandas dtype string
    required: bool = True
    nullable: bool = False


@dataclass
class FileSchema:
    """Schema definition for a file."""
    name: str
    columns: list[ColumnSchema]
    description: str

    @property
    def required_columns(self) -> list[str]:
        """Get list of required column names."""
        return [c.name for c in self.columns if c.required]

    @property
    def all_columns(self) -> list[str]:
        """Get list of all column names."""
        return [c.name for c in self.columns]

    def validate_columns(self, df_columns: list[str]) -> tuple[bool, list[str]]:
        """
        Validate that a dataframe has the required columns.

        Args:
            df_columns: List of column names from the dataframe

        Returns:
            Tuple of (is_valid, list of missing columns)
        """
        missing = [col for col in self.required_columns if col not in df_columns]
        return len(missing) == 0, missing


# Monthly Price Data Schema
PRICES_SCHEMA = FileSchema(
    name="prices",
    description="Monthly closing prices by ticker",
    columns=[
        ColumnSchema(name="ticker", dtype="str", required=True),
        ColumnSchema(name="date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="close", dtype="float64", required=True),
        ColumnSchema(name="adjusted_close", dtype="float64", required=False, nullable=True),
    ],
)

# Dividend Events Schema
DIVIDENDS_SCHEMA = FileSchema(
    name="dividends",
    description="Ex-dividend events by ticker",
    columns=[
        ColumnSchema(name="ticker", dtype="str", required=True),
        ColumnSchema(name="ex_date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="amount_per_share", dtype="float64", required=True),
    ],
)

# Transaction Journal Output Schema
TRANSACTIONS_SCHEMA = FileSchema(
    name="transactions",
    description="Monthly transaction journal with running cash balance",
    columns=[
        ColumnSchema(name="month", dtype="int64", required=True),
        ColumnSchema(name="date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="ticker", dtype="str", required=True),
        ColumnSchema(name="transaction_type", dtype="str", required=True),
        ColumnSchema(name="contribution", dtype="str", required=True),
        ColumnSchema(name="price", dtype="str", required=True),
        ColumnSchema(name="shares_added", dtype="int64", required=True),
        ColumnSchema(name="total_shares", dtype="int64", required=True),
        ColumnSchema(name="total_invested", dtype="str", required=True),
        ColumnSchema(name="cash_reserved", dtype="str", required=False, nullable=True),
        ColumnSchema(name="dividend_amount", dtype="str", required=False, nullable=True),
        ColumnSchema(name="cash_balance", dtype="str", required=True),
    ],
)

# Portfolio Evolution Output Schema
PORTFOLIO_MONTHLY_SCHEMA = FileSchema(
    name="portfolio_monthly",
    description="Month-end portfolio value, cash and return",
    columns=[
        ColumnSchema(name="month", dtype="int64", required=True),
        ColumnSchema(name="date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="value", dtype="float64", required=True),
        ColumnSchema(name="cash", dtype="float64", required=True),
        ColumnSchema(name="contribution", dtype="float64", required=True),
        ColumnSchema(name="monthly_return", dtype="float64", required=True),
        ColumnSchema(name="num_positions", dtype="int64", required=True),
    ],
)
