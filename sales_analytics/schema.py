"""
Sales table schema

Column layout of the ``walmart_sales`` transaction table as held in memory.
"""

from typing import Dict, List

import polars as pl


SALES_SCHEMA: Dict[str, pl.DataType] = {
    "invoice_id": pl.Utf8,
    "branch": pl.Utf8,
    "city": pl.Utf8,
    "customer_type": pl.Utf8,
    "gender": pl.Utf8,
    "product_line": pl.Utf8,
    "unit_price": pl.Float64,
    "quantity": pl.Int64,
    "tax": pl.Float64,
    "total": pl.Float64,
    "date": pl.Date,
    "time": pl.Time,
    "payment": pl.Utf8,
    "cogs": pl.Float64,
    "gross_margin_percentage": pl.Float64,
    "gross_income": pl.Float64,
    "rating": pl.Float64,
    "customer_id": pl.Int64,
}

REQUIRED_COLUMNS: List[str] = list(SALES_SCHEMA)

# Grouping keys that must never be null
KEY_COLUMNS: List[str] = [
    "invoice_id",
    "branch",
    "city",
    "customer_type",
    "gender",
    "product_line",
    "payment",
    "date",
    "customer_id",
]


def empty_sales_frame() -> pl.DataFrame:
    """Zero-row frame with the full sales schema"""
    return pl.DataFrame(schema=SALES_SCHEMA)
