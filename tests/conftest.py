"""
Test Suite Configuration
"""
from datetime import date, time
import logging
from typing import Callable, Dict, List

import pytest
import polars as pl
import structlog

from sales_analytics.config import AnalyticsSettings, Settings
from sales_analytics.data import SalesDataGenerator
from sales_analytics.schema import SALES_SCHEMA, empty_sales_frame


DEFAULT_ROW = {
    "branch": "A",
    "city": "Yangon",
    "customer_type": "Member",
    "gender": "Female",
    "product_line": "Health and beauty",
    "unit_price": 10.0,
    "quantity": 1,
    "tax": 0.5,
    "total": 10.5,
    "date": date(2019, 1, 5),
    "time": time(10, 0),
    "payment": "Cash",
    "cogs": 10.0,
    "gross_margin_percentage": 4.761904762,
    "gross_income": 0.5,
    "rating": 7.0,
    "customer_id": 1,
}


def build_sales(rows: List[Dict]) -> pl.DataFrame:
    records = []
    for i, row in enumerate(rows):
        record = dict(DEFAULT_ROW, invoice_id=f"INV-{i:04d}")
        record.update(row)
        records.append({column: record[column] for column in SALES_SCHEMA})
    return pl.DataFrame(records, schema=SALES_SCHEMA)


@pytest.fixture
def make_sales() -> Callable[[List[Dict]], pl.DataFrame]:
    """Build a sales DataFrame from partial rows; unspecified columns get defaults"""
    return build_sales


@pytest.fixture
def empty_sales_df() -> pl.DataFrame:
    """Zero-row sales DataFrame with the full schema"""
    return empty_sales_frame()


@pytest.fixture
def branch_months_df() -> pl.DataFrame:
    """
    3 branches x 2 months with known monthly sums:
    A 100 -> 150, B 200 -> 150, C 80 -> 100
    """
    return build_sales([
        {"branch": "A", "date": date(2019, 1, 3), "total": 60.0},
        {"branch": "A", "date": date(2019, 1, 20), "total": 40.0},
        {"branch": "A", "date": date(2019, 2, 2), "total": 150.0},
        {"branch": "B", "date": date(2019, 1, 9), "total": 200.0},
        {"branch": "B", "date": date(2019, 2, 11), "total": 75.0},
        {"branch": "B", "date": date(2019, 2, 27), "total": 75.0},
        {"branch": "C", "date": date(2019, 1, 31), "total": 80.0},
        {"branch": "C", "date": date(2019, 2, 1), "total": 100.0},
    ])


@pytest.fixture(scope="session")
def generated_sales_df() -> pl.DataFrame:
    """Synthetic quarter of sales"""
    return SalesDataGenerator(seed=7).generate(n=600, customers=120, start=date(2019, 1, 1), months=4)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
        analytics=AnalyticsSettings(growth_top_n=3, top_customers_limit=2),
    )


@pytest.fixture
def reset_logging():
    """Restore root handlers and structlog defaults after configure_logging"""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
