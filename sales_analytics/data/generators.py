"""
Synthetic Data Generator

Generates realistic supermarket sales transactions shaped like the
``walmart_sales`` table, for testing and development.
"""

from datetime import date, time, timedelta
from typing import Optional

import numpy as np
import polars as pl
from faker import Faker
import structlog

from sales_analytics.schema import SALES_SCHEMA

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

BRANCHES = [
    ("A", "Yangon"),
    ("B", "Mandalay"),
    ("C", "Naypyitaw"),
]

PRODUCT_LINES = [
    ("Health and beauty", 0.15),
    ("Electronic accessories", 0.17),
    ("Home and lifestyle", 0.16),
    ("Sports and travel", 0.17),
    ("Food and beverages", 0.17),
    ("Fashion accessories", 0.18),
]

CUSTOMER_TYPES = ["Member", "Normal"]
GENDERS = ["Female", "Male"]
PAYMENT_METHODS = [
    ("Ewallet", 0.35),
    ("Cash", 0.34),
    ("Credit card", 0.31),
]

TAX_RATE = 0.05
GROSS_MARGIN_PERCENTAGE = 4.761904762

# Store hours
OPENING_SECONDS = 10 * 3600
CLOSING_SECONDS = 21 * 3600


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    return date(start.year + month_index // 12, month_index % 12 + 1, 1)


# =============================================================================
# GENERATORS
# =============================================================================

class SalesDataGenerator:
    """
    Generate sales transactions.

    Monetary columns are internally consistent: ``cogs`` is the subtotal,
    ``tax`` and ``gross_income`` are 5% of it and ``total`` is their sum.
    Output is deterministic for a given seed.

    Example:
        df = SalesDataGenerator(seed=7).generate(n=1000, customers=200)
    """

    def __init__(self, seed: int = 42):
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)

    def _invoice_ids(self, n: int) -> list:
        ids: dict = {}
        while len(ids) < n:
            ids.setdefault(self.fake.numerify("###-##-####"), None)
        return list(ids)

    def generate(
        self,
        n: int = 1000,
        customers: Optional[int] = None,
        start: date = date(2019, 1, 1),
        months: int = 3,
    ) -> pl.DataFrame:
        """
        Generate ``n`` transactions spread over ``months`` calendar months.

        Args:
            n: Number of transactions
            customers: Size of the customer pool (default n // 3)
            start: First day of the period (its month is used)
            months: Number of calendar months covered
        """
        if n < 0:
            raise ValueError(f"n must be >= 0, got {n}")
        if months < 1:
            raise ValueError(f"months must be >= 1, got {months}")
        customers = customers or max(n // 3, 1)

        logger.info(f"Generating {n:,} sales transactions", customers=customers, months=months)

        period_start = start.replace(day=1)
        period_days = (_add_months(period_start, months) - period_start).days

        branch_idx = self.rng.integers(0, len(BRANCHES), n)
        product_names, product_weights = zip(*PRODUCT_LINES)
        payment_names, payment_weights = zip(*PAYMENT_METHODS)

        unit_price = np.round(self.rng.uniform(10, 100, n), 2)
        quantity = self.rng.integers(1, 11, n)
        subtotal = np.round(unit_price * quantity, 2)
        tax = np.round(subtotal * TAX_RATE, 2)
        total = np.round(subtotal + tax, 2)

        day_offsets = self.rng.integers(0, period_days, n)
        seconds = self.rng.integers(OPENING_SECONDS, CLOSING_SECONDS, n)

        data = {
            "invoice_id": self._invoice_ids(n),
            "branch": [BRANCHES[i][0] for i in branch_idx],
            "city": [BRANCHES[i][1] for i in branch_idx],
            "customer_type": self.rng.choice(CUSTOMER_TYPES, n).tolist(),
            "gender": self.rng.choice(GENDERS, n).tolist(),
            "product_line": self.rng.choice(product_names, n, p=product_weights).tolist(),
            "unit_price": unit_price,
            "quantity": quantity,
            "tax": tax,
            "total": total,
            "date": [period_start + timedelta(days=int(d)) for d in day_offsets],
            "time": [time(int(s) // 3600, int(s) % 3600 // 60) for s in seconds],
            "payment": self.rng.choice(payment_names, n, p=payment_weights).tolist(),
            "cogs": subtotal,
            "gross_margin_percentage": np.full(n, GROSS_MARGIN_PERCENTAGE),
            "gross_income": tax,
            "rating": np.round(self.rng.uniform(4, 10, n), 1),
            "customer_id": self.rng.integers(1, customers + 1, n),
        }

        df = pl.DataFrame(data).cast(SALES_SCHEMA)

        logger.info(f"Generated {df.height:,} rows", first_date=str(period_start), days=period_days)
        return df


def generate_sales(n: int = 1000, seed: int = 42, **kwargs) -> pl.DataFrame:
    """Convenience function for one-off datasets"""
    return SalesDataGenerator(seed=seed).generate(n=n, **kwargs)
