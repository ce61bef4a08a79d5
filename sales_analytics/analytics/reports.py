"""
Sales Reports

The ten analytical reports over the ``walmart_sales`` table. Every report is
a pure function: it takes the sales DataFrame (plus an optional parameter),
never mutates it, and returns a new ordered DataFrame. An empty input gives
an empty output with the report's columns.

Monetary sums are rounded half away from zero to ``decimals`` places (the
``round_decimals`` setting when omitted) before they are ranked or
compared, so float noise never splits a tie that exists in the decimal
source data.
Parameters left as None are read from the analytics settings at call time.
"""

from typing import Optional

import polars as pl
import structlog

from sales_analytics.analytics.anomalies import AnomalyDetector
from sales_analytics.analytics.helpers import (
    grouped_aggregate,
    lag_within,
    month_key,
    ntile,
    round_half_away,
    top_ranked,
    weekday_name,
)
from sales_analytics.config import AnalyticsSettings, get_settings

logger = structlog.get_logger(__name__)

SPENDING_LABELS = {1: "High", 2: "Medium", 3: "Low"}


def _params() -> AnalyticsSettings:
    return get_settings().analytics


def _decimals(decimals: Optional[int]) -> int:
    return _params().round_decimals if decimals is None else decimals


def _require_non_negative(name: str, value: float) -> None:
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")


def branch_growth_rates(
    df: pl.DataFrame, top_n: Optional[int] = None, decimals: Optional[int] = None
) -> pl.DataFrame:
    """
    Month-over-month sales growth per branch (Task 1).

    Monthly sales are summed per (branch, YYYY-MM); each month after a
    branch's first is compared with the branch's previous observed month.
    A zero previous month gives a null growth rate, kept but sorted last.

    Returns:
        Columns branch, month, growth_rate; top ``top_n`` by growth rate
    """
    top_n = _params().growth_top_n if top_n is None else top_n
    _require_non_negative("top_n", top_n)
    decimals = _decimals(decimals)

    monthly = grouped_aggregate(
        df, ["branch", month_key("date")], "total", "sum", alias="sales"
    ).with_columns(round_half_away("sales", decimals).alias("sales"))

    monthly = lag_within(monthly, "branch", "month", "sales", alias="prev_month_sales")

    growth = (
        monthly.filter(pl.col("prev_month_sales").is_not_null())
        .with_columns(
            pl.when(pl.col("prev_month_sales") == 0)
            .then(None)
            .otherwise(
                round_half_away(
                    (pl.col("sales") - pl.col("prev_month_sales"))
                    / pl.col("prev_month_sales")
                    * 100,
                    decimals,
                )
            )
            .alias("growth_rate")
        )
        .sort(
            ["growth_rate", "branch", "month"],
            descending=[True, False, False],
            nulls_last=True,
        )
        .head(top_n)
        .select("branch", "month", "growth_rate")
    )

    undefined = growth.filter(pl.col("growth_rate").is_null()).height
    if undefined:
        logger.warning("Growth rate undefined for zero-sales months", rows=undefined)

    logger.debug("Branch growth computed", months=monthly.height, rows=growth.height)
    return growth


def most_profitable_product_lines(df: pl.DataFrame, decimals: Optional[int] = None) -> pl.DataFrame:
    """
    Product line(s) with the highest summed gross income in each branch (Task 2).

    Returns:
        Columns branch, most_profitable_product_line, total_profit
    """
    profit = grouped_aggregate(
        df, ["branch", "product_line"], "gross_income", "sum", alias="total_profit"
    ).with_columns(round_half_away("total_profit", _decimals(decimals)).alias("total_profit"))

    result = (
        top_ranked(profit, "branch", "total_profit")
        .sort(["branch", "product_line"])
        .select(
            "branch",
            pl.col("product_line").alias("most_profitable_product_line"),
            "total_profit",
        )
    )

    logger.debug("Most profitable product lines computed", rows=result.height)
    return result


def customer_spending_tiers(
    df: pl.DataFrame, tiers: Optional[int] = None, decimals: Optional[int] = None
) -> pl.DataFrame:
    """
    Segment customers into spending tiers (Task 3).

    Customers are ordered by total spend (customer_id breaks ties) and cut
    into near-equal buckets, the first ``n % tiers`` buckets one customer
    larger. With the default three tiers bucket 1 is "High", 2 "Medium" and
    3 "Low"; other tier counts are labelled by their bucket number.

    Returns:
        Columns customer_id, total_spent, spending_category
    """
    tiers = _params().spending_tiers if tiers is None else tiers

    spending = grouped_aggregate(
        df, ["customer_id"], "total", "sum", alias="total_spent"
    ).with_columns(round_half_away("total_spent", _decimals(decimals)).alias("total_spent"))

    ranked = ntile(
        spending,
        tiers,
        order_by="total_spent",
        descending=True,
        tie_breaker="customer_id",
        alias="spending_tier",
    )

    if tiers == len(SPENDING_LABELS):
        category = pl.col("spending_tier").replace_strict(SPENDING_LABELS, return_dtype=pl.Utf8)
    else:
        category = pl.col("spending_tier").cast(pl.Utf8)

    result = ranked.select(
        "customer_id",
        "total_spent",
        category.alias("spending_category"),
    )

    logger.debug("Customer spending tiers computed", customers=result.height, tiers=tiers)
    return result


def sales_anomalies(
    df: pl.DataFrame, threshold: Optional[float] = None, decimals: Optional[int] = None
) -> pl.DataFrame:
    """
    Transactions whose total deviates strongly from their product line (Task 4).

    Returns:
        Columns invoice_id, product_line, total, z_score; z-score descending
    """
    detector = AnomalyDetector(z_threshold=threshold, decimals=decimals)
    return detector.detect(df).anomalies


def top_payment_methods(df: pl.DataFrame) -> pl.DataFrame:
    """
    Most used payment method(s) per city (Task 5).

    Returns:
        Columns city, most_popular_payment, payment_count
    """
    counts = grouped_aggregate(df, ["city", "payment"], None, "count", alias="payment_count")

    result = (
        top_ranked(counts, "city", "payment_count")
        .sort(["city", "payment"])
        .select(
            "city",
            pl.col("payment").alias("most_popular_payment"),
            pl.col("payment_count").cast(pl.Int64),
        )
    )

    logger.debug("Top payment methods computed", rows=result.height)
    return result


def monthly_sales_by_gender(df: pl.DataFrame, decimals: Optional[int] = None) -> pl.DataFrame:
    """
    Total sales per month and gender (Task 6).

    Returns:
        Columns sales_month, gender, total_sales; ordered by month then gender
    """
    result = (
        grouped_aggregate(
            df, [month_key("date", alias="sales_month"), "gender"], "total", "sum", alias="total_sales"
        )
        .with_columns(round_half_away("total_sales", _decimals(decimals)).alias("total_sales"))
        .sort(["sales_month", "gender"])
    )

    logger.debug("Monthly sales by gender computed", rows=result.height)
    return result


def best_product_lines_by_customer_type(df: pl.DataFrame) -> pl.DataFrame:
    """
    Product line(s) with the most units sold per customer type (Task 7).

    Returns:
        Columns customer_type, best_product_line, total_units_sold
    """
    units = grouped_aggregate(
        df, ["customer_type", "product_line"], "quantity", "sum", alias="total_units_sold"
    )

    result = (
        top_ranked(units, "customer_type", "total_units_sold")
        .sort(["customer_type", "product_line"])
        .select(
            "customer_type",
            pl.col("product_line").alias("best_product_line"),
            "total_units_sold",
        )
    )

    logger.debug("Best product lines by customer type computed", rows=result.height)
    return result


def repeat_purchase_pairs(df: pl.DataFrame, window_days: Optional[int] = None) -> pl.DataFrame:
    """
    Pairs of purchase dates by the same customer within a window (Task 8).

    Every forward pair is emitted, not only consecutive visits, so a customer
    with visits on days 0, 10 and 20 yields (0, 10), (0, 20) and (10, 20).
    The gap must be positive and at most ``window_days``. Several
    transactions on the same day count as one purchase date.

    Returns:
        Columns customer_id, first_purchase, repeat_purchase, days_between
    """
    window_days = _params().repeat_window_days if window_days is None else window_days
    _require_non_negative("window_days", window_days)

    visits = df.select("customer_id", "date").unique()

    first = visits.rename({"date": "first_purchase"}).with_columns(
        pl.col("first_purchase").dt.offset_by(f"{window_days}d").alias("window_end")
    )
    repeat = visits.rename({"customer_id": "repeat_customer_id", "date": "repeat_purchase"})

    # Window bounds are join predicates, so out-of-window pairs are never built
    pairs = (
        first.join_where(
            repeat,
            pl.col("customer_id") == pl.col("repeat_customer_id"),
            pl.col("repeat_purchase") > pl.col("first_purchase"),
            pl.col("repeat_purchase") <= pl.col("window_end"),
        )
        .select(
            "customer_id",
            "first_purchase",
            "repeat_purchase",
            (pl.col("repeat_purchase") - pl.col("first_purchase"))
            .dt.total_days()
            .cast(pl.Int64)
            .alias("days_between"),
        )
        .sort(["customer_id", "first_purchase", "repeat_purchase"])
    )

    logger.debug("Repeat purchase pairs computed", window_days=window_days, pairs=pairs.height)
    return pairs


def top_customers_by_revenue(
    df: pl.DataFrame, limit: Optional[int] = None, decimals: Optional[int] = None
) -> pl.DataFrame:
    """
    Customers with the highest total revenue (Task 9).

    Equal revenues are ordered by customer_id ascending, so the cut at
    ``limit`` is reproducible.

    Returns:
        Columns customer_id, total_revenue
    """
    limit = _params().top_customers_limit if limit is None else limit
    _require_non_negative("limit", limit)

    result = (
        grouped_aggregate(df, ["customer_id"], "total", "sum", alias="total_revenue")
        .with_columns(round_half_away("total_revenue", _decimals(decimals)).alias("total_revenue"))
        .sort(["total_revenue", "customer_id"], descending=[True, False])
        .head(limit)
    )

    logger.debug("Top customers computed", rows=result.height)
    return result


def sales_by_weekday(df: pl.DataFrame, decimals: Optional[int] = None) -> pl.DataFrame:
    """
    Total sales per day of the week (Task 10).

    Only weekdays present in the data appear.

    Returns:
        Columns day_of_week, total_sales; total sales descending
    """
    result = (
        grouped_aggregate(df, [weekday_name("date")], "total", "sum", alias="total_sales")
        .with_columns(round_half_away("total_sales", _decimals(decimals)).alias("total_sales"))
        .sort(["total_sales", "day_of_week"], descending=[True, False])
    )

    logger.debug("Sales by weekday computed", rows=result.height)
    return result
