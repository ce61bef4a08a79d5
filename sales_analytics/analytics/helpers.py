"""
Statistical Helpers

Window-function building blocks shared by the sales reports:
- Grouped aggregation over column or expression keys
- Competition ranking within a partition (RANK)
- Quantile bucketing (NTILE)
- Previous value within a partition (LAG)
- Z-scores within a partition
- Round-half-away-from-zero on decimal values
"""

from decimal import Decimal, ROUND_HALF_UP
from functools import partial
import math
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np
import polars as pl
import structlog

logger = structlog.get_logger(__name__)

KeyLike = Union[str, pl.Expr]
Partition = Union[str, Sequence[str]]

# A std at or below this is treated as zero
STD_TOLERANCE = 1e-9

_AGGREGATIONS: Dict[str, Callable[[Optional[str]], pl.Expr]] = {
    "sum": lambda column: pl.col(column).sum(),
    "count": lambda column: pl.len(),
    "mean": lambda column: pl.col(column).mean(),
    "std": lambda column: pl.col(column).std(ddof=1),
}


def _as_list(partition: Partition) -> List[str]:
    if isinstance(partition, str):
        return [partition]
    return list(partition)


def month_key(column: str = "date", alias: str = "month") -> pl.Expr:
    """Year-month key formatted as YYYY-MM"""
    return pl.col(column).dt.strftime("%Y-%m").alias(alias)


def weekday_name(column: str = "date", alias: str = "day_of_week") -> pl.Expr:
    """Full English weekday name (Monday ... Sunday)"""
    return pl.col(column).dt.strftime("%A").alias(alias)


def _round_value(value, decimals: int):
    if value is None or math.isnan(value) or math.isinf(value):
        return value
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_half_away(expr: Union[str, pl.Expr], decimals: int = 2) -> pl.Expr:
    """
    Round half away from zero.

    Works on the shortest decimal representation of each float, so a value
    that prints as 2.675 rounds to 2.68 the way a DECIMAL column would.
    Nulls pass through unchanged.
    """
    if isinstance(expr, str):
        expr = pl.col(expr)
    return expr.map_elements(
        partial(_round_value, decimals=decimals),
        return_dtype=pl.Float64,
    )


def grouped_aggregate(
    df: pl.DataFrame,
    keys: Sequence[KeyLike],
    value: Optional[str],
    agg: str,
    alias: str,
) -> pl.DataFrame:
    """
    Aggregate ``value`` over composite keys.

    Args:
        df: Sales DataFrame
        keys: Column names or key-extractor expressions
        value: Column to aggregate (ignored for ``count``)
        agg: One of "sum", "count", "mean", "std"
        alias: Name of the aggregated column

    Returns:
        One row per observed key tuple, in no particular order
    """
    builder = _AGGREGATIONS.get(agg)
    if builder is None:
        raise ValueError(f"Unsupported aggregation: {agg}")
    if agg != "count" and value is None:
        raise ValueError(f"Aggregation '{agg}' requires a value column")

    return df.group_by(list(keys)).agg(builder(value).alias(alias))


def competition_rank(
    df: pl.DataFrame,
    partition: Partition,
    order_by: str,
    alias: str = "rank",
    descending: bool = True,
) -> pl.DataFrame:
    """Standard competition rank of ``order_by`` within each partition"""
    return df.with_columns(
        pl.col(order_by)
        .rank(method="min", descending=descending)
        .over(_as_list(partition))
        .alias(alias)
    )


def top_ranked(
    df: pl.DataFrame,
    partition: Partition,
    order_by: str,
    descending: bool = True,
) -> pl.DataFrame:
    """Rows holding rank 1 in their partition, ties included"""
    ranked = competition_rank(df, partition, order_by, alias="_rank", descending=descending)
    return ranked.filter(pl.col("_rank") == 1).drop("_rank")


def ntile(
    df: pl.DataFrame,
    buckets: int,
    order_by: str,
    descending: bool = True,
    tie_breaker: Optional[str] = None,
    alias: str = "tile",
) -> pl.DataFrame:
    """
    Split rows into ``buckets`` near-equal groups numbered from 1.

    Rows are ordered by ``order_by`` (then ``tie_breaker`` ascending). Bucket
    sizes differ by at most one; the first ``len(df) % buckets`` buckets hold
    the extra rows.
    """
    if buckets < 1:
        raise ValueError(f"buckets must be >= 1, got {buckets}")

    sort_columns = [order_by]
    sort_descending = [descending]
    if tie_breaker is not None:
        sort_columns.append(tie_breaker)
        sort_descending.append(False)

    ordered = df.sort(sort_columns, descending=sort_descending)

    base, extra = divmod(ordered.height, buckets)
    sizes = [base + 1 if i < extra else base for i in range(buckets)]
    tiles = np.repeat(np.arange(1, buckets + 1), sizes)

    return ordered.with_columns(pl.Series(alias, tiles, dtype=pl.Int64))


def lag_within(
    df: pl.DataFrame,
    partition: Partition,
    order_by: str,
    value: str,
    alias: str,
) -> pl.DataFrame:
    """
    Previous ``value`` within each partition ordered by ``order_by``.

    The first row of every partition gets null. The result is sorted by
    partition and order key.
    """
    keys = _as_list(partition)
    return df.sort(keys + [order_by]).with_columns(
        pl.col(value).shift(1).over(keys).alias(alias)
    )


def zscore_within(
    df: pl.DataFrame,
    partition: Partition,
    value: str,
    alias: str = "z_score",
) -> pl.DataFrame:
    """
    Z-score of ``value`` against its partition mean and sample std.

    Partitions whose std is undefined (single row) or zero get a null
    z-score instead of a division error.
    """
    keys = _as_list(partition)
    mean = pl.col(value).mean().over(keys)
    std = pl.col(value).std(ddof=1).over(keys).fill_nan(None)

    return df.with_columns(
        pl.when(std.is_null() | (std <= STD_TOLERANCE))
        .then(None)
        .otherwise((pl.col(value) - mean) / std)
        .cast(pl.Float64)
        .alias(alias)
    )
