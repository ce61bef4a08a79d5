"""
Anomaly Detection Module

Batch z-score anomaly detection for sales transactions. Each transaction is
scored against the mean and sample standard deviation of its group (product
line by default); values more than ``z_threshold`` deviations away are
flagged.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import polars as pl
import structlog

from sales_analytics.analytics.helpers import round_half_away, zscore_within
from sales_analytics.config import get_settings

logger = structlog.get_logger(__name__)


@dataclass
class AnomalyReport:
    """Result of one detection pass"""
    started_at: datetime
    completed_at: datetime
    rows_checked: int
    groups_checked: int
    undefined_groups: int  # Groups whose std is zero or undefined
    anomalies: pl.DataFrame = field(default_factory=pl.DataFrame)

    @property
    def anomalies_found(self) -> int:
        return self.anomalies.height

    @property
    def spike_count(self) -> int:
        return self.anomalies.filter(pl.col("z_score") > 0).height

    @property
    def drop_count(self) -> int:
        return self.anomalies.filter(pl.col("z_score") < 0).height


class AnomalyDetector:
    """
    Z-score anomaly detector for sales transactions.

    Example:
        detector = AnomalyDetector(z_threshold=2.0)
        report = detector.detect(sales_df)
        report.anomalies  # invoice_id, product_line, total, z_score
    """

    def __init__(
        self,
        z_threshold: Optional[float] = None,
        group_by: str = "product_line",
        value: str = "total",
        id_column: str = "invoice_id",
        decimals: Optional[int] = None,
    ):
        params = get_settings().analytics
        self.z_threshold = params.anomaly_z_threshold if z_threshold is None else z_threshold
        if self.z_threshold < 0:
            raise ValueError(f"z_threshold must be >= 0, got {self.z_threshold}")
        self.group_by = group_by
        self.value = value
        self.id_column = id_column
        self.decimals = params.round_decimals if decimals is None else decimals

    def score(self, df: pl.DataFrame) -> pl.DataFrame:
        """Add an unrounded ``z_score`` column to every transaction"""
        return zscore_within(df, self.group_by, self.value, alias="z_score")

    def detect(self, df: pl.DataFrame) -> AnomalyReport:
        """
        Flag transactions whose absolute z-score exceeds the threshold.

        Transactions in a group with zero or undefined std have a null
        z-score and are never flagged.

        Returns:
            AnomalyReport whose ``anomalies`` frame is sorted by z-score
            descending, rounded after sorting
        """
        started_at = datetime.now(timezone.utc)

        scored = self.score(df)

        undefined_groups = (
            scored.group_by(self.group_by)
            .agg(pl.col("z_score").is_null().all().alias("_undefined"))
            .filter(pl.col("_undefined"))
            .height
        )

        anomalies = (
            scored.filter(pl.col("z_score").abs() > self.z_threshold)
            .sort(["z_score", self.id_column], descending=[True, False])
            .select(
                self.id_column,
                self.group_by,
                self.value,
                round_half_away(pl.col("z_score"), self.decimals).alias("z_score"),
            )
        )

        report = AnomalyReport(
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            rows_checked=df.height,
            groups_checked=scored[self.group_by].n_unique(),
            undefined_groups=undefined_groups,
            anomalies=anomalies,
        )

        if undefined_groups:
            logger.info(
                "Skipped groups with zero standard deviation",
                group_by=self.group_by,
                undefined_groups=undefined_groups,
            )

        logger.debug(
            f"Anomaly detection complete: {report.anomalies_found} anomalies found",
            threshold=self.z_threshold,
            spikes=report.spike_count,
            drops=report.drop_count,
        )

        return report
