"""
Report Runner

Runs every sales report over one dataset and collects the results with
timing metadata.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import partial
import time
import uuid
from typing import Callable, Dict, List, Optional, Tuple

import polars as pl
import structlog

from sales_analytics.analytics import reports
from sales_analytics.config import Settings, get_settings
from sales_analytics.quality.validators import ValidationResult, validate_sales_frame

logger = structlog.get_logger(__name__)


class ReportName(str, Enum):
    """Report identifiers, in run order"""
    BRANCH_GROWTH = "branch_growth"
    PROFITABLE_PRODUCT_LINES = "profitable_product_lines"
    CUSTOMER_SEGMENTS = "customer_segments"
    ANOMALIES = "anomalies"
    PAYMENT_METHODS = "payment_methods"
    GENDER_MONTHLY_SALES = "gender_monthly_sales"
    CUSTOMER_TYPE_PRODUCTS = "customer_type_products"
    REPEAT_PURCHASES = "repeat_purchases"
    TOP_CUSTOMERS = "top_customers"
    WEEKDAY_SALES = "weekday_sales"


@dataclass
class ReportResult:
    """Output of a single report"""
    report: ReportName
    frame: pl.DataFrame
    rows: int
    duration_seconds: float


@dataclass
class SalesReportBundle:
    """Results of a full report run"""
    run_id: str
    started_at: datetime
    completed_at: datetime
    input_rows: int
    results: Dict[ReportName, ReportResult] = field(default_factory=dict)
    validation: Optional[ValidationResult] = None

    def __getitem__(self, name: str) -> pl.DataFrame:
        return self.results[ReportName(name)].frame

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def frames(self) -> Dict[str, pl.DataFrame]:
        """Report frames keyed by report name"""
        return {name.value: result.frame for name, result in self.results.items()}


class SalesReportRunner:
    """
    Runs the ten sales reports in order.

    Parameters (growth rows, tiers, z threshold, repeat window, top customer
    count, rounding) come from the analytics settings. Log events emitted
    during a run carry its ``run_id``.

    Example:
        runner = SalesReportRunner()
        bundle = runner.run(sales_df)
        bundle["branch_growth"]
    """

    def __init__(self, settings: Optional[Settings] = None, validate: bool = True):
        self.settings = settings or get_settings()
        self.validate = validate

    def _reports(self) -> List[Tuple[ReportName, Callable[[pl.DataFrame], pl.DataFrame]]]:
        params = self.settings.analytics
        decimals = params.round_decimals
        return [
            (
                ReportName.BRANCH_GROWTH,
                partial(reports.branch_growth_rates, top_n=params.growth_top_n, decimals=decimals),
            ),
            (
                ReportName.PROFITABLE_PRODUCT_LINES,
                partial(reports.most_profitable_product_lines, decimals=decimals),
            ),
            (
                ReportName.CUSTOMER_SEGMENTS,
                partial(reports.customer_spending_tiers, tiers=params.spending_tiers, decimals=decimals),
            ),
            (
                ReportName.ANOMALIES,
                partial(reports.sales_anomalies, threshold=params.anomaly_z_threshold, decimals=decimals),
            ),
            (ReportName.PAYMENT_METHODS, reports.top_payment_methods),
            (
                ReportName.GENDER_MONTHLY_SALES,
                partial(reports.monthly_sales_by_gender, decimals=decimals),
            ),
            (ReportName.CUSTOMER_TYPE_PRODUCTS, reports.best_product_lines_by_customer_type),
            (
                ReportName.REPEAT_PURCHASES,
                partial(reports.repeat_purchase_pairs, window_days=params.repeat_window_days),
            ),
            (
                ReportName.TOP_CUSTOMERS,
                partial(reports.top_customers_by_revenue, limit=params.top_customers_limit, decimals=decimals),
            ),
            (ReportName.WEEKDAY_SALES, partial(reports.sales_by_weekday, decimals=decimals)),
        ]

    def run(self, df: pl.DataFrame) -> SalesReportBundle:
        """
        Validate the input and run every report.

        Raises:
            SalesSchemaError: If validation is enabled and the input fails it
        """
        run_id = uuid.uuid4().hex[:12]
        with structlog.contextvars.bound_contextvars(run_id=run_id, input_rows=df.height):
            return self._run(run_id, df)

    def _run(self, run_id: str, df: pl.DataFrame) -> SalesReportBundle:
        started_at = datetime.now(timezone.utc)
        logger.info("Starting sales report run", environment=self.settings.app_env)

        validation = validate_sales_frame(df) if self.validate else None

        results: Dict[ReportName, ReportResult] = {}
        for name, report in self._reports():
            tick = time.perf_counter()
            with structlog.contextvars.bound_contextvars(report=name.value):
                frame = report(df)
                results[name] = ReportResult(
                    report=name,
                    frame=frame,
                    rows=frame.height,
                    duration_seconds=time.perf_counter() - tick,
                )
                logger.debug(f"Report {name.value} produced {frame.height} rows")

        bundle = SalesReportBundle(
            run_id=run_id,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            input_rows=df.height,
            results=results,
            validation=validation,
        )

        logger.info(
            f"Sales report run complete: {len(results)} reports, "
            f"duration: {bundle.duration_seconds:.2f}s",
            rows={name.value: r.rows for name, r in results.items()},
        )

        return bundle


def run_all_reports(df: pl.DataFrame, validate: bool = True) -> Dict[str, pl.DataFrame]:
    """
    Convenience function to run every report.

    Returns:
        Report frames keyed by report name
    """
    return SalesReportRunner(validate=validate).run(df).frames()
