"""
Sales Analytics Module
"""
from .anomalies import AnomalyDetector, AnomalyReport
from .reports import (
    best_product_lines_by_customer_type,
    branch_growth_rates,
    customer_spending_tiers,
    monthly_sales_by_gender,
    most_profitable_product_lines,
    repeat_purchase_pairs,
    sales_anomalies,
    sales_by_weekday,
    top_customers_by_revenue,
    top_payment_methods,
)
from .runner import ReportName, ReportResult, SalesReportBundle, SalesReportRunner, run_all_reports

__all__ = [
    "AnomalyDetector",
    "AnomalyReport",
    "best_product_lines_by_customer_type",
    "branch_growth_rates",
    "customer_spending_tiers",
    "monthly_sales_by_gender",
    "most_profitable_product_lines",
    "repeat_purchase_pairs",
    "sales_anomalies",
    "sales_by_weekday",
    "top_customers_by_revenue",
    "top_payment_methods",
    "ReportName",
    "ReportResult",
    "SalesReportBundle",
    "SalesReportRunner",
    "run_all_reports",
]
