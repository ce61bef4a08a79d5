"""
Sales Performance Analytics

Descriptive sales reports (growth, rankings, segmentation, anomalies) over
the walmart_sales transaction table.
"""

__version__ = "1.0.0"
