"""
Data Generation Module
"""
from .generators import SalesDataGenerator, generate_sales

__all__ = [
    "SalesDataGenerator",
    "generate_sales",
]
