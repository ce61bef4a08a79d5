"""
Data Quality Module
"""
from .validators import (
    DataValidator,
    SalesSchemaError,
    ValidationResult,
    create_sales_validator,
    validate_sales_frame,
)

__all__ = [
    "DataValidator",
    "SalesSchemaError",
    "ValidationResult",
    "create_sales_validator",
    "validate_sales_frame",
]
