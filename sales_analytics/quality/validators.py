"""
Data Validation Module

Rule-based validation of the sales table before any report runs.

Features:
- Schema validation (columns and dtype families)
- Null checks on grouping keys
- Range/boundary checks
- Uniqueness checks
- Business rules (total = unit_price * quantity + tax)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import polars as pl
import structlog

from sales_analytics.schema import KEY_COLUMNS, SALES_SCHEMA

logger = structlog.get_logger(__name__)

# Allowed drift between total and unit_price * quantity + tax
TOTAL_CONSISTENCY_TOLERANCE = 0.02


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Blocks report run
    WARNING = "warning"  # Logged, run continues
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    @property
    def errors(self) -> List[ValidationCheck]:
        return [
            c for c in self.checks
            if not c.passed and c.severity == ValidationSeverity.ERROR
        ]


class SalesSchemaError(ValueError):
    """Raised when the sales table fails validation"""

    def __init__(self, result: ValidationResult):
        self.result = result
        failed = result.errors or [c for c in result.checks if not c.passed]
        messages = "; ".join(c.message for c in failed)
        super().__init__(f"Sales data failed validation: {messages}")


def _dtype_family(dtype: pl.DataType) -> str:
    if dtype.is_numeric():
        return "numeric"
    return str(dtype.base_type())


class DataValidator:
    """
    Chainable data validator.

    Example:
        validator = DataValidator()
        validator.add_not_null_check("customer_id")
        validator.add_range_check("total", min_value=0)
        result = validator.validate(df)
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def _missing(self, name: str, column: str, severity: ValidationSeverity) -> ValidationCheck:
        return ValidationCheck(
            name=name,
            passed=False,
            severity=severity,
            message=f"Column '{column}' not found",
        )

    def add_schema_check(
        self,
        schema: Dict[str, pl.DataType],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that every column exists with a compatible dtype"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = [c for c in schema if c not in df.columns]
            mismatched = {
                c: str(df.schema[c])
                for c, expected in schema.items()
                if c in df.columns and _dtype_family(df.schema[c]) != _dtype_family(expected)
            }
            passed = not missing and not mismatched

            if passed:
                message = "Schema matches"
            else:
                parts = []
                if missing:
                    parts.append(f"missing columns {missing}")
                if mismatched:
                    parts.append(f"unexpected dtypes {mismatched}")
                message = "Schema mismatch: " + ", ".join(parts)

            return ValidationCheck(
                name="schema",
                passed=passed,
                severity=severity,
                message=message,
                details={"missing": missing, "mismatched": mismatched},
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return self._missing(f"not_null_{column}", column, severity)

            null_count = df[column].null_count()
            total = len(df)
            passed = null_count == 0

            return ValidationCheck(
                name=f"not_null_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                details={"null_count": null_count, "null_percentage": (null_count / total) * 100 if total > 0 else 0},
                failed_rows=null_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for uniqueness of column values"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return self._missing(f"unique_{column}", column, severity)

            total = len(df)
            duplicate_count = total - df[column].n_unique()
            passed = duplicate_count == 0

            return ValidationCheck(
                name=f"unique_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {duplicate_count} duplicate values" if not passed else f"Column '{column}' values are unique",
                details={"duplicate_count": duplicate_count},
                failed_rows=duplicate_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return self._missing(f"range_{column}", column, severity)

            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)

            if not conditions:
                return ValidationCheck(
                    name=f"range_{column}",
                    passed=True,
                    severity=severity,
                    message="No range specified",
                )

            combined = conditions[0]
            for cond in conditions[1:]:
                combined = combined | cond

            out_of_range = df.filter(combined).height
            total = len(df)
            passed = out_of_range == 0

            return ValidationCheck(
                name=f"range_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside range [{min_value}, {max_value}]" if not passed else "All values in range",
                details={"min": min_value, "max": max_value, "out_of_range_count": out_of_range},
                failed_rows=out_of_range,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_positive_check(
        self,
        column: str,
        allow_zero: bool = True,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for positive values"""
        min_val = 0 if allow_zero else 0.0001
        return self.add_range_check(column, min_value=min_val, severity=severity)

    def add_custom_check(
        self,
        name: str,
        check_func: Callable[[pl.DataFrame], bool],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add custom validation check"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            try:
                passed = bool(check_func(df))
            except (pl.exceptions.PolarsError, KeyError, TypeError) as e:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {e}",
                )
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message="Check passed" if passed else message_on_fail,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.now(timezone.utc)
        results = []

        logger.info(f"Running {len(self._checks)} validation checks on {len(df)} rows")

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        validation_result = ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )

        logger.info(
            f"Validation complete: {status.value}",
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return validation_result


def _totals_consistent(df: pl.DataFrame) -> bool:
    """total matches unit_price * quantity + tax within tolerance"""
    if df.is_empty():
        return True
    drift = (df["total"] - (df["unit_price"] * df["quantity"] + df["tax"])).abs().max()
    return drift is None or drift <= TOTAL_CONSISTENCY_TOLERANCE


def create_sales_validator(strict_mode: bool = False) -> DataValidator:
    """Create pre-configured validator for the sales table"""
    validator = DataValidator(strict_mode=strict_mode).add_schema_check(SALES_SCHEMA)

    for column in KEY_COLUMNS:
        validator.add_not_null_check(column)

    return (
        validator
        .add_positive_check("quantity", allow_zero=False)
        .add_range_check("total", min_value=0)
        .add_unique_check("invoice_id", severity=ValidationSeverity.WARNING)
        .add_range_check("rating", min_value=0, max_value=10, severity=ValidationSeverity.WARNING)
        .add_custom_check(
            name="total_consistency",
            check_func=_totals_consistent,
            message_on_fail="total differs from unit_price * quantity + tax",
            severity=ValidationSeverity.WARNING,
        )
    )


def validate_sales_frame(df: pl.DataFrame, strict_mode: bool = False) -> ValidationResult:
    """
    Validate a sales DataFrame, failing fast on errors.

    Raises:
        SalesSchemaError: If any error-severity check fails (or, in strict
            mode, any warning)
    """
    result = create_sales_validator(strict_mode=strict_mode).validate(df)
    if result.status == ValidationStatus.FAILED:
        raise SalesSchemaError(result)
    return result
