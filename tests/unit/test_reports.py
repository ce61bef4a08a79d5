"""
Unit Tests - Sales Reports
"""
from collections import defaultdict
from datetime import date, timedelta

import pytest
import polars as pl

from sales_analytics.analytics.reports import (
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
from sales_analytics.config import get_settings


class TestBranchGrowthRates:
    """Tests for month-over-month growth"""

    def test_hand_computed_growth(self, branch_months_df):
        """Test 3 branches x 2 months against hand-computed rates"""
        result = branch_growth_rates(branch_months_df)

        assert result.columns == ["branch", "month", "growth_rate"]
        assert result.rows() == [
            ("A", "2019-02", 50.0),
            ("C", "2019-02", 25.0),
            ("B", "2019-02", -25.0),
        ]

    def test_first_month_never_reported(self, branch_months_df):
        """Test no branch's first month appears"""
        result = branch_growth_rates(branch_months_df)

        assert "2019-01" not in result["month"].to_list()

    def test_rounds_to_two_decimals(self, make_sales):
        """Test growth is rounded half away from zero"""
        df = make_sales([
            {"date": date(2019, 1, 1), "total": 300.0},
            {"date": date(2019, 2, 1), "total": 400.0},
            {"date": date(2019, 3, 1), "total": 300.0},
        ])

        result = branch_growth_rates(df)

        assert result.rows() == [("A", "2019-02", 33.33), ("A", "2019-03", -25.0)]

    def test_zero_previous_month_is_null_and_last(self, make_sales):
        """Test zero previous-month sales yields null growth sorted last"""
        df = make_sales([
            {"branch": "A", "date": date(2019, 1, 1), "total": 0.0},
            {"branch": "A", "date": date(2019, 2, 1), "total": 50.0},
            {"branch": "B", "date": date(2019, 1, 1), "total": 100.0},
            {"branch": "B", "date": date(2019, 2, 1), "total": 10.0},
        ])

        result = branch_growth_rates(df)

        assert result.rows() == [("B", "2019-02", -90.0), ("A", "2019-02", None)]

    def test_top_n_limit(self, make_sales):
        """Test only the top rows are returned"""
        rows = [
            {"branch": b, "date": date(2019, m, 1), "total": float(10 * m + i)}
            for i, b in enumerate(["A", "B", "C"])
            for m in range(1, 6)
        ]

        assert branch_growth_rates(make_sales(rows)).height == 10
        assert branch_growth_rates(make_sales(rows), top_n=2).height == 2

    def test_negative_top_n(self, branch_months_df):
        """Test negative limit is rejected"""
        with pytest.raises(ValueError):
            branch_growth_rates(branch_months_df, top_n=-1)

    def test_recomputes_from_monthly_sums(self, generated_sales_df):
        """Test every growth rate matches the branch's ordered monthly sums"""
        sums = defaultdict(float)
        for row in generated_sales_df.iter_rows(named=True):
            sums[(row["branch"], row["date"].strftime("%Y-%m"))] += row["total"]

        by_branch = defaultdict(list)
        for (branch, month), total in sorted(sums.items()):
            by_branch[branch].append((month, total))

        expected = {}
        first_months = set()
        for branch, months in by_branch.items():
            first_months.add((branch, months[0][0]))
            for (_, prev), (month, curr) in zip(months, months[1:]):
                expected[(branch, month)] = (curr - prev) / prev * 100

        result = branch_growth_rates(generated_sales_df)

        assert result.height == min(10, len(expected))
        for branch, month, growth in result.iter_rows():
            assert (branch, month) not in first_months
            assert growth == pytest.approx(expected[(branch, month)], abs=0.01)


class TestMostProfitableProductLines:
    """Tests for most profitable product line per branch"""

    def test_single_winner_and_ties(self, make_sales):
        """Test one winner per branch, with tied lines all returned"""
        df = make_sales([
            {"branch": "A", "product_line": "Health and beauty", "gross_income": 10.0},
            {"branch": "A", "product_line": "Health and beauty", "gross_income": 5.0},
            {"branch": "A", "product_line": "Food and beverages", "gross_income": 12.0},
            {"branch": "B", "product_line": "Food and beverages", "gross_income": 0.1},
            {"branch": "B", "product_line": "Food and beverages", "gross_income": 0.2},
            {"branch": "B", "product_line": "Sports and travel", "gross_income": 0.3},
        ])

        result = most_profitable_product_lines(df)

        assert result.columns == ["branch", "most_profitable_product_line", "total_profit"]
        assert result.rows() == [
            ("A", "Health and beauty", 15.0),
            ("B", "Food and beverages", 0.3),
            ("B", "Sports and travel", 0.3),
        ]

    def test_totals_reproduce_from_rows(self, generated_sales_df):
        """Test each total equals the summed gross income of its rows"""
        result = most_profitable_product_lines(generated_sales_df)

        assert set(result["branch"]) == set(generated_sales_df["branch"])
        for branch, line, profit in result.iter_rows():
            rows = generated_sales_df.filter(
                (pl.col("branch") == branch) & (pl.col("product_line") == line)
            )
            assert profit == pytest.approx(rows["gross_income"].sum(), abs=0.01)


class TestCustomerSpendingTiers:
    """Tests for customer segmentation"""

    def test_hundred_customers_split(self, make_sales):
        """Test 100 customers split 34/33/33 with one label each"""
        df = make_sales([{"customer_id": i, "total": float(i)} for i in range(1, 101)])

        result = customer_spending_tiers(df)
        counts = dict(result.group_by("spending_category").len().iter_rows())

        assert counts == {"High": 34, "Medium": 33, "Low": 33}
        assert result["customer_id"].n_unique() == 100
        assert result.height == 100

        labels = dict(result.select("customer_id", "spending_category").iter_rows())
        assert labels[100] == "High"
        assert labels[67] == "High"
        assert labels[66] == "Medium"
        assert labels[33] == "Low"

    def test_spend_is_summed_per_customer(self, make_sales):
        """Test repeat visits add up before bucketing"""
        df = make_sales([
            {"customer_id": 1, "total": 10.0},
            {"customer_id": 1, "total": 95.0},
            {"customer_id": 2, "total": 100.0},
            {"customer_id": 3, "total": 1.0},
        ])

        result = customer_spending_tiers(df)

        assert result.rows() == [
            (1, 105.0, "High"),
            (2, 100.0, "Medium"),
            (3, 1.0, "Low"),
        ]

    def test_other_tier_counts_use_bucket_numbers(self, make_sales):
        """Test non-default tier counts label by bucket"""
        df = make_sales([{"customer_id": i, "total": float(i)} for i in range(1, 5)])

        result = customer_spending_tiers(df, tiers=2)

        assert result["spending_category"].to_list() == ["1", "1", "2", "2"]


class TestSalesAnomalies:
    """Tests for z-score anomaly detection"""

    def test_identical_totals_not_flagged(self, make_sales):
        """Test zero std does not crash and flags nothing"""
        df = make_sales([{"total": 100.0} for _ in range(10)])

        result = sales_anomalies(df)

        assert result.height == 0
        assert result.columns == ["invoice_id", "product_line", "total", "z_score"]

    def test_spike_and_drop(self, make_sales):
        """Test outliers on both sides, sorted by z-score descending"""
        rows = [{"product_line": "Food and beverages", "total": 10.0} for _ in range(9)]
        rows.append({"product_line": "Food and beverages", "total": 100.0})
        rows += [{"product_line": "Sports and travel", "total": 100.0} for _ in range(9)]
        rows.append({"product_line": "Sports and travel", "total": 10.0})
        df = make_sales(rows)

        result = sales_anomalies(df)

        # mean 19, sample std sqrt(810): z = 81 / 28.46
        assert result.rows() == [
            ("INV-0009", "Food and beverages", 100.0, 2.85),
            ("INV-0019", "Sports and travel", 10.0, -2.85),
        ]

    def test_threshold_parameter(self, make_sales):
        """Test a higher threshold flags nothing"""
        rows = [{"total": 10.0} for _ in range(9)] + [{"total": 100.0}]

        assert sales_anomalies(make_sales(rows), threshold=3.0).height == 0

    def test_single_transaction_line(self, make_sales):
        """Test a product line with one sale has no z-score"""
        df = make_sales([{"product_line": "Fashion accessories", "total": 500.0}])

        assert sales_anomalies(df).height == 0


class TestTopPaymentMethods:
    """Tests for most popular payment per city"""

    def test_winner_and_tie(self, make_sales):
        """Test rank-1 payment methods per city"""
        df = make_sales([
            {"city": "Yangon", "payment": "Cash"},
            {"city": "Yangon", "payment": "Cash"},
            {"city": "Yangon", "payment": "Cash"},
            {"city": "Yangon", "payment": "Ewallet"},
            {"city": "Yangon", "payment": "Ewallet"},
            {"city": "Mandalay", "payment": "Cash"},
            {"city": "Mandalay", "payment": "Credit card"},
            {"city": "Mandalay", "payment": "Credit card"},
            {"city": "Mandalay", "payment": "Cash"},
        ])

        result = top_payment_methods(df)

        assert result.columns == ["city", "most_popular_payment", "payment_count"]
        assert result.rows() == [
            ("Mandalay", "Cash", 2),
            ("Mandalay", "Credit card", 2),
            ("Yangon", "Cash", 3),
        ]

    def test_counts_reproduce_from_rows(self, generated_sales_df):
        """Test payment counts match row counts"""
        result = top_payment_methods(generated_sales_df)

        assert set(result["city"]) == set(generated_sales_df["city"])
        for city, payment, count in result.iter_rows():
            rows = generated_sales_df.filter((pl.col("city") == city) & (pl.col("payment") == payment))
            assert count == rows.height


class TestMonthlySalesByGender:
    """Tests for monthly sales by gender"""

    def test_grouping_and_order(self, make_sales):
        """Test sums ordered by month then gender"""
        df = make_sales([
            {"date": date(2019, 2, 1), "gender": "Male", "total": 5.0},
            {"date": date(2019, 1, 3), "gender": "Male", "total": 0.1},
            {"date": date(2019, 1, 9), "gender": "Male", "total": 0.2},
            {"date": date(2019, 1, 4), "gender": "Female", "total": 7.5},
        ])

        result = monthly_sales_by_gender(df)

        assert result.columns == ["sales_month", "gender", "total_sales"]
        assert result.rows() == [
            ("2019-01", "Female", 7.5),
            ("2019-01", "Male", 0.3),
            ("2019-02", "Male", 5.0),
        ]


class TestBestProductLinesByCustomerType:
    """Tests for best product line per customer type"""

    def test_units_summed_and_ranked(self, make_sales):
        """Test rank-1 lines by units sold"""
        df = make_sales([
            {"customer_type": "Member", "product_line": "Food and beverages", "quantity": 5},
            {"customer_type": "Member", "product_line": "Food and beverages", "quantity": 5},
            {"customer_type": "Member", "product_line": "Health and beauty", "quantity": 7},
            {"customer_type": "Normal", "product_line": "Sports and travel", "quantity": 4},
            {"customer_type": "Normal", "product_line": "Health and beauty", "quantity": 3},
        ])

        result = best_product_lines_by_customer_type(df)

        assert result.columns == ["customer_type", "best_product_line", "total_units_sold"]
        assert result.rows() == [
            ("Member", "Food and beverages", 10),
            ("Normal", "Sports and travel", 4),
        ]

    def test_one_group_per_customer_type(self, generated_sales_df):
        """Test every customer type has a winner and units reproduce"""
        result = best_product_lines_by_customer_type(generated_sales_df)

        assert set(result["customer_type"]) == set(generated_sales_df["customer_type"])
        for customer_type, line, units in result.iter_rows():
            rows = generated_sales_df.filter(
                (pl.col("customer_type") == customer_type) & (pl.col("product_line") == line)
            )
            assert units == rows["quantity"].sum()


class TestRepeatPurchasePairs:
    """Tests for repeat purchase self-join"""

    @staticmethod
    def _visits(customer_id, days, start=date(2019, 1, 1)):
        return [{"customer_id": customer_id, "date": start + timedelta(days=d)} for d in days]

    def test_window_excludes_long_gaps(self, make_sales):
        """Test days 0/10/40 keep 0 -> 10 and 10 -> 40 but drop 0 -> 40"""
        df = make_sales(self._visits(1, [0, 10, 40]))

        result = repeat_purchase_pairs(df)

        assert result.columns == ["customer_id", "first_purchase", "repeat_purchase", "days_between"]
        assert result.rows() == [
            (1, date(2019, 1, 1), date(2019, 1, 11), 10),
            (1, date(2019, 1, 11), date(2019, 2, 10), 30),
        ]

    def test_gap_beyond_window_dropped(self, make_sales):
        """Test days 0/10/41 produce only the 0 -> 10 pair"""
        df = make_sales(self._visits(1, [0, 10, 41]))

        result = repeat_purchase_pairs(df)

        assert result.rows() == [(1, date(2019, 1, 1), date(2019, 1, 11), 10)]

    def test_thirty_day_gap_is_inclusive(self, make_sales):
        """Test a gap of exactly 30 days is kept and 31 is not"""
        df = make_sales(self._visits(2, [0, 30]) + self._visits(3, [0, 31]))

        result = repeat_purchase_pairs(df)

        assert result.rows() == [(2, date(2019, 1, 1), date(2019, 1, 31), 30)]

    def test_all_forward_pairs(self, make_sales):
        """Test non-adjacent pairs inside the window are emitted"""
        df = make_sales(self._visits(1, [20, 0, 10]))

        result = repeat_purchase_pairs(df)

        assert result.select("days_between").to_series().to_list() == [10, 20, 10]
        assert result["first_purchase"].to_list() == [
            date(2019, 1, 1), date(2019, 1, 1), date(2019, 1, 11),
        ]

    def test_same_day_transactions_count_once(self, make_sales):
        """Test duplicate purchase dates produce one pair"""
        df = make_sales(self._visits(1, [0, 0, 5]))

        result = repeat_purchase_pairs(df)

        assert result.height == 1

    def test_customers_do_not_mix(self, make_sales):
        """Test pairs only join the same customer, ordered by customer"""
        df = make_sales(self._visits(2, [0, 3]) + self._visits(1, [1, 2]))

        result = repeat_purchase_pairs(df)

        assert result["customer_id"].to_list() == [1, 2]
        assert result["days_between"].to_list() == [1, 3]

    def test_custom_window(self, make_sales):
        """Test window parameter"""
        df = make_sales(self._visits(1, [0, 10, 40]))

        assert repeat_purchase_pairs(df, window_days=40).height == 3
        with pytest.raises(ValueError):
            repeat_purchase_pairs(df, window_days=-1)


    def test_frequent_customer_pairs_stay_in_window(self, make_sales):
        """Test visits every 10 days yield only the in-window forward pairs"""
        days = list(range(0, 100, 10))
        df = make_sales(self._visits(1, days) + self._visits(2, days))

        result = repeat_purchase_pairs(df)

        # days 0..60 pair with the next three visits, 70 with two, 80 with one
        per_customer = 7 * 3 + 2 + 1
        assert result.filter(pl.col("customer_id") == 1).height == per_customer
        assert result.filter(pl.col("customer_id") == 2).height == per_customer
        assert result["days_between"].is_between(1, 30).all()
        assert set(result["days_between"].to_list()) == {10, 20, 30}


class TestTopCustomersByRevenue:
    """Tests for top customers"""

    def test_ties_inside_cutoff(self, make_sales):
        """Test revenues [100, 90, 90, 80, 70, 60] keep both 90s and drop 60"""
        revenues = [100.0, 90.0, 90.0, 80.0, 70.0, 60.0]
        df = make_sales([{"customer_id": i + 1, "total": r} for i, r in enumerate(revenues)])

        result = top_customers_by_revenue(df)

        assert result.columns == ["customer_id", "total_revenue"]
        assert result["customer_id"].to_list() == [1, 2, 3, 4, 5]
        assert 60.0 not in result["total_revenue"].to_list()

    def test_tie_at_cutoff_broken_by_customer_id(self, make_sales):
        """Test equal revenue at the cutoff keeps the lower customer_id"""
        revenues = {9: 100.0, 8: 90.0, 7: 80.0, 6: 70.0, 5: 60.0, 4: 60.0}
        df = make_sales([{"customer_id": c, "total": r} for c, r in revenues.items()])

        result = top_customers_by_revenue(df)

        assert result["customer_id"].to_list() == [9, 8, 7, 6, 4]

    def test_revenue_summed_and_rounded(self, make_sales):
        """Test revenue sums across visits"""
        df = make_sales([
            {"customer_id": 1, "total": 0.1},
            {"customer_id": 1, "total": 0.2},
            {"customer_id": 2, "total": 0.25},
        ])

        result = top_customers_by_revenue(df, limit=1)

        assert result.rows() == [(1, 0.3)]


    def test_decimals_parameter(self, make_sales):
        """Test rounding precision is configurable per call"""
        df = make_sales([{"customer_id": 1, "total": 10.1234}])

        assert top_customers_by_revenue(df, decimals=3).rows() == [(1, 10.123)]
        assert top_customers_by_revenue(df).rows() == [(1, 10.12)]

    def test_defaults_read_at_call_time(self, make_sales, monkeypatch):
        """Test environment settings apply to calls made after import"""
        df = make_sales([
            {"customer_id": c, "total": c + 0.04} for c in range(1, 5)
        ])
        monkeypatch.setenv("ANALYTICS_TOP_CUSTOMERS_LIMIT", "2")
        monkeypatch.setenv("ANALYTICS_ROUND_DECIMALS", "1")
        get_settings.cache_clear()
        try:
            result = top_customers_by_revenue(df)
        finally:
            get_settings.cache_clear()

        assert result.rows() == [(4, 4.0), (3, 3.0)]


class TestSalesByWeekday:
    """Tests for sales by day of week"""

    def test_weekday_totals(self, make_sales):
        """Test observed weekdays only, sorted by total"""
        df = make_sales([
            {"date": date(2019, 1, 7), "total": 100.0},  # Monday
            {"date": date(2019, 1, 14), "total": 50.0},  # Monday
            {"date": date(2019, 1, 5), "total": 200.0},  # Saturday
        ])

        result = sales_by_weekday(df)

        assert result.columns == ["day_of_week", "total_sales"]
        assert result.rows() == [("Saturday", 200.0), ("Monday", 150.0)]

    def test_at_most_seven_days(self, generated_sales_df):
        """Test one row per observed weekday"""
        result = sales_by_weekday(generated_sales_df)

        assert result.height <= 7
        assert result["total_sales"].sum() == pytest.approx(generated_sales_df["total"].sum(), abs=0.05)


@pytest.mark.parametrize(
    "report, columns",
    [
        (branch_growth_rates, ["branch", "month", "growth_rate"]),
        (most_profitable_product_lines, ["branch", "most_profitable_product_line", "total_profit"]),
        (customer_spending_tiers, ["customer_id", "total_spent", "spending_category"]),
        (sales_anomalies, ["invoice_id", "product_line", "total", "z_score"]),
        (top_payment_methods, ["city", "most_popular_payment", "payment_count"]),
        (monthly_sales_by_gender, ["sales_month", "gender", "total_sales"]),
        (best_product_lines_by_customer_type, ["customer_type", "best_product_line", "total_units_sold"]),
        (repeat_purchase_pairs, ["customer_id", "first_purchase", "repeat_purchase", "days_between"]),
        (top_customers_by_revenue, ["customer_id", "total_revenue"]),
        (sales_by_weekday, ["day_of_week", "total_sales"]),
    ],
)
def test_empty_dataset(report, columns, empty_sales_df):
    """Test every report returns an empty frame for empty input"""
    result = report(empty_sales_df)

    assert result.height == 0
    assert result.columns == columns
