"""
Sales Dataset Generator
Writes a synthetic walmart_sales CSV (1,000 transactions over one quarter)
"""

from datetime import date
from pathlib import Path

from sales_analytics.data import SalesDataGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

ROWS = 1000
CUSTOMERS = 300


def main():
    print("=" * 60)
    print("🛒 Sales Dataset Generator")
    print("=" * 60 + "\n")

    print(f"📊 Generating {ROWS:,} transactions...")
    df = SalesDataGenerator(seed=42).generate(
        n=ROWS,
        customers=CUSTOMERS,
        start=date(2019, 1, 1),
        months=3,
    )

    output_file = OUTPUT_DIR / "walmart_sales.csv"
    df.write_csv(output_file)

    size = output_file.stat().st_size / 1024 / 1024
    print(f"   ✅ {output_file.name}: {df.height:,} rows ({size:.2f} MB)")
    print(f"\n📁 Output: {OUTPUT_DIR}\n")


if __name__ == "__main__":
    main()
