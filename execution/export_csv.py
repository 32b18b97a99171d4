"""Standalone CSV export script — export items, history or service orders."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from stock_ledger.app import build_context
from stock_ledger.io.csv_handler import (
    export_items_csv,
    export_service_orders_csv,
    export_transactions_csv,
)

EXPORTERS = {
    "items": export_items_csv,
    "history": export_transactions_csv,
    "services": export_service_orders_csv,
}


def main():
    if len(sys.argv) < 3:
        print("Usage: python export_csv.py <items|history|services> <output.csv>")
        sys.exit(1)

    data_type = sys.argv[1].lower()
    filepath = sys.argv[2]

    exporter = EXPORTERS.get(data_type)
    if exporter is None:
        print(f"Unknown data type: {data_type}. "
              f"Use one of: {', '.join(EXPORTERS)}.")
        sys.exit(1)

    ctx = build_context()
    count = exporter(ctx.repo, filepath)
    print(f"Exported {count} {data_type} rows to {filepath}")


if __name__ == "__main__":
    main()
