"""Standalone CSV import script — stock in items from the command line.

Every row is recorded as an IN transaction attributed to the given user.
"""

import getpass
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from stock_ledger.app import build_context, configure_logging
from stock_ledger.errors import InventoryError
from stock_ledger.io.csv_handler import import_items_csv


def main():
    if len(sys.argv) < 3:
        print("Usage: python import_csv.py <filepath.csv> <username>")
        sys.exit(1)

    filepath = sys.argv[1]
    username = sys.argv[2]

    configure_logging()
    ctx = build_context()
    try:
        principal = ctx.access.authenticate(
            username, getpass.getpass(f"Password for {username}: ")
        )
    except InventoryError as e:
        print(f"Login failed: {e}")
        sys.exit(1)

    print(f"Importing from: {filepath}")
    results = import_items_csv(ctx.stock, principal, filepath)

    print(f"\nResults:")
    print(f"  New items: {results['imported']}")
    print(f"  Restocked: {results['restocked']}")
    print(f"  Skipped:   {results['skipped']}")

    if results["errors"]:
        print(f"\nErrors ({len(results['errors'])}):")
        for err in results["errors"]:
            print(f"  - {err}")


if __name__ == "__main__":
    main()
