"""CSV import and export for items, transaction history and service orders."""

import csv
import logging
from pathlib import Path

from stock_ledger.access import Principal
from stock_ledger.database.repository import Repository
from stock_ledger.errors import InventoryError
from stock_ledger.inventory.stock import StockEngine
from stock_ledger.io.validators import validate_item_row

logger = logging.getLogger(__name__)

ITEM_CSV_COLUMNS = [
    "ID", "Name", "Part Number", "Category", "Footprint",
    "Qty", "Location", "Item Type", "Notes",
]

HISTORY_CSV_COLUMNS = [
    "Date", "Type", "Item Name", "Qty", "User", "Project Ref", "Notes",
]

SERVICE_CSV_COLUMNS = [
    "ID", "Item", "Serial Number", "Customer", "Contact", "Status",
    "Priority", "Received", "Due", "Completed", "Technician",
    "Cost Estimate",
]

# Import accepts the export headers as well as snake_case field names
_HEADER_MAP = {
    "quantity": "qty",
    "total_qty": "qty",
    "type": "item_type",
    "datasheet": "datasheet_url",
}


def normalize_header(header: str) -> str:
    key = (header or "").strip().lower().replace(" ", "_")
    return _HEADER_MAP.get(key, key)


def _open_for_write(filepath: str | Path):
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    return open(filepath, "w", newline="", encoding="utf-8")


def export_items_csv(repo: Repository, filepath: str | Path) -> int:
    """Export all items to CSV. Returns the number of rows written."""
    items = repo.get_all_items()
    with _open_for_write(filepath) as f:
        writer = csv.writer(f)
        writer.writerow(ITEM_CSV_COLUMNS)
        for item in items:
            writer.writerow([
                item.id, item.name, item.part_number, item.category,
                item.footprint, item.total_qty, item.location,
                item.item_type, item.notes,
            ])
    return len(items)


def export_transactions_csv(repo: Repository, filepath: str | Path,
                            item_id: int = None) -> int:
    """Export transaction history (newest first). Returns row count."""
    transactions = repo.get_transactions(item_id=item_id)
    with _open_for_write(filepath) as f:
        writer = csv.writer(f)
        writer.writerow(HISTORY_CSV_COLUMNS)
        for txn in transactions:
            writer.writerow([
                txn.timestamp, txn.type, txn.item_name, txn.qty,
                txn.full_name or txn.username, txn.project_ref, txn.notes,
            ])
    return len(transactions)


def export_service_orders_csv(repo: Repository, filepath: str | Path) -> int:
    """Export all service orders. Returns row count."""
    orders = repo.get_service_orders()
    with _open_for_write(filepath) as f:
        writer = csv.writer(f)
        writer.writerow(SERVICE_CSV_COLUMNS)
        for order in orders:
            writer.writerow([
                order.id, order.item_name, order.serial_number,
                order.customer_name, order.customer_contact, order.status,
                order.priority, order.date_received, order.due_date or "",
                order.completed_date or "", order.technician_name,
                "" if order.cost_estimate is None else order.cost_estimate,
            ])
    return len(orders)


def import_items_csv(
    stock: StockEngine,
    principal: Principal,
    filepath: str | Path,
    project_ref: str = "CSV import",
) -> dict:
    """Stock in every valid row of a CSV file.

    Rows matching an existing (name, footprint) restock it; others
    create a new item. Each row is its own transaction, so one bad row
    does not undo the rest. Returns a results dict with counts and errors.
    """
    filepath = Path(filepath)
    results = {"imported": 0, "restocked": 0, "skipped": 0, "errors": []}

    try:
        with open(filepath, "r", encoding="utf-8", newline="") as f:
            reader = csv.reader(f)
            header = next(reader, None)
            if not header:
                results["errors"].append("Empty file")
                return results
            header = [normalize_header(h) for h in header]

            for row_num, values in enumerate(reader, start=2):
                if not any(v.strip() for v in values):
                    continue
                row = dict(zip(header, values))

                errors = validate_item_row(row, row_num)
                if errors:
                    results["errors"].extend(errors)
                    results["skipped"] += 1
                    continue

                try:
                    result = stock.stock_in(
                        principal,
                        name=row["name"].strip(),
                        quantity=int(row["qty"]),
                        footprint=row.get("footprint"),
                        part_number=row.get("part_number"),
                        category=row.get("category"),
                        location=row.get("location"),
                        notes=row.get("notes"),
                        datasheet_url=row.get("datasheet_url"),
                        item_type=row.get("item_type"),
                        project_ref=project_ref,
                    )
                except InventoryError as e:
                    results["errors"].append(f"Row {row_num}: {e}")
                    results["skipped"] += 1
                    continue

                if result.created:
                    results["imported"] += 1
                else:
                    results["restocked"] += 1

    except (OSError, UnicodeDecodeError, csv.Error) as e:
        results["errors"].append(f"File error: {e}")

    logger.info("CSV import from %s: %d new, %d restocked, %d skipped",
                filepath.name, results["imported"], results["restocked"],
                results["skipped"])
    return results
