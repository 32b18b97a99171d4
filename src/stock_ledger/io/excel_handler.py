"""Excel (XLSX) import and export for items and transaction history."""

from pathlib import Path
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils.exceptions import InvalidFileException

from stock_ledger.access import Principal
from stock_ledger.database.repository import Repository
from stock_ledger.errors import InventoryError
from stock_ledger.inventory.stock import StockEngine
from stock_ledger.io.csv_handler import (
    HISTORY_CSV_COLUMNS,
    ITEM_CSV_COLUMNS,
    normalize_header,
)
from stock_ledger.io.validators import validate_item_row


def _autofit(ws):
    """Approximate column widths from cell contents."""
    for col in ws.columns:
        max_len = max(len(str(cell.value or "")) for cell in col)
        ws.column_dimensions[col[0].column_letter].width = min(max_len + 2, 40)


def _write_header(ws, headers: list[str]):
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"


def _fill_items_sheet(ws, repo: Repository, low_stock_threshold: int) -> int:
    items = repo.get_all_items()
    _write_header(ws, ITEM_CSV_COLUMNS)
    for item in items:
        ws.append([
            item.id, item.name, item.part_number, item.category,
            item.footprint, item.total_qty, item.location,
            item.item_type, item.notes,
        ])
        if item.is_low_stock(low_stock_threshold):
            ws.cell(row=ws.max_row, column=6).font = Font(
                bold=True, color="C00000"
            )
    _autofit(ws)
    return len(items)


def _fill_history_sheet(ws, repo: Repository) -> int:
    transactions = repo.get_transactions()
    _write_header(ws, HISTORY_CSV_COLUMNS)
    for txn in transactions:
        ws.append([
            txn.timestamp, txn.type, txn.item_name, txn.qty,
            txn.full_name or txn.username, txn.project_ref, txn.notes,
        ])
    _autofit(ws)
    return len(transactions)


def export_items_excel(repo: Repository, filepath: str | Path,
                       low_stock_threshold: int = 5) -> int:
    """Export all items to an Excel workbook. Returns row count.

    Quantities under ``low_stock_threshold`` are highlighted.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws = wb.active
    ws.title = "Items"
    count = _fill_items_sheet(ws, repo, low_stock_threshold)

    wb.save(filepath)
    return count


def export_inventory_workbook(repo: Repository, filepath: str | Path,
                              low_stock_threshold: int = 5) -> dict:
    """Write an ``Items`` sheet and a ``History`` sheet to one workbook.

    Returns the row count of each sheet.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    items_ws = wb.active
    items_ws.title = "Items"
    history_ws = wb.create_sheet("History")
    counts = {
        "items": _fill_items_sheet(items_ws, repo, low_stock_threshold),
        "history": _fill_history_sheet(history_ws, repo),
    }

    wb.save(filepath)
    return counts


def import_items_excel(
    stock: StockEngine,
    principal: Principal,
    filepath: str | Path,
    project_ref: str = "Excel import",
) -> dict:
    """Stock in every valid row of the first sheet. Returns results dict."""
    filepath = Path(filepath)
    results = {"imported": 0, "restocked": 0, "skipped": 0, "errors": []}

    try:
        wb = load_workbook(filepath, read_only=True)
    except (OSError, ValueError, BadZipFile, InvalidFileException) as e:
        results["errors"].append(f"File error: {e}")
        return results

    try:
        rows = list(wb.active.iter_rows(values_only=True))
    finally:
        wb.close()

    if not rows:
        results["errors"].append("Empty workbook")
        return results

    header = [normalize_header(str(h or "")) for h in rows[0]]
    for row_num, row_data in enumerate(rows[1:], start=2):
        if all(v is None for v in row_data):
            continue
        row = dict(zip(
            header, [str(v) if v is not None else "" for v in row_data]
        ))
        # Numeric cells come back as floats
        if row.get("qty", "").endswith(".0"):
            row["qty"] = row["qty"][:-2]

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

    return results
