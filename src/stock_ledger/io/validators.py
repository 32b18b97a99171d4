"""Validation rules for import data."""


def validate_item_row(row: dict, row_num: int) -> list[str]:
    """Validate a single row of item import data. Returns list of error strings."""
    errors = []

    name = (row.get("name") or "").strip()
    if not name:
        errors.append(f"Row {row_num}: name is required")
    elif len(name) > 200:
        errors.append(f"Row {row_num}: name exceeds 200 chars")

    qty = (row.get("qty") or "").strip()
    if not qty:
        errors.append(f"Row {row_num}: qty is required")
    else:
        try:
            q = int(qty)
            if q < 1:
                errors.append(f"Row {row_num}: qty must be at least 1")
        except (ValueError, TypeError):
            errors.append(f"Row {row_num}: qty must be an integer")

    url = (row.get("datasheet_url") or "").strip()
    if url and not url.startswith(("http://", "https://")):
        errors.append(f"Row {row_num}: datasheet_url must be an http(s) link")

    return errors
