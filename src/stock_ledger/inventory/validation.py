"""Input checks shared by the engines. All raise ValidationError."""

from datetime import date, datetime, timezone
from typing import Optional

from stock_ledger.errors import ValidationError


def require_text(value, field: str, label: str = None) -> str:
    """Return ``value`` stripped, or raise if it is empty."""
    text = (value or "").strip() if isinstance(value, str) else value
    if not text:
        raise ValidationError(f"{label or field} is required", field=field)
    return text


def parse_positive_int(value, field: str, label: str = None) -> int:
    """Accept an int or an integer string >= 1."""
    label = label or field
    if isinstance(value, bool) or value is None or value == "":
        raise ValidationError(f"{label} is required", field=field)
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{label} must be a whole number", field=field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{label} must be a whole number", field=field
        ) from None
    if number < 1:
        raise ValidationError(f"{label} must be at least 1", field=field)
    return number


def optional_text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def require_choice(value, choices, field: str) -> str:
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of: {', '.join(choices)}", field=field
        )
    return value


def normalize_timestamp(value, field: str) -> Optional[str]:
    """Store dates and datetimes as ``YYYY-MM-DD HH:MM:SS`` text.

    Accepts None/empty, ``date``/``datetime`` objects and ISO strings
    (``2026-03-01``, ``2026-03-01T14:30``). Aware values are converted to
    UTC; naive ones are taken as UTC already. The uniform format keeps
    SQL comparisons against ``datetime('now')`` correct.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            raise ValidationError(
                f"{field} is not a valid date: {value!r}", field=field
            ) from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def optional_float(value, field: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field=field) from None
    if number < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return number
