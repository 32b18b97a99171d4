"""Tests for shared input checks and the upload file store."""

from datetime import date, datetime, timedelta, timezone

import pytest

from stock_ledger.errors import ValidationError
from stock_ledger.inventory.files import FileStore
from stock_ledger.inventory.validation import (
    normalize_timestamp,
    optional_float,
    optional_text,
    parse_positive_int,
    require_choice,
    require_text,
)


class TestParsePositiveInt:
    @pytest.mark.parametrize("value,expected", [
        (1, 1), ("7", 7), (" 12 ", 12), (3.0, 3),
    ])
    def test_accepts(self, value, expected):
        assert parse_positive_int(value, "qty") == expected

    @pytest.mark.parametrize("value", [0, -1, "0", "abc", 2.5, None, "",
                                       True, False, [3]])
    def test_rejects(self, value):
        with pytest.raises(ValidationError) as exc:
            parse_positive_int(value, "qty", "Quantity")
        assert exc.value.field == "qty"
        assert "Quantity" in str(exc.value)

    def test_validation_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_positive_int("x", "qty")


class TestTextHelpers:
    def test_require_text_strips(self):
        assert require_text("  Bin 4 ", "location") == "Bin 4"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_require_text_rejects_blank(self, value):
        with pytest.raises(ValidationError, match="Name is required"):
            require_text(value, "name", "Name")

    def test_optional_text(self):
        assert optional_text(None) == ""
        assert optional_text("  x ") == "x"

    def test_require_choice(self):
        assert require_choice("low", ("low", "high"), "priority") == "low"
        with pytest.raises(ValidationError, match="low, high"):
            require_choice("mid", ("low", "high"), "priority")


class TestNormalizeTimestamp:
    def test_blank_is_none(self):
        assert normalize_timestamp(None, "due_date") is None
        assert normalize_timestamp("", "due_date") is None

    def test_formats(self):
        assert normalize_timestamp("2026-03-01", "d") == "2026-03-01 00:00:00"
        assert normalize_timestamp("2026-03-01T14:30", "d") \
            == "2026-03-01 14:30:00"
        assert normalize_timestamp(date(2026, 3, 1), "d") \
            == "2026-03-01 00:00:00"
        assert normalize_timestamp(datetime(2026, 3, 1, 9, 5, 7), "d") \
            == "2026-03-01 09:05:07"

    def test_aware_values_converted_to_utc(self):
        assert normalize_timestamp("2026-03-01T10:00:00+07:00", "d") \
            == "2026-03-01 03:00:00"
        wib = timezone(timedelta(hours=7))
        aware = datetime(2026, 3, 1, 1, 0, tzinfo=wib)
        assert normalize_timestamp(aware, "d") == "2026-02-28 18:00:00"

    def test_garbage(self):
        with pytest.raises(ValidationError):
            normalize_timestamp("soon", "due_date")


class TestOptionalFloat:
    def test_values(self):
        assert optional_float(None, "cost") is None
        assert optional_float("", "cost") is None
        assert optional_float("12.5", "cost") == 12.5

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            optional_float(-1, "cost")


class TestFileStore:
    def test_save_keeps_extension(self, tmp_path):
        store = FileStore(tmp_path / "uploads")
        ref = store.save("photo.JPG", b"data")
        assert ref.startswith("/uploads/")
        assert ref.endswith(".JPG")
        assert store.resolve(ref).read_bytes() == b"data"

    def test_names_are_unique(self, tmp_path):
        store = FileStore(tmp_path)
        refs = {store.save("a.png", b"x") for _ in range(5)}
        assert len(refs) == 5

    def test_no_extension(self, tmp_path):
        ref = FileStore(tmp_path).save("", b"x")
        assert "." not in ref.rsplit("/", 1)[1]
