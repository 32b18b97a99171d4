"""Tests for dataclass model properties and computed fields."""

import re

import pytest

from stock_ledger.database.models import (
    ExecutionLine,
    Item,
    ServiceOrder,
    Transaction,
    User,
    normalize_footprint,
    utc_now_str,
)
from stock_ledger.errors import InsufficientStockError, Shortfall


class TestNormalizeFootprint:
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_absent_is_empty(self, value):
        assert normalize_footprint(value) == ""

    def test_strips(self):
        assert normalize_footprint(" 0805 ") == "0805"


class TestItemProperties:
    def test_identity_normalizes_footprint(self):
        assert Item(name="LED", footprint=None).identity == ("LED", "")
        assert Item(name="LED", footprint="").identity \
            == Item(name="LED").identity

    def test_low_stock(self):
        item = Item(name="Fuse", total_qty=4)
        assert item.is_low_stock(5)
        assert not item.is_low_stock(4)


class TestTransactionSignedQty:
    def test_in_out_move(self):
        assert Transaction(type="IN", qty=5).signed_qty == 5
        assert Transaction(type="OUT", qty=5).signed_qty == -5
        assert Transaction(type="MOVE", qty=0).signed_qty == 0


class TestUserProperties:
    def test_is_admin(self):
        assert User(role="admin").is_admin
        assert not User(role="user").is_admin

    def test_password_hidden_from_repr(self):
        assert "secret" not in repr(User(username="x", password="secret"))


class TestExecutionLine:
    def test_short(self):
        line = ExecutionLine(1, "Capacitor 1uF", 1, 4, 3)
        assert line.is_short
        assert line.shortfall == 1

    def test_enough(self):
        line = ExecutionLine(1, "Resistor 10k", 2, 8, 10)
        assert not line.is_short
        assert line.shortfall == 0


class TestServiceOrderOverdue:
    def test_past_due_open(self):
        order = ServiceOrder(status="in_progress",
                             due_date="2026-01-01 00:00:00")
        assert order.is_overdue(now="2026-01-02 00:00:00")

    def test_not_yet_due(self):
        order = ServiceOrder(due_date="2026-01-05 00:00:00")
        assert not order.is_overdue(now="2026-01-02 00:00:00")

    @pytest.mark.parametrize("status", ["completed", "delivered"])
    def test_closed_never_overdue(self, status):
        order = ServiceOrder(status=status, due_date="2000-01-01 00:00:00")
        assert order.is_closed
        assert not order.is_overdue()

    def test_no_due_date(self):
        assert not ServiceOrder().is_overdue()


class TestShortfall:
    def test_message_lists_every_line(self):
        err = InsufficientStockError([
            Shortfall(1, "Capacitor 1uF", 4, 3),
            Shortfall(2, "LED Red", 2, 0),
        ])
        assert "Capacitor 1uF (Need 4, Have 3)" in str(err)
        assert "LED Red (Need 2, Have 0)" in str(err)
        assert [s.missing for s in err.shortfalls] == [1, 2]


def test_utc_now_format():
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", utc_now_str())
