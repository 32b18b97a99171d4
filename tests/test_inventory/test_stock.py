"""Tests for the stock mutation engine: IN, OUT, MOVE, delete."""

import logging

import pytest

from stock_ledger.errors import (
    AuthorizationError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)


ADMIN_PASSWORD = "admin123"


class TestStockIn:
    def test_creates_new_item(self, stock, admin, repo):
        result = stock.stock_in(admin, "Capacitor 1uF", 25, footprint="0603",
                                part_number="CL10A105", location="B1")
        assert result.created
        assert result.new_qty == 25
        item = repo.get_item_by_id(result.item_id)
        assert item.total_qty == 25
        assert item.footprint == "0603"
        assert item.item_type == "consumable"

        history = repo.get_transactions(item_id=result.item_id)
        assert len(history) == 1
        assert history[0].type == "IN"
        assert history[0].qty == 25
        assert history[0].user_id == admin.id

    def test_matching_identity_increments(self, stock, admin, repo, resistor):
        result = stock.stock_in(admin, "Resistor 10k", 50, footprint="0805")
        assert not result.created
        assert result.item_id == resistor
        assert result.new_qty == 150
        assert len(repo.get_all_items()) == 1
        assert len(repo.get_transactions(item_id=resistor)) == 2

    def test_different_footprint_is_a_new_item(self, stock, admin, repo,
                                               resistor):
        result = stock.stock_in(admin, "Resistor 10k", 5, footprint="THT")
        assert result.created
        assert result.item_id != resistor
        assert len(repo.get_all_items()) == 2

    def test_missing_footprint_matches_blank(self, stock, admin, repo):
        first = stock.stock_in(admin, "Solder Wire", 2)
        second = stock.stock_in(admin, "Solder Wire", 3, footprint="  ")
        assert second.item_id == first.item_id
        assert second.new_qty == 5

    def test_restock_refreshes_supplied_fields(self, stock, admin, repo,
                                               resistor):
        stock.stock_in(admin, "Resistor 10k", 1, footprint="0805",
                       location="Drawer B7", datasheet_url="https://x/ds.pdf")
        item = repo.get_item_by_id(resistor)
        assert item.location == "Drawer B7"
        assert item.datasheet_url == "https://x/ds.pdf"
        assert item.category == "Resistor"

    def test_is_new_conflict_writes_nothing(self, stock, admin, repo,
                                            resistor):
        with pytest.raises(ConflictError, match="already exists"):
            stock.stock_in(admin, "Resistor 10k", 10, footprint="0805",
                           is_new=True)
        assert repo.get_item_by_id(resistor).total_qty == 100
        assert len(repo.get_transactions()) == 1

    @pytest.mark.parametrize("qty", [0, -3, "abc", 1.5, None, "", True])
    def test_bad_quantity_rejected(self, stock, admin, repo, qty):
        with pytest.raises(ValidationError):
            stock.stock_in(admin, "Fuse 2A", qty)
        assert repo.get_all_items() == []
        assert repo.get_transactions() == []

    def test_integer_string_quantity_accepted(self, stock, admin):
        assert stock.stock_in(admin, "Fuse 2A", "12").new_qty == 12

    def test_name_required(self, stock, admin, repo):
        with pytest.raises(ValidationError) as exc:
            stock.stock_in(admin, "   ", 5)
        assert exc.value.field == "name"
        assert repo.get_all_items() == []

    def test_image_saved_through_file_store(self, stock, admin, repo, files):
        result = stock.stock_in(admin, "ESP32", 3,
                                image=("board.png", b"\x89PNG"))
        ref = repo.get_item_by_id(result.item_id).image_path
        assert ref.startswith("/uploads/")
        assert ref.endswith(".png")
        assert files.resolve(ref).read_bytes() == b"\x89PNG"


class TestRestockById:
    def test_increments_known_item(self, stock, admin, resistor, repo):
        result = stock.restock(admin, resistor, 20, notes="Reel arrived")
        assert result.new_qty == 120
        assert repo.get_transactions(item_id=resistor)[0].notes == "Reel arrived"

    def test_unknown_item(self, stock, admin):
        with pytest.raises(NotFoundError):
            stock.restock(admin, 999, 1)


class TestStockOut:
    def test_decrements(self, stock, user, repo, resistor):
        new_qty = stock.stock_out(user, resistor, 30, project_ref="Amp build")
        assert new_qty == 70
        txn = repo.get_transactions(item_id=resistor, txn_type="OUT")[0]
        assert txn.qty == 30
        assert txn.project_ref == "Amp build"
        assert txn.username == "tech"

    def test_drain_to_zero_then_fail(self, stock, admin, repo, resistor):
        assert stock.stock_out(admin, resistor, 100) == 0
        with pytest.raises(InsufficientStockError) as exc:
            stock.stock_out(admin, resistor, 1)
        assert repo.get_item_by_id(resistor).total_qty == 0
        shortfall = exc.value.shortfalls[0]
        assert (shortfall.item_name, shortfall.needed, shortfall.available) \
            == ("Resistor 10k", 1, 0)

    def test_over_draw_leaves_log_unchanged(self, stock, admin, repo,
                                            resistor):
        before = repo.get_transactions()
        with pytest.raises(InsufficientStockError,
                           match=r"Resistor 10k \(Need 101, Have 100\)"):
            stock.stock_out(admin, resistor, 101)
        assert repo.get_item_by_id(resistor).total_qty == 100
        assert repo.get_transactions() == before

    def test_rejection_logged(self, stock, admin, resistor, caplog):
        with caplog.at_level(logging.WARNING,
                             logger="stock_ledger.inventory.stock"):
            with pytest.raises(InsufficientStockError):
                stock.stock_out(admin, resistor, 500)
        assert "OUT rejected" in caplog.text

    def test_unknown_item(self, stock, admin):
        with pytest.raises(NotFoundError, match="Item 404 not found"):
            stock.stock_out(admin, 404, 1)

    def test_item_id_required(self, stock, admin):
        with pytest.raises(ValidationError):
            stock.stock_out(admin, None, 1)

    @pytest.mark.parametrize("qty", [0, -1, "1.5", 2.5])
    def test_bad_quantity(self, stock, admin, resistor, repo, qty):
        with pytest.raises(ValidationError):
            stock.stock_out(admin, resistor, qty)
        assert repo.get_item_by_id(resistor).total_qty == 100


class TestMove:
    def test_changes_location_and_logs(self, stock, admin, repo, resistor):
        stock.move(admin, resistor, "Bin 3", notes="Reorganised")
        item = repo.get_item_by_id(resistor)
        assert item.location == "Bin 3"
        assert item.total_qty == 100
        txn = repo.get_transactions(item_id=resistor, txn_type="MOVE")[0]
        assert txn.qty == 0
        assert txn.notes == "Moved from Drawer A1 to Bin 3. Reorganised"

    def test_unknown_previous_location(self, stock, admin, repo):
        item_id = stock.stock_in(admin, "Relay 5V", 4).item_id
        stock.move(admin, item_id, "Shelf 1")
        txn = repo.get_transactions(item_id=item_id, txn_type="MOVE")[0]
        assert txn.notes == "Moved from Unknown to Shelf 1."

    def test_same_location_rejected(self, stock, admin, repo, resistor):
        with pytest.raises(ValidationError):
            stock.move(admin, resistor, "Drawer A1")
        assert repo.get_transactions(txn_type="MOVE") == []

    def test_empty_location_rejected(self, stock, admin, resistor):
        with pytest.raises(ValidationError):
            stock.move(admin, resistor, "  ")

    def test_unknown_item(self, stock, admin):
        with pytest.raises(NotFoundError):
            stock.move(admin, 77, "Bin 1")


class TestUpdateItem:
    def test_edits_descriptive_fields(self, stock, admin, repo, resistor):
        stock.update_item(admin, resistor, "Resistor 10k 1%", footprint="0805",
                          part_number="RC-1", category="Passive",
                          location="Drawer Z")
        item = repo.get_item_by_id(resistor)
        assert item.name == "Resistor 10k 1%"
        assert item.part_number == "RC-1"
        assert item.location == "Drawer Z"
        assert item.total_qty == 100

    def test_identity_clash(self, stock, admin, resistor):
        other = stock.stock_in(admin, "Resistor 10k", 1, footprint="THT")
        with pytest.raises(ConflictError):
            stock.update_item(admin, other.item_id, "Resistor 10k",
                              footprint="0805")


class TestDeleteItem:
    def _with_history(self, stock, services, admin, resistor):
        stock.stock_out(admin, resistor, 10)
        order_id = services.create_order(admin, "Radio", "Ann", "Hum")
        services.add_part(admin, order_id, resistor, 2)
        return order_id

    def test_correct_password_cascades(self, stock, services, admin, repo,
                                       resistor):
        order_id = self._with_history(stock, services, admin, resistor)
        stock.delete_item(admin, resistor, ADMIN_PASSWORD)
        assert repo.get_item_by_id(resistor) is None
        assert repo.get_transactions(item_id=resistor) == []
        assert repo.get_service_parts(order_id) == []
        assert repo.get_service_order_by_id(order_id) is not None

    def test_wrong_password_leaves_everything(self, stock, services, admin,
                                              repo, resistor):
        order_id = self._with_history(stock, services, admin, resistor)
        history = repo.get_transactions(item_id=resistor)
        with pytest.raises(AuthorizationError):
            stock.delete_item(admin, resistor, "not-the-password")
        assert repo.get_item_by_id(resistor).total_qty == 88
        assert repo.get_transactions(item_id=resistor) == history
        assert len(repo.get_service_parts(order_id)) == 1

    def test_password_required(self, stock, admin, repo, resistor):
        with pytest.raises(ValidationError):
            stock.delete_item(admin, resistor, "")
        assert repo.get_item_by_id(resistor) is not None

    def test_unknown_item(self, stock, admin):
        with pytest.raises(NotFoundError):
            stock.delete_item(admin, 999, ADMIN_PASSWORD)

    def test_regular_user_confirms_with_own_password(self, stock, user, repo,
                                                     resistor):
        with pytest.raises(AuthorizationError):
            stock.delete_item(user, resistor, ADMIN_PASSWORD)
        stock.delete_item(user, resistor, "secret-pass")
        assert repo.get_item_by_id(resistor) is None
