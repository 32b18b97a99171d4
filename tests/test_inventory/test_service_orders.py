"""Tests for the service order tracker."""

from datetime import date, datetime, timedelta

import pytest

from stock_ledger.errors import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def order_id(services, admin):
    return services.create_order(
        admin, "Laptop X441", "Andi", "Does not power on",
        serial_number="SN-1", customer_contact="0812-000",
    )


class TestCreateOrder:
    def test_defaults(self, services, admin, order_id):
        order = services.get_order(order_id)
        assert order.status == "pending"
        assert order.priority == "medium"
        assert order.date_received is not None
        assert order.completed_date is None
        assert order.created_by == admin.id
        assert order.created_by_name == "admin"
        assert order.parts_used == []

    @pytest.mark.parametrize("field", ["item_name", "customer_name",
                                       "complaint"])
    def test_required_fields(self, services, admin, field):
        values = {"item_name": "TV", "customer_name": "Bo",
                  "complaint": "No picture"}
        values[field] = ""
        with pytest.raises(ValidationError) as exc:
            services.create_order(admin, **values)
        assert exc.value.field == field
        assert services.list_orders() == []

    def test_unknown_status_rejected(self, services, admin):
        with pytest.raises(ValidationError):
            services.create_order(admin, "TV", "Bo", "Dead", status="lost")

    def test_unknown_priority_rejected(self, services, admin):
        with pytest.raises(ValidationError):
            services.create_order(admin, "TV", "Bo", "Dead", priority="asap")

    def test_technician_must_exist(self, services, admin):
        with pytest.raises(NotFoundError):
            services.create_order(admin, "TV", "Bo", "Dead", technician_id=99)

    def test_technician_name_joined(self, services, admin, user):
        oid = services.create_order(admin, "TV", "Bo", "Dead",
                                    technician_id=user.id)
        assert services.get_order(oid).technician_name == "tech"

    def test_due_date_normalized(self, services, admin):
        oid = services.create_order(admin, "TV", "Bo", "Dead",
                                    due_date="2030-03-01")
        assert services.get_order(oid).due_date == "2030-03-01 00:00:00"
        oid = services.create_order(admin, "TV", "Bo", "Dead",
                                    due_date=date(2030, 3, 2))
        assert services.get_order(oid).due_date == "2030-03-02 00:00:00"

    def test_bad_due_date(self, services, admin):
        with pytest.raises(ValidationError):
            services.create_order(admin, "TV", "Bo", "Dead",
                                  due_date="next tuesday")

    def test_cost_estimate(self, services, admin):
        oid = services.create_order(admin, "TV", "Bo", "Dead",
                                    cost_estimate="150000")
        assert services.get_order(oid).cost_estimate == 150000.0
        with pytest.raises(ValidationError):
            services.create_order(admin, "TV", "Bo", "Dead",
                                  cost_estimate="cheap")

    def test_get_unknown(self, services):
        with pytest.raises(NotFoundError, match="Service order 9 not found"):
            services.get_order(9)


class TestListOrders:
    def test_filters(self, services, admin):
        services.create_order(admin, "A", "C1", "x", status="pending",
                              priority="high")
        services.create_order(admin, "B", "C2", "x", status="testing",
                              priority="high")
        services.create_order(admin, "C", "C3", "x", status="testing",
                              priority="low")
        assert len(services.list_orders()) == 3
        assert len(services.list_orders(status="testing")) == 2
        assert len(services.list_orders(priority="high")) == 2
        assert [o.item_name for o in
                services.list_orders(status="testing", priority="low")] == ["C"]

    def test_bad_filter(self, services):
        with pytest.raises(ValidationError):
            services.list_orders(status="archived")

    def test_overdue(self, services, admin):
        past = datetime.now() - timedelta(days=3)
        future = datetime.now() + timedelta(days=30)
        late = services.create_order(admin, "Late", "C", "x", due_date=past)
        services.create_order(admin, "Fine", "C", "x", due_date=future)
        services.create_order(admin, "Done", "C", "x", due_date=past,
                              status="delivered")
        services.create_order(admin, "Undated", "C", "x")

        overdue = services.list_orders(overdue=True)
        assert [o.id for o in overdue] == [late]
        assert overdue[0].is_overdue()
        assert services.summary()["overdue"] == 1


class TestUpdateOrder:
    def test_full_replace(self, services, admin, order_id):
        services.update_order(
            admin, order_id, "Laptop X441", "Andi", "Does not power on",
            diagnosis="Blown MOSFET", actions_taken="Replaced Q12",
            status="testing", priority="urgent",
        )
        order = services.get_order(order_id)
        assert order.diagnosis == "Blown MOSFET"
        assert order.status == "testing"
        assert order.priority == "urgent"
        # Fields not passed are cleared
        assert order.serial_number == ""
        assert order.customer_contact == ""

    def test_any_status_transition_allowed(self, services, admin, order_id):
        for status in ("delivered", "pending", "waiting_parts"):
            services.update_order(admin, order_id, "Laptop", "Andi", "Dead",
                                  status=status)
            assert services.get_order(order_id).status == status

    def test_completing_stamps_completed_date(self, services, admin,
                                              order_id):
        services.update_order(admin, order_id, "Laptop", "Andi", "Dead",
                              status="completed")
        stamped = services.get_order(order_id).completed_date
        assert stamped is not None

        # Stays put on later edits while still closed
        services.update_order(admin, order_id, "Laptop", "Andi", "Dead",
                              status="delivered")
        assert services.get_order(order_id).completed_date == stamped

    def test_explicit_completed_date_kept(self, services, admin, order_id):
        services.update_order(admin, order_id, "Laptop", "Andi", "Dead",
                              status="completed",
                              completed_date="2025-12-24T16:00")
        assert services.get_order(order_id).completed_date \
            == "2025-12-24 16:00:00"

    def test_validation_applies(self, services, admin, order_id):
        with pytest.raises(ValidationError):
            services.update_order(admin, order_id, "", "Andi", "Dead")
        assert services.get_order(order_id).item_name == "Laptop X441"

    def test_unknown(self, services, admin):
        with pytest.raises(NotFoundError):
            services.update_order(admin, 404, "TV", "Bo", "Dead")


class TestAddPart:
    def test_consumes_stock_and_logs(self, services, admin, repo, resistor,
                                     order_id):
        new_qty = services.add_part(admin, order_id, resistor, 4)
        assert new_qty == 96
        assert repo.get_item_by_id(resistor).total_qty == 96

        parts = services.get_parts(order_id)
        assert [(p.item_id, p.qty, p.item_name) for p in parts] \
            == [(resistor, 4, "Resistor 10k")]

        txn = repo.get_transactions(item_id=resistor, txn_type="OUT")[0]
        assert txn.qty == 4
        assert txn.project_ref == f"Service Order #{order_id}"
        assert txn.notes == "Used for service/repair"

    def test_parts_listed_on_order(self, services, admin, resistor, order_id):
        services.add_part(admin, order_id, resistor, 1)
        services.add_part(admin, order_id, resistor, 2)
        assert len(services.get_order(order_id).parts_used) == 2

    def test_insufficient_stock_writes_nothing(self, services, admin, repo,
                                               resistor, order_id):
        log_before = repo.get_transactions()
        with pytest.raises(InsufficientStockError,
                           match=r"Need 101, Have 100"):
            services.add_part(admin, order_id, resistor, 101)
        assert repo.get_item_by_id(resistor).total_qty == 100
        assert services.get_parts(order_id) == []
        assert repo.get_transactions() == log_before

    def test_unknown_order(self, services, admin, resistor, repo):
        with pytest.raises(NotFoundError, match="Service order"):
            services.add_part(admin, 404, resistor, 1)
        assert repo.get_item_by_id(resistor).total_qty == 100

    def test_unknown_item(self, services, admin, order_id):
        with pytest.raises(NotFoundError, match="Item"):
            services.add_part(admin, order_id, 404, 1)

    @pytest.mark.parametrize("qty", [0, -5, "lots"])
    def test_bad_quantity(self, services, admin, resistor, order_id, qty):
        with pytest.raises(ValidationError):
            services.add_part(admin, order_id, resistor, qty)


class TestDeleteOrder:
    def test_removes_parts_but_not_stock(self, services, admin, repo,
                                         resistor, order_id):
        services.add_part(admin, order_id, resistor, 10)
        services.delete_order(admin, order_id)

        with pytest.raises(NotFoundError):
            services.get_order(order_id)
        assert repo.get_item_by_id(resistor).total_qty == 90
        assert len(repo.get_transactions(item_id=resistor, txn_type="OUT")) == 1
        count = repo.db.execute("SELECT COUNT(*) AS c FROM service_parts_used")
        assert count[0]["c"] == 0

    def test_unknown(self, services, admin):
        with pytest.raises(NotFoundError):
            services.delete_order(admin, 1)


class TestSummary:
    def test_every_status_reported(self, services, admin, order_id):
        services.create_order(admin, "TV", "Bo", "Dead", status="testing")
        summary = services.summary()
        assert summary["pending"] == 1
        assert summary["testing"] == 1
        assert summary["delivered"] == 0
        assert set(summary) == {
            "pending", "in_progress", "waiting_parts", "testing",
            "completed", "delivered", "overdue",
        }
