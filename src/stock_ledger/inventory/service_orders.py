"""Service order tracker — repair tickets that can consume stock."""

import logging
from typing import Optional

from stock_ledger.access import Principal
from stock_ledger.database.models import (
    SERVICE_CLOSED_STATUSES,
    SERVICE_PRIORITIES,
    SERVICE_STATUSES,
    ServiceOrder,
    ServicePart,
    Transaction,
    utc_now_str,
)
from stock_ledger.database.repository import Repository
from stock_ledger.errors import InsufficientStockError, NotFoundError, Shortfall
from stock_ledger.inventory.validation import (
    normalize_timestamp,
    optional_float,
    optional_text,
    parse_positive_int,
    require_choice,
    require_text,
)

logger = logging.getLogger(__name__)


class ServiceOrderTracker:
    """CRUD over repair tickets plus parts consumption."""

    def __init__(self, repo: Repository):
        self.repo = repo

    def _build_order(self, item_name, customer_name, complaint,
                     serial_number, customer_contact, diagnosis,
                     actions_taken, status, priority, due_date,
                     technician_id, cost_estimate, notes) -> ServiceOrder:
        """Validate caller input into a ServiceOrder (no id yet)."""
        if technician_id not in (None, ""):
            if self.repo.get_user_by_id(technician_id) is None:
                raise NotFoundError("User", technician_id)
        else:
            technician_id = None
        return ServiceOrder(
            item_name=require_text(item_name, "item_name", "Item name"),
            customer_name=require_text(
                customer_name, "customer_name", "Customer name"
            ),
            complaint=require_text(complaint, "complaint", "Complaint"),
            serial_number=optional_text(serial_number),
            customer_contact=optional_text(customer_contact),
            diagnosis=optional_text(diagnosis),
            actions_taken=optional_text(actions_taken),
            status=require_choice(status or "pending", SERVICE_STATUSES,
                                  "status"),
            priority=require_choice(priority or "medium",
                                    SERVICE_PRIORITIES, "priority"),
            due_date=normalize_timestamp(due_date, "due_date"),
            technician_id=technician_id,
            cost_estimate=optional_float(cost_estimate, "cost_estimate"),
            notes=optional_text(notes),
        )

    def create_order(self, principal: Principal, item_name: str,
                     customer_name: str, complaint: str,
                     serial_number: str = None, customer_contact: str = None,
                     diagnosis: str = None, actions_taken: str = None,
                     status: str = "pending", priority: str = "medium",
                     due_date=None, technician_id: Optional[int] = None,
                     cost_estimate=None, notes: str = None) -> int:
        order = self._build_order(
            item_name, customer_name, complaint, serial_number,
            customer_contact, diagnosis, actions_taken, status, priority,
            due_date, technician_id, cost_estimate, notes,
        )
        order.created_by = principal.id
        with self.repo.db.get_connection() as conn:
            order_id = self.repo.insert_service_order(conn, order)
        logger.info("Service order %s opened for %s by %s",
                    order_id, order.customer_name, principal.username)
        return order_id

    def get_order(self, order_id: int) -> ServiceOrder:
        """An order with its parts-used list."""
        order = self.repo.get_service_order_by_id(order_id)
        if order is None:
            raise NotFoundError("Service order", order_id)
        order.parts_used = self.repo.get_service_parts(order_id)
        return order

    def list_orders(self, status: str = None, priority: str = None,
                    overdue: bool = False) -> list[ServiceOrder]:
        if status:
            require_choice(status, SERVICE_STATUSES, "status")
        if priority:
            require_choice(priority, SERVICE_PRIORITIES, "priority")
        return self.repo.get_service_orders(
            status=status, priority=priority, overdue=overdue
        )

    def update_order(self, principal: Principal, order_id: int,
                     item_name: str, customer_name: str, complaint: str,
                     serial_number: str = None, customer_contact: str = None,
                     diagnosis: str = None, actions_taken: str = None,
                     status: str = "pending", priority: str = "medium",
                     due_date=None, completed_date=None,
                     technician_id: Optional[int] = None,
                     cost_estimate=None, notes: str = None):
        """Replace every editable field of an order.

        Any status may follow any other. Moving into ``completed`` or
        ``delivered`` without a completion date stamps one.
        """
        order = self._build_order(
            item_name, customer_name, complaint, serial_number,
            customer_contact, diagnosis, actions_taken, status, priority,
            due_date, technician_id, cost_estimate, notes,
        )
        order.id = order_id
        order.completed_date = normalize_timestamp(
            completed_date, "completed_date"
        )
        with self.repo.db.get_connection() as conn:
            current = self.repo.get_service_order_by_id(order_id, conn=conn)
            if current is None:
                raise NotFoundError("Service order", order_id)
            if (order.status in SERVICE_CLOSED_STATUSES
                    and not order.completed_date):
                order.completed_date = current.completed_date or utc_now_str()
            self.repo.update_service_order(conn, order)
        if current.status != order.status:
            logger.info("Service order %s: %s -> %s by %s", order_id,
                        current.status, order.status, principal.username)

    def delete_order(self, principal: Principal, order_id: int):
        """Delete an order and its parts-used rows. Stock is not restored."""
        with self.repo.db.get_connection() as conn:
            if self.repo.get_service_order_by_id(order_id, conn=conn) is None:
                raise NotFoundError("Service order", order_id)
            self.repo.delete_service_order(conn, order_id)
        logger.info("Service order %s deleted by %s",
                    order_id, principal.username)

    def add_part(self, principal: Principal, order_id: int, item_id: int,
                 quantity) -> int:
        """Consume stock for an order. Returns the item's new total.

        The deduction, the parts-used row and the OUT log entry commit
        together.
        """
        qty = parse_positive_int(quantity, "qty", "Quantity")
        with self.repo.db.get_connection(immediate=True) as conn:
            if self.repo.get_service_order_by_id(order_id, conn=conn) is None:
                raise NotFoundError("Service order", order_id)
            item = self.repo.get_item_by_id(item_id, conn=conn)
            if item is None:
                raise NotFoundError("Item", item_id)

            new_qty = self.repo.decrement_item_quantity(conn, item.id, qty)
            if new_qty is None:
                logger.warning(
                    "Parts for service order %s rejected: %s need %d, have %d",
                    order_id, item.name, qty, item.total_qty,
                )
                raise InsufficientStockError([
                    Shortfall(item.id, item.name, qty, item.total_qty)
                ])
            self.repo.insert_service_part(conn, ServicePart(
                service_order_id=order_id, item_id=item.id, qty=qty,
            ))
            self.repo.insert_transaction(conn, Transaction(
                item_id=item.id, user_id=principal.id, type="OUT", qty=qty,
                project_ref=f"Service Order #{order_id}",
                notes="Used for service/repair",
            ))
        logger.info("Service order %s used %s x%d by %s",
                    order_id, item.name, qty, principal.username)
        return new_qty

    def get_parts(self, order_id: int) -> list[ServicePart]:
        if self.repo.get_service_order_by_id(order_id) is None:
            raise NotFoundError("Service order", order_id)
        return self.repo.get_service_parts(order_id)

    def summary(self) -> dict:
        counts = self.repo.get_service_summary()
        return {status: counts.get(status, 0)
                for status in SERVICE_STATUSES + ("overdue",)}
