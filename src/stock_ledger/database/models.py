"""Data models for the database layer."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

TRANSACTION_TYPES = ("IN", "OUT", "MOVE")

SERVICE_STATUSES = (
    "pending", "in_progress", "waiting_parts",
    "testing", "completed", "delivered",
)
SERVICE_CLOSED_STATUSES = ("completed", "delivered")
SERVICE_PRIORITIES = ("low", "medium", "high", "urgent")

USER_ROLES = ("admin", "user")


def normalize_footprint(footprint: Optional[str]) -> str:
    """Footprint half of an item's identity: absent and empty are equal."""
    return (footprint or "").strip()


def utc_now_str() -> str:
    """Current UTC time in SQLite's CURRENT_TIMESTAMP format."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


@dataclass
class Item:
    id: Optional[int] = None
    name: str = ""
    part_number: str = ""
    category: str = ""
    footprint: str = ""
    item_type: str = "consumable"
    total_qty: int = 0
    location: str = ""
    notes: str = ""
    image_path: str = ""
    datasheet_url: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def identity(self) -> tuple[str, str]:
        return (self.name, normalize_footprint(self.footprint))

    def is_low_stock(self, threshold: int) -> bool:
        return self.total_qty < threshold


@dataclass
class Transaction:
    id: Optional[int] = None
    item_id: int = 0
    user_id: int = 0
    type: str = "IN"
    qty: int = 0
    project_ref: str = ""
    notes: str = ""
    timestamp: Optional[str] = None
    # Joined fields
    item_name: str = field(default="", repr=False)
    username: str = field(default="", repr=False)
    full_name: str = field(default="", repr=False)

    @property
    def signed_qty(self) -> int:
        """Effect of this entry on the item's counter."""
        if self.type == "IN":
            return self.qty
        if self.type == "OUT":
            return -self.qty
        return 0


@dataclass
class User:
    id: Optional[int] = None
    username: str = ""
    password: str = field(default="", repr=False)
    full_name: str = ""
    role: str = "user"
    is_active: int = 1
    created_at: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass
class BomLine:
    id: Optional[int] = None
    bom_id: int = 0
    item_id: int = 0
    qty: int = 1
    # Joined fields (live, not a snapshot)
    name: str = field(default="", repr=False)
    part_number: str = field(default="", repr=False)
    category: str = field(default="", repr=False)
    current_stock: int = field(default=0, repr=False)
    item_exists: int = field(default=1, repr=False)


@dataclass
class Bom:
    id: Optional[int] = None
    name: str = ""
    description: str = ""
    created_by: Optional[int] = None
    created_at: Optional[str] = None
    items: list[BomLine] = field(default_factory=list)
    # Joined fields
    line_count: int = field(default=0, repr=False)


@dataclass
class ExecutionLine:
    """One line of a projected BOM execution."""
    item_id: int
    item_name: str
    recipe_qty: int
    required_qty: int
    available: int

    @property
    def is_short(self) -> bool:
        return self.required_qty > self.available

    @property
    def shortfall(self) -> int:
        return max(self.required_qty - self.available, 0)


@dataclass
class ServicePart:
    id: Optional[int] = None
    service_order_id: int = 0
    item_id: int = 0
    qty: int = 0
    timestamp: Optional[str] = None
    # Joined fields
    item_name: str = field(default="", repr=False)
    part_number: str = field(default="", repr=False)
    category: str = field(default="", repr=False)


@dataclass
class ServiceOrder:
    id: Optional[int] = None
    item_name: str = ""
    serial_number: str = ""
    customer_name: str = ""
    customer_contact: str = ""
    complaint: str = ""
    diagnosis: str = ""
    actions_taken: str = ""
    status: str = "pending"
    priority: str = "medium"
    date_received: Optional[str] = None
    due_date: Optional[str] = None
    completed_date: Optional[str] = None
    technician_id: Optional[int] = None
    cost_estimate: Optional[float] = None
    notes: str = ""
    created_by: Optional[int] = None
    # Joined fields
    technician_name: str = field(default="", repr=False)
    created_by_name: str = field(default="", repr=False)
    parts_used: list[ServicePart] = field(default_factory=list, repr=False)

    @property
    def is_closed(self) -> bool:
        return self.status in SERVICE_CLOSED_STATUSES

    def is_overdue(self, now: Optional[str] = None) -> bool:
        """Due date passed and the order is still open.

        ``now`` uses the stored timestamp format and defaults to UTC now.
        """
        if not self.due_date or self.is_closed:
            return False
        return self.due_date < (now or utc_now_str())
