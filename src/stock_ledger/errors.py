"""Error types raised by the inventory core.

Every error carries a readable message plus enough structured detail
(entity kind, ids, shortfalls) for a caller to build its own response.
"""

from dataclasses import dataclass


class InventoryError(Exception):
    """Base exception for inventory operations."""


class ValidationError(InventoryError, ValueError):
    """A required field is missing or malformed. Nothing was written."""

    def __init__(self, message: str, field: str = ""):
        super().__init__(message)
        self.field = field


class ConflictError(InventoryError):
    """The write would duplicate an existing unique identity."""


class NotFoundError(InventoryError):
    """An item, BOM, service order or user id does not exist."""

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class AuthorizationError(InventoryError):
    """Role or credential check failed."""


class LedgerIntegrityError(InventoryError):
    """A write would break the stock ledger (e.g. negative quantity)."""


@dataclass(frozen=True)
class Shortfall:
    item_id: int
    item_name: str
    needed: int
    available: int

    @property
    def missing(self) -> int:
        return self.needed - self.available

    def __str__(self) -> str:
        return f"{self.item_name} (Need {self.needed}, Have {self.available})"


class InsufficientStockError(InventoryError):
    """One or more items do not have enough stock.

    ``shortfalls`` lists every offending line, so BOM execution can
    report the complete picture in one error.
    """

    def __init__(self, shortfalls: list[Shortfall]):
        self.shortfalls = list(shortfalls)
        super().__init__(
            "Insufficient stock: "
            + ", ".join(str(s) for s in self.shortfalls)
        )
