"""Stock mutation engine — IN, OUT, MOVE and confirmed delete.

Each public method runs as one database transaction: the item row
change and its transaction-log entry commit together or not at all.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from stock_ledger.access import AccessGate, Principal
from stock_ledger.database.models import Item, Transaction, normalize_footprint
from stock_ledger.database.repository import Repository
from stock_ledger.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    Shortfall,
    ValidationError,
)
from stock_ledger.inventory.files import FileStore
from stock_ledger.inventory.validation import (
    optional_text,
    parse_positive_int,
    require_text,
)

logger = logging.getLogger(__name__)


@dataclass
class StockResult:
    item_id: int
    new_qty: int
    created: bool = False


class StockEngine:
    """Applies stock movements to the ledger store."""

    def __init__(self, repo: Repository, access: AccessGate,
                 files: Optional[FileStore] = None):
        self.repo = repo
        self.access = access
        self.files = files

    def _item_or_raise(self, conn, item_id) -> Item:
        if item_id is None or item_id == "":
            raise ValidationError("Item ID is required", field="item_id")
        item = self.repo.get_item_by_id(item_id, conn=conn)
        if item is None:
            raise NotFoundError("Item", item_id)
        return item

    def stock_in(self, principal: Principal, name: str, quantity,
                 footprint: str = None, part_number: str = None,
                 category: str = None, location: str = None,
                 notes: str = None, project_ref: str = None,
                 datasheet_url: str = None, item_type: str = None,
                 image_path: str = None, image: tuple = None,
                 is_new: bool = False) -> StockResult:
        """Receive stock by (name, footprint) identity.

        Restocks the matching item, or creates it when none matches.
        ``is_new`` asserts the caller is registering a new item; a
        matching identity then raises ConflictError instead of
        restocking. ``image`` is an optional ``(filename, bytes)`` pair
        saved through the file store.
        """
        name = require_text(name, "name", "Name")
        qty = parse_positive_int(quantity, "qty", "Quantity")
        footprint = normalize_footprint(footprint)

        if image is not None and self.files is not None:
            image_path = self.files.save(*image)

        with self.repo.db.get_connection(immediate=True) as conn:
            existing = self.repo.find_item(name, footprint, conn=conn)
            if existing and is_new:
                raise ConflictError(
                    f'Item "{name}" with footprint "{footprint}" already '
                    f"exists. Please use 'Restock' instead."
                )

            if existing:
                item_id = existing.id
                new_qty = self.repo.increment_item_quantity(
                    conn, item_id, qty,
                    location=location, item_type=item_type,
                    part_number=part_number, datasheet_url=datasheet_url,
                    image_path=image_path,
                )
            else:
                new_qty = qty
                item_id = self.repo.insert_item(conn, Item(
                    name=name,
                    part_number=optional_text(part_number),
                    category=optional_text(category),
                    footprint=footprint,
                    item_type=optional_text(item_type) or "consumable",
                    total_qty=qty,
                    location=optional_text(location),
                    notes=optional_text(notes),
                    image_path=image_path or "",
                    datasheet_url=optional_text(datasheet_url),
                ))

            self.repo.insert_transaction(conn, Transaction(
                item_id=item_id, user_id=principal.id, type="IN", qty=qty,
                project_ref=optional_text(project_ref),
                notes=optional_text(notes),
            ))

        logger.info(
            "IN %s x%d (item %s, now %d) by %s",
            name, qty, item_id, new_qty, principal.username,
        )
        return StockResult(item_id=item_id, new_qty=new_qty,
                           created=existing is None)

    def restock(self, principal: Principal, item_id: int, quantity,
                location: str = None, project_ref: str = None,
                notes: str = None) -> StockResult:
        """Stock-in against a known item id."""
        qty = parse_positive_int(quantity, "qty", "Quantity")
        with self.repo.db.get_connection(immediate=True) as conn:
            item = self._item_or_raise(conn, item_id)
            new_qty = self.repo.increment_item_quantity(
                conn, item.id, qty, location=location,
            )
            self.repo.insert_transaction(conn, Transaction(
                item_id=item.id, user_id=principal.id, type="IN", qty=qty,
                project_ref=optional_text(project_ref),
                notes=optional_text(notes),
            ))
        logger.info("IN %s x%d (item %s, now %d) by %s",
                    item.name, qty, item.id, new_qty, principal.username)
        return StockResult(item_id=item.id, new_qty=new_qty)

    def stock_out(self, principal: Principal, item_id: int, quantity,
                  project_ref: str = None, notes: str = None) -> int:
        """Take stock out of an item. Returns the new total."""
        qty = parse_positive_int(quantity, "qty", "Quantity")
        with self.repo.db.get_connection(immediate=True) as conn:
            item = self._item_or_raise(conn, item_id)
            new_qty = self.repo.decrement_item_quantity(conn, item.id, qty)
            if new_qty is None:
                logger.warning(
                    "OUT rejected for %s: need %d, have %d",
                    item.name, qty, item.total_qty,
                )
                raise InsufficientStockError([
                    Shortfall(item.id, item.name, qty, item.total_qty)
                ])
            self.repo.insert_transaction(conn, Transaction(
                item_id=item.id, user_id=principal.id, type="OUT", qty=qty,
                project_ref=optional_text(project_ref),
                notes=optional_text(notes),
            ))
        logger.info("OUT %s x%d (item %s, now %d) by %s",
                    item.name, qty, item.id, new_qty, principal.username)
        return new_qty

    def move(self, principal: Principal, item_id: int, new_location: str,
             project_ref: str = None, notes: str = None) -> str:
        """Change an item's location and log a zero-quantity MOVE."""
        new_location = require_text(
            new_location, "new_location", "New location"
        )
        with self.repo.db.get_connection(immediate=True) as conn:
            item = self._item_or_raise(conn, item_id)
            if item.location == new_location:
                raise ValidationError(
                    f"Item is already at {new_location}",
                    field="new_location",
                )
            old_location = item.location or "Unknown"
            move_notes = f"Moved from {old_location} to {new_location}."
            if optional_text(notes):
                move_notes += f" {optional_text(notes)}"

            self.repo.update_item_location(conn, item.id, new_location)
            self.repo.insert_transaction(conn, Transaction(
                item_id=item.id, user_id=principal.id, type="MOVE", qty=0,
                project_ref=optional_text(project_ref), notes=move_notes,
            ))
        logger.info("MOVE %s: %s -> %s by %s", item.name, old_location,
                    new_location, principal.username)
        return new_location

    def update_item(self, principal: Principal, item_id: int, name: str,
                    footprint: str = None, part_number: str = None,
                    category: str = None, notes: str = None,
                    datasheet_url: str = None, item_type: str = None,
                    image_path: str = None, location: str = None) -> Item:
        """Edit an item's descriptive fields.

        Quantity is not editable here; it only changes through logged
        IN/OUT operations. ``location``/``image_path`` of None keep the
        current value.
        """
        name = require_text(name, "name", "Name")
        footprint = normalize_footprint(footprint)
        with self.repo.db.get_connection(immediate=True) as conn:
            item = self._item_or_raise(conn, item_id)
            clash = self.repo.find_item(name, footprint, conn=conn)
            if clash and clash.id != item.id:
                raise ConflictError(
                    f'Item "{name}" with footprint "{footprint}" already exists'
                )
            item.name = name
            item.footprint = footprint
            item.part_number = optional_text(part_number)
            item.category = optional_text(category)
            item.notes = optional_text(notes)
            item.datasheet_url = optional_text(datasheet_url)
            item.item_type = optional_text(item_type) or item.item_type
            if image_path is not None:
                item.image_path = image_path
            if location is not None:
                item.location = optional_text(location)
            self.repo.update_item_details(conn, item)
        logger.info("Item %s details updated by %s", item.id,
                    principal.username)
        return item

    def delete_item(self, principal: Principal, item_id: int,
                    password: str):
        """Delete an item after re-checking the caller's password.

        Cascades to the item's transactions, parts-used rows and BOM
        lines in one transaction.
        """
        self.access.verify_credential(principal, password)
        with self.repo.db.get_connection(immediate=True) as conn:
            item = self._item_or_raise(conn, item_id)
            self.repo.delete_item_cascade(conn, item.id)
        logger.info("Item %s (%s) deleted by %s",
                    item.id, item.name, principal.username)
