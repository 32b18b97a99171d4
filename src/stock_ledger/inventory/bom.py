"""BOM engine — recipes of item lines and their multiplied execution."""

import logging
from collections.abc import Iterable, Mapping

from stock_ledger.access import Principal
from stock_ledger.database.models import Bom, BomLine, ExecutionLine, Transaction
from stock_ledger.database.repository import Repository
from stock_ledger.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    Shortfall,
    ValidationError,
)
from stock_ledger.inventory.validation import (
    optional_text,
    parse_positive_int,
    require_text,
)

logger = logging.getLogger(__name__)


def _coerce_lines(lines) -> list[BomLine]:
    """Accept BomLine objects, ``{"item_id", "qty"}`` mappings or pairs."""
    result = []
    for index, line in enumerate(lines or [], start=1):
        if isinstance(line, BomLine):
            item_id, qty = line.item_id, line.qty
        elif isinstance(line, Mapping):
            item_id, qty = line.get("item_id"), line.get("qty")
        else:
            item_id, qty = line
        if item_id is None or item_id == "":
            raise ValidationError(
                f"Line {index}: item is required", field="items"
            )
        try:
            item_id = int(item_id)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Line {index}: invalid item id {item_id!r}", field="items"
            ) from None
        result.append(BomLine(
            item_id=item_id,
            qty=parse_positive_int(qty, "items", f"Line {index} quantity"),
        ))

    seen = set()
    for line in result:
        if line.item_id in seen:
            raise ValidationError(
                f"Item {line.item_id} appears more than once", field="items"
            )
        seen.add(line.item_id)
    return result


def plan_lines(lines: Iterable[BomLine], multiplier: int) -> list[ExecutionLine]:
    """Project a recipe against live stock.

    Lines for the same item are merged so the check compares the total
    demand on that item with its stock. A line whose item no longer
    exists is reported with zero availability.
    """
    planned: dict[int, ExecutionLine] = {}
    for line in lines:
        if line.item_id in planned:
            entry = planned[line.item_id]
            entry.recipe_qty += line.qty
            entry.required_qty += line.qty * multiplier
            continue
        exists = bool(line.item_exists)
        planned[line.item_id] = ExecutionLine(
            item_id=line.item_id,
            item_name=line.name if exists else f"Unknown item #{line.item_id}",
            recipe_qty=line.qty,
            required_qty=line.qty * multiplier,
            available=line.current_stock if exists else 0,
        )
    return list(planned.values())


class BomEngine:
    """Creates, edits and executes bills of materials."""

    def __init__(self, repo: Repository):
        self.repo = repo

    def _check_items_exist(self, conn, lines: list[BomLine]):
        for line in lines:
            if self.repo.get_item_by_id(line.item_id, conn=conn) is None:
                raise NotFoundError("Item", line.item_id)

    def list_boms(self) -> list[Bom]:
        return self.repo.get_all_boms()

    def get_bom(self, bom_id: int) -> Bom:
        """A BOM with its lines and each line's live stock."""
        bom = self.repo.get_bom_by_id(bom_id)
        if bom is None:
            raise NotFoundError("BOM", bom_id)
        bom.items = self.repo.get_bom_lines(bom_id)
        bom.line_count = len(bom.items)
        return bom

    def create_bom(self, principal: Principal, name: str,
                   description: str = "", lines=None) -> int:
        name = require_text(name, "name", "BOM name")
        parsed = _coerce_lines(lines)
        with self.repo.db.get_connection(immediate=True) as conn:
            if self.repo.find_bom_by_name(name, conn=conn):
                raise ConflictError("A BOM with this name already exists")
            self._check_items_exist(conn, parsed)
            bom_id = self.repo.insert_bom(conn, Bom(
                name=name,
                description=optional_text(description),
                created_by=principal.id,
            ))
            self.repo.replace_bom_lines(conn, bom_id, parsed)
        logger.info("BOM %r created with %d lines by %s",
                    name, len(parsed), principal.username)
        return bom_id

    def update_bom(self, principal: Principal, bom_id: int, name: str,
                   description: str = "", lines=None):
        """Rename/redescribe a BOM and replace its whole line list."""
        name = require_text(name, "name", "BOM name")
        parsed = _coerce_lines(lines)
        with self.repo.db.get_connection(immediate=True) as conn:
            bom = self.repo.get_bom_by_id(bom_id, conn=conn)
            if bom is None:
                raise NotFoundError("BOM", bom_id)
            if self.repo.find_bom_by_name(name, exclude_id=bom.id, conn=conn):
                raise ConflictError("A BOM with this name already exists")
            self._check_items_exist(conn, parsed)
            bom.name = name
            bom.description = optional_text(description)
            self.repo.update_bom_header(conn, bom)
            self.repo.replace_bom_lines(conn, bom.id, parsed)
        logger.info("BOM %s updated (%d lines) by %s",
                    bom_id, len(parsed), principal.username)

    def delete_bom(self, principal: Principal, bom_id: int):
        """Remove a BOM and its lines. Logged executions stay."""
        with self.repo.db.get_connection() as conn:
            if self.repo.get_bom_by_id(bom_id, conn=conn) is None:
                raise NotFoundError("BOM", bom_id)
            self.repo.delete_bom(conn, bom_id)
        logger.info("BOM %s deleted by %s", bom_id, principal.username)

    def plan_execution(self, bom_id: int, multiplier=1) -> list[ExecutionLine]:
        """Preview an execution without writing anything."""
        multiplier = parse_positive_int(multiplier, "multiplier", "Multiplier")
        bom = self.get_bom(bom_id)
        return plan_lines(bom.items, multiplier)

    def execute_bom(self, principal: Principal, bom_id: int,
                    project_name: str, multiplier=1) -> list[ExecutionLine]:
        """Deduct ``recipe qty x multiplier`` for every line, or nothing.

        Raises InsufficientStockError listing every short line. The
        check and the deductions share one write-locked transaction.
        """
        project_name = require_text(
            project_name, "project_name", "Project name"
        )
        multiplier = parse_positive_int(multiplier, "multiplier", "Multiplier")

        with self.repo.db.get_connection(immediate=True) as conn:
            bom = self.repo.get_bom_by_id(bom_id, conn=conn)
            if bom is None:
                raise NotFoundError("BOM", bom_id)
            lines = self.repo.get_bom_lines(bom.id, conn=conn)
            if not lines:
                raise ValidationError("BOM has no items", field="items")

            plan = plan_lines(lines, multiplier)
            short = [
                Shortfall(p.item_id, p.item_name, p.required_qty, p.available)
                for p in plan if p.is_short
            ]
            if short:
                logger.warning("BOM %r x%d rejected: %d short lines",
                               bom.name, multiplier, len(short))
                raise InsufficientStockError(short)

            notes = f"BOM Execution: {bom.name} (x{multiplier})"
            for p in plan:
                if self.repo.decrement_item_quantity(
                        conn, p.item_id, p.required_qty) is None:
                    raise InsufficientStockError([Shortfall(
                        p.item_id, p.item_name, p.required_qty, p.available
                    )])
                self.repo.insert_transaction(conn, Transaction(
                    item_id=p.item_id, user_id=principal.id, type="OUT",
                    qty=p.required_qty, project_ref=project_name,
                    notes=notes,
                ))

        logger.info("BOM %r executed x%d for %r by %s",
                    bom.name, multiplier, project_name, principal.username)
        return plan
