"""Repository layer — the ledger store: queries and raw write primitives.

Read methods accept an optional ``conn`` so an engine can read inside
the transaction it is about to write in. Write primitives on the ledger
tables (items, transactions, BOMs, service orders) always take the
caller's ``conn``: the caller owns the transaction and decides when the
whole multi-row change commits.
"""

from typing import Optional

from stock_ledger.errors import LedgerIntegrityError

from .connection import DatabaseConnection
from .models import (
    Bom,
    BomLine,
    Item,
    ServiceOrder,
    ServicePart,
    Transaction,
    User,
    normalize_footprint,
)


def _build(model, row):
    """Build a dataclass from a row, ignoring columns it does not know."""
    fields = model.__dataclass_fields__
    return model(**{k: v for k, v in dict(row).items() if k in fields})


class Repository:
    """Provides all database operations for the application."""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def _query(self, sql: str, params: tuple = (), conn=None):
        if conn is not None:
            return conn.execute(sql, params).fetchall()
        return self.db.execute(sql, params)

    # ── Items ───────────────────────────────────────────────────

    _ITEMS_SELECT = """
        SELECT i.id, i.name,
               COALESCE(i.part_number, '') AS part_number,
               COALESCE(i.category, '') AS category,
               COALESCE(i.footprint, '') AS footprint,
               COALESCE(i.item_type, 'consumable') AS item_type,
               i.total_qty,
               COALESCE(i.location, '') AS location,
               COALESCE(i.notes, '') AS notes,
               COALESCE(i.image_path, '') AS image_path,
               COALESCE(i.datasheet_url, '') AS datasheet_url,
               i.created_at, i.updated_at
        FROM items i
    """

    def get_all_items(self) -> list[Item]:
        rows = self.db.execute(self._ITEMS_SELECT + " ORDER BY i.name ASC")
        return [_build(Item, r) for r in rows]

    def get_item_by_id(self, item_id: int, conn=None) -> Optional[Item]:
        rows = self._query(
            self._ITEMS_SELECT + " WHERE i.id = ?", (item_id,), conn
        )
        return _build(Item, rows[0]) if rows else None

    def find_item(self, name: str, footprint: Optional[str] = None,
                  conn=None) -> Optional[Item]:
        """Look up an item by its (name, footprint) identity.

        A NULL footprint in the table matches an empty one.
        """
        rows = self._query(
            self._ITEMS_SELECT
            + " WHERE i.name = ? AND COALESCE(i.footprint, '') = ?"
            + " ORDER BY i.id LIMIT 1",
            (name, normalize_footprint(footprint)),
            conn,
        )
        return _build(Item, rows[0]) if rows else None

    def search_items(self, query: str) -> list[Item]:
        """Search items by keyword across the descriptive fields."""
        if not query.strip():
            return self.get_all_items()
        pattern = f"%{query.strip()}%"
        rows = self.db.execute(
            self._ITEMS_SELECT + """
            WHERE i.name LIKE ?
               OR i.part_number LIKE ?
               OR i.category LIKE ?
               OR i.footprint LIKE ?
               OR i.location LIKE ?
               OR i.notes LIKE ?
            ORDER BY i.name
        """, (pattern,) * 6)
        return [_build(Item, r) for r in rows]

    def get_low_stock_items(self, threshold: int) -> list[Item]:
        rows = self.db.execute(
            self._ITEMS_SELECT + """
            WHERE i.total_qty < ?
            ORDER BY i.total_qty ASC, i.name
        """, (threshold,))
        return [_build(Item, r) for r in rows]

    def insert_item(self, conn, item: Item) -> int:
        if item.total_qty < 0:
            raise LedgerIntegrityError(
                f"Refusing to create item {item.name!r} "
                f"with negative quantity {item.total_qty}"
            )
        cursor = conn.execute("""
            INSERT INTO items
                (name, part_number, category, footprint, item_type,
                 total_qty, location, notes, image_path, datasheet_url)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            item.name, item.part_number, item.category,
            normalize_footprint(item.footprint), item.item_type,
            item.total_qty, item.location, item.notes,
            item.image_path, item.datasheet_url,
        ))
        return cursor.lastrowid

    def update_item_details(self, conn, item: Item):
        """Rewrite every descriptive field. Quantity is left alone."""
        conn.execute("""
            UPDATE items SET
                name = ?, part_number = ?, category = ?, footprint = ?,
                item_type = ?, location = ?, notes = ?,
                image_path = ?, datasheet_url = ?
            WHERE id = ?
        """, (
            item.name, item.part_number, item.category,
            normalize_footprint(item.footprint), item.item_type,
            item.location, item.notes, item.image_path,
            item.datasheet_url, item.id,
        ))

    def _current_qty(self, conn, item_id: int) -> int:
        row = conn.execute(
            "SELECT total_qty FROM items WHERE id = ?", (item_id,)
        ).fetchone()
        return row["total_qty"]

    def increment_item_quantity(
        self, conn, item_id: int, qty: int,
        location: Optional[str] = None,
        item_type: Optional[str] = None,
        part_number: Optional[str] = None,
        datasheet_url: Optional[str] = None,
        image_path: Optional[str] = None,
    ) -> int:
        """Add ``qty`` to an item, refreshing any supplied fields.

        Returns the new total.
        """
        if qty <= 0:
            raise LedgerIntegrityError(
                f"Increment for item {item_id} must be positive, got {qty}"
            )
        conn.execute("""
            UPDATE items SET
                total_qty = total_qty + ?,
                location = COALESCE(?, location),
                item_type = COALESCE(?, item_type),
                part_number = COALESCE(?, part_number),
                datasheet_url = COALESCE(?, datasheet_url),
                image_path = COALESCE(?, image_path)
            WHERE id = ?
        """, (
            qty, location or None, item_type or None, part_number or None,
            datasheet_url or None, image_path or None, item_id,
        ))
        return self._current_qty(conn, item_id)

    def decrement_item_quantity(self, conn, item_id: int,
                                qty: int) -> Optional[int]:
        """Subtract ``qty`` only if the stock covers it.

        Single conditional UPDATE, so there is no window between the
        sufficiency check and the write. Returns the new total, or None
        when the item is missing or short.
        """
        if qty <= 0:
            raise LedgerIntegrityError(
                f"Decrement for item {item_id} must be positive, got {qty}"
            )
        cursor = conn.execute(
            "UPDATE items SET total_qty = total_qty - ? "
            "WHERE id = ? AND total_qty >= ?",
            (qty, item_id, qty),
        )
        if cursor.rowcount == 0:
            return None
        return self._current_qty(conn, item_id)

    def set_item_quantity(self, conn, item_id: int, qty: int):
        """Overwrite the counter. Only for repair tooling."""
        if qty < 0:
            raise LedgerIntegrityError(
                f"Refusing to set item {item_id} to negative quantity {qty}"
            )
        conn.execute(
            "UPDATE items SET total_qty = ? WHERE id = ?", (qty, item_id)
        )

    def update_item_location(self, conn, item_id: int, location: str):
        conn.execute(
            "UPDATE items SET location = ? WHERE id = ?", (location, item_id)
        )

    def delete_item_cascade(self, conn, item_id: int):
        """Delete an item and everything that references it.

        Order: parts-used rows, BOM lines, transactions, then the item.
        Runs on the caller's connection so it commits or fails as one.
        """
        conn.execute(
            "DELETE FROM service_parts_used WHERE item_id = ?", (item_id,)
        )
        conn.execute("DELETE FROM bom_items WHERE item_id = ?", (item_id,))
        conn.execute("DELETE FROM transactions WHERE item_id = ?", (item_id,))
        conn.execute("DELETE FROM items WHERE id = ?", (item_id,))

    # ── Transactions ────────────────────────────────────────────

    _TRANSACTIONS_SELECT = """
        SELECT t.id, t.item_id, t.user_id, t.type, t.qty,
               COALESCE(t.project_ref, '') AS project_ref,
               COALESCE(t.notes, '') AS notes,
               t.timestamp,
               i.name AS item_name,
               COALESCE(u.username, '') AS username,
               COALESCE(u.full_name, '') AS full_name
        FROM transactions t
        JOIN items i ON t.item_id = i.id
        LEFT JOIN users u ON t.user_id = u.id
    """

    def insert_transaction(self, conn, txn: Transaction) -> int:
        cursor = conn.execute("""
            INSERT INTO transactions
                (item_id, user_id, type, qty, project_ref, notes)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (
            txn.item_id, txn.user_id, txn.type, txn.qty,
            txn.project_ref, txn.notes,
        ))
        return cursor.lastrowid

    def get_transactions(self, item_id: int = None, txn_type: str = None,
                         limit: int = None) -> list[Transaction]:
        """Transaction history, newest first, optionally filtered."""
        conditions = []
        params = []
        if item_id is not None:
            conditions.append("t.item_id = ?")
            params.append(item_id)
        if txn_type is not None:
            conditions.append("t.type = ?")
            params.append(txn_type)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = f"{self._TRANSACTIONS_SELECT} {where} ORDER BY t.timestamp DESC, t.id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self.db.execute(sql, tuple(params))
        return [_build(Transaction, r) for r in rows]

    def get_ledger_balance(self, item_id: int) -> int:
        """Reconstruct an item's quantity from its log alone."""
        rows = self.db.execute("""
            SELECT COALESCE(SUM(CASE type
                       WHEN 'IN' THEN qty
                       WHEN 'OUT' THEN -qty
                       ELSE 0 END), 0) AS balance
            FROM transactions WHERE item_id = ?
        """, (item_id,))
        return rows[0]["balance"] if rows else 0

    def find_ledger_mismatches(self) -> list[dict]:
        """Items whose counter disagrees with their transaction log."""
        rows = self.db.execute("""
            SELECT i.id AS item_id, i.name, i.total_qty,
                   COALESCE(SUM(CASE t.type
                       WHEN 'IN' THEN t.qty
                       WHEN 'OUT' THEN -t.qty
                       ELSE 0 END), 0) AS ledger_qty
            FROM items i
            LEFT JOIN transactions t ON t.item_id = i.id
            GROUP BY i.id
            HAVING i.total_qty != ledger_qty
            ORDER BY i.name
        """)
        return [dict(r) for r in rows]

    # ── Users ────────────────────────────────────────────────────

    def create_user(self, user: User) -> int:
        with self.db.get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO users
                    (username, password, full_name, role, is_active)
                VALUES (?, ?, ?, ?, ?)
            """, (
                user.username, user.password, user.full_name,
                user.role, user.is_active,
            ))
            return cursor.lastrowid

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        rows = self.db.execute(
            "SELECT * FROM users WHERE id = ?", (user_id,)
        )
        return _build(User, rows[0]) if rows else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        rows = self.db.execute(
            "SELECT * FROM users WHERE username = ?", (username,)
        )
        return _build(User, rows[0]) if rows else None

    def get_all_users(self, active_only: bool = False) -> list[User]:
        if active_only:
            rows = self.db.execute(
                "SELECT * FROM users WHERE is_active = 1 "
                "ORDER BY created_at DESC, id DESC"
            )
        else:
            rows = self.db.execute(
                "SELECT * FROM users ORDER BY created_at DESC, id DESC"
            )
        return [_build(User, r) for r in rows]

    def update_user(self, user: User):
        with self.db.get_connection() as conn:
            conn.execute("""
                UPDATE users SET
                    full_name = ?, role = ?, is_active = ?, password = ?
                WHERE id = ?
            """, (
                user.full_name, user.role, user.is_active,
                user.password, user.id,
            ))

    def delete_user(self, user_id: int):
        with self.db.get_connection() as conn:
            conn.execute("DELETE FROM users WHERE id = ?", (user_id,))

    def count_user_transactions(self, user_id: int) -> int:
        rows = self.db.execute(
            "SELECT COUNT(*) AS cnt FROM transactions WHERE user_id = ?",
            (user_id,),
        )
        return rows[0]["cnt"] if rows else 0

    def user_count(self) -> int:
        rows = self.db.execute("SELECT COUNT(*) as cnt FROM users")
        return rows[0]["cnt"] if rows else 0

    # ── BOMs ────────────────────────────────────────────────────

    def get_all_boms(self) -> list[Bom]:
        rows = self.db.execute("""
            SELECT b.id, b.name, COALESCE(b.description, '') AS description,
                   b.created_by, b.created_at,
                   (SELECT COUNT(*) FROM bom_items bi
                    WHERE bi.bom_id = b.id) AS line_count
            FROM boms b
            ORDER BY b.name ASC
        """)
        return [_build(Bom, r) for r in rows]

    def get_bom_by_id(self, bom_id: int, conn=None) -> Optional[Bom]:
        rows = self._query("""
            SELECT id, name, COALESCE(description, '') AS description,
                   created_by, created_at
            FROM boms WHERE id = ?
        """, (bom_id,), conn)
        return _build(Bom, rows[0]) if rows else None

    def find_bom_by_name(self, name: str, exclude_id: int = None,
                         conn=None) -> Optional[Bom]:
        """Exact, case-sensitive name lookup, optionally skipping one id."""
        rows = self._query(
            "SELECT id, name, COALESCE(description, '') AS description, "
            "created_by, created_at FROM boms "
            "WHERE name = ? AND id != ?",
            (name, exclude_id if exclude_id is not None else -1),
            conn,
        )
        return _build(Bom, rows[0]) if rows else None

    def get_bom_lines(self, bom_id: int, conn=None) -> list[BomLine]:
        """Recipe lines with each item's live stock.

        LEFT JOIN so a line whose item vanished still shows up, flagged
        by ``item_exists = 0``.
        """
        rows = self._query("""
            SELECT bi.id, bi.bom_id, bi.item_id, bi.qty,
                   COALESCE(i.name, '') AS name,
                   COALESCE(i.part_number, '') AS part_number,
                   COALESCE(i.category, '') AS category,
                   COALESCE(i.total_qty, 0) AS current_stock,
                   i.id IS NOT NULL AS item_exists
            FROM bom_items bi
            LEFT JOIN items i ON bi.item_id = i.id
            WHERE bi.bom_id = ?
            ORDER BY bi.id
        """, (bom_id,), conn)
        return [_build(BomLine, r) for r in rows]

    def insert_bom(self, conn, bom: Bom) -> int:
        cursor = conn.execute(
            "INSERT INTO boms (name, description, created_by) "
            "VALUES (?, ?, ?)",
            (bom.name, bom.description, bom.created_by),
        )
        return cursor.lastrowid

    def update_bom_header(self, conn, bom: Bom):
        conn.execute(
            "UPDATE boms SET name = ?, description = ? WHERE id = ?",
            (bom.name, bom.description, bom.id),
        )

    def replace_bom_lines(self, conn, bom_id: int, lines: list[BomLine]):
        """Delete every line of a BOM, then insert ``lines`` in order."""
        conn.execute("DELETE FROM bom_items WHERE bom_id = ?", (bom_id,))
        conn.executemany(
            "INSERT INTO bom_items (bom_id, item_id, qty) VALUES (?, ?, ?)",
            [(bom_id, line.item_id, line.qty) for line in lines],
        )

    def delete_bom(self, conn, bom_id: int):
        conn.execute("DELETE FROM bom_items WHERE bom_id = ?", (bom_id,))
        conn.execute("DELETE FROM boms WHERE id = ?", (bom_id,))

    # ── Service Orders ──────────────────────────────────────────

    _SERVICE_SELECT = """
        SELECT s.id, s.item_name,
               COALESCE(s.serial_number, '') AS serial_number,
               s.customer_name,
               COALESCE(s.customer_contact, '') AS customer_contact,
               s.complaint,
               COALESCE(s.diagnosis, '') AS diagnosis,
               COALESCE(s.actions_taken, '') AS actions_taken,
               s.status, s.priority, s.date_received, s.due_date,
               s.completed_date, s.technician_id, s.cost_estimate,
               COALESCE(s.notes, '') AS notes, s.created_by,
               COALESCE(u.username, '') AS technician_name,
               COALESCE(c.username, '') AS created_by_name
        FROM service_orders s
        LEFT JOIN users u ON s.technician_id = u.id
        LEFT JOIN users c ON s.created_by = c.id
    """

    def get_service_orders(self, status: str = None, priority: str = None,
                           overdue: bool = False) -> list[ServiceOrder]:
        conditions = []
        params = []
        if status:
            conditions.append("s.status = ?")
            params.append(status)
        if priority:
            conditions.append("s.priority = ?")
            params.append(priority)
        if overdue:
            conditions.append(
                "s.due_date < datetime('now') "
                "AND s.status NOT IN ('completed', 'delivered')"
            )

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self.db.execute(
            f"{self._SERVICE_SELECT} {where} "
            "ORDER BY s.date_received DESC, s.id DESC",
            tuple(params),
        )
        return [_build(ServiceOrder, r) for r in rows]

    def get_service_order_by_id(self, order_id: int,
                                conn=None) -> Optional[ServiceOrder]:
        rows = self._query(
            self._SERVICE_SELECT + " WHERE s.id = ?", (order_id,), conn
        )
        return _build(ServiceOrder, rows[0]) if rows else None

    def insert_service_order(self, conn, order: ServiceOrder) -> int:
        cursor = conn.execute("""
            INSERT INTO service_orders (
                item_name, serial_number, customer_name, customer_contact,
                complaint, diagnosis, actions_taken, status, priority,
                due_date, technician_id, cost_estimate, notes, created_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            order.item_name, order.serial_number, order.customer_name,
            order.customer_contact, order.complaint, order.diagnosis,
            order.actions_taken, order.status, order.priority,
            order.due_date, order.technician_id, order.cost_estimate,
            order.notes, order.created_by,
        ))
        return cursor.lastrowid

    def update_service_order(self, conn, order: ServiceOrder):
        conn.execute("""
            UPDATE service_orders SET
                item_name = ?, serial_number = ?, customer_name = ?,
                customer_contact = ?, complaint = ?, diagnosis = ?,
                actions_taken = ?, status = ?, priority = ?,
                due_date = ?, completed_date = ?, technician_id = ?,
                cost_estimate = ?, notes = ?
            WHERE id = ?
        """, (
            order.item_name, order.serial_number, order.customer_name,
            order.customer_contact, order.complaint, order.diagnosis,
            order.actions_taken, order.status, order.priority,
            order.due_date, order.completed_date, order.technician_id,
            order.cost_estimate, order.notes, order.id,
        ))

    def delete_service_order(self, conn, order_id: int):
        conn.execute(
            "DELETE FROM service_parts_used WHERE service_order_id = ?",
            (order_id,),
        )
        conn.execute("DELETE FROM service_orders WHERE id = ?", (order_id,))

    def insert_service_part(self, conn, part: ServicePart) -> int:
        cursor = conn.execute(
            "INSERT INTO service_parts_used (service_order_id, item_id, qty) "
            "VALUES (?, ?, ?)",
            (part.service_order_id, part.item_id, part.qty),
        )
        return cursor.lastrowid

    def get_service_parts(self, order_id: int) -> list[ServicePart]:
        rows = self.db.execute("""
            SELECT sp.id, sp.service_order_id, sp.item_id, sp.qty,
                   sp.timestamp,
                   i.name AS item_name,
                   COALESCE(i.part_number, '') AS part_number,
                   COALESCE(i.category, '') AS category
            FROM service_parts_used sp
            JOIN items i ON sp.item_id = i.id
            WHERE sp.service_order_id = ?
            ORDER BY sp.timestamp DESC, sp.id DESC
        """, (order_id,))
        return [_build(ServicePart, r) for r in rows]

    # ── Summaries ───────────────────────────────────────────────

    def get_inventory_summary(self, low_stock_threshold: int) -> dict:
        rows = self.db.execute("""
            SELECT
                COUNT(*) AS total_items,
                COALESCE(SUM(total_qty), 0) AS total_quantity,
                COUNT(CASE WHEN total_qty < ? THEN 1 END) AS low_stock_count
            FROM items
        """, (low_stock_threshold,))
        return dict(rows[0]) if rows else {}

    def get_service_summary(self) -> dict:
        """Order counts per status plus the overdue count."""
        rows = self.db.execute(
            "SELECT status, COUNT(*) AS cnt FROM service_orders "
            "GROUP BY status"
        )
        summary = {r["status"]: r["cnt"] for r in rows}
        overdue = self.db.execute("""
            SELECT COUNT(*) AS cnt FROM service_orders
            WHERE due_date < datetime('now')
              AND status NOT IN ('completed', 'delivered')
        """)
        summary["overdue"] = overdue[0]["cnt"] if overdue else 0
        return summary
