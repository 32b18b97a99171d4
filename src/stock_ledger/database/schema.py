"""Database schema definition, initialization, and migrations."""

import logging

import bcrypt

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# Each statement is a separate string to avoid executescript issues
_SCHEMA_STATEMENTS = [
    # Users table (first so FKs resolve)
    """CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        password TEXT NOT NULL,
        full_name TEXT,
        role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('admin', 'user')),
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Items table (stock counters)
    """CREATE TABLE IF NOT EXISTS items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        part_number TEXT,
        category TEXT,
        footprint TEXT NOT NULL DEFAULT '',
        item_type TEXT NOT NULL DEFAULT 'consumable',
        total_qty INTEGER NOT NULL DEFAULT 0 CHECK (total_qty >= 0),
        location TEXT,
        notes TEXT,
        image_path TEXT,
        datasheet_url TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Transaction log (append-only)
    """CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        item_id INTEGER NOT NULL,
        user_id INTEGER NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('IN', 'OUT', 'MOVE')),
        qty INTEGER NOT NULL CHECK (qty >= 0),
        project_ref TEXT,
        notes TEXT,
        timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE,
        FOREIGN KEY (user_id) REFERENCES users(id)
    )""",

    # Bills of materials
    """CREATE TABLE IF NOT EXISTS boms (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        description TEXT,
        created_by INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (created_by) REFERENCES users(id) ON DELETE SET NULL
    )""",

    """CREATE TABLE IF NOT EXISTS bom_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        bom_id INTEGER NOT NULL,
        item_id INTEGER NOT NULL,
        qty INTEGER NOT NULL CHECK (qty > 0),
        FOREIGN KEY (bom_id) REFERENCES boms(id) ON DELETE CASCADE,
        FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE
    )""",

    # Service (repair) orders
    """CREATE TABLE IF NOT EXISTS service_orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        item_name TEXT NOT NULL,
        serial_number TEXT,
        customer_name TEXT NOT NULL,
        customer_contact TEXT,
        complaint TEXT NOT NULL,
        diagnosis TEXT,
        actions_taken TEXT,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'in_progress', 'waiting_parts',
                              'testing', 'completed', 'delivered')),
        priority TEXT NOT NULL DEFAULT 'medium'
            CHECK (priority IN ('low', 'medium', 'high', 'urgent')),
        date_received TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        due_date TIMESTAMP,
        completed_date TIMESTAMP,
        technician_id INTEGER,
        cost_estimate REAL,
        notes TEXT,
        created_by INTEGER,
        FOREIGN KEY (technician_id) REFERENCES users(id) ON DELETE SET NULL,
        FOREIGN KEY (created_by) REFERENCES users(id) ON DELETE SET NULL
    )""",

    """CREATE TABLE IF NOT EXISTS service_parts_used (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        service_order_id INTEGER NOT NULL,
        item_id INTEGER NOT NULL,
        qty INTEGER NOT NULL CHECK (qty > 0),
        timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (service_order_id) REFERENCES service_orders(id)
            ON DELETE CASCADE,
        FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE
    )""",

    # Schema version tracking
    """CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Indexes
    "CREATE INDEX IF NOT EXISTS idx_items_name ON items(name)",
    "CREATE INDEX IF NOT EXISTS idx_items_identity ON items(name, footprint)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_item ON transactions(item_id)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_timestamp ON transactions(timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_bom_items_bom ON bom_items(bom_id)",
    "CREATE INDEX IF NOT EXISTS idx_service_orders_status ON service_orders(status)",
    "CREATE INDEX IF NOT EXISTS idx_service_parts_order ON service_parts_used(service_order_id)",

    # Triggers
    """CREATE TRIGGER IF NOT EXISTS update_items_timestamp AFTER UPDATE ON items
    WHEN NEW.updated_at = OLD.updated_at BEGIN
        UPDATE items SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
    END""",

    """CREATE TRIGGER IF NOT EXISTS transactions_append_only
    BEFORE UPDATE ON transactions BEGIN
        SELECT RAISE(ABORT, 'transactions are append-only');
    END""",

    f"INSERT OR IGNORE INTO schema_version (version) VALUES ({SCHEMA_VERSION})",
]


# ── Migration from v1 → v2 ──────────────────────────────────────
_MIGRATION_V2_STATEMENTS = [
    """CREATE TABLE IF NOT EXISTS boms (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        description TEXT,
        created_by INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (created_by) REFERENCES users(id) ON DELETE SET NULL
    )""",

    """CREATE TABLE IF NOT EXISTS bom_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        bom_id INTEGER NOT NULL,
        item_id INTEGER NOT NULL,
        qty INTEGER NOT NULL CHECK (qty > 0),
        FOREIGN KEY (bom_id) REFERENCES boms(id) ON DELETE CASCADE,
        FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE
    )""",

    "CREATE INDEX IF NOT EXISTS idx_bom_items_bom ON bom_items(bom_id)",

    """CREATE TRIGGER IF NOT EXISTS transactions_append_only
    BEFORE UPDATE ON transactions BEGIN
        SELECT RAISE(ABORT, 'transactions are append-only');
    END""",

    "INSERT OR REPLACE INTO schema_version (version) VALUES (2)",
]

# Columns added to pre-versioned databases over time: table -> [(name, ddl)]
_REQUIRED_COLUMNS = {
    "items": [
        ("part_number", "TEXT"),
        ("footprint", "TEXT"),
        ("item_type", "TEXT DEFAULT 'consumable'"),
        ("image_path", "TEXT"),
        ("datasheet_url", "TEXT"),
        ("created_at", "TIMESTAMP"),
        ("updated_at", "TIMESTAMP"),
    ],
    "transactions": [
        ("user_id", "INTEGER DEFAULT 1"),
    ],
}


def _get_schema_version(conn) -> int:
    """Get the current schema version, or 0 if no schema exists."""
    try:
        row = conn.execute(
            "SELECT MAX(version) as v FROM schema_version"
        ).fetchone()
        return row["v"] if row and row["v"] else 0
    except Exception:
        return 0


def _ensure_columns(conn):
    """Add any columns a legacy database is missing."""
    for table, columns in _REQUIRED_COLUMNS.items():
        existing = {
            r["name"] for r in conn.execute(f"PRAGMA table_info({table})")
        }
        if not existing:
            continue
        for name, ddl in columns:
            if name not in existing:
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}")
                logger.info("Added %s column to %s table", name, table)


def _migrate_v1_to_v2(conn):
    """Upgrade schema from v1 to v2 (BOM tables, append-only log)."""
    for stmt in _MIGRATION_V2_STATEMENTS:
        conn.execute(stmt)


def _seed_default_admin(conn, username: str, password: str, rounds: int):
    """Create the default administrator if no such user exists."""
    row = conn.execute(
        "SELECT id FROM users WHERE username = ?", (username,)
    ).fetchone()
    if row:
        return
    hashed = bcrypt.hashpw(
        password.encode("utf-8"), bcrypt.gensalt(rounds)
    ).decode("utf-8")
    conn.execute(
        "INSERT INTO users (username, password, full_name, role) "
        "VALUES (?, ?, ?, 'admin')",
        (username, hashed, "Administrator"),
    )
    logger.info("Default admin user created (username: %s)", username)


def initialize_database(db_connection, admin_username: str = None,
                        admin_password: str = None):
    """Create all tables, indexes, triggers, and the default admin.

    On a fresh database, creates the full schema directly. On an
    existing database, adds missing legacy columns and applies
    migrations incrementally.
    """
    from stock_ledger.config import Config

    admin_username = admin_username or Config.DEFAULT_ADMIN_USERNAME
    admin_password = admin_password or Config.DEFAULT_ADMIN_PASSWORD

    with db_connection.get_connection() as conn:
        version = _get_schema_version(conn)

        if version == 0:
            # Pre-versioned databases keep their tables; patch columns first
            _ensure_columns(conn)
            for stmt in _SCHEMA_STATEMENTS:
                conn.execute(stmt)
        elif version < SCHEMA_VERSION:
            _ensure_columns(conn)
            if version < 2:
                _migrate_v1_to_v2(conn)

        _seed_default_admin(
            conn, admin_username, admin_password, Config.BCRYPT_ROUNDS
        )
