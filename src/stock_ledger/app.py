"""Application entry point — wires the storage handle to the engines."""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from stock_ledger.access import AccessGate
from stock_ledger.config import Config
from stock_ledger.database.connection import DatabaseConnection
from stock_ledger.database.repository import Repository
from stock_ledger.database.schema import initialize_database
from stock_ledger.inventory.bom import BomEngine
from stock_ledger.inventory.files import FileStore
from stock_ledger.inventory.service_orders import ServiceOrderTracker
from stock_ledger.inventory.stock import StockEngine

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None):
    """Set up root logging once, at ``Config.LOG_LEVEL`` by default."""
    logging.basicConfig(
        level=getattr(logging, (level or Config.LOG_LEVEL).upper(),
                      logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@dataclass
class AppContext:
    """Everything a caller needs, built for one database file."""
    db: DatabaseConnection
    repo: Repository
    access: AccessGate
    stock: StockEngine
    boms: BomEngine
    services: ServiceOrderTracker
    files: FileStore


def build_context(db_path: str | Path | None = None,
                  uploads_directory: str | Path | None = None) -> AppContext:
    """Open (and create or migrate) a database and build the engines."""
    db = DatabaseConnection(db_path or Config.DATABASE_PATH,
                            timeout=Config.DB_BUSY_TIMEOUT)
    initialize_database(db)

    repo = Repository(db)
    access = AccessGate(repo)
    files = FileStore(uploads_directory or Config.UPLOADS_DIRECTORY)
    return AppContext(
        db=db,
        repo=repo,
        access=access,
        stock=StockEngine(repo, access, files),
        boms=BomEngine(repo),
        services=ServiceOrderTracker(repo),
        files=files,
    )


def main():
    """Print an inventory and service status report for the configured DB."""
    configure_logging()
    ctx = build_context()
    logger.info("Using database %s", ctx.db.db_path)

    inventory = ctx.repo.get_inventory_summary(Config.LOW_STOCK_THRESHOLD)
    print(f"Items:           {inventory['total_items']}")
    print(f"Units in stock:  {inventory['total_quantity']}")
    print(f"Low stock (<{Config.LOW_STOCK_THRESHOLD}): "
          f"{inventory['low_stock_count']}")

    services = ctx.services.summary()
    print("\nService orders:")
    for status, count in services.items():
        print(f"  {status:<14} {count}")

    mismatches = ctx.repo.find_ledger_mismatches()
    if mismatches:
        print(f"\nLedger mismatches ({len(mismatches)}):")
        for row in mismatches:
            print(f"  - {row['name']}: counter {row['total_qty']}, "
                  f"log {row['ledger_qty']}")
        sys.exit(1)


if __name__ == "__main__":
    main()
