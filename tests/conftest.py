"""Shared test fixtures."""

import pytest

from stock_ledger.access import AccessGate, Principal
from stock_ledger.config import Config
from stock_ledger.database.connection import DatabaseConnection
from stock_ledger.database.repository import Repository
from stock_ledger.database.schema import initialize_database
from stock_ledger.inventory.bom import BomEngine
from stock_ledger.inventory.files import FileStore
from stock_ledger.inventory.service_orders import ServiceOrderTracker
from stock_ledger.inventory.stock import StockEngine

ADMIN_PASSWORD = "admin123"
USER_PASSWORD = "secret-pass"


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Cheap bcrypt cost so seeding and user creation stay fast."""
    monkeypatch.setattr(Config, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Provide an initialized database connection."""
    conn = DatabaseConnection(db_path)
    initialize_database(conn, admin_username="admin",
                        admin_password=ADMIN_PASSWORD)
    return conn


@pytest.fixture
def repo(db):
    """Provide a repository with an initialized database."""
    return Repository(db)


@pytest.fixture
def access(repo):
    return AccessGate(repo)


@pytest.fixture
def files(tmp_path):
    return FileStore(tmp_path / "uploads")


@pytest.fixture
def stock(repo, access, files):
    return StockEngine(repo, access, files)


@pytest.fixture
def boms(repo):
    return BomEngine(repo)


@pytest.fixture
def services(repo):
    return ServiceOrderTracker(repo)


@pytest.fixture
def admin(repo):
    """The seeded default administrator (id 1)."""
    return Principal.from_user(repo.get_user_by_username("admin"))


@pytest.fixture
def user(access, admin, repo):
    """A regular, non-admin account."""
    user_id = access.create_user(
        admin, "tech", USER_PASSWORD, full_name="Bench Tech"
    )
    return Principal.from_user(repo.get_user_by_id(user_id))


@pytest.fixture
def resistor(stock, admin):
    """Resistor 10k / 0805 with 100 in stock."""
    result = stock.stock_in(admin, "Resistor 10k", 100, footprint="0805",
                            category="Resistor", location="Drawer A1")
    return result.item_id
