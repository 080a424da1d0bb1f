"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real database. Tables are created before each test and dropped
after it, so no test data persists.
"""

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from ledger_engine.dependencies import get_audit_sink, get_report_cache
from ledger_engine.main import app
from ledger_engine.models import Base, AccountType
from ledger_engine.models.base import build_engine, get_db
from ledger_engine.schemas.account import AccountCreate
from ledger_engine.schemas.journal import JournalEntryCreate, JournalLineCreate
from ledger_engine.services.account_service import AccountService
from ledger_engine.services.audit_service import LoggingAuditSink
from ledger_engine.services.journal_service import JournalService
from ledger_engine.services.report_cache import ReportCache


# SQLite file database: several sessions (and threads) can see
# the same data, which the concurrency tests rely on.
TEST_DATABASE_URL = "sqlite:///./test.db"

engine = build_engine(TEST_DATABASE_URL)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

TENANT = "acme"
ACTOR = "alice"


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    """For tests that need several independent sessions."""
    return TestSessionLocal


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session):
    """
    Provide a test client with the test database.

    get_db is overridden so the app uses the test session, the
    audit sink logs instead of writing to the production
    database, and every test gets an empty report cache.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    cache = ReportCache()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_sink] = LoggingAuditSink
    app.dependency_overrides[get_report_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"X-Tenant-ID": TENANT, "X-Actor-ID": ACTOR}


# --- Ledger helpers ---

def create_test_account(
    db, number, name, account_type, sub_type=None, parent_id=None, tenant_id=TENANT
):
    """Create an account and return its id."""
    account = AccountService(db).create_account(tenant_id, AccountCreate(
        account_number=number,
        name=name,
        account_type=account_type,
        sub_type=sub_type,
        parent_id=parent_id,
    ), ACTOR)
    return account.id


def create_test_draft(db, lines, entry_date=date(2024, 1, 15),
                      description="Test entry", tenant_id=TENANT,
                      cash_flow_activity=None):
    """
    Create a draft from (account_id, debit, credit) tuples.

    Returns the entry id.
    """
    entry = JournalService(db).create_draft(tenant_id, JournalEntryCreate(
        date=entry_date,
        description=description,
        cash_flow_activity=cash_flow_activity,
        lines=[
            JournalLineCreate(
                account_id=account_id,
                debit=Decimal(str(debit)),
                credit=Decimal(str(credit)),
            )
            for account_id, debit, credit in lines
        ],
    ), ACTOR)
    return entry.id


@pytest.fixture
def chart(db_session):
    """
    A small chart of accounts for tenant "acme".

    Returns a dict of account ids keyed by short name.
    """
    return {
        "cash": create_test_account(db_session, "1000", "Cash", AccountType.ASSET, "CASH"),
        "receivables": create_test_account(
            db_session, "1100", "Accounts Receivable", AccountType.ASSET
        ),
        "equipment": create_test_account(
            db_session, "1500", "Equipment", AccountType.ASSET, "FIXED_ASSET"
        ),
        "payables": create_test_account(
            db_session, "2000", "Accounts Payable", AccountType.LIABILITY
        ),
        "loan": create_test_account(
            db_session, "2500", "Bank Loan", AccountType.LIABILITY, "LOAN"
        ),
        "capital": create_test_account(
            db_session, "3000", "Owner Capital", AccountType.EQUITY
        ),
        "revenue": create_test_account(
            db_session, "4000", "Sales Revenue", AccountType.REVENUE
        ),
        "rent": create_test_account(
            db_session, "5000", "Rent Expense", AccountType.EXPENSE
        ),
    }


@pytest.fixture
def make_account():
    return create_test_account


@pytest.fixture
def make_draft():
    return create_test_draft
