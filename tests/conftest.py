import pytest
import uuid
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
from decimal import Decimal

from ledgerly_recon.core.database import Base, get_db
from ledgerly_recon.main import app
from ledgerly_recon.schemas.bank_transaction import Transaction
from ledgerly_recon.services.transaction_repository import SqlTransactionRepository


# Test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def company_id():
    """A unique company id per test"""
    return f"company-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def make_transaction():
    """Factory for in-memory transactions"""
    def make(amount, date="2024-03-15", description="Payment", **kwargs) -> Transaction:
        return Transaction(
            id=kwargs.pop("id", str(uuid.uuid4())),
            date=date,
            description=description,
            amount=Decimal(str(amount)),
            **kwargs,
        )
    return make


@pytest.fixture
def seed_transactions(db, company_id):
    """Store transactions for the test company and return them"""
    def seed(transactions):
        SqlTransactionRepository(db).save(company_id, transactions)
        return transactions
    return seed


@pytest.fixture
def statement_csv():
    return (
        "Date,Description,Amount,Currency\n"
        "2024-03-15,Coffee Shop,-45.50,ZAR\n"
        "2024-03-16,Client Payment ACME,1200.00,ZAR\n"
        "2024-03-18,\"Stationery, Paper & Co\",-99.99,ZAR\n"
    ).encode("utf-8")
