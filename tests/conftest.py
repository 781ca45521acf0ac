"""
Shared fixtures.

Every test runs against a fresh in-memory SQLite database; PDFs are written
into pytest's tmp_path. No test touches the configured database or PDF dir.
"""
import io
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import config, models
from app.database import Base, enable_sqlite_foreign_keys, get_db
from app.main import app


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def api(engine, tmp_path, monkeypatch):
    """TestClient bound to the in-memory database, writing PDFs into tmp_path."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(config, "PDF_OUTPUT_DIR", str(tmp_path))
    yield TestClient(app)
    app.dependency_overrides.clear()


def _png_bytes(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 40, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_logo() -> bytes:
    return _png_bytes(120, 60)


@pytest.fixture
def make_invoice():
    """Builds a transient (unsaved) invoice with snapshot fields filled in directly."""
    def _make(items=(("Widget", 2, "10.00"), ("Service", 1, "50.00")), **overrides):
        fields = dict(
            number="INV-0001",
            currency_code="USD",
            issue_date=date(2024, 3, 1),
            due_date=date(2024, 3, 31),
            tax_percent=Decimal("10"),
            business_name="Acme Studio",
            business_address="1 Main St",
            business_phone="555-0100",
            business_email="billing@acme.test",
            business_tax_id="TX-42",
            client_name="Globex",
        )
        fields.update(overrides)
        invoice = models.Invoice(**fields)
        invoice.line_items = [
            models.LineItem(title=title, quantity=qty, unit_price=Decimal(price), position=index)
            for index, (title, qty, price) in enumerate(items)
        ]
        return invoice
    return _make
