"""
Shared fixtures: an in-memory SQLite database per test and factory helpers.

Environment is pinned before the app is imported so the venue calendar is
UTC (business window 08:00-22:00 UTC) and no background scheduler starts.
"""

import os
import sys
from datetime import datetime
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["VENUE_TIMEZONE"] = "UTC"
os.environ["RECONCILER_ENABLED"] = "false"
os.environ["SEED_DEFAULT_BEDS"] = "false"

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import get_settings
from app.database import Base, get_db
from app import models  # noqa: F401
from app.models import Bed, BedAllocation, Customer, Package, Invoice


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def client(engine):
    """TestClient bound to the test database (lifespan is not run)"""
    from fastapi.testclient import TestClient
    from app.main import app

    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# ----------------------------------------------------------------------
# Factories
# ----------------------------------------------------------------------

_counter = {"bed": 0, "customer": 0, "allocation": 0, "invoice": 0}


def _next(kind):
    _counter[kind] += 1
    return _counter[kind]


def make_bed(db, bed_number=None, status="available", grid_row=1, grid_col=None):
    n = _next("bed")
    bed = Bed(
        bed_number=bed_number or f"S{n}",
        display_name=f"Bed {bed_number or f'S{n}'}",
        grid_row=grid_row,
        grid_col=grid_col or n,
        status=status,
    )
    db.add(bed)
    db.commit()
    db.refresh(bed)
    return bed


def make_customer(db, name="Nimal Perera"):
    n = _next("customer")
    customer = Customer(name=name, phone=f"+9477000{n:04d}")
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def make_package(db, name="Oxygen 60", duration_minutes=60, price=Decimal("3500.00"), is_active=True):
    package = Package(name=name, duration_minutes=duration_minutes, price=price, is_active=is_active)
    db.add(package)
    db.commit()
    db.refresh(package)
    return package


def make_allocation(
    db,
    bed,
    start_time: datetime,
    end_time: datetime,
    customer=None,
    status="confirmed",
    payment_status="paid",
    notes=None,
):
    n = _next("allocation")
    allocation = BedAllocation(
        booking_number=f"BK990101{n:04d}",
        bed_id=bed.id,
        customer_id=customer.id if customer else None,
        start_time=start_time,
        end_time=end_time,
        status=status,
        payment_status=payment_status,
        notes=notes,
    )
    db.add(allocation)
    db.commit()
    db.refresh(allocation)
    return allocation


def make_invoice(db, allocation, status="pending", payment_status="partially_paid"):
    n = _next("invoice")
    invoice = Invoice(
        invoice_number=f"INV{n:06d}",
        allocation_id=allocation.id,
        customer_id=allocation.customer_id,
        status=status,
        payment_status=payment_status,
    )
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice
