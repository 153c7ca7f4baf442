"""
Shared fixtures: an in-memory SQLite database per test, seeded users with
pre-hashed passwords, and a TestClient whose get_db uses the same session
factory.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from models import User, UserRole, Truck, Trailer, Tire, TireStatus, Trip, TripStatus
from services.auth_service import AuthService
from utils.security import get_password_hash

ADMIN_PASSWORD = "Admin@123"
DRIVER_PASSWORD = "Driver@123"


@pytest.fixture(scope="session")
def password_hashes():
    """Argon2 is slow on purpose; hash each test password once per run"""
    return {
        ADMIN_PASSWORD: get_password_hash(ADMIN_PASSWORD),
        DRIVER_PASSWORD: get_password_hash(DRIVER_PASSWORD),
    }


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
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _add_user(db, name, email, role, password_hash):
    user = User(
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        is_active=True,
        must_change_password=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db, password_hashes):
    return _add_user(db, "Admin", "admin@fleet.test", UserRole.ADMIN, password_hashes[ADMIN_PASSWORD])


@pytest.fixture
def driver(db, password_hashes):
    return _add_user(db, "Dana Driver", "dana@fleet.test", UserRole.DRIVER, password_hashes[DRIVER_PASSWORD])


@pytest.fixture
def other_driver(db, password_hashes):
    return _add_user(db, "Omar Other", "omar@fleet.test", UserRole.DRIVER, password_hashes[DRIVER_PASSWORD])


def auth_headers(user):
    tokens = AuthService.generate_tokens(user)
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def driver_headers(driver):
    return auth_headers(driver)


@pytest.fixture
def truck(db):
    truck = Truck(plate_number="TR-100", brand="Volvo", model="FH16", km=10000, towing_capacity=40000)
    db.add(truck)
    db.commit()
    db.refresh(truck)
    return truck


@pytest.fixture
def trailer(db):
    trailer = Trailer(plate_number="TL-200", type="box", max_load=24000, km=5000)
    db.add(trailer)
    db.commit()
    db.refresh(trailer)
    return trailer


@pytest.fixture
def truck_tires(db, truck):
    tires = [
        Tire(truck_id=truck.id, brand="Michelin", model="X Multi", size="315/80 R22.5",
             status=TireStatus.MOUNTED, km=2000),
        Tire(truck_id=truck.id, brand="Michelin", model="X Multi", size="315/80 R22.5",
             status=TireStatus.MOUNTED, km=3000),
    ]
    db.add_all(tires)
    db.commit()
    for tire in tires:
        db.refresh(tire)
    return tires


@pytest.fixture
def trailer_tire(db, trailer):
    tire = Tire(trailer_id=trailer.id, brand="Bridgestone", model="R168", size="385/65 R22.5",
                status=TireStatus.MOUNTED, km=1000)
    db.add(tire)
    db.commit()
    db.refresh(tire)
    return tire


def day(n, hour=0):
    """A fixed day in March 2030, so planned windows never depend on today"""
    return datetime(2030, 3, n, hour)


def trip_payload(truck, trailer, driver, start=10, end=15, **extra):
    payload = {
        "truck_id": truck.id,
        "trailer_id": trailer.id,
        "driver_id": driver.id,
        "start_location": "Casablanca",
        "end_location": "Tangier",
        "start_date": day(start),
        "end_date": day(end),
    }
    payload.update(extra)
    return payload


@pytest.fixture
def trip(db, truck, trailer, driver):
    trip = Trip(
        truck_id=truck.id,
        trailer_id=trailer.id,
        driver_id=driver.id,
        start_location="Casablanca",
        end_location="Tangier",
        start_date=day(10),
        end_date=day(15),
        status=TripStatus.TODO,
    )
    db.add(trip)
    db.commit()
    db.refresh(trip)
    return trip
