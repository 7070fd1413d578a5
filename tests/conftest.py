"""
Shared fixtures for the booking server tests.

Every test gets its own SQLite database file built through `createEngine`,
an in-memory MinIO double, and captured OpenObserve events.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from busline.main import createApp
from busline.src import argon2, openobserve
from busline.src.db import (
    Account,
    Booking,
    Bus,
    ConductorBus,
    ORMbase,
    Route,
    createEngine,
    createSessionMaker,
)
from busline.src.enums import AccountRole, AccountStatus, BookingStatus, ServiceClass

TRAVEL_DATE = date(2030, 1, 15)
PASSWORD = "password"


class FakeMinio:
    """Stores uploaded objects in a dict keyed by (bucket, object name)."""

    def __init__(self):
        self.objects = {}
        self.uploads = 0
        self.fail = False

    def put_object(self, bucket_name, object_name, data, length, content_type=None):
        if self.fail:
            raise ConnectionError("MinIO is unreachable")
        self.objects[(bucket_name, object_name)] = data.read(length)
        self.uploads += 1


class Factory:
    """Persists test records, each in its own committed session."""

    def __init__(self, sessionMaker):
        self.sessionMaker = sessionMaker
        self.passwordHash = argon2.makePassword(PASSWORD)
        self.counter = 0

    def save(self, record):
        session = self.sessionMaker()
        try:
            session.add(record)
            session.commit()
            session.refresh(record)
            return record
        finally:
            session.close()

    def account(
        self,
        username: str,
        role: AccountRole = AccountRole.PASSENGER,
        status: AccountStatus = AccountStatus.ACTIVE,
    ) -> Account:
        return self.save(
            Account(
                username=username,
                password=self.passwordHash,
                full_name=username.title(),
                role=role,
                status=status,
                phone_number="+94770000000",
                email_id=f"{username}@busline.com",
            )
        )

    def route(
        self, start: str = "Colombo", end: str = "Kandy", price: str = "450.00"
    ) -> Route:
        return self.save(
            Route(
                start_point=start,
                end_point=end,
                name=f"{start} -> {end}",
                price=Decimal(price),
                distance=Decimal("115.00"),
            )
        )

    def bus(
        self,
        route: Route,
        seat_count: int = 40,
        service: ServiceClass = ServiceClass.NORMAL,
        is_active: bool = True,
        owner: Account | None = None,
    ) -> Bus:
        self.counter += 1
        return self.save(
            Bus(
                registration_number=f"NB-{1000 + self.counter}",
                route_id=route.id,
                owner_id=owner.id if owner else None,
                seat_count=seat_count,
                service=service,
                is_active=is_active,
            )
        )

    def booking(
        self,
        user: Account,
        bus: Bus,
        seat: int,
        travel_date: date = TRAVEL_DATE,
        status: BookingStatus = BookingStatus.ACTIVE,
        qr_code: str | None = None,
        created_on: datetime | None = None,
    ) -> Booking:
        booking = Booking(
            user_id=user.id,
            bus_id=bus.id,
            seat_number=seat,
            travel_date=travel_date,
            price=Decimal("450.00"),
            status=status,
            qr_code=qr_code,
        )
        if created_on is not None:
            booking.created_on = created_on
        return self.save(booking)

    def assign(self, conductor: Account, bus: Bus, is_active: bool = True) -> ConductorBus:
        return self.save(
            ConductorBus(conductor_id=conductor.id, bus_id=bus.id, is_active=is_active)
        )


@pytest.fixture
def engine(tmp_path):
    engine = createEngine(f"sqlite:///{tmp_path / 'busline.db'}")
    ORMbase.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_maker(engine):
    return createSessionMaker(engine)


@pytest.fixture
def session(session_maker):
    session = session_maker()
    yield session
    session.close()


@pytest.fixture
def minio_client():
    return FakeMinio()


@pytest.fixture(autouse=True)
def events(monkeypatch):
    captured = []
    monkeypatch.setattr(openobserve, "logEvent", captured.append)
    return captured


@pytest.fixture
def factory(session_maker):
    return Factory(session_maker)


@pytest.fixture
def client(session_maker, minio_client):
    with TestClient(createApp(session_maker, minio_client)) as client:
        yield client


@pytest.fixture
def login(client):
    def login(username: str) -> dict:
        response = client.post(
            "/member/account/token",
            data={"username": username, "password": PASSWORD},
        )
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return login
