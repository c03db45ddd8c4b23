from datetime import datetime, time

from freezegun import freeze_time
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from booking_engine.core.enums import IndustryType
from booking_engine.database import Base

# Import models so Base.metadata is populated for create_all.
import booking_engine.models  # noqa: F401
from booking_engine.models.booking import Booking, BookingStatus
from booking_engine.models.resource import BookableResource, WeeklyWorkingWindow
from booking_engine.models.tenant import Tenant

from ._calendar import FROZEN_NOW, OPEN_MON_SAT


@pytest.fixture(scope="function")
def unit_db() -> Session:
    """
    Provide a session on a fresh in-memory database.

    Each test gets its own engine so services are free to commit and roll back.
    """
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def frozen_now():
    with freeze_time(FROZEN_NOW) as frozen:
        yield frozen


@pytest.fixture
def make_tenant(unit_db):
    def _make(
        industry: str = IndustryType.SALON.value,
        operating_hours=None,
        name: str = "Test Tenant",
        tz: str = "UTC",
    ) -> Tenant:
        tenant = Tenant(
            name=name,
            industry_type=industry,
            timezone=tz,
            operating_hours=OPEN_MON_SAT if operating_hours is None else operating_hours,
        )
        unit_db.add(tenant)
        unit_db.commit()
        return tenant

    return _make


@pytest.fixture
def make_resource(unit_db):
    def _make(
        tenant: Tenant,
        *,
        hours=("10:00", "18:00"),
        breaks=None,
        weekdays=range(0, 6),
        **kwargs,
    ) -> BookableResource:
        fields = {"name": "Alex", "role": "stylist", "max_capacity": 1, "min_capacity": 1}
        fields.update(kwargs)
        resource = BookableResource(tenant_id=tenant.id, **fields)
        unit_db.add(resource)
        unit_db.flush()
        if hours is not None:
            start, end = (time.fromisoformat(value) for value in hours)
            for weekday in weekdays:
                unit_db.add(
                    WeeklyWorkingWindow(
                        resource_id=resource.id,
                        weekday=weekday,
                        start_time=start,
                        end_time=end,
                        breaks=breaks,
                    )
                )
        unit_db.commit()
        return resource

    return _make


@pytest.fixture
def make_booking(unit_db):
    def _make(
        resource: BookableResource,
        start: datetime,
        end: datetime,
        *,
        buffer_minutes: int = 0,
        status: str = BookingStatus.CONFIRMED.value,
        **kwargs,
    ) -> Booking:
        booking = Booking(
            tenant_id=resource.tenant_id,
            resource_id=resource.id,
            start_at=start,
            end_at=end,
            buffer_minutes=buffer_minutes,
            status=status,
            **kwargs,
        )
        unit_db.add(booking)
        unit_db.commit()
        return booking

    return _make


@pytest.fixture
def salon(make_tenant):
    return make_tenant(IndustryType.SALON.value)


@pytest.fixture
def stylist(salon, make_resource):
    """Salon stylist working Mon-Sat 10:00-18:00 with a 13:00-14:00 break."""
    return make_resource(
        salon,
        name="Jamie",
        specializations=["color", "cut"],
        breaks=[{"start": "13:00", "end": "14:00"}],
        rating=4.5,
        experience_years=8,
        commission_rate=30.0,
    )
