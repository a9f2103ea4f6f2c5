"""Shared test fixtures."""
import math
from datetime import datetime, time

import pytest

from medibook.models import (
    Doctor,
    Facility,
    FacilityLocation,
    FacilityType,
    WorkingHoursPolicy,
)
from medibook.services.booking import BookingService
from medibook.services.facility_search import FacilitySearch
from medibook.services.slot_generator import SlotGenerator
from medibook.services.store import InMemoryStore

WEEKDAYS_MON_FRI = ["monday", "tuesday", "wednesday", "thursday", "friday"]

KIGALI = (-1.95, 30.06)


def north_of(lat: float, lon: float, km: float) -> FacilityLocation:
    """A point exactly ``km`` kilometres due north along the meridian."""
    return FacilityLocation(latitude=lat + math.degrees(km / 6371.0), longitude=lon)


class FakeClock:
    """Settable replacement for datetime.now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    """Friday 2023-12-29 12:00, so 2024-01-01 (a Monday) is in the future."""
    return FakeClock(datetime(2023, 12, 29, 12, 0))


@pytest.fixture
def policy():
    return WorkingHoursPolicy(
        start_time=time(8, 0),
        end_time=time(17, 0),
        working_days=WEEKDAYS_MON_FRI,
    )


@pytest.fixture
def slot_generator(policy):
    return SlotGenerator(default_policy=policy)


@pytest.fixture
def facilities():
    lat, lon = KIGALI
    return [
        Facility(
            id="fac-main",
            name="Kigali Central Hospital",
            type=FacilityType.HOSPITAL,
            location=north_of(lat, lon, 2.1),
            specialties=["cardiology", "pediatrics"],
        ),
        Facility(
            id="fac-clinic",
            name="Nyarugenge Clinic",
            type=FacilityType.CLINIC,
            location=north_of(lat, lon, 4.9),
            specialties=["pediatrics"],
        ),
        Facility(
            id="fac-edge",
            name="Gasabo Pharmacy",
            type=FacilityType.PHARMACY,
            location=north_of(lat, lon, 5.1),
        ),
        Facility(
            id="fac-far",
            name="Kicukiro Laboratory",
            type=FacilityType.LABORATORY,
            location=north_of(lat, lon, 10.0),
        ),
        Facility(
            id="fac-closed",
            name="Closed Clinic",
            type=FacilityType.CLINIC,
            location=north_of(lat, lon, 1.0),
            is_active=False,
        ),
    ]


@pytest.fixture
def doctors(policy):
    return [
        Doctor(id="doc-1", name="Uwase", facility_id="fac-main", working_hours=policy),
        Doctor(
            id="doc-weekend",
            name="Mugisha",
            facility_id="fac-main",
            working_hours=WorkingHoursPolicy(
                start_time=time(9, 0),
                end_time=time(12, 15),
                working_days=["saturday", "sunday"],
            ),
        ),
        Doctor(id="doc-default", name="Habimana", facility_id="fac-clinic"),
        Doctor(id="doc-retired", name="Nkusi", facility_id="fac-main", is_active=False),
        Doctor(id="doc-closed", name="Ingabire", facility_id="fac-closed"),
    ]


@pytest.fixture
def store(doctors, facilities):
    return InMemoryStore(doctors=doctors, facilities=facilities)


@pytest.fixture
def booking(store, slot_generator, clock):
    return BookingService(store=store, slot_generator=slot_generator, clock=clock)


@pytest.fixture
def search(store):
    return FacilitySearch(store=store)
