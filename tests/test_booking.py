"""Tests for the booking state machine."""
from datetime import date, datetime, time

import pytest

from medibook.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from medibook.models import AppointmentQuery, AppointmentStatus

MONDAY = date(2024, 1, 1)
WEDNESDAY = date(2024, 1, 3)
THURSDAY = date(2024, 1, 4)
SATURDAY = date(2024, 1, 6)

PATIENT = "patient-1"
OTHER_PATIENT = "patient-2"


async def book(booking, day=MONDAY, at=time(9, 0), actor=PATIENT, doctor="doc-1",
               facility="fac-main", reason="Routine checkup", **kwargs):
    return await booking.create(actor, doctor, facility, day, at, reason, **kwargs)


class TestCreate:
    """Creating appointments."""

    async def test_books_scheduled_appointment(self, booking, clock):
        created = await book(booking, notes="  bring lab results ")

        assert created.id
        assert created.status == AppointmentStatus.SCHEDULED
        assert created.patient_id == PATIENT
        assert created.date == MONDAY
        assert created.time == time(9, 0)
        assert created.duration_minutes == 30
        assert created.notes == "bring lab results"
        assert created.created_at == clock.now

    async def test_second_booking_for_same_slot_conflicts(self, booking):
        await book(booking)

        with pytest.raises(ConflictError):
            await book(booking, actor=OTHER_PATIENT)

    async def test_other_doctor_same_time_is_fine(self, booking):
        await book(booking)
        other = await book(booking, doctor="doc-default", facility="fac-clinic")
        assert other.status == AppointmentStatus.SCHEDULED

    async def test_unknown_facility(self, booking):
        with pytest.raises(NotFoundError, match="Facility"):
            await book(booking, facility="nope")

    async def test_unknown_doctor(self, booking):
        with pytest.raises(NotFoundError, match="Doctor"):
            await book(booking, doctor="nope")

    async def test_inactive_doctor(self, booking):
        with pytest.raises(InvalidStateError, match="inactive"):
            await book(booking, doctor="doc-retired")

    async def test_inactive_facility(self, booking):
        with pytest.raises(InvalidStateError, match="inactive"):
            await book(booking, doctor="doc-closed", facility="fac-closed")

    async def test_doctor_at_other_facility(self, booking):
        with pytest.raises(InvalidStateError, match="specified facility"):
            await book(booking, facility="fac-clinic")

    async def test_non_working_day(self, booking):
        with pytest.raises(InvalidStateError):
            await book(booking, day=SATURDAY)

    async def test_doctor_without_policy_uses_default_hours(self, booking):
        with pytest.raises(InvalidStateError, match="outside working hours"):
            await book(booking, doctor="doc-default", facility="fac-clinic", at=time(17, 30))

    async def test_past_slot(self, booking, clock):
        clock.now = datetime(2024, 1, 1, 9, 0)
        with pytest.raises(InvalidStateError, match="future"):
            await book(booking)

    async def test_reason_too_short(self, booking):
        with pytest.raises(ValidationError):
            await book(booking, reason="flu")

    async def test_cancelled_slot_can_be_rebooked(self, booking):
        first = await book(booking)
        await booking.cancel(PATIENT, first.id)

        again = await book(booking, actor=OTHER_PATIENT)
        assert again.id != first.id
        assert again.status == AppointmentStatus.SCHEDULED


class TestAvailability:

    async def test_booked_slot_disappears(self, booking):
        await book(booking)

        availability = await booking.get_availability("doc-1", "fac-main", MONDAY)

        assert availability.is_working_day
        assert time(9, 0) not in availability.available_slots
        assert len(availability.available_slots) == 17

    async def test_cancelled_slot_reappears(self, booking):
        created = await book(booking)
        await booking.cancel(PATIENT, created.id)

        availability = await booking.get_availability("doc-1", "fac-main", MONDAY)
        assert time(9, 0) in availability.available_slots

    async def test_non_working_day_is_reported(self, booking):
        availability = await booking.get_availability("doc-1", "fac-main", SATURDAY)

        assert availability.is_working_day is False
        assert availability.available_slots == []

    async def test_weekend_doctor(self, booking):
        availability = await booking.get_availability("doc-weekend", "fac-main", SATURDAY)
        assert availability.available_slots == [
            time(9, 0), time(9, 30), time(10, 0), time(10, 30), time(11, 0), time(11, 30),
        ]

    async def test_wrong_facility(self, booking):
        with pytest.raises(InvalidStateError):
            await booking.get_availability("doc-1", "fac-clinic", MONDAY)

    async def test_unknown_doctor(self, booking):
        with pytest.raises(NotFoundError):
            await booking.get_availability("nope", "fac-main", MONDAY)


class TestReschedule:

    async def test_moves_to_free_slot(self, booking):
        created = await book(booking)

        moved = await booking.reschedule(PATIENT, created.id, MONDAY, time(10, 0))

        assert moved.time == time(10, 0)
        availability = await booking.get_availability("doc-1", "fac-main", MONDAY)
        assert time(9, 0) in availability.available_slots
        assert time(10, 0) not in availability.available_slots

    async def test_to_own_slot_is_not_a_conflict(self, booking):
        created = await book(booking)
        same = await booking.reschedule(PATIENT, created.id, MONDAY, time(9, 0))
        assert same.time == time(9, 0)

    async def test_to_taken_slot_conflicts(self, booking):
        mine = await book(booking)
        await book(booking, at=time(10, 0), actor=OTHER_PATIENT)

        with pytest.raises(ConflictError):
            await booking.reschedule(PATIENT, mine.id, MONDAY, time(10, 0))

        unchanged = await booking.get_appointment(PATIENT, mine.id)
        assert unchanged.time == time(9, 0)

    async def test_not_owner(self, booking):
        created = await book(booking)
        with pytest.raises(ForbiddenError):
            await booking.reschedule(OTHER_PATIENT, created.id, MONDAY, time(10, 0))

    async def test_unknown_appointment(self, booking):
        with pytest.raises(NotFoundError):
            await booking.reschedule(PATIENT, "missing", MONDAY, time(10, 0))

    async def test_cancelled_appointment(self, booking):
        created = await book(booking)
        await booking.cancel(PATIENT, created.id)

        with pytest.raises(InvalidStateError, match="completed or cancelled"):
            await booking.reschedule(PATIENT, created.id, MONDAY, time(10, 0))

    async def test_illegal_new_slot(self, booking):
        created = await book(booking)
        with pytest.raises(InvalidStateError):
            await booking.reschedule(PATIENT, created.id, SATURDAY, time(10, 0))

    async def test_date_without_time(self, booking):
        created = await book(booking)
        with pytest.raises(ValidationError):
            await booking.reschedule(PATIENT, created.id, new_date=WEDNESDAY)

    async def test_edit_reason_only(self, booking, clock):
        created = await book(booking)
        clock.now = datetime(2023, 12, 30, 8, 0)

        updated = await booking.reschedule(PATIENT, created.id, reason="Follow-up visit")

        assert updated.reason == "Follow-up visit"
        assert updated.time == time(9, 0)
        assert updated.updated_at == clock.now

    async def test_empty_reason_keeps_current_one(self, booking):
        created = await book(booking, notes="bring lab results")

        updated = await booking.reschedule(PATIENT, created.id, reason="", notes="")

        assert updated.reason == "Routine checkup"
        assert updated.notes == ""

    async def test_empty_reason_with_move(self, booking):
        created = await book(booking)

        moved = await booking.reschedule(PATIENT, created.id, MONDAY, time(10, 0), reason="")

        assert moved.time == time(10, 0)
        assert moved.reason == "Routine checkup"


class TestCancel:

    async def test_cancel_with_enough_notice(self, booking, clock):
        created = await book(booking, day=THURSDAY, at=time(10, 0))
        clock.now = datetime(2024, 1, 3, 4, 0)  # 30 hours ahead

        cancelled = await booking.cancel(PATIENT, created.id)

        assert cancelled.status == AppointmentStatus.CANCELLED

    async def test_cancel_too_late(self, booking, clock):
        created = await book(booking, day=WEDNESDAY, at=time(14, 0))
        clock.now = datetime(2024, 1, 3, 4, 0)  # 10 hours ahead

        with pytest.raises(InvalidStateError, match="24 hours"):
            await booking.cancel(PATIENT, created.id)

        still = await booking.get_appointment(PATIENT, created.id)
        assert still.status == AppointmentStatus.SCHEDULED

    async def test_exactly_24_hours_is_allowed(self, booking, clock):
        created = await book(booking, day=WEDNESDAY, at=time(14, 0))
        clock.now = datetime(2024, 1, 2, 14, 0)

        cancelled = await booking.cancel(PATIENT, created.id)
        assert cancelled.status == AppointmentStatus.CANCELLED

    async def test_cancel_twice_is_invalid(self, booking):
        created = await book(booking)
        await booking.cancel(PATIENT, created.id)

        with pytest.raises(InvalidStateError):
            await booking.cancel(PATIENT, created.id)

    async def test_not_owner(self, booking):
        created = await book(booking)
        with pytest.raises(ForbiddenError):
            await booking.cancel(OTHER_PATIENT, created.id)

    async def test_unknown(self, booking):
        with pytest.raises(NotFoundError):
            await booking.cancel(PATIENT, "missing")


class TestConfirm:

    async def test_confirm_keeps_slot(self, booking):
        created = await book(booking)

        confirmed = await booking.confirm(PATIENT, created.id)

        assert confirmed.status == AppointmentStatus.CONFIRMED
        with pytest.raises(ConflictError):
            await book(booking, actor=OTHER_PATIENT)

    async def test_confirm_twice_is_invalid(self, booking):
        created = await book(booking)
        await booking.confirm(PATIENT, created.id)

        with pytest.raises(InvalidStateError):
            await booking.confirm(PATIENT, created.id)

    async def test_confirmed_can_be_cancelled(self, booking):
        created = await book(booking)
        await booking.confirm(PATIENT, created.id)

        cancelled = await booking.cancel(PATIENT, created.id)
        assert cancelled.status == AppointmentStatus.CANCELLED


class TestListing:

    async def test_only_own_appointments_newest_first(self, booking):
        await book(booking, at=time(9, 0))
        await book(booking, day=WEDNESDAY, at=time(11, 0))
        await book(booking, at=time(10, 0), actor=OTHER_PATIENT)

        page = await booking.list_appointments(PATIENT)

        assert [(a.date, a.time) for a in page.appointments] == [
            (WEDNESDAY, time(11, 0)),
            (MONDAY, time(9, 0)),
        ]
        assert page.pagination.total_items == 2
        assert page.pagination.has_next_page is False

    async def test_filters_and_pagination(self, booking):
        for hour in (8, 9, 10, 11, 12):
            await book(booking, at=time(hour, 0))
        cancelled = await book(booking, day=WEDNESDAY, at=time(8, 0))
        await booking.cancel(PATIENT, cancelled.id)

        page = await booking.list_appointments(
            PATIENT,
            AppointmentQuery(status=AppointmentStatus.SCHEDULED, limit=2, page=2),
        )

        assert [a.time for a in page.appointments] == [time(10, 0), time(9, 0)]
        assert page.pagination.total_items == 5
        assert page.pagination.total_pages == 3
        assert page.pagination.has_next_page is True
        assert page.pagination.has_prev_page is True

    async def test_date_range(self, booking):
        await book(booking)
        await book(booking, day=WEDNESDAY)

        page = await booking.list_appointments(
            PATIENT, AppointmentQuery(start_date=date(2024, 1, 2))
        )
        assert [a.date for a in page.appointments] == [WEDNESDAY]

    async def test_get_other_patients_appointment(self, booking):
        created = await book(booking)
        with pytest.raises(ForbiddenError):
            await booking.get_appointment(OTHER_PATIENT, created.id)
