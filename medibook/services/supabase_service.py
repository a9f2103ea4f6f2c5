"""Supabase service for database operations."""

import asyncio
import logging
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Iterable, Optional
from postgrest.exceptions import APIError
from supabase import create_client, Client

from ..errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    StorageUnavailableError,
)
from ..models import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentQuery,
    AppointmentStatus,
    Doctor,
    Facility,
    FacilityType,
    SlotKey,
)
from ..utils.clock import parse_time
from .store import AppointmentStore

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def _to_column(value: Any) -> Any:
    """Convert a Python value to its column representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return value


class SupabaseStore(AppointmentStore):
    """Appointment store on Supabase/PostgREST.

    Slot uniqueness is enforced by the database through a partial unique
    index on ``(doctor_id, date, time)`` over active statuses (see
    ``supabase/schema.sql``). A unique violation on insert or update is
    reported as ``ConflictError``.
    """

    def __init__(self, url: str, key: str):
        """Initialize Supabase client."""
        self.client: Client = create_client(url, key)
        logger.info("Supabase client initialized")

    async def _execute(self, query, operation: str):
        """Run a blocking PostgREST query off the event loop."""
        try:
            return await asyncio.to_thread(query.execute)
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictError("This time slot is already booked") from e
            logger.error(f"Error during {operation}: {e}")
            raise StorageUnavailableError(f"Storage error during {operation}") from e
        except Exception as e:
            logger.error(f"Error during {operation}: {e}")
            raise StorageUnavailableError(f"Storage error during {operation}") from e

    async def _get_one(self, table: str, record_id: str) -> Optional[dict]:
        query = self.client.table(table).select("*").eq("id", record_id).limit(1)
        response = await self._execute(query, f"fetch {table}")
        return response.data[0] if response.data else None

    # ==================== Reference Data ====================

    async def get_doctor(self, doctor_id: str) -> Optional[Doctor]:
        """Get a doctor by ID."""
        row = await self._get_one("doctors", doctor_id)
        return Doctor(**row) if row else None

    async def get_facility(self, facility_id: str) -> Optional[Facility]:
        """Get a facility by ID."""
        row = await self._get_one("facilities", facility_id)
        return Facility(**row) if row else None

    async def active_facilities(
        self,
        facility_type: Optional[FacilityType] = None,
        specialty: Optional[str] = None,
    ) -> list[Facility]:
        """Get active facilities, optionally filtered by type and specialty."""
        query = self.client.table("facilities").select("*").eq("is_active", True)

        if facility_type:
            query = query.eq("type", facility_type.value)

        if specialty:
            query = query.contains("specialties", [specialty])

        response = await self._execute(query, "list facilities")
        return [Facility(**row) for row in response.data]

    # ==================== Appointment Operations ====================

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Get a specific appointment by ID."""
        row = await self._get_one("appointments", appointment_id)
        return Appointment(**row) if row else None

    async def occupied_times(self, doctor_id: str, day: date) -> set[time]:
        """Times already held by active appointments for a doctor on a date."""
        query = (
            self.client.table("appointments")
            .select("time")
            .eq("doctor_id", doctor_id)
            .eq("date", day.isoformat())
            .in_("status", [s.value for s in ACTIVE_STATUSES])
        )
        response = await self._execute(query, "fetch occupied slots")
        return {parse_time(row["time"]) for row in response.data}

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        """Create a new appointment; the unique index rejects double booking."""
        apt_data = appointment.model_dump(mode="json", exclude={"id"})
        query = self.client.table("appointments").insert(apt_data)
        response = await self._execute(query, "create appointment")
        created = Appointment(**response.data[0])
        logger.info(f"Created appointment {created.id} for {appointment.patient_id}")
        return created

    async def update_appointment(
        self,
        appointment_id: str,
        changes: dict[str, Any],
        expected: Iterable[AppointmentStatus],
        expected_slot: Optional[SlotKey] = None,
    ) -> Appointment:
        """Conditionally update an appointment whose status is still expected."""
        expected = frozenset(expected)
        updates = {column: _to_column(value) for column, value in changes.items()}
        query = (
            self.client.table("appointments")
            .update(updates)
            .eq("id", appointment_id)
            .in_("status", [s.value for s in expected])
        )
        if expected_slot is not None:
            query = query.eq("date", expected_slot.date.isoformat()).eq(
                "time", _to_column(expected_slot.time)
            )
        response = await self._execute(query, "update appointment")
        if response.data:
            return Appointment(**response.data[0])

        # Nothing matched: the row is gone, its status moved on, or it changed slot
        current = await self.get_appointment(appointment_id)
        if current is None:
            raise NotFoundError("Appointment not found")
        if current.status in expected and expected_slot is not None:
            raise InvalidStateError(
                "Appointment was changed by another request, please retry",
                {"date": current.date.isoformat(), "time": current.time.strftime("%H:%M")},
            )
        raise InvalidStateError(
            f"Appointment is {current.status.value}",
            {"status": current.status.value},
        )

    async def list_appointments(
        self, patient_id: str, query: AppointmentQuery
    ) -> tuple[list[Appointment], int]:
        """Get one page of a patient's appointments."""
        request = (
            self.client.table("appointments")
            .select("*", count="exact")
            .eq("patient_id", patient_id)
        )

        if query.status:
            request = request.eq("status", query.status.value)

        if query.start_date:
            request = request.gte("date", query.start_date.isoformat())

        if query.end_date:
            request = request.lte("date", query.end_date.isoformat())

        request = (
            request.order("date", desc=True)
            .order("time", desc=True)
            .range(query.offset, query.offset + query.limit - 1)
        )
        response = await self._execute(request, "list appointments")
        return [Appointment(**apt) for apt in response.data], response.count or 0

    async def health_check(self) -> bool:
        """Check that the appointments table is reachable."""
        try:
            await self._execute(
                self.client.table("appointments").select("id").limit(1), "health check"
            )
            return True
        except StorageUnavailableError:
            return False
