"""
API routes for the scheduling engine.
Provides endpoints for:
- Health checks
- Doctor availability
- Booking, rescheduling, confirming and cancelling appointments
- Nearby facility search
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

import pydantic
from aiohttp import web

from ..errors import SchedulingError, ValidationError
from ..models import AppointmentQuery, FacilityType
from ..services.booking import BookingService
from ..services.facility_search import FacilitySearch
from ..services.store import AppointmentStore
from ..utils.clock import parse_date, parse_time

logger = logging.getLogger(__name__)

USER_HEADER = "X-User-Id"

T = TypeVar("T")


def create_app(
    booking_service: BookingService,
    facility_search: FacilitySearch,
    store: AppointmentStore,
) -> web.Application:
    """
    Create the aiohttp application with routes.

    Args:
        booking_service: BookingService instance
        facility_search: FacilitySearch instance
        store: Store backing both services, used for health checks

    Returns:
        Configured aiohttp Application
    """
    app = web.Application(middlewares=[cors_middleware, error_middleware])

    # Store services in app
    app["booking"] = booking_service
    app["facility_search"] = facility_search
    app["store"] = store

    # Add routes
    app.router.add_get("/health", health_check)
    app.router.add_get("/api/doctors/{doctor_id}/availability", get_availability)
    app.router.add_get("/api/appointments", list_appointments)
    app.router.add_post("/api/appointments", create_appointment)
    app.router.add_get("/api/appointments/{appointment_id}", get_appointment)
    app.router.add_put("/api/appointments/{appointment_id}", update_appointment)
    app.router.add_post("/api/appointments/{appointment_id}/confirm", confirm_appointment)
    app.router.add_delete("/api/appointments/{appointment_id}", cancel_appointment)
    app.router.add_get("/api/facilities/nearby", nearby_facilities)

    return app


def _error_body(request: web.Request, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        **payload,
        "timestamp": datetime.utcnow().isoformat(),
        "path": request.path,
    }


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Translate scheduling errors into JSON responses."""
    try:
        return await handler(request)
    except SchedulingError as e:
        return web.json_response(_error_body(request, e.to_dict()), status=e.status)
    except pydantic.ValidationError as e:
        error = ValidationError.from_pydantic(e, "Invalid query parameters")
        return web.json_response(_error_body(request, error.to_dict()), status=error.status)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unhandled error on {request.method} {request.path}: {e}")
        return web.json_response(
            _error_body(request, {"error": "server_error", "message": "Internal server error"}),
            status=500,
        )


@web.middleware
async def cors_middleware(request: web.Request, handler):
    """Handle CORS for frontend requests."""
    # Handle preflight
    if request.method == "OPTIONS":
        response = web.Response()
    else:
        try:
            response = await handler(request)
        except web.HTTPException as e:
            response = e

    # Add CORS headers
    origin = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Origin"] = origin
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = f"Content-Type, Authorization, {USER_HEADER}"
    response.headers["Access-Control-Allow-Credentials"] = "true"

    return response


def _actor_id(request: web.Request) -> str:
    """Acting patient, as asserted by the upstream identity provider."""
    actor = request.headers.get(USER_HEADER, "").strip()
    if not actor:
        raise web.HTTPUnauthorized(
            text=json.dumps({"error": "unauthorized", "message": "Authentication required"}),
            content_type="application/json",
        )
    return actor


def _parse(value: Optional[str], parser: Callable[[str], T], name: str) -> T:
    if value is None or value == "":
        raise ValidationError(f"{name} is required")
    try:
        return parser(value)
    except (AttributeError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {name}: {value!r}") from e


def _parse_optional(value: Optional[str], parser: Callable[[str], T], name: str) -> Optional[T]:
    if value is None or value == "":
        return None
    return _parse(value, parser, name)


async def _json_body(request: web.Request) -> dict[str, Any]:
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Request body must be JSON") from e
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _ok(data: Any, status: int = 200, message: Optional[str] = None) -> web.Response:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return web.json_response(body, status=status)


async def health_check(request: web.Request) -> web.Response:
    """Health check endpoint."""
    healthy = await request.app["store"].health_check()
    return web.json_response(
        {
            "status": "healthy" if healthy else "degraded",
            "timestamp": datetime.utcnow().isoformat(),
            "service": "medibook",
        },
        status=200 if healthy else 503,
    )


async def get_availability(request: web.Request) -> web.Response:
    """
    Get a doctor's free slots on a date.

    Query params:
    - date: YYYY-MM-DD
    - facilityId: Facility the doctor works at
    """
    doctor_id = request.match_info["doctor_id"]
    day = _parse(request.query.get("date"), parse_date, "date")
    facility_id = _parse(request.query.get("facilityId"), str.strip, "facilityId")

    availability = await request.app["booking"].get_availability(doctor_id, facility_id, day)
    return _ok(availability.model_dump(mode="json", by_alias=True))


async def list_appointments(request: web.Request) -> web.Response:
    """
    Get the caller's appointments.

    Query params:
    - status, startDate, endDate: optional filters
    - limit: page size (1-50, default 20)
    - page: page number (default 1)
    """
    actor = _actor_id(request)
    query = AppointmentQuery.model_validate(dict(request.query))
    page = await request.app["booking"].list_appointments(actor, query)
    return _ok(page.model_dump(mode="json", by_alias=True))


async def get_appointment(request: web.Request) -> web.Response:
    """Get one of the caller's appointments."""
    actor = _actor_id(request)
    appointment = await request.app["booking"].get_appointment(
        actor, request.match_info["appointment_id"]
    )
    return _ok({"appointment": appointment.model_dump(mode="json", by_alias=True)})


async def create_appointment(request: web.Request) -> web.Response:
    """
    Book a new appointment.

    Request body:
    {
        "facilityId": "...",
        "doctorId": "...",
        "appointmentDate": "2024-01-01",
        "appointmentTime": "09:00",
        "reason": "Annual checkup",
        "preferredLanguage": "en",
        "notes": "optional"
    }
    """
    actor = _actor_id(request)
    data = await _json_body(request)

    created = await request.app["booking"].create(
        actor,
        doctor_id=_parse(data.get("doctorId"), str.strip, "doctorId"),
        facility_id=_parse(data.get("facilityId"), str.strip, "facilityId"),
        day=_parse(data.get("appointmentDate"), parse_date, "appointmentDate"),
        at=_parse(data.get("appointmentTime"), parse_time, "appointmentTime"),
        reason=data.get("reason") or "",
        notes=data.get("notes") or "",
        preferred_language=data.get("preferredLanguage") or "en",
    )
    return _ok(
        created.model_dump(mode="json", by_alias=True),
        status=201,
        message="Appointment booked successfully",
    )


async def update_appointment(request: web.Request) -> web.Response:
    """
    Reschedule an appointment and/or edit its reason and notes.

    Request body (all optional, date and time together):
    {
        "appointmentDate": "2024-01-02",
        "appointmentTime": "10:30",
        "reason": "...",
        "notes": "..."
    }
    """
    actor = _actor_id(request)
    data = await _json_body(request)

    updated = await request.app["booking"].reschedule(
        actor,
        request.match_info["appointment_id"],
        new_date=_parse_optional(data.get("appointmentDate"), parse_date, "appointmentDate"),
        new_time=_parse_optional(data.get("appointmentTime"), parse_time, "appointmentTime"),
        reason=data.get("reason"),
        notes=data.get("notes"),
    )
    return _ok(
        updated.model_dump(mode="json", by_alias=True),
        message="Appointment updated successfully",
    )


async def confirm_appointment(request: web.Request) -> web.Response:
    """Confirm a scheduled appointment."""
    actor = _actor_id(request)
    confirmed = await request.app["booking"].confirm(
        actor, request.match_info["appointment_id"]
    )
    return _ok(
        confirmed.model_dump(mode="json", by_alias=True),
        message="Appointment confirmed",
    )


async def cancel_appointment(request: web.Request) -> web.Response:
    """Cancel an appointment at least 24 hours ahead."""
    actor = _actor_id(request)
    cancelled = await request.app["booking"].cancel(
        actor, request.match_info["appointment_id"]
    )
    return _ok(
        cancelled.model_dump(mode="json", by_alias=True),
        message="Appointment cancelled successfully",
    )


async def nearby_facilities(request: web.Request) -> web.Response:
    """
    Find healthcare facilities near a point.

    Query params:
    - lat, lng: search point in degrees
    - radius: km, 0.1-50 (default 20)
    - type: hospital, clinic, pharmacy or laboratory
    - specialty: optional specialty filter
    - limit: 1-50 (default 20)
    """
    params = request.query
    result = await request.app["facility_search"].nearby(
        latitude=_parse(params.get("lat"), float, "lat"),
        longitude=_parse(params.get("lng"), float, "lng"),
        radius_km=_parse_optional(params.get("radius"), float, "radius"),
        facility_type=_parse_optional(params.get("type"), FacilityType, "type"),
        specialty=params.get("specialty"),
        limit=_parse_optional(params.get("limit"), int, "limit"),
    )
    return _ok(result.model_dump(mode="json", by_alias=True))
