"""
Main entry point for the MediBook scheduling engine.
Wires the configured store into the services and starts the HTTP API server.
"""

import logging

from aiohttp import web
from dotenv import load_dotenv

from config.settings import Settings, get_settings
from .api.routes import create_app
from .models import WorkingHoursPolicy
from .services.booking import BookingService
from .services.facility_search import FacilitySearch
from .services.slot_generator import SlotGenerator
from .services.store import AppointmentStore, InMemoryStore
from .services.supabase_service import SupabaseStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> AppointmentStore:
    """Create the appointment store selected by ``STORE_BACKEND``."""
    if settings.store_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the supabase backend"
            )
        return SupabaseStore(
            url=settings.supabase_url,
            key=settings.supabase_service_role_key,
        )

    logger.warning("Using in-memory store; data is lost on restart")
    return InMemoryStore()


def build_application(settings: Settings, store: AppointmentStore) -> web.Application:
    """Create services over a store and mount them on the HTTP app."""
    slot_generator = SlotGenerator(
        default_policy=WorkingHoursPolicy(
            start_time=settings.default_work_start,
            end_time=settings.default_work_end,
            working_days=settings.default_working_days,
        ),
        slot_duration_minutes=settings.slot_duration_minutes,
    )

    booking = BookingService(
        store=store,
        slot_generator=slot_generator,
        cancellation_notice_hours=settings.cancellation_notice_hours,
        storage_timeout_seconds=settings.storage_timeout_seconds,
    )

    search = FacilitySearch(
        store=store,
        default_radius_km=settings.search_default_radius_km,
        default_limit=settings.search_default_limit,
        storage_timeout_seconds=settings.storage_timeout_seconds,
    )

    logger.info(f"Services initialized with {settings.store_backend} store")
    return create_app(booking_service=booking, facility_search=search, store=store)


def main():
    """Main entry point."""
    # Load environment variables (override=True ensures .env values take precedence)
    load_dotenv(override=True)
    settings = get_settings()

    # Configure logging
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = build_application(settings, build_store(settings))

    logger.info(f"Starting API server on {settings.host}:{settings.port}")
    web.run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
