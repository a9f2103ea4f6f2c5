"""Nearby facility search."""

import asyncio
import logging
from typing import Optional

import pydantic

from ..errors import StorageTimeoutError, ValidationError
from ..models import (
    FacilityLocation,
    FacilityType,
    NearbyFacility,
    ProximityQuery,
    ProximitySearchResult,
)
from ..utils.geo import distance_km, estimated_travel_minutes, round_half_up
from .store import AppointmentStore

logger = logging.getLogger(__name__)


class FacilitySearch:
    """Ranks active facilities by great-circle distance from a point."""

    def __init__(
        self,
        store: AppointmentStore,
        default_radius_km: float = 20.0,
        default_limit: int = 20,
        storage_timeout_seconds: float = 5.0,
    ):
        self.store = store
        self.default_radius_km = default_radius_km
        self.default_limit = default_limit
        self.storage_timeout_seconds = storage_timeout_seconds

    async def nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: Optional[float] = None,
        facility_type: Optional[FacilityType] = None,
        specialty: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> ProximitySearchResult:
        """
        Find active facilities within a radius, closest first.

        Args:
            latitude: Search point latitude in degrees
            longitude: Search point longitude in degrees
            radius_km: Search radius, within (0.1, 50]
            facility_type: Only facilities of this type
            specialty: Only facilities offering this specialty
            limit: Maximum results, within [1, 50]

        Returns:
            Facilities sorted by distance (ties by id), truncated to ``limit``

        Raises:
            ValidationError: Coordinates or bounds out of range
        """
        try:
            query = ProximityQuery(
                latitude=latitude,
                longitude=longitude,
                radius_km=radius_km if radius_km is not None else self.default_radius_km,
                type=facility_type,
                specialty=specialty or None,
                limit=limit if limit is not None else self.default_limit,
            )
        except pydantic.ValidationError as e:
            raise ValidationError.from_pydantic(e, "Invalid input parameters") from e

        return await self.search(query)

    async def search(self, query: ProximityQuery) -> ProximitySearchResult:
        """Run a validated proximity query."""
        try:
            candidates = await asyncio.wait_for(
                self.store.active_facilities(query.type, query.specialty),
                timeout=self.storage_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise StorageTimeoutError("Storage timed out during facility search") from e

        in_range = []
        for facility in candidates:
            distance = distance_km(
                query.latitude,
                query.longitude,
                facility.location.latitude,
                facility.location.longitude,
            )
            if distance <= query.radius_km:
                in_range.append((distance, facility))

        in_range.sort(key=lambda pair: (pair[0], pair[1].id))
        ranked = [
            NearbyFacility(
                **facility.model_dump(),
                distance=round_half_up(distance, 2),
                estimated_travel_time=estimated_travel_minutes(distance),
            )
            for distance, facility in in_range[:query.limit]
        ]

        logger.info(
            f"Facility search at ({query.latitude}, {query.longitude}) "
            f"r={query.radius_km}km: {len(in_range)} found, {len(ranked)} returned"
        )
        return ProximitySearchResult(
            facilities=ranked,
            total_found=len(in_range),
            total_returned=len(ranked),
            search_radius=query.radius_km,
            user_location=FacilityLocation(latitude=query.latitude, longitude=query.longitude),
        )
