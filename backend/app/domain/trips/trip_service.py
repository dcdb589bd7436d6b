"""
Trip Service (Domain Logic).

Loads trips and applies status changes together with the vehicle and driver
availability they imply. Methods flush but never commit; the endpoint commits
once so trip, vehicle and driver changes land together.
"""

import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from backend.app.core.exceptions import ResourceNotFoundError, InsufficientPermissionsError, BusinessRuleError
from backend.app.core.timeutils import utcnow
from backend.app.domain.trips.state_machine import TripStateMachine, TransitionPlan, TIMELINE_FIELDS
from backend.app.models.trip import Trip, TripClient
from backend.app.models.user import User
from backend.app.models.vehicle import Vehicle
from backend.app.models.enums import UserRole, AvailabilityStatus
from backend.app.models.trip_enums import TripStatus, PodVerificationStatus
from backend.app.models.vehicle_enums import VehicleStatus

logger = logging.getLogger(__name__)


class TripService:

    @staticmethod
    async def load_trip(db: AsyncSession, trip_id: int) -> Trip:
        """
        Load a trip with its clients, overwriting any stale identity-map state.

        Raises:
            ResourceNotFoundError: trip does not exist
        """
        result = await db.execute(
            select(Trip)
            .options(selectinload(Trip.clients))
            .where(Trip.id == trip_id)
            .execution_options(populate_existing=True)
        )
        trip = result.scalar_one_or_none()
        if not trip:
            raise ResourceNotFoundError("Trip", trip_id)
        return trip

    @staticmethod
    def client_at(trip: Trip, index: int) -> TripClient:
        """Return the client at a positional index or raise 404."""
        if index is None or index < 0 or index >= len(trip.clients):
            raise ResourceNotFoundError("Trip client", index)
        return trip.clients[index]

    @staticmethod
    def stamp_timeline(trip: Trip, status: TripStatus, now: Optional[datetime] = None) -> None:
        """Set the timeline timestamp for a status if it is not already set."""
        field = TIMELINE_FIELDS.get(status)
        if field and getattr(trip, field) is None:
            setattr(trip, field, now or utcnow())

    @staticmethod
    async def set_vehicle_status(db: AsyncSession, vehicle_id: Optional[int], status: VehicleStatus) -> None:
        if not vehicle_id:
            return
        vehicle = await db.get(Vehicle, vehicle_id)
        if vehicle:
            vehicle.status = status

    @staticmethod
    async def reserve_vehicle(db: AsyncSession, vehicle_id: int) -> None:
        """
        Flip an available vehicle to booked with one conditional UPDATE.

        Two bookings that both read the vehicle as available race here; only
        one UPDATE matches `status = available`, the other sees rowcount 0.

        Raises:
            BusinessRuleError: vehicle was taken in the meantime
        """
        result = await db.execute(
            update(Vehicle)
            .where(Vehicle.id == vehicle_id, Vehicle.status == VehicleStatus.AVAILABLE)
            .values(status=VehicleStatus.BOOKED)
        )
        if result.rowcount != 1:
            raise BusinessRuleError("Vehicle is not available", details={"vehicle_id": vehicle_id})

    @staticmethod
    async def set_driver_status(db: AsyncSession, driver_id: Optional[int], status: AvailabilityStatus) -> None:
        if not driver_id:
            return
        driver = await db.get(User, driver_id)
        if driver:
            driver.status = status

    @staticmethod
    async def release_resources(db: AsyncSession, trip: Trip) -> None:
        """Mark the trip's vehicle and driver available again."""
        await TripService.set_vehicle_status(db, trip.vehicle_id, VehicleStatus.AVAILABLE)
        await TripService.set_driver_status(db, trip.driver_id, AvailabilityStatus.AVAILABLE)

    @staticmethod
    async def engage_resources(db: AsyncSession, trip: Trip) -> None:
        """Mark the trip's vehicle and driver booked."""
        await TripService.set_vehicle_status(db, trip.vehicle_id, VehicleStatus.BOOKED)
        await TripService.set_driver_status(db, trip.driver_id, AvailabilityStatus.BOOKED)

    @staticmethod
    def scope_query(query, actor: dict):
        """Restrict a Trip query to the trips a non-admin actor takes part in."""
        role = actor.get("role")
        user_id = actor.get("user_id")
        if role == UserRole.CLIENT.value:
            return query.where(Trip.clients.any(TripClient.client_id == user_id))
        if role == UserRole.FLEET_OWNER.value:
            return query.where(Trip.owner_id == user_id)
        if role == UserRole.DRIVER.value:
            return query.where(Trip.driver_id == user_id)
        return query

    @staticmethod
    def ensure_actor_can_touch(trip: Trip, actor: dict) -> None:
        """
        Non-admin actors may only act on trips they take part in.

        drivers: assigned driver; fleet owners: owner in the snapshot;
        clients: one of the trip's clients.
        """
        role = actor.get("role")
        user_id = actor.get("user_id")
        if role == UserRole.ADMIN.value:
            return
        if role == UserRole.DRIVER.value and trip.driver_id == user_id:
            return
        if role == UserRole.FLEET_OWNER.value and trip.owner_id == user_id:
            return
        if role == UserRole.CLIENT.value and any(c.client_id == user_id for c in trip.clients):
            return
        raise InsufficientPermissionsError("You are not part of this trip")

    @staticmethod
    def mark_pod_verified(trip: Trip, verifier_id: int, now: Optional[datetime] = None) -> None:
        pod = dict(trip.proof_of_delivery or {})
        pod["status"] = PodVerificationStatus.VERIFIED.value
        pod["verified_by"] = verifier_id
        pod["verified_at"] = (now or utcnow()).isoformat()
        pod["rejection_reason"] = None
        trip.documents = {**(trip.documents or {}), "proof_of_delivery": pod}

    @staticmethod
    async def apply_transition(
        db: AsyncSession,
        trip: Trip,
        target: TripStatus,
        actor: dict,
    ) -> TransitionPlan:
        """
        Validate and apply a status change.

        Flow:
        1. Check actor takes part in the trip
        2. Plan the transition (table, role, POD precondition)
        3. Auto-verify the POD for admin completions
        4. Update status and timeline
        5. Engage or release vehicle and driver

        Args:
            db: Database session (caller commits)
            trip: Loaded trip
            target: Requested status
            actor: Decoded JWT payload of the caller

        Returns:
            The executed TransitionPlan
        """
        TripService.ensure_actor_can_touch(trip, actor)
        role = UserRole(actor["role"])
        plan = TripStateMachine.plan(trip.status, target, role, trip.proof_of_delivery)

        now = utcnow()
        if plan.auto_verify_pod:
            TripService.mark_pod_verified(trip, actor["user_id"], now)

        trip.status = target
        trip.last_updated_by = actor["user_id"]
        TripService.stamp_timeline(trip, target, now)

        if plan.engages_vehicle:
            await TripService.engage_resources(db, trip)
        elif plan.releases_vehicle:
            await TripService.release_resources(db, trip)

        await db.flush()
        logger.info(
            "Trip %s moved %s -> %s by user %s",
            trip.trip_number, plan.current.value, target.value, actor["user_id"],
        )
        return plan
