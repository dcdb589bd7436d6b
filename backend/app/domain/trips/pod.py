"""
Proof-of-delivery workflow (Domain Logic).

Two independent tracks:

- Trip-level delivery document in `documents.proof_of_delivery`
  (pending -> verified | rejected). Verification completes the trip.
- Per-client POD progression on TripClient.pod_status
  (started -> complete -> pod_received -> pod_submitted -> settled),
  forward-only.

Methods flush but never commit.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from backend.app.core.exceptions import BusinessRuleError, InsufficientPermissionsError, PodMissingError
from backend.app.core.timeutils import utcnow
from backend.app.domain.trips.trip_service import TripService
from backend.app.models.trip import Trip, TripClient
from backend.app.models.enums import UserRole, AvailabilityStatus
from backend.app.models.trip_enums import (
    TripStatus,
    ClientPodStatus,
    CLIENT_POD_SEQUENCE,
    PodVerificationStatus,
)
from backend.app.models.vehicle_enums import VehicleStatus

logger = logging.getLogger(__name__)

PENDING_POD_STATUSES = (ClientPodStatus.STARTED, ClientPodStatus.COMPLETE)
SUBMITTED_POD_STATUSES = (
    ClientPodStatus.POD_RECEIVED,
    ClientPodStatus.POD_SUBMITTED,
    ClientPodStatus.SETTLED,
)


def pod_rank(status: ClientPodStatus) -> int:
    return CLIENT_POD_SEQUENCE.index(status)


class PodWorkflow:

    @staticmethod
    def check_pod_upload(trip: Trip, actor: dict) -> bool:
        """
        Check that the caller may upload the POD of this trip now. Run before
        the file is stored. Returns True for an admin caller.

        Raises:
            InsufficientPermissionsError: caller is neither admin nor the assigned driver
            BusinessRuleError: trip is not in progress
        """
        role = actor.get("role")
        is_admin = role == UserRole.ADMIN.value
        if not is_admin and not (role == UserRole.DRIVER.value and trip.driver_id == actor.get("user_id")):
            raise InsufficientPermissionsError("Only the assigned driver or an admin can upload the POD")
        if trip.status != TripStatus.IN_PROGRESS:
            raise BusinessRuleError(
                "POD can only be uploaded for trips in progress",
                details={"status": trip.status.value},
            )
        return is_admin

    @staticmethod
    async def upload_pod(db: AsyncSession, trip: Trip, url: str, actor: dict) -> Trip:
        """Attach the delivery document. Admin uploads are verified on the spot and complete the trip."""
        is_admin = PodWorkflow.check_pod_upload(trip, actor)

        now = utcnow()
        pod = {
            "url": url,
            "uploaded_at": now.isoformat(),
            "uploaded_by": actor["user_id"],
            "verified_by": None,
            "verified_at": None,
            "status": PodVerificationStatus.PENDING.value,
            "rejection_reason": None,
        }
        trip.documents = {**(trip.documents or {}), "proof_of_delivery": pod}
        trip.last_updated_by = actor["user_id"]

        if is_admin:
            TripService.mark_pod_verified(trip, actor["user_id"], now)
            await TripService.apply_transition(db, trip, TripStatus.COMPLETED, actor)
        else:
            await db.flush()
        return trip

    @staticmethod
    async def verify_pod(
        db: AsyncSession,
        trip: Trip,
        action: str,
        actor: dict,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Verify or reject a pending POD.

        Returns:
            True when the trip was completed by this call.
        """
        pod = trip.proof_of_delivery
        if not pod or not pod.get("url"):
            raise PodMissingError()
        if pod.get("status") != PodVerificationStatus.PENDING.value:
            raise BusinessRuleError(
                "POD is not pending verification",
                details={"pod_status": pod.get("status")},
            )

        if action == "reject":
            if not reason or not reason.strip():
                raise BusinessRuleError("Rejection reason is required")
            rejected = dict(pod)
            rejected["status"] = PodVerificationStatus.REJECTED.value
            rejected["rejection_reason"] = reason.strip()
            rejected["verified_by"] = actor["user_id"]
            rejected["verified_at"] = utcnow().isoformat()
            trip.documents = {**(trip.documents or {}), "proof_of_delivery": rejected}
            trip.last_updated_by = actor["user_id"]
            await db.flush()
            return False

        if action != "verify":
            raise BusinessRuleError("Action must be 'verify' or 'reject'")

        TripService.mark_pod_verified(trip, actor["user_id"])
        if trip.status == TripStatus.IN_PROGRESS:
            await TripService.apply_transition(db, trip, TripStatus.COMPLETED, actor)
            return True
        trip.last_updated_by = actor["user_id"]
        await db.flush()
        return False

    @staticmethod
    def ensure_can_touch_client(trip: Trip, client: TripClient, actor: dict) -> None:
        """Admin, the fleet owner of the trip's vehicle, or the client themselves."""
        role = actor.get("role")
        user_id = actor.get("user_id")
        if role == UserRole.ADMIN.value:
            return
        if role == UserRole.FLEET_OWNER.value and trip.owner_id == user_id:
            return
        if role == UserRole.CLIENT.value and client.client_id == user_id:
            return
        raise InsufficientPermissionsError("Not allowed to update this client's POD")

    @staticmethod
    def advance_client_pod(client: TripClient, status: ClientPodStatus, date: Optional[datetime] = None) -> None:
        """
        Move a client along the POD sequence.

        Raises:
            BusinessRuleError: the new status is not ahead of the current one
        """
        if pod_rank(status) <= pod_rank(client.pod_status):
            raise BusinessRuleError(
                "POD status can only move forward",
                details={"current": client.pod_status.value, "requested": status.value},
            )
        client.pod_status = status
        client.pod_date = date or utcnow()

    @staticmethod
    async def update_client_pod_status(
        db: AsyncSession,
        trip: Trip,
        index: int,
        status: ClientPodStatus,
        actor: dict,
        date: Optional[datetime] = None,
    ) -> TripClient:
        client = TripService.client_at(trip, index)
        PodWorkflow.ensure_can_touch_client(trip, client, actor)
        PodWorkflow.advance_client_pod(client, status, date)
        trip.last_updated_by = actor["user_id"]
        await db.flush()
        return client

    @staticmethod
    async def upload_client_pod_document(
        db: AsyncSession,
        trip: Trip,
        index: int,
        step: ClientPodStatus,
        url: str,
        actor: dict,
    ) -> TripClient:
        """Record a document for a POD step; moves pod_status up to that step when it is ahead."""
        client = TripService.client_at(trip, index)
        PodWorkflow.ensure_can_touch_client(trip, client, actor)

        now = utcnow()
        client.documents = list(client.documents or []) + [
            {"step": step.value, "url": url, "uploaded_at": now.isoformat()}
        ]
        client.pod_document = url
        if pod_rank(step) > pod_rank(client.pod_status):
            client.pod_status = step
            client.pod_date = now
        trip.last_updated_by = actor["user_id"]
        await db.flush()
        return client

    @staticmethod
    async def update_trip_pod_status(
        db: AsyncSession,
        trip: Trip,
        status: ClientPodStatus,
        actor_id: int,
        document_url: Optional[str] = None,
    ) -> Trip:
        """
        Drive the trip-level POD status.

        started books the vehicle and driver; complete and settled release them.
        """
        trip.pod_status = status
        trip.pod_date = utcnow()
        if document_url:
            trip.pod_document = document_url

        if status == ClientPodStatus.STARTED:
            await TripService.set_vehicle_status(db, trip.vehicle_id, VehicleStatus.BOOKED)
            await TripService.set_driver_status(db, trip.driver_id, AvailabilityStatus.BOOKED)
        elif status in (ClientPodStatus.COMPLETE, ClientPodStatus.SETTLED):
            await TripService.release_resources(db, trip)

        trip.last_updated_by = actor_id
        await db.flush()
        return trip

    @staticmethod
    async def pod_status_report(db: AsyncSession, actor: dict) -> Dict[str, List[dict]]:
        """
        Split client rows into pending and submitted POD buckets.

        Non-admin callers only see rows from trips they take part in.
        """
        query = select(Trip).options(selectinload(Trip.clients)).order_by(Trip.scheduled_date.desc())
        query = TripService.scope_query(query, actor)
        role = actor.get("role")
        user_id = actor.get("user_id")

        result = await db.execute(query)
        report: Dict[str, List[dict]] = {"pending": [], "submitted": []}
        for trip in result.scalars().all():
            for index, client in enumerate(trip.clients):
                if role == UserRole.CLIENT.value and client.client_id != user_id:
                    continue
                row = {
                    "trip_id": trip.id,
                    "trip_number": trip.trip_number,
                    "client_index": index,
                    "client_id": client.client_id,
                    "pod_status": client.pod_status.value,
                    "pod_date": client.pod_date,
                    "pod_document": client.pod_document,
                    "due_amount": client.due_amount,
                }
                bucket = "pending" if client.pod_status in PENDING_POD_STATUSES else "submitted"
                report[bucket].append(row)
        return report
