"""
Proof-of-delivery API endpoints.

Trip-level delivery document (upload, verify/reject) and the per-client
POD progression started -> complete -> pod_received -> pod_submitted -> settled.
"""

import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Request, UploadFile, File, Form
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.models.trip_enums import TripStatus, ClientPodStatus
from backend.app.models.activity_log import ActivityCategory, ActivitySeverity
from backend.app.schemas.trip import TripResponse
from backend.app.schemas.pod import PodVerification, ClientPodStatusUpdate, TripPodStatusUpdate
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin
from backend.app.core.timeutils import as_naive_utc
from backend.app.domain.trips.trip_service import TripService
from backend.app.domain.trips.pod import PodWorkflow
from backend.app.services.activity_logger import ActivityLogger, ActivityAction
from backend.app.services.storage import FileStorage
from backend.app.services.trip_notifications import trip_completed_mails, send_mails

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trips", tags=["Proof of Delivery"])


@router.post("/{trip_id}/pod", response_model=TripResponse)
async def upload_pod(
    trip_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Upload the delivery document of an in-progress trip.

    Admin or the assigned driver only. An admin upload is verified at once
    and completes the trip.
    """
    trip = await TripService.load_trip(db, trip_id)
    TripService.ensure_actor_can_touch(trip, current_user)
    PodWorkflow.check_pod_upload(trip, current_user)
    url = await FileStorage.save(file, f"trips/{trip.id}/pod")

    await PodWorkflow.upload_pod(db, trip, url, current_user)
    await db.commit()
    trip = await TripService.load_trip(db, trip_id)
    if trip.status == TripStatus.COMPLETED:
        background_tasks.add_task(send_mails, await trip_completed_mails(db, trip))

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.POD_UPLOADED, ActivityCategory.TRIP,
        f"POD uploaded for trip {trip.trip_number}",
        details={"url": url, "completed": trip.status == TripStatus.COMPLETED},
        related_trip_id=trip.id, request=request,
    )

    return TripResponse.model_validate(trip)


@router.patch("/{trip_id}/pod/verify", response_model=TripResponse)
async def verify_pod(
    trip_id: int,
    payload: PodVerification,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Verify (completes the trip, mails the clients) or reject (reason required) a pending POD."""
    trip = await TripService.load_trip(db, trip_id)
    completed = await PodWorkflow.verify_pod(db, trip, payload.action, admin, payload.reason)
    await db.commit()
    trip = await TripService.load_trip(db, trip_id)
    if completed:
        background_tasks.add_task(send_mails, await trip_completed_mails(db, trip))

    verified = payload.action == "verify"
    await ActivityLogger.record(
        db, admin["user_id"],
        ActivityAction.POD_VERIFIED if verified else ActivityAction.POD_REJECTED,
        ActivityCategory.TRIP,
        f"POD {'verified' if verified else 'rejected'} for trip {trip.trip_number}",
        details={"reason": payload.reason, "completed": completed},
        related_trip_id=trip.id,
        severity=ActivitySeverity.LOW if verified else ActivitySeverity.MEDIUM,
        request=request,
    )

    return TripResponse.model_validate(trip)


@router.patch("/{trip_id}/clients/{index}/pod-status", response_model=TripResponse)
async def update_client_pod_status(
    trip_id: int,
    index: int,
    payload: ClientPodStatusUpdate,
    request: Request,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Move a client's POD forward. Admin, the trip's fleet owner or the client."""
    trip = await TripService.load_trip(db, trip_id)
    client = await PodWorkflow.update_client_pod_status(
        db, trip, index, payload.status, current_user, as_naive_utc(payload.date)
    )
    client_id = client.client_id
    await db.commit()
    trip = await TripService.load_trip(db, trip_id)

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.CLIENT_POD_UPDATED, ActivityCategory.TRIP,
        f"Client #{index} POD moved to {payload.status.value} on trip {trip.trip_number}",
        details={"client_index": index, "status": payload.status.value},
        related_trip_id=trip.id, related_user_id=client_id, request=request,
    )
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/clients/{index}/pod-document", response_model=TripResponse)
async def upload_client_pod_document(
    trip_id: int,
    index: int,
    request: Request,
    step: ClientPodStatus = Form(...),
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    client = TripService.client_at(trip, index)
    PodWorkflow.ensure_can_touch_client(trip, client, current_user)
    url = await FileStorage.save(file, f"trips/{trip.id}/clients/{index}")

    await PodWorkflow.upload_client_pod_document(db, trip, index, step, url, current_user)
    await db.commit()
    trip = await TripService.load_trip(db, trip_id)

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.CLIENT_POD_UPDATED, ActivityCategory.TRIP,
        f"{step.value} document uploaded for client #{index} on trip {trip.trip_number}",
        details={"client_index": index, "step": step.value, "url": url},
        related_trip_id=trip.id, request=request,
    )
    return TripResponse.model_validate(trip)


@router.patch("/{trip_id}/pod-status", response_model=TripResponse)
async def update_trip_pod_status(
    trip_id: int,
    payload: TripPodStatusUpdate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Drive the trip-level POD status.

    started books the vehicle and driver; complete and settled free them.
    """
    trip = await TripService.load_trip(db, trip_id)
    await PodWorkflow.update_trip_pod_status(db, trip, payload.status, admin["user_id"])
    await db.commit()
    trip = await TripService.load_trip(db, trip_id)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.CLIENT_POD_UPDATED, ActivityCategory.TRIP,
        f"Trip {trip.trip_number} POD status set to {payload.status.value}",
        details={"status": payload.status.value},
        related_trip_id=trip.id, related_vehicle_id=trip.vehicle_id, request=request,
    )
    return TripResponse.model_validate(trip)
