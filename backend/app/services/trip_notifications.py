"""
Trip notification emails.

Recipients are resolved inside the request, while the session is open, into
plain (to, template, context) tuples. Delivery then runs as a FastAPI
background task after the response is sent, so a slow SMTP relay never
holds up a booking or a completion. send_email never raises.
"""

import logging
from typing import Any, Dict, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.models.user import User
from backend.app.models.trip import Trip, TripClient
from backend.app.models.vehicle import Vehicle
from backend.app.models.vehicle_enums import OwnershipType
from backend.app.services.mailer import send_email

logger = logging.getLogger(__name__)

OutgoingMail = Tuple[str, str, Dict[str, Any]]


def route_label(client: TripClient) -> str:
    origin = (client.origin or {}).get("city", "?")
    destination = (client.destination or {}).get("city", "?")
    return f"{origin} to {destination}"


async def trip_created_mails(db: AsyncSession, trip: Trip, vehicle: Vehicle) -> List[OutgoingMail]:
    """
    Build the booking mails: the assignee (driver for self-owned, fleet owner
    otherwise) and every client on the trip.
    """
    mails: List[OutgoingMail] = []
    scheduled = trip.scheduled_date.strftime("%d %b %Y")
    assignee_id = trip.driver_id if trip.ownership_type == OwnershipType.SELF else trip.owner_id
    assignee = await db.get(User, assignee_id) if assignee_id else None
    if assignee:
        mails.append((assignee.email, "trip_assigned", {
            "name": assignee.name,
            "trip_number": trip.trip_number,
            "vehicle": vehicle.registration_number,
            "scheduled_date": scheduled,
            "route": route_label(trip.clients[0]),
        }))

    for client in trip.clients:
        user = await db.get(User, client.client_id)
        if user:
            mails.append((user.email, "trip_created", {
                "name": user.name,
                "trip_number": trip.trip_number,
                "scheduled_date": scheduled,
                "route": route_label(client),
                "rate": client.rate,
            }))
    return mails


async def trip_completed_mails(db: AsyncSession, trip: Trip) -> List[OutgoingMail]:
    mails: List[OutgoingMail] = []
    for client in trip.clients:
        user = await db.get(User, client.client_id)
        if user:
            mails.append((user.email, "trip_completed", {
                "name": user.name,
                "trip_number": trip.trip_number,
                "due_amount": client.due_amount,
            }))
    return mails


async def send_mails(mails: List[OutgoingMail]) -> int:
    """Deliver prepared mails. Runs without a database session.

    Returns:
        Number of mails delivered
    """
    sent = 0
    for to_email, template, context in mails:
        sent += await send_email(to_email, template, context)
    if mails:
        logger.info("Trip mails delivered: %d of %d", sent, len(mails))
    return sent
