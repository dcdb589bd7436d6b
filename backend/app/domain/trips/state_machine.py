"""
Trip status state machine.

Transitions:
    booked      -> in_progress | cancelled
    in_progress -> completed | cancelled
    completed   -> billed
    billed      -> paid
    cancelled, paid: terminal

Role filter (applied after the table):
    admin       -> any edge
    driver      -> booked -> in_progress
    fleet_owner -> booked -> in_progress
    client      -> * -> cancelled

Completion needs a proof of delivery. An unverified POD blocks everyone
except admins, for whom it is verified on the spot.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional
from backend.app.core.exceptions import (
    InvalidTransitionError,
    TransitionNotAllowedError,
    PodMissingError,
    PodNotVerifiedError,
)
from backend.app.models.enums import UserRole
from backend.app.models.trip_enums import TripStatus, PodVerificationStatus

TRANSITIONS: Dict[TripStatus, FrozenSet[TripStatus]] = {
    TripStatus.BOOKED: frozenset({TripStatus.IN_PROGRESS, TripStatus.CANCELLED}),
    TripStatus.IN_PROGRESS: frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.COMPLETED: frozenset({TripStatus.BILLED}),
    TripStatus.BILLED: frozenset({TripStatus.PAID}),
    TripStatus.CANCELLED: frozenset(),
    TripStatus.PAID: frozenset(),
}

# (from, to) pairs each non-admin role may request; None matches any source
ROLE_EDGES: Dict[UserRole, FrozenSet[tuple]] = {
    UserRole.DRIVER: frozenset({(TripStatus.BOOKED, TripStatus.IN_PROGRESS)}),
    UserRole.FLEET_OWNER: frozenset({(TripStatus.BOOKED, TripStatus.IN_PROGRESS)}),
    UserRole.CLIENT: frozenset({(None, TripStatus.CANCELLED)}),
}

# Timeline column stamped when a status is entered
TIMELINE_FIELDS: Dict[TripStatus, str] = {
    TripStatus.BOOKED: "booked_at",
    TripStatus.IN_PROGRESS: "started_at",
    TripStatus.COMPLETED: "completed_at",
    TripStatus.BILLED: "billed_at",
    TripStatus.PAID: "paid_at",
    TripStatus.CANCELLED: "cancelled_at",
}


@dataclass
class TransitionPlan:
    """Outcome of a validated transition request."""
    current: TripStatus
    target: TripStatus
    auto_verify_pod: bool = False

    @property
    def releases_vehicle(self) -> bool:
        return self.target in (TripStatus.COMPLETED, TripStatus.CANCELLED)

    @property
    def engages_vehicle(self) -> bool:
        return self.target == TripStatus.IN_PROGRESS


class TripStateMachine:
    """Validates trip status changes against the transition table and the actor's role."""

    transitions = TRANSITIONS

    @classmethod
    def allowed_targets(cls, current: TripStatus) -> FrozenSet[TripStatus]:
        return cls.transitions.get(current, frozenset())

    @classmethod
    def is_terminal(cls, status: TripStatus) -> bool:
        return not cls.allowed_targets(status)

    @classmethod
    def ensure_edge(cls, current: TripStatus, target: TripStatus) -> None:
        if target not in cls.allowed_targets(current):
            raise InvalidTransitionError(current.value, target.value)

    @staticmethod
    def ensure_role(role: UserRole, current: TripStatus, target: TripStatus) -> None:
        if role == UserRole.ADMIN:
            return
        edges = ROLE_EDGES.get(role, frozenset())
        if (current, target) in edges or (None, target) in edges:
            return
        raise TransitionNotAllowedError(role.value, target.value)

    @staticmethod
    def check_pod(role: UserRole, proof_of_delivery: Optional[dict]) -> bool:
        """
        Enforce the POD precondition for completion.

        Returns:
            True when an admin completion should auto-verify the POD.
        """
        if not proof_of_delivery or not proof_of_delivery.get("url"):
            raise PodMissingError()
        pod_status = proof_of_delivery.get("status")
        if pod_status == PodVerificationStatus.VERIFIED.value:
            return False
        if role != UserRole.ADMIN:
            raise PodNotVerifiedError(pod_status or "unknown")
        return True

    @classmethod
    def plan(
        cls,
        current: TripStatus,
        target: TripStatus,
        role: UserRole,
        proof_of_delivery: Optional[dict] = None,
    ) -> TransitionPlan:
        """
        Validate a transition request.

        Order of checks: table edge, role filter, POD precondition.

        Raises:
            InvalidTransitionError, TransitionNotAllowedError,
            PodMissingError, PodNotVerifiedError
        """
        cls.ensure_edge(current, target)
        cls.ensure_role(role, current, target)
        auto_verify = False
        if target == TripStatus.COMPLETED:
            auto_verify = cls.check_pod(role, proof_of_delivery)
        return TransitionPlan(current=current, target=target, auto_verify_pod=auto_verify)
