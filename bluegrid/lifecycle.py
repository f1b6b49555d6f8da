# Report lifecycle: the one status enumeration and the role-gated transition table

from enum import Enum
from typing import Dict, FrozenSet, Tuple


class UserRole(str, Enum):
    RESIDENT = "resident"
    PANCHAYAT_OFFICER = "panchayat_officer"
    MAINTENANCE_TECHNICIAN = "maintenance_technician"
    WATER_FLOW_CONTROLLER = "water_flow_controller"

STAFF_ROLES = (UserRole.PANCHAYAT_OFFICER, UserRole.MAINTENANCE_TECHNICIAN,
               UserRole.WATER_FLOW_CONTROLLER)


class ReportStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransitionError(Exception):
    """Raised when a status change is not in the transition table for the actor."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


_OFFICER = UserRole.PANCHAYAT_OFFICER
_TECH = UserRole.MAINTENANCE_TECHNICIAN

# (from, to) -> roles allowed to perform it
TRANSITIONS: Dict[Tuple[ReportStatus, ReportStatus], FrozenSet[UserRole]] = {
    (ReportStatus.PENDING, ReportStatus.ASSIGNED): frozenset({_OFFICER}),
    (ReportStatus.ASSIGNED, ReportStatus.ASSIGNED): frozenset({_OFFICER}),
    (ReportStatus.REJECTED, ReportStatus.ASSIGNED): frozenset({_OFFICER}),
    (ReportStatus.ASSIGNED, ReportStatus.IN_PROGRESS): frozenset({_TECH}),
    (ReportStatus.REJECTED, ReportStatus.IN_PROGRESS): frozenset({_OFFICER}),
    (ReportStatus.IN_PROGRESS, ReportStatus.COMPLETED): frozenset({_TECH}),
    (ReportStatus.IN_PROGRESS, ReportStatus.AWAITING_APPROVAL): frozenset({_TECH}),
    (ReportStatus.COMPLETED, ReportStatus.AWAITING_APPROVAL): frozenset({_TECH}),
    (ReportStatus.AWAITING_APPROVAL, ReportStatus.APPROVED): frozenset({_OFFICER}),
    (ReportStatus.AWAITING_APPROVAL, ReportStatus.REJECTED): frozenset({_OFFICER}),
}

TERMINAL_STATUSES = frozenset({ReportStatus.APPROVED})

# Grouping used by analytics counters
OPEN_STATUSES = frozenset({ReportStatus.PENDING, ReportStatus.ASSIGNED, ReportStatus.IN_PROGRESS})
DONE_STATUSES = frozenset({ReportStatus.COMPLETED, ReportStatus.AWAITING_APPROVAL})


def _coerce_status(value) -> ReportStatus:
    try:
        return ReportStatus(value)
    except ValueError:
        raise TransitionError(f"Unknown report status '{value}'")


def _coerce_role(value) -> UserRole:
    try:
        return UserRole(value)
    except ValueError:
        raise TransitionError(f"Unknown role '{value}'", status_code=403)


def allowed_targets(current, role) -> FrozenSet[ReportStatus]:
    """Statuses reachable from *current* by *role*."""
    current, role = _coerce_status(current), _coerce_role(role)
    return frozenset(dst for (src, dst), roles in TRANSITIONS.items()
                     if src == current and role in roles)


def can_transition(current, target, role) -> bool:
    try:
        current, target, role = _coerce_status(current), _coerce_status(target), _coerce_role(role)
    except TransitionError:
        return False
    return role in TRANSITIONS.get((current, target), frozenset())


def check_transition(current, target, role) -> ReportStatus:
    """Validate a status change and return the target status.

    Raises TransitionError with status_code 403 when the edge exists but the
    role may not take it, and 400 when the edge does not exist at all.
    """
    current, target, role = _coerce_status(current), _coerce_status(target), _coerce_role(role)
    roles = TRANSITIONS.get((current, target))
    if roles is None:
        if current in TERMINAL_STATUSES:
            raise TransitionError(f"Report is already {current.value} and cannot change")
        raise TransitionError(
            f"Cannot move report from {current.value} to {target.value}")
    if role not in roles:
        raise TransitionError(
            f"Role {role.value} cannot move report from {current.value} to {target.value}",
            status_code=403)
    return target
