# SPDX-License-Identifier: Apache-2.0

"""
Blood request lifecycle rules.

Pure functions for status transitions and for the history entries those
transitions produce. Callers are responsible for persistence.
"""

from datetime import date, datetime
from typing import Dict, Set

from models.entities import BloodRequest, HistoryItem
from models.enums import HistoryType, RequestStatus

ACCEPTED_STATUS = "Accepted"
OPEN_STATUS = "Open"

# Allowed status transitions; terminal states map to an empty set
TRANSITIONS: Dict[str, Set[str]] = {
    RequestStatus.OPEN.value: {RequestStatus.FULFILLED.value, RequestStatus.CANCELLED.value},
    RequestStatus.FULFILLED.value: set(),
    RequestStatus.CANCELLED.value: set(),
}


class InvalidTransition(Exception):
    """Raised when a status transition is not allowed."""
    
    def __init__(self, request_id: str, current: str, target: str):
        super().__init__(f"Request {request_id} cannot move from {current} to {target}")
        self.request_id = request_id
        self.current = current
        self.target = target


def _value(status) -> str:
    return getattr(status, "value", status)


def can_transition(current: str, target: str) -> bool:
    """
    Check whether a status transition is allowed.
    
    Args:
        current: Current status
        target: Desired status
        
    Returns:
        True if the transition is allowed
    """
    return _value(target) in TRANSITIONS.get(_value(current), set())


def is_terminal(status: str) -> bool:
    return not TRANSITIONS.get(_value(status))


def _transition(request: BloodRequest, target: RequestStatus, **changes) -> BloodRequest:
    if not can_transition(request.status, target.value):
        raise InvalidTransition(request.id, _value(request.status), target.value)
    return request.model_copy(update={"status": target.value, **changes}, deep=True)


def fulfill(request: BloodRequest, donor_id: str, now: datetime) -> BloodRequest:
    """
    Mark an open request as fulfilled by a donor.
    
    Args:
        request: Current request state
        donor_id: Accepting donor
        now: Transition timestamp
        
    Returns:
        Updated copy of the request
        
    Raises:
        InvalidTransition: If the request is not open
    """
    return _transition(request, RequestStatus.FULFILLED, fulfilled_by=donor_id, fulfilled_at=now)


def cancel(request: BloodRequest, now: datetime) -> BloodRequest:
    """
    Cancel an open request.
    
    Raises:
        InvalidTransition: If the request is not open
    """
    return _transition(request, RequestStatus.CANCELLED, cancelled_at=now)


def is_repeat_accept(request: BloodRequest, donor_id: str) -> bool:
    """True when the same donor already fulfilled this request."""
    return _value(request.status) == RequestStatus.FULFILLED.value and request.fulfilled_by == donor_id


def hide_for(request: BloodRequest, donor_id: str) -> BloodRequest:
    """Hide a request from one donor's view without touching its status."""
    if donor_id in request.ignored_by:
        return request
    return request.model_copy(update={"ignored_by": [*request.ignored_by, donor_id]})


def build_donation_history(request: BloodRequest, donor_id: str, today: date) -> HistoryItem:
    """History entry recorded for the donor who accepted a request."""
    return HistoryItem(
        user_id=donor_id,
        type=HistoryType.DONATION,
        date=today,
        location=request.hospital_name,
        units=request.units,
        status=ACCEPTED_STATUS
    )


def build_request_history(request: BloodRequest, today: date) -> HistoryItem:
    """History entry recorded for the requester when a request is posted."""
    return HistoryItem(
        user_id=request.requester_id,
        type=HistoryType.REQUEST,
        date=today,
        location=request.hospital_name,
        units=request.units,
        status=OPEN_STATUS
    )
