# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the Campus Blood Connect service.
"""

from enum import Enum


class BloodGroup(str, Enum):
    """ABO/Rh blood groups."""
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


class UserRole(str, Enum):
    """User role enumeration."""
    DONOR = "DONOR"
    REQUESTER = "REQUESTER"
    ADMIN = "ADMIN"


class RequestUrgency(str, Enum):
    """Priority tier of a blood request, used for display emphasis only."""
    NORMAL = "Normal"
    URGENT = "Urgent"
    CRITICAL = "Critical"


class RequestStatus(str, Enum):
    """Blood request lifecycle status."""
    OPEN = "OPEN"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"


class HistoryType(str, Enum):
    """Kind of history log entry."""
    DONATION = "Donation"
    REQUEST = "Request"


class CenterType(str, Enum):
    """Kind of donation venue."""
    HOSPITAL = "Hospital"
    DONATION_CAMP = "Donation Camp"
    CLINIC = "Clinic"
