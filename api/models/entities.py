# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the Campus Blood Connect service.
"""

import re
from datetime import date, datetime, timezone
from typing import Annotated, List, Literal, Optional, Union
from pydantic import ConfigDict, Field, field_validator
from .base import BaseEntity, generate_id, generate_time_id
from .enums import (
    BloodGroup,
    UserRole,
    RequestUrgency,
    RequestStatus,
    HistoryType,
    CenterType
)

CalendarDate = date

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def utc_now() -> datetime:
    """Current UTC timestamp."""
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    """Canonical form used for case-insensitive email comparison."""
    return email.strip().lower()


class DonorProfile(BaseEntity):
    """Role payload for donors: blood group and availability live only here."""
    
    role: Literal["DONOR"] = "DONOR"
    blood_group: BloodGroup = Field(..., description="Donor ABO/Rh group")
    is_available: bool = Field(default=True, description="Donor-declared availability")


class RequesterProfile(BaseEntity):
    """Role payload for requesters."""
    
    role: Literal["REQUESTER"] = "REQUESTER"


class AdminProfile(BaseEntity):
    """Role payload for coordinators/administrators."""
    
    role: Literal["ADMIN"] = "ADMIN"


RoleProfile = Annotated[
    Union[DonorProfile, RequesterProfile, AdminProfile],
    Field(discriminator="role")
]


class User(BaseEntity):
    """User identity plus a role-tagged profile payload."""
    
    id: str = Field(default_factory=lambda: generate_id("user"), frozen=True, description="Unique identifier")
    name: str = Field(..., min_length=1, max_length=200, description="Full name")
    email: str = Field(..., description="Email address, unique case-insensitively")
    phone: str = Field(default="", description="Contact phone number")
    college_id: Optional[str] = Field(None, description="Campus identity number")
    location: Optional[str] = Field(None, description="Campus area or address")
    has_allergies: bool = Field(default=False, description="Donor-reported medical allergy flag")
    last_donation_date: Optional[date] = Field(None, description="Date of last recorded donation, kept across role changes")
    profile: RoleProfile
    
    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format. The address is stored as entered."""
        v = v.strip()
        if not re.match(EMAIL_PATTERN, v):
            raise ValueError('Invalid email format')
        return v
    
    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate user name."""
        if not v.strip():
            raise ValueError('User name cannot be empty')
        return v.strip()
    
    @property
    def role(self) -> str:
        return self.profile.role
    
    @property
    def is_donor(self) -> bool:
        return isinstance(self.profile, DonorProfile)
    
    @property
    def blood_group(self) -> Optional[str]:
        return self.profile.blood_group if self.is_donor else None
    
    @property
    def is_available(self) -> bool:
        """Effective availability: an allergy hold overrides the stored flag."""
        if not self.is_donor or self.has_allergies:
            return False
        return self.profile.is_available
    
    def matches_email(self, email: str) -> bool:
        """Case-insensitive email comparison."""
        return normalize_email(self.email) == normalize_email(email)


class BloodRequest(BaseEntity):
    """An open need for blood posted by a requester."""
    
    id: str = Field(default_factory=lambda: generate_id("req"), frozen=True, description="Unique identifier")
    requester_id: str = Field(..., description="User ID of the requester")
    requester_name: str = Field(..., description="Requester name snapshot at creation time")
    blood_group: BloodGroup = Field(..., description="Requested blood group")
    units: int = Field(..., ge=1, description="Units needed")
    hospital_name: str = Field(..., min_length=1, description="Hospital name")
    location: str = Field(default="", description="Display location")
    urgency: RequestUrgency = Field(default=RequestUrgency.NORMAL, description="Priority tier")
    description: str = Field(default="", max_length=2000, description="Free-text details")
    status: RequestStatus = Field(default=RequestStatus.OPEN, description="Lifecycle status")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    distance: Optional[str] = Field(None, description="Opaque display distance")
    fulfilled_by: Optional[str] = Field(None, description="Donor ID that accepted the request")
    fulfilled_at: Optional[datetime] = Field(None, description="Fulfillment timestamp")
    cancelled_at: Optional[datetime] = Field(None, description="Cancellation timestamp")
    ignored_by: List[str] = Field(default_factory=list, description="Donor IDs that hid this request")
    
    def is_open(self) -> bool:
        """Check if request still accepts donor responses."""
        return self.status == RequestStatus.OPEN
    
    def is_hidden_for(self, user_id: str) -> bool:
        return user_id in self.ignored_by


class HistoryItem(BaseEntity):
    """Immutable log entry of a donation or request event owned by one user."""
    
    model_config = ConfigDict(frozen=True)
    
    id: str = Field(default_factory=lambda: generate_time_id("hist"), description="Unique identifier")
    user_id: str = Field(..., description="Owning user ID")
    type: HistoryType = Field(..., description="Entry kind")
    date: CalendarDate = Field(..., description="Calendar date of the event")
    location: str = Field(default="", description="Where the event happened")
    units: int = Field(default=1, ge=1, description="Units donated or requested")
    status: str = Field(..., min_length=1, description="Outcome, e.g. Completed/Accepted/Open")


class DonationCenter(BaseEntity):
    """A hospital, clinic or camp where donors can give blood."""
    
    model_config = ConfigDict(frozen=True)
    
    id: str = Field(..., description="Catalogue identifier")
    name: str = Field(..., min_length=1, description="Center name")
    type: CenterType = Field(..., description="Venue kind")
    distance: str = Field(default="", description="Opaque display distance")
    open_hours: str = Field(default="", description="Opening hours, e.g. 24/7")
    address: str = Field(default="", description="Street address")
