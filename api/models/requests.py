# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for repository operations and API endpoints.
"""

from datetime import date
from datetime import date as CalendarDate
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, Field, field_validator, model_validator
from .base import BasePayload
from .entities import (
    AdminProfile,
    DonorProfile,
    EMAIL_PATTERN,
    RequesterProfile,
    normalize_email
)
from .enums import BloodGroup, HistoryType, RequestUrgency, UserRole

# Only donors may set these; the first two live in DonorProfile
DONOR_FIELDS = ("blood_group", "is_available", "last_donation_date")
PROFILE_FIELDS = ("blood_group", "is_available")
USER_FIELDS = ("name", "email", "phone", "college_id", "location", "has_allergies", "last_donation_date")
NON_NULLABLE_FIELDS = ("name", "email", "phone", "has_allergies", "blood_group", "is_available")


def _validate_email(v: str) -> str:
    import re
    v = v.strip()
    if not re.match(EMAIL_PATTERN, v):
        raise ValueError('Invalid email format')
    return v


def build_profile(role: str, blood_group: Optional[str] = None, is_available: Optional[bool] = None):
    """Build the role-tagged profile payload for a user."""
    if role == UserRole.DONOR.value:
        if blood_group is None:
            raise ValueError('Blood group is required for donors')
        return DonorProfile(
            blood_group=blood_group,
            is_available=True if is_available is None else is_available
        )
    if role == UserRole.ADMIN.value:
        return AdminProfile()
    return RequesterProfile()


class LoginRequest(BasePayload):
    """Request model for login. The password is accepted but not verified."""
    
    email: str = Field(..., description="User email address")
    password: Optional[str] = Field(None, description="Ignored")
    
    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)


class RegisterUserRequest(BasePayload):
    """Request model for registering a new user."""
    
    name: str = Field(..., min_length=1, max_length=200, description="Full name")
    email: str = Field(..., description="User email address")
    phone: str = Field(default="", description="Contact phone number")
    role: UserRole = Field(..., description="Requested role")
    blood_group: Optional[BloodGroup] = Field(None, description="Required for donors only")
    is_available: Optional[bool] = Field(None, description="Donors only")
    last_donation_date: Optional[date] = Field(None, description="Donors only")
    college_id: Optional[str] = Field(None, description="Campus identity number")
    location: Optional[str] = Field(None, description="Campus area")
    has_allergies: bool = Field(default=False, description="Medical allergy flag")
    password: Optional[str] = Field(None, description="Ignored")
    
    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        return _validate_email(v)
    
    @model_validator(mode='after')
    def validate_role_fields(self):
        """Donor-only attributes are rejected for other roles."""
        if self.role == UserRole.DONOR.value:
            if self.blood_group is None:
                raise ValueError('Blood group is required for donors')
        else:
            present = [name for name in DONOR_FIELDS if getattr(self, name) is not None]
            if present:
                raise ValueError(f'Fields only valid for donors: {", ".join(present)}')
        return self
    
    def user_fields(self) -> Dict[str, Any]:
        """Fields that belong to the User record itself."""
        return {name: getattr(self, name) for name in USER_FIELDS}
    
    def to_profile(self):
        return build_profile(self.role, self.blood_group, self.is_available)


class UpdateProfileRequest(BasePayload):
    """Partial profile update. Only explicitly provided fields are merged."""
    
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = Field(None)
    phone: Optional[str] = Field(None)
    college_id: Optional[str] = Field(None)
    location: Optional[str] = Field(None)
    has_allergies: Optional[bool] = Field(None)
    blood_group: Optional[BloodGroup] = Field(None)
    is_available: Optional[bool] = Field(None)
    last_donation_date: Optional[date] = Field(None)
    
    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v is None:
            return v
        return _validate_email(v)
    
    @model_validator(mode='after')
    def validate_not_null(self):
        """Reject explicit nulls for fields that cannot be unset."""
        for name in NON_NULLABLE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"Field '{name}' cannot be null")
        return self
    
    def user_changes(self) -> Dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in USER_FIELDS
            if name in self.model_fields_set
        }
    
    def donor_changes(self) -> Dict[str, Any]:
        """Changes to the donor profile payload."""
        return {
            name: getattr(self, name)
            for name in PROFILE_FIELDS
            if name in self.model_fields_set
        }
    
    def donor_only_fields(self) -> List[str]:
        return [name for name in DONOR_FIELDS if name in self.model_fields_set]


class SwitchRoleRequest(BasePayload):
    """Request model for switching a user's role."""
    
    role: UserRole = Field(..., description="Target role")
    blood_group: Optional[BloodGroup] = Field(None, description="Required when switching to donor")


class CreateBloodRequest(BasePayload):
    """Request model for posting a blood request."""
    
    requester_id: Optional[str] = Field(None, description="Defaults to the session user")
    blood_group: BloodGroup = Field(..., description="Requested blood group")
    units: int = Field(..., ge=1, le=20, description="Units needed")
    hospital_name: str = Field(..., min_length=1, max_length=200, description="Hospital name")
    location: str = Field(default="Current Location", max_length=200, description="Display location")
    urgency: RequestUrgency = Field(default=RequestUrgency.NORMAL, description="Priority tier")
    description: str = Field(default="", max_length=2000, description="Free-text details")


class AddHistoryItemRequest(BasePayload):
    """Request model for appending a history entry."""
    
    user_id: str = Field(..., min_length=1, description="Owning user ID")
    type: HistoryType = Field(..., description="Entry kind")
    date: Optional[CalendarDate] = Field(None, description="Event date, defaults to today")
    location: str = Field(default="", description="Where the event happened")
    units: int = Field(default=1, ge=1, description="Units")
    status: str = Field(..., min_length=1, description="Outcome")


class RequestActionPayload(BasePayload):
    """Acting user for accept/ignore/cancel. Falls back to the session user."""
    
    user_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("userId", "donorId", "user_id", "donor_id")
    )


class ComposeMessageRequest(BasePayload):
    """Request model for drafting an emergency message."""
    
    blood_group: BloodGroup
    hospital_name: str = Field(..., min_length=1)
    urgency: RequestUrgency = RequestUrgency.NORMAL
    units: int = Field(default=1, ge=1)


class AskQuestionRequest(BasePayload):
    """Request model for FAQ-style assistant questions."""
    
    question: str = Field(..., min_length=1, max_length=1000)
