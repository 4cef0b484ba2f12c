# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for Campus Blood Connect.
"""

# Base models
from .base import BaseEntity, BasePayload, generate_id, generate_time_id

# Enumerations
from .enums import (
    BloodGroup,
    UserRole,
    RequestUrgency,
    RequestStatus,
    HistoryType,
    CenterType
)

# Core entities
from .entities import (
    User,
    DonorProfile,
    RequesterProfile,
    AdminProfile,
    BloodRequest,
    HistoryItem,
    DonationCenter
)

# Request models
from .requests import (
    LoginRequest,
    RegisterUserRequest,
    UpdateProfileRequest,
    SwitchRoleRequest,
    CreateBloodRequest,
    AddHistoryItemRequest,
    RequestActionPayload,
    ComposeMessageRequest,
    AskQuestionRequest
)

__all__ = [
    # Base models
    "BaseEntity",
    "BasePayload",
    "generate_id",
    "generate_time_id",
    
    # Enumerations
    "BloodGroup",
    "UserRole",
    "RequestUrgency",
    "RequestStatus",
    "HistoryType",
    "CenterType",
    
    # Core entities
    "User",
    "DonorProfile",
    "RequesterProfile",
    "AdminProfile",
    "BloodRequest",
    "HistoryItem",
    "DonationCenter",
    
    # Request models
    "LoginRequest",
    "RegisterUserRequest",
    "UpdateProfileRequest",
    "SwitchRoleRequest",
    "CreateBloodRequest",
    "AddHistoryItemRequest",
    "RequestActionPayload",
    "ComposeMessageRequest",
    "AskQuestionRequest"
]
