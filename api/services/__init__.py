# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Persistence, session, repository and external integrations.
"""

from .store import (
    PersistentStore,
    MemoryStore,
    FileStore,
    StoreConfig,
    PersistenceReadFailure,
    PersistenceWriteFailure,
    create_store
)
from .session import SessionManager
from .repository import (
    BloodConnectRepository,
    LifecycleResult,
    RepositoryError,
    UserNotFound,
    DuplicateEmail,
    RequestNotFound,
    RequestNotOpen,
    NotRequestOwner,
    InvalidProfileUpdate,
    DonorNotEligible
)
from .assistant import AssistantService, AssistantConfig, create_assistant_service

__all__ = [
    "PersistentStore",
    "MemoryStore",
    "FileStore",
    "StoreConfig",
    "PersistenceReadFailure",
    "PersistenceWriteFailure",
    "create_store",
    "SessionManager",
    "BloodConnectRepository",
    "LifecycleResult",
    "RepositoryError",
    "UserNotFound",
    "DuplicateEmail",
    "RequestNotFound",
    "RequestNotOpen",
    "NotRequestOwner",
    "InvalidProfileUpdate",
    "DonorNotEligible",
    "AssistantService",
    "AssistantConfig",
    "create_assistant_service"
]
