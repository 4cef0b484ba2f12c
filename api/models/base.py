# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common configuration and id generation.
"""

import time
import uuid
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def generate_id(prefix: str) -> str:
    """Generate a new unique identifier with a readable prefix."""
    return f"{prefix}_{uuid.uuid4().hex}"


def generate_time_id(prefix: str) -> str:
    """Generate a time-based identifier (millisecond timestamp plus random suffix)."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class BaseEntity(BaseModel):
    """Base entity with the shared wire/storage configuration for all domain objects."""
    
    model_config = ConfigDict(
        # camelCase on the wire and in storage, snake_case in Python
        alias_generator=to_camel,
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        validate_default=True,
        validate_assignment=True
    )
    
    def to_document(self) -> dict:
        """Serialize to a JSON-compatible dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class BasePayload(BaseModel):
    """Base model for incoming create/update payloads."""
    
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        str_strip_whitespace=True
    )
