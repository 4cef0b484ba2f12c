# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import datetime, timezone
from unittest.mock import Mock

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'

from services.assistant import AssistantService
from services.repository import BloodConnectRepository
from services.store import MemoryStore

FIXED_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Fixed clock for deterministic dates."""
    return lambda: FIXED_NOW


@pytest.fixture
def memory_store():
    """Empty in-memory store without retry delays."""
    return MemoryStore(max_retries=1, retry_delay=0)


@pytest.fixture
def repository(memory_store, clock):
    """Repository over an empty store, no demo data."""
    return BloodConnectRepository(memory_store, seed=False, clock=clock)


@pytest.fixture
def seeded_repository(clock):
    """Repository with the demo data set."""
    return BloodConnectRepository(MemoryStore(retry_delay=0), seed=True, clock=clock)


@pytest.fixture
def donor_data():
    """Sample donor registration payload."""
    return {
        "name": "Alex Donor",
        "email": "Alex.Donor@College.edu",
        "phone": "555-0200",
        "role": "DONOR",
        "bloodGroup": "O-",
        "collegeId": "STU-2024-100",
        "location": "South Campus"
    }


@pytest.fixture
def requester_data():
    """Sample requester registration payload."""
    return {
        "name": "Riley Requester",
        "email": "riley@college.edu",
        "phone": "555-0300",
        "role": "REQUESTER",
        "collegeId": "STU-2024-200"
    }


@pytest.fixture
def request_draft():
    """Sample blood request draft (requester filled in by tests)."""
    return {
        "bloodGroup": "O-",
        "units": 2,
        "hospitalName": "City General Hospital",
        "location": "Downtown",
        "urgency": "Critical",
        "description": "Surgery tomorrow morning."
    }


@pytest.fixture
def mock_assistant():
    """Assistant double returning canned text."""
    assistant = Mock(spec=AssistantService)
    assistant.compose_emergency_message.return_value = "O- needed at City General"
    assistant.answer_question.return_value = "Wait 56 days between whole-blood donations."
    return assistant


@pytest.fixture
def app(repository, mock_assistant):
    """Flask application wired to the test repository."""
    from app import create_app
    application = create_app(
        repository=repository,
        assistant=mock_assistant,
        config={'TESTING': True}
    )
    return application


@pytest.fixture
def client(app):
    """Create test client."""
    with app.test_client() as client:
        yield client
