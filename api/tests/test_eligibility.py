# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for donor eligibility rules.
"""

import pytest
from datetime import date, datetime, timedelta

from domain.eligibility import (
    DONATION_COOLDOWN_DAYS,
    ELIGIBLE_TODAY,
    MEDICAL_HOLD,
    calculate_eligibility,
    next_eligible_date,
    to_date
)

LAST_DONATION = date(2024, 1, 1)


class TestCooldownBoundary:
    """Test the 56-day cooldown window."""
    
    def test_cooldown_constant(self):
        assert DONATION_COOLDOWN_DAYS == 56
    
    def test_one_day_before_boundary(self):
        """Day 55 after donation still has one day remaining."""
        result = calculate_eligibility(False, LAST_DONATION, LAST_DONATION + timedelta(days=55))
        
        assert result.is_eligible is False
        assert result.days_remaining == 1
        assert result.reason == "Eligible in 1 days"
    
    def test_on_boundary_day(self):
        result = calculate_eligibility(False, LAST_DONATION, LAST_DONATION + timedelta(days=56))
        
        assert result.is_eligible is True
        assert result.days_remaining == 0
        assert result.reason == ELIGIBLE_TODAY
    
    def test_after_boundary_day(self):
        result = calculate_eligibility(False, LAST_DONATION, LAST_DONATION + timedelta(days=57))
        
        assert result.is_eligible is True
        assert result.days_remaining == 0
    
    def test_day_of_donation(self):
        result = calculate_eligibility(False, LAST_DONATION, LAST_DONATION)
        
        assert result.is_eligible is False
        assert result.days_remaining == 56
        assert result.next_eligible_date == date(2024, 2, 26)
    
    def test_no_donation_recorded(self):
        result = calculate_eligibility(False, None, date(2024, 5, 1))
        
        assert result.is_eligible is True
        assert result.days_remaining == 0
        assert result.next_eligible_date == date(2024, 5, 1)


class TestMedicalHold:
    """Allergies force ineligibility regardless of donation history."""
    
    @pytest.mark.parametrize("last_donation", [None, date(2020, 1, 1), LAST_DONATION])
    def test_allergies_never_eligible(self, last_donation):
        result = calculate_eligibility(True, last_donation, date(2024, 6, 1))
        
        assert result.is_eligible is False
        assert result.days_remaining == 0
        assert result.reason == MEDICAL_HOLD
        assert result.on_medical_hold


class TestDateCoercion:
    """Test accepted date inputs."""
    
    def test_iso_strings(self):
        result = calculate_eligibility(False, "2024-01-01", "2024-02-25")
        assert result.days_remaining == 1
    
    def test_datetime_uses_calendar_date(self):
        """Time of day never shortens the window."""
        late = datetime(2024, 2, 25, 23, 59)
        result = calculate_eligibility(False, datetime(2024, 1, 1, 0, 1), late)
        assert result.days_remaining == 1
    
    def test_iso_timestamp_string(self):
        assert to_date("2023-10-15T08:30:00.000Z") == date(2023, 10, 15)
    
    def test_next_eligible_date(self):
        assert next_eligible_date(date(2023, 10, 15)) == date(2023, 12, 10)
    
    def test_to_dict(self):
        payload = calculate_eligibility(False, LAST_DONATION, date(2024, 2, 1)).to_dict()
        
        assert payload == {
            "isEligible": False,
            "daysRemaining": 25,
            "reason": "Eligible in 25 days",
            "nextEligibleDate": "2024-02-26"
        }
