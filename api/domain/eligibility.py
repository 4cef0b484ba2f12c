# SPDX-License-Identifier: Apache-2.0

"""
Donor eligibility rules.

Pure functions computing a donor's next eligible date and medical hold
status from profile fields. No persisted state.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

DONATION_COOLDOWN_DAYS = 56

MEDICAL_HOLD = "Medical Hold"
ELIGIBLE_TODAY = "You can donate today!"

DateLike = Union[date, datetime, str]


@dataclass(frozen=True)
class EligibilityResult:
    """Outcome of an eligibility check."""
    is_eligible: bool
    days_remaining: int
    reason: str
    next_eligible_date: Optional[date] = None
    
    @property
    def on_medical_hold(self) -> bool:
        return self.reason == MEDICAL_HOLD
    
    def to_dict(self) -> dict:
        return {
            "isEligible": self.is_eligible,
            "daysRemaining": self.days_remaining,
            "reason": self.reason,
            "nextEligibleDate": self.next_eligible_date.isoformat() if self.next_eligible_date else None
        }


def to_date(value: DateLike) -> date:
    """
    Coerce a date, datetime or ISO string to a calendar date.
    
    Args:
        value: Date-like value
        
    Returns:
        Calendar date (time of day discarded)
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if "T" in value:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return date.fromisoformat(value)


def next_eligible_date(last_donation_date: DateLike) -> date:
    """Date on which the cooldown after the given donation ends."""
    return to_date(last_donation_date) + timedelta(days=DONATION_COOLDOWN_DAYS)


def calculate_eligibility(
    has_allergies: bool,
    last_donation_date: Optional[DateLike],
    today: Optional[DateLike] = None
) -> EligibilityResult:
    """
    Compute donor eligibility.
    
    An allergy hold always wins. Without a recorded donation the donor is
    eligible immediately. Otherwise the donor becomes eligible on
    last donation + 56 days; before that the remaining days are rounded up.
    
    Args:
        has_allergies: Donor-reported allergy flag
        last_donation_date: Date of last donation, if any
        today: Reference date (defaults to the current local date)
        
    Returns:
        EligibilityResult
    """
    if has_allergies:
        return EligibilityResult(is_eligible=False, days_remaining=0, reason=MEDICAL_HOLD)
    
    current = to_date(today) if today is not None else date.today()
    
    if last_donation_date is None:
        return EligibilityResult(
            is_eligible=True,
            days_remaining=0,
            reason=ELIGIBLE_TODAY,
            next_eligible_date=current
        )
    
    next_date = next_eligible_date(last_donation_date)
    days = math.ceil((next_date - current) / timedelta(days=1))
    
    if days <= 0:
        return EligibilityResult(
            is_eligible=True,
            days_remaining=0,
            reason=ELIGIBLE_TODAY,
            next_eligible_date=next_date
        )
    
    return EligibilityResult(
        is_eligible=False,
        days_remaining=days,
        reason=f"Eligible in {days} days",
        next_eligible_date=next_date
    )
