# SPDX-License-Identifier: Apache-2.0

"""
Donation center catalogue.

A fixed, read-only list of nearby venues and a case-insensitive search
over their names and types.
"""

from typing import List, Optional

from models.entities import DonationCenter
from models.enums import CenterType


def default_centers() -> List[DonationCenter]:
    """Venues listed in the center finder, nearest first."""
    return [
        DonationCenter(id="c1", name="University Medical Center", type=CenterType.HOSPITAL,
                       distance="0.5 km", open_hours="24/7", address="123 College Ave"),
        DonationCenter(id="c2", name="Red Cross Campus Hub", type=CenterType.DONATION_CAMP,
                       distance="1.2 km", open_hours="9 AM - 5 PM", address="Student Center, Block B"),
        DonationCenter(id="c3", name="City General Hospital", type=CenterType.HOSPITAL,
                       distance="3.5 km", open_hours="24/7", address="45 Main St, Downtown"),
        DonationCenter(id="c4", name="Community Health Clinic", type=CenterType.CLINIC,
                       distance="5.0 km", open_hours="8 AM - 8 PM", address="88 North Road"),
    ]


def search_centers(centers: List[DonationCenter], search_term: Optional[str]) -> List[DonationCenter]:
    """
    Search centers by name and type.
    
    Args:
        centers: Catalogue to search
        search_term: Substring matched case-insensitively; blank matches all
        
    Returns:
        Matching centers in catalogue order
    """
    if not search_term or not search_term.strip():
        return list(centers)
    
    search_lower = search_term.strip().lower()
    
    return [
        center for center in centers
        if search_lower in center.name.lower() or search_lower in center.type.lower()
    ]
