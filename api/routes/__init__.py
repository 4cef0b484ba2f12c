# SPDX-License-Identifier: Apache-2.0

"""
HTTP route blueprints.
"""

from typing import Any, Dict

from models.entities import User


def user_response(user: User) -> Dict[str, Any]:
    """Serialize a user with its role and effective availability at the top level."""
    body = user.to_document()
    body["role"] = user.role
    body["isActiveDonor"] = user.is_available
    return body
