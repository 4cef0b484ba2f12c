# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
User profile, eligibility and history endpoints.
"""

from datetime import date

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
from pydantic import BaseModel, Field
import logging

from middleware.error_handler import ValidationException
from middleware.validation import parse_json_body
from models.requests import AddHistoryItemRequest, SwitchRoleRequest, UpdateProfileRequest
from routes import user_response

logger = logging.getLogger(__name__)

users_tag = Tag(name="Users", description="Profiles, eligibility and history")
users_bp = APIBlueprint(
    'users',
    __name__,
    url_prefix='/api/users',
    abp_tags=[users_tag]
)


class UserPath(BaseModel):
    user_id: str = Field(..., description="User ID")


@users_bp.get('/<user_id>')
def get_user(path: UserPath):
    user = current_app.repository.get_user(path.user_id)
    return jsonify({"user": user_response(user)}), 200


@users_bp.patch('/<user_id>')
def update_profile(path: UserPath):
    """Merge the provided fields into the user's profile."""
    partial = parse_json_body(UpdateProfileRequest)
    user = current_app.repository.update_user_profile(path.user_id, partial)
    return jsonify({"user": user_response(user)}), 200


@users_bp.post('/<user_id>/role')
def switch_role(path: UserPath):
    payload = parse_json_body(SwitchRoleRequest)
    user = current_app.repository.switch_role(path.user_id, payload.role, payload.blood_group)
    return jsonify({"user": user_response(user)}), 200


@users_bp.get('/<user_id>/eligibility')
def get_eligibility(path: UserPath):
    """Eligibility on `?on=YYYY-MM-DD` (defaults to today)."""
    on = request.args.get('on')
    try:
        today = date.fromisoformat(on) if on else None
    except ValueError:
        raise ValidationException(
            "Invalid date",
            [{"field": "on", "message": "Expected YYYY-MM-DD", "type": "date_parsing"}]
        )
    
    result = current_app.repository.eligibility_for(path.user_id, today)
    return jsonify({"userId": path.user_id, "eligibility": result.to_dict()}), 200


@users_bp.get('/<user_id>/history')
def list_history(path: UserPath):
    items = current_app.repository.list_history(path.user_id)
    return jsonify({"items": [h.to_document() for h in items], "total": len(items)}), 200


@users_bp.post('/<user_id>/history')
def add_history_item(path: UserPath):
    """Append a history entry for the user in the path."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationException("Request body must be a JSON object")
    # The path decides ownership
    draft = AddHistoryItemRequest.model_validate({**body, "userId": path.user_id})
    entry = current_app.repository.add_history_item(draft)
    return jsonify({"historyItem": entry.to_document()}), 201
