# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Blood request endpoints: listing, posting and donor/requester actions.
"""

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
from pydantic import BaseModel, Field
from opentelemetry import trace
import logging

from middleware.error_handler import ValidationException
from middleware.validation import parse_json_body
from models.enums import RequestStatus
from models.requests import CreateBloodRequest, RequestActionPayload
from services.repository import LifecycleResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

requests_tag = Tag(name="Requests", description="Blood request lifecycle")
requests_bp = APIBlueprint(
    'blood_requests',
    __name__,
    url_prefix='/api/requests',
    abp_tags=[requests_tag]
)


class RequestPath(BaseModel):
    request_id: str = Field(..., description="Blood request ID")


def _lifecycle_response(result: LifecycleResult):
    body = {"request": result.request.to_document(), "changed": result.changed}
    if result.history_item is not None:
        body["historyItem"] = result.history_item.to_document()
    return jsonify(body), 200


@requests_bp.get('')
def list_requests():
    """List requests newest first, optionally hiding those the viewer ignored."""
    status = request.args.get('status')
    if status is not None and status not in {s.value for s in RequestStatus}:
        raise ValidationException(
            "Invalid status filter",
            [{"field": "status", "message": f"Unknown status '{status}'", "type": "enum"}]
        )
    
    items = current_app.repository.list_requests(
        viewer_id=request.args.get('viewer'),
        status=status
    )
    return jsonify({"items": [r.to_document() for r in items], "total": len(items)}), 200


@requests_bp.post('')
def create_request():
    """Post a new blood request."""
    draft = parse_json_body(CreateBloodRequest)
    created = current_app.repository.create_request(draft)
    return jsonify({"request": created.to_document()}), 201


@requests_bp.get('/<request_id>')
def get_request(path: RequestPath):
    blood_request = current_app.repository.get_request(path.request_id)
    return jsonify({"request": blood_request.to_document()}), 200


@requests_bp.post('/<request_id>/accept')
def accept_request(path: RequestPath):
    """Accept a request as a donor. Repeated accepts by the same donor are no-ops."""
    payload = parse_json_body(RequestActionPayload, allow_empty=True)
    result = current_app.repository.accept_request(path.request_id, payload.user_id)
    return _lifecycle_response(result)


@requests_bp.post('/<request_id>/ignore')
def ignore_request(path: RequestPath):
    """Hide a request from the acting donor's view."""
    payload = parse_json_body(RequestActionPayload, allow_empty=True)
    result = current_app.repository.ignore_request(path.request_id, payload.user_id)
    return _lifecycle_response(result)


@requests_bp.post('/<request_id>/cancel')
def cancel_request(path: RequestPath):
    """Cancel a request as its requester (or an admin)."""
    payload = parse_json_body(RequestActionPayload, allow_empty=True)
    result = current_app.repository.cancel_request(path.request_id, payload.user_id)
    return _lifecycle_response(result)
