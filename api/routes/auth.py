# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Session endpoints for login, registration and logout.

Only the email is checked on login; passwords are accepted but not verified.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from middleware.error_handler import AuthenticationException
from middleware.validation import parse_json_body
from models.requests import LoginRequest, RegisterUserRequest
from routes import user_response

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

auth_tag = Tag(name="Authentication", description="Login, registration and session")
auth_bp = APIBlueprint(
    'auth',
    __name__,
    url_prefix='/api/auth',
    abp_tags=[auth_tag]
)


@auth_bp.post('/login')
def login():
    """Log in by email and establish the session."""
    payload = parse_json_body(LoginRequest)
    user = current_app.repository.login(payload.email, payload.password)
    return jsonify({"user": user_response(user)}), 200


@auth_bp.post('/register')
def register():
    """Register a new user. Registration also logs the user in."""
    payload = parse_json_body(RegisterUserRequest)
    user = current_app.repository.register(payload)
    return jsonify({"user": user_response(user)}), 201


@auth_bp.post('/logout')
def logout():
    """Clear the current session."""
    current_app.repository.logout()
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get('/me')
def me():
    """Return the current session user."""
    user = current_app.repository.current_user()
    if user is None:
        raise AuthenticationException("No active session")
    return jsonify({"user": user_response(user)}), 200
