# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling with structured JSON problem responses.
Provides centralized error handling and formatting for the Flask application.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from pydantic import ValidationError
from typing import Any, Dict, List, Optional, Tuple
from opentelemetry import trace
import logging
import traceback

from services.repository import (
    DonorNotEligible,
    DuplicateEmail,
    InvalidProfileUpdate,
    NotRequestOwner,
    RepositoryError,
    RequestNotFound,
    RequestNotOpen,
    UserNotFound
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

# Repository error -> (status code, error type, title)
REPOSITORY_ERRORS = {
    UserNotFound: (404, "user-not-found", "User Not Found"),
    RequestNotFound: (404, "request-not-found", "Blood Request Not Found"),
    DuplicateEmail: (409, "duplicate-email", "Email Already Registered"),
    RequestNotOpen: (409, "request-not-open", "Blood Request Not Open"),
    DonorNotEligible: (409, "donor-not-eligible", "Donor Not Eligible"),
    NotRequestOwner: (403, "insufficient-permissions", "Not Request Owner"),
    InvalidProfileUpdate: (400, "validation-error", "Invalid Profile Update"),
}


def build_error_response(
    error_type: str,
    title: str,
    status: int,
    detail: str,
    instance: str,
    errors: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """Build a problem-details style error body."""
    body = {
        "type": error_type,
        "title": title,
        "status": status,
        "detail": detail,
        "instance": instance
    }
    if errors:
        body["errors"] = errors
    return body


class CustomException(Exception):
    """Base class for custom application exceptions."""
    
    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Exception for validation errors."""
    
    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class AuthenticationException(CustomException):
    """Exception for authentication errors."""
    
    def __init__(self, message: str):
        super().__init__(message, 401, "authentication-required")


class ErrorHandlerMiddleware:
    """Centralized error handling with JSON problem responses."""
    
    def __init__(self, app: Flask):
        self.app = app
        self.register_error_handlers()
    
    def register_error_handlers(self):
        """Register error handlers with Flask application."""
        
        @self.app.errorhandler(CustomException)
        def handle_custom_exception(error: CustomException):
            return self.handle_custom_exception(error)
        
        @self.app.errorhandler(RepositoryError)
        def handle_repository_error(error: RepositoryError):
            return self.handle_repository_error(error)
        
        @self.app.errorhandler(ValidationError)
        def handle_pydantic_error(error: ValidationError):
            from middleware.validation import format_validation_errors
            return self.handle_custom_exception(
                ValidationException("Request validation failed", format_validation_errors(error))
            )
        
        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error: HTTPException):
            if error.code and error.code >= 500:
                return self.handle_server_error(error)
            return self.handle_client_error(error)
        
        # Handle generic exceptions
        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)
    
    def handle_client_error(self, error: HTTPException) -> Tuple[Any, int]:
        """
        Handle client errors (4xx status codes).
        
        Args:
            error: HTTP exception
            
        Returns:
            Tuple of (JSON response, status code)
        """
        with tracer.start_as_current_span("error_handler.client_error") as span:
            error_type = (error.name or "client-error").lower().replace(" ", "-")
            span.set_attributes({
                "error.type": error_type,
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })
            
            detail = str(error.description) if error.description else error.name
            logger.warning(
                f"Client error: {error.name}",
                extra={
                    "error_type": error_type,
                    "status_code": error.code,
                    "path": request.path,
                    "method": request.method
                }
            )
            
            return jsonify(build_error_response(
                error_type, error.name, error.code, detail, request.path
            )), error.code
    
    def handle_server_error(self, error: HTTPException) -> Tuple[Any, int]:
        """Handle server errors (5xx status codes)."""
        with tracer.start_as_current_span("error_handler.server_error") as span:
            span.set_attributes({
                "error.type": "server-error",
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })
            
            logger.error(
                f"Server error: {error.name}",
                extra={"status_code": error.code, "path": request.path, "method": request.method},
                exc_info=True
            )
            
            detail = str(error.description) if error.description else error.name
            # Don't expose internal error details in production
            if self.app.config.get('ENVIRONMENT') == 'production':
                detail = "An internal server error occurred"
            
            return jsonify(build_error_response(
                "server-error", error.name, error.code, detail, request.path
            )), error.code
    
    def handle_custom_exception(self, error: CustomException) -> Tuple[Any, int]:
        """Handle application exceptions raised by routes."""
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })
            
            logger.warning(
                f"Custom exception: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "detail": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )
            
            errors = error.validation_errors if isinstance(error, ValidationException) else None
            title = error.error_type.replace("-", " ").title()
            return jsonify(build_error_response(
                error.error_type, title, error.status_code, error.message, request.path, errors
            )), error.status_code
    
    def handle_repository_error(self, error: RepositoryError) -> Tuple[Any, int]:
        """Translate entity-level failures into client errors."""
        status, error_type, title = next(
            (value for cls, value in REPOSITORY_ERRORS.items() if isinstance(error, cls)),
            (400, "application-error", "Request Failed")
        )
        
        with tracer.start_as_current_span("error_handler.repository_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": status,
                "error.class": error.__class__.__name__,
                "http.path": request.path
            })
            
            logger.warning(
                f"Repository error: {error.__class__.__name__}",
                extra={"error_type": error_type, "status_code": status, "detail": error.message, "path": request.path}
            )
            
            body = build_error_response(error_type, title, status, error.message, request.path)
            if isinstance(error, DonorNotEligible) and error.eligibility is not None:
                body["eligibility"] = error.eligibility.to_dict()
            return jsonify(body), status
    
    def handle_unexpected_error(self, error: Exception) -> Tuple[Any, int]:
        """
        Handle unexpected exceptions not caught by specific handlers.
        
        Args:
            error: Unexpected exception
            
        Returns:
            Tuple of (JSON response, status code)
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            
            # Record exception in span
            span.record_exception(error)
            
            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method,
                    "traceback": traceback.format_exc()
                },
                exc_info=True
            )
            
            # Don't expose internal error details
            detail = "An unexpected error occurred"
            if self.app.config.get('ENVIRONMENT') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"
            
            return jsonify(build_error_response(
                "unexpected-error", "Internal Server Error", 500, detail, request.path
            )), 500
