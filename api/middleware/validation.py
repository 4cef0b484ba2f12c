# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request body validation using Pydantic models.
"""

from typing import Any, Dict, List, Type, TypeVar
from flask import request
from pydantic import BaseModel, ValidationError
from opentelemetry import trace
import logging

from middleware.error_handler import ValidationException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def format_validation_errors(validation_error: ValidationError) -> List[Dict[str, Any]]:
    """
    Format Pydantic validation errors for API response.
    
    Args:
        validation_error: Pydantic ValidationError
        
    Returns:
        List of formatted error dictionaries
    """
    errors = []
    
    for error in validation_error.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field_path or "body",
            "message": error["msg"],
            "type": error["type"]
        })
    
    return errors


def parse_json_body(model_class: Type[ModelT], allow_empty: bool = False) -> ModelT:
    """
    Validate the current request's JSON body against a Pydantic model.
    
    Args:
        model_class: Pydantic model class for validation
        allow_empty: Treat a missing body as an empty object
        
    Returns:
        Validated model instance
        
    Raises:
        ValidationException: If the body is missing, not JSON, or invalid
    """
    with tracer.start_as_current_span("validation.parse_json_body") as span:
        span.set_attributes({
            "validation.model": model_class.__name__,
            "http.method": request.method,
            "http.path": request.path
        })
        
        json_data = request.get_json(silent=True)
        if json_data is None:
            if not allow_empty:
                span.set_attribute("validation.result", "invalid_json")
                raise ValidationException(
                    "Request body must be a JSON object",
                    [{"field": "body", "message": "Expected application/json", "type": "json_error"}]
                )
            json_data = {}
        
        if not isinstance(json_data, dict):
            span.set_attribute("validation.result", "invalid_json")
            raise ValidationException(
                "Request body must be a JSON object",
                [{"field": "body", "message": "Expected an object", "type": "json_error"}]
            )
        
        try:
            validated = model_class.model_validate(json_data)
        except ValidationError as e:
            span.set_attribute("validation.result", "validation_error")
            logger.debug(f"Validation failed for {model_class.__name__}: {e.error_count()} error(s)")
            raise ValidationException("Request validation failed", format_validation_errors(e))
        
        span.set_attribute("validation.result", "success")
        return validated
