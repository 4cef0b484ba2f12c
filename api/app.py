"""
Campus Blood Connect API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support and
wires the single repository instance, the assistant client and the
middleware together.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from observability.config import setup_observability
from observability.middleware import add_observability_middleware
from domain.centers import default_centers
from middleware.error_handler import ErrorHandlerMiddleware
from services.assistant import AssistantService, create_assistant_service
from services.repository import BloodConnectRepository
from services.store import create_store

info = Info(
    title="Campus Blood Connect API",
    version="1.0.0",
    description="Campus blood donation coordination: donors, requests and donation history"
)

tags = [
    Tag(name="Health", description="System health and status")
]


def load_config() -> Dict[str, Any]:
    """Read application configuration from the environment."""
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'SEED_DATA': os.getenv('CBC_SEED_DATA', 'true').lower() == 'true',
        'OTEL_ENABLED': os.getenv('OTEL_ENABLED', 'true').lower() == 'true',
    }


def create_app(
    repository: Optional[BloodConnectRepository] = None,
    assistant: Optional[AssistantService] = None,
    config: Optional[Dict[str, Any]] = None
) -> OpenAPI:
    """
    Build the application.
    
    The repository is created once here (or injected) and shared by every
    request through `current_app.repository`.
    
    Args:
        repository: Pre-built repository (tests); created from the environment if omitted
        assistant: Pre-built assistant client
        config: Overrides for app.config
        
    Returns:
        Configured OpenAPI (Flask) application
    """
    settings = {**load_config(), **(config or {})}
    
    setup_observability()
    
    app = OpenAPI(__name__, info=info)
    app.config.update(settings)
    
    if repository is None:
        repository = BloodConnectRepository(create_store(), seed=settings['SEED_DATA'])
        repository.restore_session()
    
    app.repository = repository
    app.assistant = assistant or create_assistant_service()
    app.centers = default_centers()
    
    add_observability_middleware(app)
    ErrorHandlerMiddleware(app)
    
    from routes.auth import auth_bp
    from routes.blood_requests import requests_bp
    from routes.users import users_bp
    from routes.assistant import assistant_bp
    from routes.centers import centers_bp
    
    app.register_api(auth_bp)
    app.register_api(requests_bp)
    app.register_api(users_bp)
    app.register_api(assistant_bp)
    app.register_api(centers_bp)
    
    @app.get('/api/healthz', tags=[tags[0]])
    def health_check():
        """Store availability and durability status."""
        store_health = app.repository.health()
        healthy = store_health['available'] and store_health['durable']
        return jsonify({
            "status": "healthy" if healthy else "degraded",
            "service": "campus-blood-connect",
            "version": info.version,
            "environment": app.config['ENVIRONMENT'],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "store": store_health
        }), 200
    
    return app


if __name__ == '__main__':
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
