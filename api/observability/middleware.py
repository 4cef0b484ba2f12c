"""
Observability Middleware

Flask middleware adding OpenTelemetry instrumentation, request logging and
the persistence durability header to every response.
"""

import time
import logging
from flask import Flask, current_app, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

PERSISTENCE_WARNING_HEADER = 'X-Persistence-Warning'


def add_observability_middleware(app: Flask):
    """Add OpenTelemetry instrumentation and request logging to Flask app."""
    
    # Auto-instrument Flask
    FlaskInstrumentor().instrument_app(app)
    
    logger = logging.getLogger(__name__)
    
    @app.before_request
    def before_request():
        """Start timing and capture the trace id."""
        g.start_time = time.time()
        g.trace_id = None
        
        span = trace.get_current_span()
        if span.is_recording():
            g.trace_id = format(span.get_span_context().trace_id, "032x")
    
    @app.after_request
    def after_request(response):
        """Log request completion and flag responses served without durable storage."""
        duration_ms = (time.time() - g.get('start_time', time.time())) * 1000
        
        span = trace.get_current_span()
        if span.is_recording():
            span.set_attributes({
                "http.status_code": response.status_code,
                "http.duration_ms": round(duration_ms, 2)
            })
        
        repository = getattr(current_app, 'repository', None)
        if repository is not None and not repository.is_durable():
            tables = ",".join(repository.dirty_tables())
            response.headers[PERSISTENCE_WARNING_HEADER] = f"durability-not-guaranteed; tables={tables}"
        
        logger.info(
            "HTTP request completed",
            extra={
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "trace_id": g.get('trace_id')
            }
        )
        
        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id
        
        return response
