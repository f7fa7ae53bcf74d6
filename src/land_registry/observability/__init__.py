"""
land_registry.observability

Observability package.

Responsibilities:
- Structured logging configuration (structlog).
- Request-scoped logging context for the reference registry service.
"""

# Package marker.
