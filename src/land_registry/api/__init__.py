"""
land_registry.api

API package for the reference registry service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring, error translation and certified responses.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer stays thin: request validation + identity + delegation to `RegistryService`.
