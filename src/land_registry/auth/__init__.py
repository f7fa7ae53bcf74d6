"""
land_registry.auth

Authentication/authorization package.

Responsibilities:
- Principal identity, roles, session values and the authorization gate.
- Identity provider boundary and identity-token helpers.
- FastAPI auth dependencies for the reference registry (Principal + RBAC).
"""

# Package marker.
