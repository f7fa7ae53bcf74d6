"""
land_registry.connection

Connection Bootstrap package.

Responsibilities:
- Build network clients bound to a caller identity (or anonymous).
- Decide root-of-trust handling per environment (fetched in development, pinned in production).
"""

# Package marker.
