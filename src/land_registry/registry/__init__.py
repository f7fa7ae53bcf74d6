"""
land_registry.registry

Registry boundary package.

Responsibilities:
- Wire schemas shared by the registry client and the reference registry service.
- Typed client facade over the registry's query/update operations.
"""

# Package marker.
