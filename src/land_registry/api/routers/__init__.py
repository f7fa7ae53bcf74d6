"""
land_registry.api.routers

Router modules of the reference registry, one per resource.
"""
