"""
land_registry.services

Service layer of the reference registry.

Responsibilities:
- Own database transactions and enforce registry rules atomically.
"""
