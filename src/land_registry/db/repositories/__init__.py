"""
land_registry.db.repositories

Repository package.

Responsibilities:
- Group data-access repositories for the reference registry's persistence layer.
"""

# Package marker; repositories are imported directly from submodules.


# --- Module Notes -----------------------------------------------------------
# Repositories stay thin: they flush, never commit. Rules and transactions belong in services.
