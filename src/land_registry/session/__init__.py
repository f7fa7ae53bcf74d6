"""
land_registry.session

Session Manager package.

Responsibilities:
- Own the authenticate/deauthenticate lifecycle and the current (identity, roles) session.
"""

# Package marker.
