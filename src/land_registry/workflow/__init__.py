"""
land_registry.workflow

Transfer Workflow package.

Responsibilities:
- Per-parcel pending-transfer state machine on top of the registry client.
"""

# Package marker.
