"""API Routers package

Routers are organized by feature: the consent flow and role metadata.
"""

from . import linked_role_router, metadata_router

__all__ = [
    "linked_role_router",
    "metadata_router",
]
