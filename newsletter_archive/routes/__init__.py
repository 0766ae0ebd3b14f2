"""
API route modules.
"""

from .issues import router as issues_router
from .feeds import router as feeds_router
from .subscriptions import router as subscriptions_router
from .ingestion import router as ingestion_router
from .misc import router as misc_router

__all__ = [
    "issues_router",
    "feeds_router",
    "subscriptions_router",
    "ingestion_router",
    "misc_router",
]
