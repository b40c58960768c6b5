"""Routes module for plan and domain API endpoints."""

from .domains import domains_bp
from .plans import plans_bp

__all__ = [
    "domains_bp",
    "plans_bp",
]
