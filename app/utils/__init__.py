"""
Utility functions
"""

from app.utils.clock import utc_now

__all__ = ["utc_now"]
