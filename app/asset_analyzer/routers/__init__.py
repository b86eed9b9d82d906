"""
Routers package for FastAPI endpoints.

Organized by domain:
- session: File selection, analysis, sorted results and category counts
- reports: PDF report export
"""

from . import reports, session

__all__ = ["reports", "session"]
