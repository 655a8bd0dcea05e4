"""
API v1 package.

Contains versioned API routes for registration codes and holder onboarding.
"""

from src.api.v1.routes import router

__all__ = ["router"]
