"""
Onboarding module - six-step school setup wizard that provisions a tenant.
"""

from .router import router

__all__ = ["router"]
