"""
Users service package: registration, login, profiles and password resets.
"""

from .routers import router

__all__ = ["router"]
