"""
API routers.
"""
from .health import router as health_router
from .onboarding import router as onboarding_router

__all__ = ["health_router", "onboarding_router"]
