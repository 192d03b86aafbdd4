# FILE: app/endpoints/__init__.py
"""
Endpoint routers for the tutor API.
"""

from fastapi import APIRouter

from .student import router as student_router

# Combined router for all endpoints
router = APIRouter()
router.include_router(student_router)

__all__ = [
    "router",
    "student_router",
]
