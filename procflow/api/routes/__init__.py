"""API Routes module"""
from fastapi import APIRouter

from .workflows import router as workflows_router
from .processes import router as processes_router

# Main API router
api_router = APIRouter()

api_router.include_router(workflows_router, prefix="/workflows", tags=["Workflows"])
api_router.include_router(processes_router, prefix="/processes", tags=["Processes"])

__all__ = ["api_router"]
