"""API Routes module"""
from fastapi import APIRouter

from .tickets import router as tickets_router
from .functionalities import router as functionalities_router
from .employees import router as employees_router

# Main API router
api_router = APIRouter()

api_router.include_router(tickets_router, tags=["Tickets"])
api_router.include_router(functionalities_router, prefix="/functionalities", tags=["Functionalities"])
api_router.include_router(employees_router, prefix="/employees", tags=["Employees"])

__all__ = ["api_router"]
