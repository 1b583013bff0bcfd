"""
Ticket Routes Module

- crud.py: Create, list, get tickets
- actions.py: Workflow actions

All routes are combined into a single router for inclusion in the API.
"""

from fastapi import APIRouter

from .schemas import CreateTicketRequest, TicketListResponse, ActionResponse
from .crud import router as crud_router
from .actions import router as actions_router

router = APIRouter()

router.include_router(crud_router, prefix="/tickets")
router.include_router(actions_router, prefix="/tickets")

__all__ = ["router", "CreateTicketRequest", "TicketListResponse", "ActionResponse"]
