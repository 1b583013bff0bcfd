"""
Ticket Actions Routes

Single endpoint taking any workflow action. The body is the tagged action
object; its "action" field selects the handler.
"""

from typing import Any, Dict
from fastapi import APIRouter, Body, Depends, HTTPException

from ...deps import get_correlation_id_dep, get_ticket_service
from ....domain.errors import DomainError
from ....services.ticket_service import TicketService
from ....utils.logger import get_logger
from .schemas import ActionResponse

logger = get_logger(__name__)
router = APIRouter()


@router.post("/{ticket_id}/actions", response_model=ActionResponse)
async def perform_action(
    ticket_id: str,
    payload: Dict[str, Any] = Body(...),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: TicketService = Depends(get_ticket_service)
):
    """
    Apply an action to a ticket.

    Returns the ticket's new stage, holders, credits and version.
    """
    try:
        result = service.perform_action(ticket_id, payload)
        return ActionResponse(ticket=result.model_dump(mode="json", by_alias=True))

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
