"""
Ticket CRUD Routes

Create, read, list ticket endpoints.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...deps import get_correlation_id_dep, get_ticket_service
from ....domain.enums import TicketStatus
from ....domain.errors import DomainError, ValidationError
from ....services.ticket_service import TicketService
from ....utils.logger import get_logger
from ....utils.time import parse_iso
from .schemas import CreateTicketRequest, TicketListResponse

logger = get_logger(__name__)
router = APIRouter()


def _parse_date(value: Optional[str], field: str):
    if not value:
        return None
    try:
        return parse_iso(value)
    except (ValueError, OverflowError):
        raise ValidationError(f"Invalid date for {field}", details={"field": field, "value": value})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_ticket(
    request: CreateTicketRequest,
    correlation_id: str = Depends(get_correlation_id_dep),
    service: TicketService = Depends(get_ticket_service)
):
    """
    Create a new ticket

    The ticket is placed at the first employee node of the functionality's
    workflow and its holders are notified.
    """
    try:
        ticket = service.create_ticket(
            functionality_id=request.functionality_id,
            raised_by=request.raised_by,
            form_data=request.form_data,
            priority=request.priority,
            attachments=request.attachments
        )
        logger.info(
            f"Created ticket: {ticket.ticket_number}",
            extra={"ticket_id": ticket.ticket_id, "user_id": request.raised_by.user_id}
        )
        return {"success": True, "ticket": ticket.model_dump(mode="json", by_alias=True)}

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("", response_model=TicketListResponse, response_model_by_alias=True)
async def list_tickets(
    created_by: str = Query(..., alias="createdBy"),
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    service: TicketService = Depends(get_ticket_service)
):
    """List tickets raised by a user"""
    try:
        result = service.list_tickets(
            created_by=created_by,
            status=status_filter,
            date_from=_parse_date(date_from, "dateFrom"),
            date_to=_parse_date(date_to, "dateTo"),
            page=page,
            page_size=page_size
        )
        return TicketListResponse(
            items=[t.model_dump(mode="json", by_alias=True) for t in result["items"]],
            page=result["page"],
            page_size=result["page_size"],
            total=result["total"]
        )

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/assigned")
async def list_assigned_tickets(
    user_id: str = Query(..., alias="userId"),
    include_terminal: bool = Query(False, alias="includeTerminal"),
    service: TicketService = Depends(get_ticket_service)
):
    """Tickets currently held by a user"""
    tickets = service.list_assigned(user_id, include_terminal=include_terminal)
    return {"items": [t.model_dump(mode="json", by_alias=True) for t in tickets]}


@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: str,
    service: TicketService = Depends(get_ticket_service)
):
    """Get ticket details including its workflow history"""
    try:
        ticket = service.get_ticket(ticket_id)
        return {"ticket": ticket.model_dump(mode="json", by_alias=True)}

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
