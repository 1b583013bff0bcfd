"""Ticket Service - Ticket management business logic"""
from typing import Any, Dict, List, Optional
from datetime import datetime

from ..domain.models import AttachmentPayload, RaisedBy, Ticket
from ..domain.enums import Priority, TicketStatus
from ..repositories.ticket_repo import TicketRepository
from ..engine.engine import ActionResult, WorkflowEngine
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TicketService:
    """Service for ticket operations"""

    def __init__(self, engine: Optional[WorkflowEngine] = None):
        self.engine = engine or WorkflowEngine()
        self.ticket_repo: TicketRepository = self.engine.ticket_repo

    def create_ticket(
        self,
        functionality_id: str,
        raised_by: RaisedBy,
        form_data: Dict[str, Any],
        priority: Optional[Priority] = None,
        attachments: Optional[List[AttachmentPayload]] = None
    ) -> Ticket:
        """Create a new ticket at the first node of the functionality's workflow"""
        return self.engine.create_ticket(
            functionality_id=functionality_id,
            raised_by=raised_by,
            form_data=form_data,
            priority=priority,
            attachments=attachments
        )

    def perform_action(self, ticket_id: str, payload: Dict[str, Any]) -> ActionResult:
        """Apply an action submitted by a client"""
        return self.engine.process_action(ticket_id, payload)

    def get_ticket(self, ticket_id: str) -> Ticket:
        return self.ticket_repo.get_ticket_or_raise(ticket_id)

    def list_tickets(
        self,
        created_by: str,
        status: Optional[TicketStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50
    ) -> Dict[str, Any]:
        """Tickets raised by a user, paginated"""
        skip = (page - 1) * page_size
        items = self.ticket_repo.list_by_creator(
            created_by,
            status=status,
            date_from=date_from,
            date_to=date_to,
            skip=skip,
            limit=page_size
        )
        total = self.ticket_repo.count_by_creator(created_by, status=status)
        return {"items": items, "page": page, "page_size": page_size, "total": total}

    def list_assigned(self, user_id: str, include_terminal: bool = False) -> List[Ticket]:
        """Tickets currently held by a user"""
        return self.ticket_repo.list_assigned(user_id, include_terminal=include_terminal)
