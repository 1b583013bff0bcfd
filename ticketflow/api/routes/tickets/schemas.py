"""
Ticket Schemas

Request and response models for ticket API endpoints.
"""

from typing import Any, Dict, List, Optional
from pydantic import Field

from ....domain.models import AttachmentPayload, CamelModel, RaisedBy
from ....domain.enums import Priority


# =============================================================================
# Ticket CRUD Schemas
# =============================================================================

class CreateTicketRequest(CamelModel):
    """Request to create a new ticket"""
    functionality_id: str = Field(..., min_length=1)
    raised_by: RaisedBy
    form_data: Dict[str, Any] = Field(default_factory=dict)
    priority: Optional[Priority] = None
    attachments: List[AttachmentPayload] = Field(default_factory=list)


class TicketListResponse(CamelModel):
    """Response for ticket list"""
    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total: int


# =============================================================================
# Action Schemas
# =============================================================================

class ActionResponse(CamelModel):
    """Response after an action was applied"""
    success: bool = True
    ticket: Dict[str, Any]
