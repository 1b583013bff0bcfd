"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Header

from ..services.ticket_service import TicketService
from ..services.functionality_service import FunctionalityService
from ..services.directory_service import DirectoryService
from ..utils.logger import set_correlation_id
from ..utils.idgen import generate_correlation_id


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """
    Get or generate correlation ID for request tracing

    If client provides X-Correlation-Id, use it.
    Otherwise generate a new one.
    """
    correlation_id = x_correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


def get_ticket_service() -> TicketService:
    return TicketService()


def get_functionality_service() -> FunctionalityService:
    return FunctionalityService()


def get_directory_service() -> DirectoryService:
    return DirectoryService()
