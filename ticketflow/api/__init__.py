"""API module - Routes and dependencies"""
from .deps import (
    get_correlation_id_dep, get_ticket_service, get_functionality_service, get_directory_service
)

__all__ = [
    "get_correlation_id_dep",
    "get_ticket_service",
    "get_functionality_service",
    "get_directory_service",
]
