"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection
from .ticket_repo import TicketRepository
from .functionality_repo import FunctionalityRepository
from .employee_repo import EmployeeRepository
from .notification_repo import NotificationRepository

__all__ = [
    "get_database",
    "get_collection",
    "TicketRepository",
    "FunctionalityRepository",
    "EmployeeRepository",
    "NotificationRepository",
]
