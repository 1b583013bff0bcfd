"""Service modules - Business logic layer

TicketService is imported from .ticket_service directly; it builds on the
engine, which itself depends on the services below.
"""
from .directory_service import DirectoryService
from .attachment_service import AttachmentService
from .notification_service import NotificationService, NotificationEvent
from .functionality_service import FunctionalityService

__all__ = [
    "DirectoryService",
    "AttachmentService",
    "NotificationService",
    "NotificationEvent",
    "FunctionalityService",
]
