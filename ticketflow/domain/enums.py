"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class TicketStatus(str, Enum):
    """Global ticket status"""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Priority(str, Enum):
    """Ticket priority, derived from the requester's urgency field"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NodeKind(str, Enum):
    """Workflow graph node types as produced by the graph editor"""
    START = "start"
    END = "end"
    EMPLOYEE = "employee"


class EmployeeSubtype(str, Enum):
    """How an employee node hands out work"""
    SEQUENTIAL = "sequential"  # Single employee
    PARALLEL = "parallel"      # Group lead + members


class ActionKind(str, Enum):
    """Action vocabulary accepted by the action processor"""
    IN_PROGRESS = "in_progress"
    FORWARD = "forward"
    REASSIGN = "reassign"
    FORM_GROUP = "form_group"
    REVERT = "revert"
    BLOCKER_REPORTED = "blocker_reported"
    BLOCKER_RESOLVED = "blocker_resolved"
    RESOLVE = "resolve"
    CLOSE = "close"
    REOPEN = "reopen"


# Legacy action names still sent by older clients
ACTION_ALIASES = {
    "mark_in_progress": ActionKind.IN_PROGRESS,
    "report_blocker": ActionKind.BLOCKER_REPORTED,
}


class HistoryActionType(str, Enum):
    """Workflow history entry types"""
    IN_PROGRESS = "in_progress"
    FORWARDED = "forwarded"
    REVERTED = "reverted"
    BLOCKER_REPORTED = "blocker_reported"
    BLOCKER_RESOLVED = "blocker_resolved"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REOPENED = "reopened"
    REASSIGNED = "reassigned"
    GROUP_FORMED = "group_formed"


class NotificationStatus(str, Enum):
    """Notification outbox status"""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class NotificationTemplateKey(str, Enum):
    """Notification template identifiers"""
    TICKET_ASSIGNED = "TICKET_ASSIGNED"
    TICKET_FORWARDED = "TICKET_FORWARDED"
    TICKET_REASSIGNED = "TICKET_REASSIGNED"
    GROUP_FORMED = "GROUP_FORMED"
    TICKET_REVERTED = "TICKET_REVERTED"
    TICKET_RESOLVED = "TICKET_RESOLVED"
