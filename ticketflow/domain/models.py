"""Domain Models - Pydantic schemas for all entities

Field names are snake_case in Python and in MongoDB documents. The JSON
surface (API bodies and editor-produced graph documents) is camelCase, handled
through an alias generator with population by field name allowed.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .enums import (
    TicketStatus, Priority, NodeKind, EmployeeSubtype, HistoryActionType,
    NotificationStatus, NotificationTemplateKey
)


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase keys"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
        extra="ignore"
    )


# ============================================================================
# Identity & Credit
# ============================================================================

class Credit(CamelModel):
    """A user attributed on a ticket (also used for performedBy)"""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class RaisedBy(CamelModel):
    """Snapshot of the requester who created the ticket"""
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None


class Employee(CamelModel):
    """Directory entry for someone who can hold a ticket"""
    employee_id: str = Field(..., min_length=1)
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    department: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.username or "Unknown"

    def as_credit(self) -> Credit:
        return Credit(user_id=self.employee_id, name=self.display_name)


# ============================================================================
# Workflow Graph Document (produced by the visual editor)
# ============================================================================

class NodeData(CamelModel):
    """Editor payload attached to a node"""
    label: str = ""
    node_type: Optional[EmployeeSubtype] = None
    employee_id: Optional[str] = None
    group_lead: Optional[str] = None
    group_members: List[str] = Field(default_factory=list)


class GraphNode(CamelModel):
    """Workflow graph node"""
    id: str = Field(..., min_length=1)
    type: NodeKind
    data: NodeData = Field(default_factory=NodeData)

    @property
    def is_parallel(self) -> bool:
        return self.type == NodeKind.EMPLOYEE and self.data.node_type == EmployeeSubtype.PARALLEL


class GraphEdge(CamelModel):
    """Directed edge between two nodes"""
    id: Optional[str] = None
    source: str
    target: str


class WorkflowGraphDocument(CamelModel):
    """Serialized workflow graph"""
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)


class Functionality(CamelModel):
    """Ticket type owning a workflow graph"""
    functionality_id: str
    name: str
    department: str
    description: Optional[str] = None
    workflow: WorkflowGraphDocument
    version: int = Field(default=1, description="Bumped whenever the workflow graph is replaced")
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Ticket Record
# ============================================================================

class Blocker(CamelModel):
    """Reported impediment"""
    description: str
    reported_by: str
    reported_by_name: str
    reported_at: datetime
    is_resolved: bool = False
    resolved_by: Optional[str] = None
    resolved_by_name: Optional[str] = None
    resolved_at: Optional[datetime] = None


class GroupMemberSnapshot(CamelModel):
    """Group roster line stored on history entries"""
    user_id: str
    name: str
    is_lead: bool = False


class HistoryEntry(CamelModel):
    """One immutable audit record of an action taken on a ticket"""
    model_config = ConfigDict(frozen=True)

    action_type: HistoryActionType
    performed_by: Credit
    performed_at: datetime
    from_node: Optional[str] = None
    to_node: Optional[str] = None
    explanation: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)
    group_members: Optional[List[GroupMemberSnapshot]] = None
    blocker_description: Optional[str] = None
    reassigned_to: Optional[List[str]] = None


class Ticket(CamelModel):
    """Ticket instance, advanced exclusively by the workflow engine"""
    ticket_id: str
    ticket_number: str
    functionality_id: str
    functionality_name: str
    department: str
    raised_by: RaisedBy
    form_data: Dict[str, Any] = Field(default_factory=dict)
    priority: Priority = Priority.MEDIUM
    status: TicketStatus = TicketStatus.PENDING
    workflow_stage: str
    current_assignee: str
    current_assignees: List[str] = Field(default_factory=list)
    group_lead: Optional[str] = None
    primary_credit: Optional[Credit] = None
    secondary_credits: List[Credit] = Field(default_factory=list)
    blockers: List[Blocker] = Field(default_factory=list)
    workflow_history: List[HistoryEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    version: int = Field(default=1, description="Optimistic concurrency version")


# ============================================================================
# Attachments
# ============================================================================

class AttachmentPayload(CamelModel):
    """Inbound file tied to an action; data is base64 encoded"""
    name: str = Field(..., min_length=1)
    data: str = Field(..., validation_alias=AliasChoices("data", "content", "rawBytes"))
    mime_type: str = Field(
        default="application/octet-stream",
        validation_alias=AliasChoices("mimeType", "mime_type", "type")
    )


# ============================================================================
# Notification Outbox
# ============================================================================

class NotificationOutbox(BaseModel):
    """Notification in outbox"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    notification_id: str
    ticket_id: Optional[str] = None
    template_key: NotificationTemplateKey
    recipients: List[EmailStr]
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: NotificationStatus = Field(default=NotificationStatus.PENDING)
    retry_count: int = Field(default=0)
    last_error: Optional[str] = None
    next_retry_at: Optional[datetime] = None
    locked_until: Optional[datetime] = None
    locked_by: Optional[str] = None
    lock_acquired_at: Optional[datetime] = None
    created_at: datetime
    sent_at: Optional[datetime] = None
