"""History Writer - Builds and appends workflow history entries"""
from datetime import datetime
from typing import List, Optional

from ..domain.enums import HistoryActionType
from ..domain.models import Credit, GroupMemberSnapshot, HistoryEntry, Ticket
from ..utils.time import utc_now


class HistoryWriter:
    """
    Appends immutable entries to a ticket's workflow history

    All entries written through one writer share the same timestamp so that
    a single action (e.g. forward + resolve) reads as one moment in time.
    """

    def __init__(self, ticket: Ticket, performed_by: Credit, performed_at: Optional[datetime] = None):
        self.ticket = ticket
        self.performed_by = performed_by
        self.performed_at = performed_at or utc_now()

    def write(self, action_type: HistoryActionType, **fields) -> HistoryEntry:
        entry = HistoryEntry(
            action_type=action_type,
            performed_by=self.performed_by,
            performed_at=self.performed_at,
            **fields
        )
        self.ticket.workflow_history.append(entry)
        return entry

    def forwarded(
        self,
        from_node: Optional[str],
        to_node: str,
        explanation: Optional[str] = None,
        attachments: Optional[List[str]] = None
    ) -> HistoryEntry:
        return self.write(
            HistoryActionType.FORWARDED,
            from_node=from_node,
            to_node=to_node,
            explanation=explanation,
            attachments=attachments or []
        )

    def reverted(self, from_node: str, to_node: str, message: str, attachments: Optional[List[str]] = None) -> HistoryEntry:
        return self.write(
            HistoryActionType.REVERTED,
            from_node=from_node,
            to_node=to_node,
            explanation=message,
            attachments=attachments or []
        )

    def group_formed(self, at_node: str, members: List[Credit], lead_id: str) -> HistoryEntry:
        roster = [
            GroupMemberSnapshot(user_id=m.user_id, name=m.name, is_lead=m.user_id == lead_id)
            for m in members
        ]
        return self.write(
            HistoryActionType.GROUP_FORMED,
            from_node=at_node,
            to_node=at_node,
            group_members=roster
        )
