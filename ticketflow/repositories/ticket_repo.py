"""Ticket Repository - Data access for tickets"""
from typing import Any, Dict, List, Optional
from datetime import datetime
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument

from .mongo_client import get_collection
from ..domain.models import Ticket
from ..domain.enums import TicketStatus
from ..domain.errors import TicketNotFoundError, ConcurrencyError
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TicketRepository:
    """Repository for ticket operations"""

    def __init__(self):
        self._tickets: Collection = get_collection("tickets")
        self._counters: Collection = get_collection("counters")

    # =========================================================================
    # Ticket CRUD
    # =========================================================================

    def create_ticket(self, ticket: Ticket) -> Ticket:
        """Create a new ticket"""
        # Don't use mode="json" - it converts datetime to strings, breaking MongoDB sorting
        doc = ticket.model_dump()
        doc["_id"] = ticket.ticket_id

        self._tickets.insert_one(doc)
        logger.info(
            f"Created ticket: {ticket.ticket_number}",
            extra={"ticket_id": ticket.ticket_id, "ticket_number": ticket.ticket_number}
        )
        return ticket

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID"""
        doc = self._tickets.find_one({"ticket_id": ticket_id})
        if doc:
            doc.pop("_id", None)
            return Ticket.model_validate(doc)
        return None

    def get_ticket_or_raise(self, ticket_id: str) -> Ticket:
        """Get ticket by ID or raise error"""
        ticket = self.get_ticket(ticket_id)
        if not ticket:
            raise TicketNotFoundError(
                f"Ticket {ticket_id} not found",
                details={"ticket_id": ticket_id}
            )
        return ticket

    def update_ticket(
        self,
        ticket_id: str,
        updates: Dict[str, Any],
        expected_version: int
    ) -> Ticket:
        """
        Commit ticket changes with optimistic concurrency

        The write only applies when the stored version still equals
        expected_version; the version is bumped in the same operation.
        """
        updates = dict(updates)
        updates["updated_at"] = utc_now()
        updates["version"] = expected_version + 1

        result = self._tickets.find_one_and_update(
            {"ticket_id": ticket_id, "version": expected_version},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )

        if result is None:
            exists = self._tickets.find_one({"ticket_id": ticket_id}, {"version": 1})
            if exists:
                logger.warning(
                    f"Version conflict on ticket {ticket_id}: expected {expected_version}, "
                    f"found {exists.get('version')}",
                    extra={"ticket_id": ticket_id}
                )
                raise ConcurrencyError(
                    f"Ticket {ticket_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version, "current_version": exists.get("version")}
                )
            raise TicketNotFoundError(
                f"Ticket {ticket_id} not found",
                details={"ticket_id": ticket_id}
            )

        result.pop("_id", None)
        logger.info(f"Updated ticket: {ticket_id}", extra={"ticket_id": ticket_id})
        return Ticket.model_validate(result)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_by_creator(
        self,
        user_id: str,
        status: Optional[TicketStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Ticket]:
        """List tickets raised by a user, newest first"""
        query: Dict[str, Any] = {"raised_by.user_id": user_id}
        if status:
            query["status"] = status.value if isinstance(status, TicketStatus) else status

        created_range: Dict[str, Any] = {}
        if date_from:
            created_range["$gte"] = date_from
        if date_to:
            created_range["$lte"] = date_to
        if created_range:
            query["created_at"] = created_range

        cursor = self._tickets.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        return [self._to_ticket(doc) for doc in cursor]

    def count_by_creator(self, user_id: str, status: Optional[TicketStatus] = None) -> int:
        query: Dict[str, Any] = {"raised_by.user_id": user_id}
        if status:
            query["status"] = status.value if isinstance(status, TicketStatus) else status
        return self._tickets.count_documents(query)

    def list_assigned(
        self,
        user_id: str,
        include_terminal: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[Ticket]:
        """List tickets currently held by a user"""
        query: Dict[str, Any] = {"current_assignees": user_id}
        if not include_terminal:
            query["status"] = {"$nin": [TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value]}

        cursor = self._tickets.find(query).sort("updated_at", DESCENDING).skip(skip).limit(limit)
        return [self._to_ticket(doc) for doc in cursor]

    # =========================================================================
    # Ticket numbers
    # =========================================================================

    def next_ticket_sequence(self, prefix: str, year: int) -> int:
        """Atomically allocate the next ticket sequence for prefix/year"""
        counter = self._counters.find_one_and_update(
            {"_id": f"ticket_number:{prefix}:{year}"},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return counter["seq"]

    @staticmethod
    def _to_ticket(doc: Dict[str, Any]) -> Ticket:
        doc.pop("_id", None)
        return Ticket.model_validate(doc)
