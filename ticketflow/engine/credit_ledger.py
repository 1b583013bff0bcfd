"""Credit Ledger - Primary/secondary attribution rules

Primary credit belongs to whoever first acts at the first employee node.
Everyone else who holds or touches the ticket accumulates a secondary credit,
unique by user id. Secondary credits only ever grow, except for the
performer handing a ticket off on reassign. Nobody is added to secondary
while holding primary.
"""
from enum import Enum
from typing import Iterable, List, Optional

from ..domain.models import Credit, Ticket
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CreditKind(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


def decide_credit(is_first_node: bool, already_has_primary: bool) -> CreditKind:
    """Which credit an actor earns for acting"""
    if is_first_node and not already_has_primary:
        return CreditKind.PRIMARY
    return CreditKind.SECONDARY


class CreditLedger:
    """
    Applies credit decisions to a ticket in place

    The ledger only touches primary_credit and secondary_credits.
    """

    def __init__(self, ticket: Ticket):
        self.ticket = ticket

    @property
    def has_primary(self) -> bool:
        return self.ticket.primary_credit is not None

    def holds_primary(self, user_id: str) -> bool:
        return self.has_primary and self.ticket.primary_credit.user_id == user_id

    def has_secondary(self, user_id: str) -> bool:
        return any(c.user_id == user_id for c in self.ticket.secondary_credits)

    def add_secondary(self, credit: Credit) -> bool:
        """Append a secondary credit; returns False when already credited"""
        if self.holds_primary(credit.user_id) or self.has_secondary(credit.user_id):
            return False
        self.ticket.secondary_credits.append(credit)
        return True

    def credit_actor(self, credit: Credit, is_first_node: bool) -> Optional[CreditKind]:
        """
        Credit someone acting on the ticket

        Returns the kind of credit granted, or None if the user was already
        credited.
        """
        kind = decide_credit(is_first_node, self.has_primary)
        if kind == CreditKind.PRIMARY:
            self.ticket.primary_credit = credit
            logger.debug(f"Primary credit assigned to {credit.user_id}")
            return kind

        if self.add_secondary(credit):
            return kind
        return None

    def credit_assignees(
        self,
        credits: Iterable[Credit],
        is_first_node: bool,
        lead_id: Optional[str] = None
    ) -> None:
        """
        Credit a set of newly introduced holders

        At the first node the lead (or the single holder when no lead is
        given) is eligible for primary; everyone else gets secondary.
        """
        credits = list(credits)
        if lead_id is None and len(credits) == 1:
            lead_id = credits[0].user_id

        for credit in credits:
            if credit.user_id == lead_id:
                self.credit_actor(credit, is_first_node)
            else:
                self.add_secondary(credit)

    def transfer_primary(self, credit: Credit) -> Optional[Credit]:
        """Replace the primary holder; returns the previous one"""
        previous = self.ticket.primary_credit
        self.ticket.primary_credit = credit
        logger.info(
            f"Primary credit transferred from "
            f"{previous.user_id if previous else None} to {credit.user_id}"
        )
        return previous

    def hand_off(self, performer_id: str, new_holders: Iterable[Credit]) -> None:
        """Drop the performer's secondary claim and credit the new holders"""
        self._remove_secondary(performer_id)
        for credit in new_holders:
            self.add_secondary(credit)

    def _remove_secondary(self, user_id: str) -> List[Credit]:
        removed = [c for c in self.ticket.secondary_credits if c.user_id == user_id]
        if removed:
            self.ticket.secondary_credits = [
                c for c in self.ticket.secondary_credits if c.user_id != user_id
            ]
        return removed
