"""Primary/secondary credit rules"""
from datetime import datetime, timezone

import pytest

from ticketflow.domain.models import Credit, RaisedBy, Ticket
from ticketflow.engine.credit_ledger import CreditKind, CreditLedger, decide_credit


def _ticket(**overrides) -> Ticket:
    now = datetime.now(timezone.utc)
    fields = dict(
        ticket_id="TID-1",
        ticket_number="TKT-2026-000001",
        functionality_id="FN-1",
        functionality_name="Laptop Repair",
        department="IT",
        raised_by=RaisedBy(user_id="R1", name="Rita"),
        workflow_stage="n1",
        current_assignee="A",
        current_assignees=["A"],
        created_at=now,
        updated_at=now,
    )
    fields.update(overrides)
    return Ticket(**fields)


A = Credit(user_id="A", name="Alice")
B = Credit(user_id="B", name="Bob")
C = Credit(user_id="C", name="Carol")


@pytest.mark.parametrize("is_first,has_primary,expected", [
    (True, False, CreditKind.PRIMARY),
    (True, True, CreditKind.SECONDARY),
    (False, False, CreditKind.SECONDARY),
    (False, True, CreditKind.SECONDARY),
])
def test_decide_credit(is_first, has_primary, expected):
    assert decide_credit(is_first, has_primary) == expected


def test_first_actor_at_first_node_takes_primary():
    ticket = _ticket()
    ledger = CreditLedger(ticket)

    assert ledger.credit_actor(A, is_first_node=True) == CreditKind.PRIMARY
    assert ticket.primary_credit == A
    assert ticket.secondary_credits == []


def test_later_actor_at_first_node_gets_secondary():
    ticket = _ticket(primary_credit=A)
    ledger = CreditLedger(ticket)

    assert ledger.credit_actor(B, is_first_node=True) == CreditKind.SECONDARY
    assert ticket.primary_credit == A
    assert ticket.secondary_credits == [B]


def test_primary_holder_is_never_added_to_secondary():
    ticket = _ticket(primary_credit=A)
    ledger = CreditLedger(ticket)

    assert ledger.credit_actor(A, is_first_node=False) is None
    assert ledger.add_secondary(A) is False
    assert ticket.secondary_credits == []


def test_secondary_credits_are_unique():
    ticket = _ticket()
    ledger = CreditLedger(ticket)

    ledger.credit_actor(B, is_first_node=False)
    ledger.credit_actor(B, is_first_node=False)

    assert ticket.secondary_credits == [B]
    assert ticket.primary_credit is None


def test_new_primary_keeps_secondary_entry():
    ticket = _ticket(secondary_credits=[A, B])
    ledger = CreditLedger(ticket)

    ledger.credit_actor(A, is_first_node=True)

    assert ticket.primary_credit == A
    assert ticket.secondary_credits == [A, B]


def test_credit_assignees_lead_eligible_for_primary():
    ticket = _ticket()
    ledger = CreditLedger(ticket)

    ledger.credit_assignees([B, C], is_first_node=True, lead_id="B")

    assert ticket.primary_credit == B
    assert ticket.secondary_credits == [C]


def test_credit_assignees_away_from_first_node():
    ticket = _ticket(primary_credit=A)
    ledger = CreditLedger(ticket)

    ledger.credit_assignees([A, B, C], is_first_node=False, lead_id="A")

    assert ticket.primary_credit == A
    assert ticket.secondary_credits == [B, C]


def test_transfer_primary_replaces_holder():
    ticket = _ticket(primary_credit=A, secondary_credits=[B])
    ledger = CreditLedger(ticket)

    previous = ledger.transfer_primary(B)

    assert previous == A
    assert ticket.primary_credit == B
    assert ticket.secondary_credits == [B]


def test_only_hand_off_shrinks_secondary():
    ticket = _ticket(primary_credit=A, secondary_credits=[B, C])
    ledger = CreditLedger(ticket)

    ledger.transfer_primary(C)
    ledger.credit_assignees([B, C], is_first_node=True, lead_id="C")
    assert ticket.secondary_credits == [B, C]

    ledger.hand_off("B", [A])
    assert ticket.secondary_credits == [C, A]


def test_hand_off_swaps_performer_for_new_holders():
    ticket = _ticket(primary_credit=A, secondary_credits=[B])
    ledger = CreditLedger(ticket)

    ledger.hand_off("B", [C, A])

    assert ticket.primary_credit == A
    assert ticket.secondary_credits == [C]
