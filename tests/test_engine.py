"""Action processor: transitions, credits, history, errors and commits"""
import base64
import os
import re

import pytest

from ticketflow.domain.enums import HistoryActionType, NotificationTemplateKey, Priority, TicketStatus
from ticketflow.domain.errors import (
    ConcurrencyError, EmployeeNotFoundError, IllegalTransitionError, NodeNotFoundError,
    TicketNotFoundError, UnknownActionError, ValidationError
)
from ticketflow.repositories.notification_repo import NotificationRepository

from .conftest import EMPLOYEES, end_node, graph_document, parallel_node, sequential_node, start_node


def actor(employee_id: str) -> dict:
    return {"userId": employee_id, "name": EMPLOYEES[employee_id]}


def act(engine, ticket, action: str, by: str, **fields):
    return engine.process_action(ticket.ticket_id, {"action": action, "performedBy": actor(by), **fields})


def stored(engine, ticket):
    return engine.ticket_repo.get_ticket_or_raise(ticket.ticket_id)


def secondary_ids(ticket):
    return [c.user_id for c in ticket.secondary_credits]


def outbox(ticket):
    return NotificationRepository().get_notifications_for_ticket(ticket.ticket_id)


# =============================================================================
# Ticket creation
# =============================================================================

def test_create_ticket_lands_on_first_employee_node(make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    assert ticket.workflow_stage == "n1"
    assert ticket.current_assignee == "A"
    assert ticket.current_assignees == ["A"]
    assert ticket.status == TicketStatus.PENDING
    assert ticket.primary_credit.user_id == "A"
    assert ticket.secondary_credits == []
    assert ticket.priority == Priority.MEDIUM
    assert ticket.version == 1
    assert re.fullmatch(r"TKT-\d{4}-000001", ticket.ticket_number)

    [entry] = ticket.workflow_history
    assert entry.action_type == HistoryActionType.FORWARDED
    assert entry.from_node == "start"
    assert entry.to_node == "n1"
    assert entry.explanation == "Ticket created"
    assert entry.performed_by.user_id == "R1"


def test_ticket_numbers_are_sequential(make_ticket, sequential_workflow):
    first = make_ticket(sequential_workflow)
    second = make_ticket(sequential_workflow)

    assert first.ticket_number.endswith("-000001")
    assert second.ticket_number.endswith("-000002")


def test_priority_comes_from_urgency_field(make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow, form_data={"default-urgency": "High"})

    assert ticket.priority == Priority.HIGH


def test_create_ticket_at_parallel_first_node(make_ticket):
    workflow = graph_document(
        [start_node(), parallel_node("team", "B", ["C", "D"]), end_node()],
        [("start", "team"), ("team", "end")],
    )

    ticket = make_ticket(workflow)

    assert ticket.current_assignees == ["B", "C", "D"]
    assert ticket.group_lead == "B"
    assert ticket.primary_credit.user_id == "B"
    assert secondary_ids(ticket) == ["C", "D"]


def test_create_ticket_notifies_first_holder(make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    [notification] = outbox(ticket)
    assert notification.template_key == NotificationTemplateKey.TICKET_ASSIGNED
    assert notification.recipients == ["a@example.com"]


# =============================================================================
# Status actions
# =============================================================================

def test_in_progress_by_first_holder_keeps_primary(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    result = act(engine, ticket, "in_progress", "A")

    assert result.status == TicketStatus.IN_PROGRESS
    assert result.primary_credit.user_id == "A"
    assert result.secondary_credits == []
    assert result.version == 2


def test_blocker_report_and_resolve(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    result = act(engine, ticket, "blocker_reported", "A", blockerDescription="Waiting on vendor")
    assert result.status == TicketStatus.BLOCKED

    act(engine, ticket, "blocker_reported", "A", blockerDescription="Missing charger")
    result = act(engine, ticket, "blocker_resolved", "A", explanation="Charger found")
    assert result.status == TicketStatus.IN_PROGRESS

    current = stored(engine, ticket)
    first, second = current.blockers
    assert first.description == "Waiting on vendor"
    assert first.is_resolved is False
    assert second.is_resolved is True
    assert second.resolved_by == "A"
    assert second.resolved_at is not None
    assert current.workflow_history[-1].action_type == HistoryActionType.BLOCKER_RESOLVED


def test_blocker_resolved_without_any_blocker(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    with pytest.raises(IllegalTransitionError):
        act(engine, ticket, "blocker_resolved", "A")

    assert stored(engine, ticket).version == 1


def test_blocker_resolved_again_restamps_latest_blocker(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)
    act(engine, ticket, "blocker_reported", "A", blockerDescription="Waiting on vendor")
    act(engine, ticket, "blocker_resolved", "A")

    result = act(engine, ticket, "blocker_resolved", "B")

    assert result.status == TicketStatus.IN_PROGRESS
    [blocker] = stored(engine, ticket).blockers
    assert blocker.is_resolved is True
    assert blocker.resolved_by == "B"


def test_close_does_not_credit(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    result = act(engine, ticket, "close", "E", explanation="Duplicate")

    assert result.status == TicketStatus.CLOSED
    assert result.secondary_credits == []


def test_resolve_notifies_requester(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    result = act(engine, ticket, "resolve", "A")

    assert result.status == TicketStatus.RESOLVED
    notification = outbox(ticket)[-1]
    assert notification.template_key == NotificationTemplateKey.TICKET_RESOLVED
    assert notification.recipients == ["rita@example.com"]


# =============================================================================
# Forward
# =============================================================================

def test_forward_to_sequential_node(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    result = act(engine, ticket, "forward", "A", toNode="n2", explanation="done")

    assert result.workflow_stage == "n2"
    assert result.current_assignees == ["B"]
    assert result.group_lead is None
    assert result.status == TicketStatus.PENDING
    assert result.primary_credit.user_id == "A"
    assert [c.user_id for c in result.secondary_credits] == ["B"]

    current = stored(engine, ticket)
    assert len(current.workflow_history) == 2
    entry = current.workflow_history[-1]
    assert (entry.action_type, entry.from_node, entry.to_node) == (HistoryActionType.FORWARDED, "n1", "n2")
    assert entry.explanation == "done"

    notification = outbox(ticket)[-1]
    assert notification.template_key == NotificationTemplateKey.TICKET_FORWARDED
    assert notification.recipients == ["b@example.com"]


def test_forward_to_parallel_node_credits_whole_group(engine, make_ticket, parallel_workflow):
    ticket = make_ticket(parallel_workflow)

    result = act(engine, ticket, "forward", "A", toNode="team", explanation="hardware fault")

    assert result.current_assignee == "B"
    assert result.current_assignees == ["B", "C", "D"]
    assert result.group_lead == "B"
    assert [c.user_id for c in result.secondary_credits] == ["B", "C", "D"]

    entry = stored(engine, ticket).workflow_history[-1]
    assert [(m.user_id, m.is_lead) for m in entry.group_members] == [("B", True), ("C", False), ("D", False)]
    assert sorted(outbox(ticket)[-1].recipients) == ["b@example.com", "c@example.com", "d@example.com"]


def test_forward_to_end_resolves_with_two_history_entries(engine, make_ticket, branching_workflow):
    ticket = make_ticket(branching_workflow)

    result = act(engine, ticket, "forward", "A", toNode="rejected", explanation="Not a hardware issue")

    assert result.status == TicketStatus.RESOLVED
    assert result.workflow_stage == "rejected"

    history = stored(engine, ticket).workflow_history
    assert len(history) == 3
    assert [e.action_type for e in history[-2:]] == [HistoryActionType.FORWARDED, HistoryActionType.RESOLVED]
    assert outbox(ticket)[-1].recipients == ["rita@example.com"]


def test_forward_to_unknown_node(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    with pytest.raises(NodeNotFoundError):
        act(engine, ticket, "forward", "A", toNode="ghost", explanation="x")

    assert stored(engine, ticket).workflow_stage == "n1"


def test_forward_to_start_is_illegal(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    with pytest.raises(IllegalTransitionError):
        act(engine, ticket, "forward", "A", toNode="start", explanation="x")


def test_forward_keeps_good_attachments_and_drops_bad_ones(engine, make_ticket, sequential_workflow, test_settings):
    ticket = make_ticket(sequential_workflow)
    good = {"name": "invoice.pdf", "data": base64.b64encode(b"%PDF-1.4").decode(), "mimeType": "application/pdf"}
    bad = {"name": "tool.exe", "data": base64.b64encode(b"MZ").decode(), "mimeType": "application/x-msdownload"}

    act(engine, ticket, "forward", "A", toNode="n2", explanation="see invoice", attachments=[good, bad])

    entry = stored(engine, ticket).workflow_history[-1]
    [path] = entry.attachments
    assert path.startswith(f"tickets/{ticket.ticket_number}/")
    assert path.endswith("_invoice.pdf")


# =============================================================================
# Revert
# =============================================================================

def test_revert_from_first_node_is_illegal(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    with pytest.raises(IllegalTransitionError):
        act(engine, ticket, "revert", "A", revertMessage="back")

    current = stored(engine, ticket)
    assert current.version == 1
    assert len(current.workflow_history) == 1


def test_revert_returns_to_predecessor(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)
    act(engine, ticket, "forward", "A", toNode="n2", explanation="done")
    act(engine, ticket, "forward", "B", toNode="n3", explanation="reviewed")

    result = act(engine, ticket, "revert", "C", revertMessage="needs another look")

    assert result.workflow_stage == "n2"
    assert result.current_assignees == ["B"]
    assert result.status == TicketStatus.PENDING
    assert result.primary_credit.user_id == "A"
    assert [c.user_id for c in result.secondary_credits] == ["B", "C"]

    entry = stored(engine, ticket).workflow_history[-1]
    assert entry.action_type == HistoryActionType.REVERTED
    assert (entry.from_node, entry.to_node) == ("n3", "n2")
    assert entry.explanation == "needs another look"
    assert outbox(ticket)[-1].template_key == NotificationTemplateKey.TICKET_REVERTED


def test_revert_mirrors_forward_for_parallel_predecessor(engine, make_ticket):
    workflow = graph_document(
        [
            start_node(),
            sequential_node("n1", "A"),
            parallel_node("team", "B", ["C", "D"]),
            sequential_node("qa", "E"),
            end_node(),
        ],
        [("start", "n1"), ("n1", "team"), ("team", "qa"), ("qa", "end")],
    )
    ticket = make_ticket(workflow)

    forwarded = act(engine, ticket, "forward", "A", toNode="team", explanation="fix")
    act(engine, ticket, "forward", "B", toNode="qa", explanation="fixed")
    reverted = act(engine, ticket, "revert", "E", revertMessage="still broken")

    assert reverted.workflow_stage == "team"
    assert reverted.current_assignees == forwarded.current_assignees
    assert reverted.group_lead == forwarded.group_lead == "B"


def test_revert_keeps_good_attachments_and_drops_bad_ones(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)
    act(engine, ticket, "forward", "A", toNode="n2", explanation="done")
    good = {"name": "screenshot.pdf", "data": base64.b64encode(b"%PDF-1.4").decode(), "mimeType": "application/pdf"}
    bad = {"name": "broken.pdf", "data": "not base64!", "mimeType": "application/pdf"}

    result = act(engine, ticket, "revert", "B", revertMessage="see screenshot", attachments=[good, bad])

    assert result.workflow_stage == "n1"
    entry = stored(engine, ticket).workflow_history[-1]
    assert entry.action_type == HistoryActionType.REVERTED
    [path] = entry.attachments
    assert path.startswith(f"tickets/{ticket.ticket_number}/")
    assert path.endswith("_screenshot.pdf")


# =============================================================================
# Reassign
# =============================================================================

def test_reassign_at_first_node_transfers_primary(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    result = act(engine, ticket, "reassign", "A", reassignTo=["D"], explanation="On leave")

    assert result.primary_credit.user_id == "D"
    assert result.secondary_credits == []
    assert result.current_assignee == "D"
    assert result.current_assignees == ["D"]
    assert result.workflow_stage == "n1"

    entry = stored(engine, ticket).workflow_history[-1]
    assert entry.action_type == HistoryActionType.REASSIGNED
    assert entry.reassigned_to == ["D"]
    assert outbox(ticket)[-1].recipients == ["d@example.com"]


def test_reassign_at_first_node_keeps_new_primary_secondary_entry(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)
    grouped = act(engine, ticket, "form_group", "A", groupLead="A", groupMembers=["C"])
    assert secondary_ids(grouped) == ["C"]

    result = act(engine, ticket, "reassign", "A", reassignTo=["C"])

    assert result.primary_credit.user_id == "C"
    assert secondary_ids(result) == ["C"]


def test_reassign_elsewhere_hands_off_secondary(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)
    act(engine, ticket, "forward", "A", toNode="n2", explanation="done")

    result = act(engine, ticket, "reassign", "B", reassignTo=["C", "D"])

    assert result.primary_credit.user_id == "A"
    assert [c.user_id for c in result.secondary_credits] == ["C", "D"]
    assert result.current_assignee == "C"
    assert result.current_assignees == ["C", "D"]
    assert result.group_lead is None


def test_reassign_to_unknown_employee(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    with pytest.raises(EmployeeNotFoundError) as exc_info:
        act(engine, ticket, "reassign", "A", reassignTo=["B", "Z"])

    assert exc_info.value.details["missing"] == ["Z"]
    assert stored(engine, ticket).current_assignees == ["A"]


# =============================================================================
# Form group
# =============================================================================

def test_form_group_at_first_node(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    result = act(engine, ticket, "form_group", "A", groupLead="A", groupMembers=["B", "C"])

    assert result.current_assignees == ["A", "B", "C"]
    assert result.group_lead == "A"
    assert result.primary_credit.user_id == "A"
    assert [c.user_id for c in result.secondary_credits] == ["B", "C"]

    entry = stored(engine, ticket).workflow_history[-1]
    assert entry.action_type == HistoryActionType.GROUP_FORMED
    assert [m.is_lead for m in entry.group_members] == [True, False, False]
    assert outbox(ticket)[-1].template_key == NotificationTemplateKey.GROUP_FORMED


def test_form_group_with_unknown_member(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    with pytest.raises(EmployeeNotFoundError):
        act(engine, ticket, "form_group", "A", groupLead="A", groupMembers=["Q"])

    assert stored(engine, ticket).group_lead is None


# =============================================================================
# Reopen
# =============================================================================

def test_reopen_at_chosen_node(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)
    act(engine, ticket, "resolve", "A")

    result = act(engine, ticket, "reopen", "A", toNode="n3", explanation="Came back")

    assert result.status == TicketStatus.PENDING
    assert result.workflow_stage == "n3"
    assert result.current_assignees == ["A"]
    assert stored(engine, ticket).workflow_history[-1].action_type == HistoryActionType.REOPENED


@pytest.mark.parametrize("to_node,error", [
    ("start", IllegalTransitionError),
    ("ghost", NodeNotFoundError),
])
def test_reopen_rejects_bad_targets(engine, make_ticket, sequential_workflow, to_node, error):
    ticket = make_ticket(sequential_workflow)
    act(engine, ticket, "close", "A")

    with pytest.raises(error):
        act(engine, ticket, "reopen", "A", toNode=to_node)

    assert stored(engine, ticket).status == TicketStatus.CLOSED


# =============================================================================
# Rejections and commits
# =============================================================================

def test_unknown_action_leaves_ticket_untouched(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    with pytest.raises(UnknownActionError):
        act(engine, ticket, "escalate", "A")

    assert stored(engine, ticket).version == 1


def test_missing_required_field(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    with pytest.raises(ValidationError):
        act(engine, ticket, "blocker_reported", "A")


def test_unknown_ticket(engine):
    with pytest.raises(TicketNotFoundError):
        engine.process_action("TID-missing", {"action": "in_progress", "performedBy": actor("A")})


def test_stale_version_raises_conflict(engine, make_ticket, sequential_workflow, monkeypatch):
    ticket = make_ticket(sequential_workflow)
    stale = stored(engine, ticket)
    act(engine, ticket, "in_progress", "A")

    monkeypatch.setattr(engine.ticket_repo, "get_ticket_or_raise", lambda ticket_id: stale)

    with pytest.raises(ConcurrencyError):
        act(engine, ticket, "forward", "A", toNode="n2", explanation="done")

    current = engine.ticket_repo.get_ticket(ticket.ticket_id)
    assert current.version == 2
    assert current.workflow_stage == "n1"
    assert len(current.workflow_history) == 2


def test_conflict_discards_stored_attachments(engine, make_ticket, sequential_workflow, test_settings, monkeypatch):
    ticket = make_ticket(sequential_workflow)
    stale = stored(engine, ticket)
    act(engine, ticket, "in_progress", "A")
    monkeypatch.setattr(engine.ticket_repo, "get_ticket_or_raise", lambda ticket_id: stale)
    invoice = {"name": "invoice.pdf", "data": base64.b64encode(b"%PDF-1.4").decode(), "mimeType": "application/pdf"}

    with pytest.raises(ConcurrencyError):
        act(engine, ticket, "forward", "A", toNode="n2", explanation="done", attachments=[invoice])

    ticket_folder = os.path.join(test_settings.attachments_base_path, "tickets", ticket.ticket_number)
    assert not os.path.isdir(ticket_folder) or os.listdir(ticket_folder) == []


def test_notification_failure_does_not_abort_action(engine, make_ticket, sequential_workflow, monkeypatch):
    ticket = make_ticket(sequential_workflow)

    def broken(notification):
        raise RuntimeError("outbox unavailable")

    monkeypatch.setattr(engine.notification_service.repo, "create_notification", broken)

    result = act(engine, ticket, "forward", "A", toNode="n2", explanation="done")

    assert result.workflow_stage == "n2"
    assert stored(engine, ticket).version == 2


def test_history_grows_by_one_per_action(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)
    steps = [
        ("in_progress", "A", {}),
        ("blocker_reported", "A", {"blockerDescription": "Parts"}),
        ("blocker_resolved", "A", {}),
        ("forward", "A", {"toNode": "n2", "explanation": "done"}),
        ("reassign", "B", {"reassignTo": ["D"]}),
        ("revert", "D", {"revertMessage": "missing info"}),
    ]

    for action, by, fields in steps:
        before = len(stored(engine, ticket).workflow_history)
        act(engine, ticket, action, by, **fields)
        assert len(stored(engine, ticket).workflow_history) == before + 1


def test_end_to_end_scenario(engine, make_ticket, sequential_workflow):
    ticket = make_ticket(sequential_workflow)

    result = act(engine, ticket, "in_progress", "A")
    assert result.primary_credit.user_id == "A"

    result = act(engine, ticket, "forward", "A", toNode="n2", explanation="done")
    assert (result.workflow_stage, result.status) == ("n2", TicketStatus.PENDING)
    assert [c.user_id for c in result.secondary_credits] == ["B"]

    result = act(engine, ticket, "form_group", "B", groupLead="B", groupMembers=["C", "D"])
    assert result.group_lead == "B"
    assert [c.user_id for c in result.secondary_credits] == ["B", "C", "D"]

    result = act(engine, ticket, "revert", "C", revertMessage="missing info")
    assert result.workflow_stage == "n1"
    assert result.current_assignees == ["A"]
    assert result.group_lead is None
    assert [c.user_id for c in result.secondary_credits] == ["B", "C", "D"]

    result = act(engine, ticket, "resolve", "A")
    assert result.status == TicketStatus.RESOLVED
    assert result.primary_credit.user_id == "A"

    notification = outbox(ticket)[-1]
    assert notification.template_key == NotificationTemplateKey.TICKET_RESOLVED
    assert notification.recipients == ["rita@example.com"]
