"""
Workflow Engine - The Action Processor

Every ticket mutation goes through WorkflowEngine. One action is one
load-mutate-commit sequence:

1. Parse the request body into its action variant
2. Load the ticket and the workflow graph of its functionality
3. Dispatch to the handler for the variant; handlers validate first and only
   then mutate a working copy (stage pointer, holders, credits, blockers,
   history)
4. Commit the working copy with a compare-and-swap on the ticket version
5. Hand the notification events collected by the handler to the
   notification service

Validation, referential and illegal-transition errors are raised before any
mutation. A lost version race raises ConcurrencyError, nothing is written and the
attachments stored for the action are removed again. Attachment and
notification failures are logged and never abort an action.
"""

from typing import Any, Callable, Dict, List, Optional, Union

from ..domain.models import (
    AttachmentPayload, Blocker, CamelModel, Credit, HistoryEntry, RaisedBy, Ticket
)
from ..domain.enums import (
    HistoryActionType, NodeKind, NotificationTemplateKey, Priority, TicketStatus
)
from ..domain.errors import IllegalTransitionError
from ..repositories.ticket_repo import TicketRepository
from ..repositories.functionality_repo import FunctionalityRepository
from ..services.attachment_service import AttachmentService
from ..services.directory_service import DirectoryService
from ..services.notification_service import NotificationEvent, NotificationService
from ..config.settings import settings
from .actions import (
    ACTION_TYPES, Action, BaseAction, BlockerReportedAction, BlockerResolvedAction,
    CloseAction, FormGroupAction, ForwardAction, InProgressAction, ReassignAction,
    ReopenAction, ResolveAction, RevertAction, parse_action
)
from .credit_ledger import CreditLedger
from .graph import NodeAssignment, WorkflowGraph
from .history_writer import HistoryWriter
from ..utils.idgen import format_ticket_number, generate_ticket_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


# Ticket fields an action is allowed to change
MUTABLE_FIELDS = {
    "status",
    "workflow_stage",
    "current_assignee",
    "current_assignees",
    "group_lead",
    "primary_credit",
    "secondary_credits",
    "blockers",
    "workflow_history",
}

URGENCY_FIELD = "default-urgency"


class ActionResult(CamelModel):
    """Ticket state returned after a successful action"""
    ticket_id: str
    ticket_number: str
    status: TicketStatus
    workflow_stage: str
    current_assignee: str
    current_assignees: List[str]
    group_lead: Optional[str] = None
    primary_credit: Optional[Credit] = None
    secondary_credits: List[Credit]
    version: int

    @classmethod
    def from_ticket(cls, ticket: Ticket) -> "ActionResult":
        return cls(
            ticket_id=ticket.ticket_id,
            ticket_number=ticket.ticket_number,
            status=ticket.status,
            workflow_stage=ticket.workflow_stage,
            current_assignee=ticket.current_assignee,
            current_assignees=ticket.current_assignees,
            group_lead=ticket.group_lead,
            primary_credit=ticket.primary_credit,
            secondary_credits=ticket.secondary_credits,
            version=ticket.version
        )


class ActionContext:
    """Working state of one action while its handler runs"""

    def __init__(self, ticket: Ticket, graph: WorkflowGraph, action: BaseAction):
        self.ticket = ticket
        self.graph = graph
        self.action = action
        self.actor: Credit = action.performed_by
        self.is_first_node = graph.is_first_employee_node(ticket.workflow_stage)
        self.ledger = CreditLedger(ticket)
        self.history = HistoryWriter(ticket, action.performed_by)
        self.events: List[NotificationEvent] = []

    def notify(self, template_key: NotificationTemplateKey, recipient_ids: List[str] = None,
               notify_requester: bool = False, **extra) -> None:
        self.events.append(NotificationEvent(
            template_key=template_key,
            recipient_ids=recipient_ids or [],
            notify_requester=notify_requester,
            extra=extra
        ))


class WorkflowEngine:
    """
    The Workflow Engine - Central orchestrator for ticket actions

    Responsibilities:
    - Create tickets at the first employee node of their workflow
    - Apply actions to tickets following the workflow graph
    - Maintain primary/secondary credit attribution
    - Commit with optimistic concurrency
    - Enqueue notifications after commit
    """

    def __init__(
        self,
        ticket_repo: Optional[TicketRepository] = None,
        functionality_repo: Optional[FunctionalityRepository] = None,
        directory_service: Optional[DirectoryService] = None,
        attachment_service: Optional[AttachmentService] = None,
        notification_service: Optional[NotificationService] = None
    ):
        self.ticket_repo = ticket_repo or TicketRepository()
        self.functionality_repo = functionality_repo or FunctionalityRepository()
        self.directory_service = directory_service or DirectoryService()
        self.attachment_service = attachment_service or AttachmentService()
        self.notification_service = notification_service or NotificationService(
            directory_service=self.directory_service
        )

        self._handlers: Dict[type, Callable[[ActionContext], None]] = {
            InProgressAction: self.handle_in_progress,
            ForwardAction: self.handle_forward,
            ReassignAction: self.handle_reassign,
            FormGroupAction: self.handle_form_group,
            RevertAction: self.handle_revert,
            BlockerReportedAction: self.handle_blocker_reported,
            BlockerResolvedAction: self.handle_blocker_resolved,
            ResolveAction: self.handle_resolve,
            CloseAction: self.handle_close,
            ReopenAction: self.handle_reopen,
        }
        unhandled = set(ACTION_TYPES.values()) - set(self._handlers)
        if unhandled:
            raise RuntimeError(f"No handler for actions: {sorted(t.__name__ for t in unhandled)}")

    # =========================================================================
    # Ticket Creation
    # =========================================================================

    def create_ticket(
        self,
        functionality_id: str,
        raised_by: RaisedBy,
        form_data: Dict[str, Any],
        priority: Optional[Priority] = None,
        attachments: Optional[List[AttachmentPayload]] = None
    ) -> Ticket:
        """
        Create a ticket at the first employee node of the functionality's workflow

        The first node's holder(s) are assigned and credited: the single
        employee or group lead takes primary, other group members secondary.
        """
        functionality = self.functionality_repo.get_functionality_or_raise(functionality_id)
        graph = WorkflowGraph(functionality.workflow)
        first_node = graph.first_employee_node
        assignment = graph.assignment_for(first_node)

        now = utc_now()
        sequence = self.ticket_repo.next_ticket_sequence(settings.ticket_number_prefix, now.year)

        ticket = Ticket(
            ticket_id=generate_ticket_id(),
            ticket_number=format_ticket_number(settings.ticket_number_prefix, now.year, sequence),
            functionality_id=functionality.functionality_id,
            functionality_name=functionality.name,
            department=functionality.department,
            raised_by=raised_by,
            form_data=form_data,
            priority=priority or self._priority_from_form(form_data),
            status=TicketStatus.PENDING,
            workflow_stage=first_node.id,
            current_assignee=assignment.current_assignee,
            current_assignees=assignment.current_assignees,
            group_lead=assignment.group_lead,
            created_at=now,
            updated_at=now
        )

        credits = self.directory_service.resolve(assignment.current_assignees)
        CreditLedger(ticket).credit_assignees(
            [credits[i] for i in assignment.current_assignees if i in credits],
            is_first_node=True,
            lead_id=assignment.current_assignee
        )

        attachment_paths = self._store_attachments(ticket.ticket_number, attachments or [])

        requester = Credit(user_id=raised_by.user_id, name=raised_by.name)
        HistoryWriter(ticket, requester, now).forwarded(
            from_node=graph.start_node.id,
            to_node=first_node.id,
            explanation="Ticket created",
            attachments=attachment_paths
        )

        try:
            self.ticket_repo.create_ticket(ticket)
        except Exception:
            self._discard_attachments(ticket.workflow_history)
            raise

        logger.info(
            f"Ticket {ticket.ticket_number} created at {first_node.id}",
            extra={
                "ticket_id": ticket.ticket_id,
                "functionality_id": functionality_id,
                "user_id": raised_by.user_id,
                "node_id": first_node.id
            }
        )

        self.notification_service.dispatch(
            [NotificationEvent(
                template_key=NotificationTemplateKey.TICKET_ASSIGNED,
                recipient_ids=ticket.current_assignees,
                extra={"priority": ticket.priority, "to_node_label": first_node.data.label}
            )],
            ticket,
            requester
        )
        return ticket

    def _priority_from_form(self, form_data: Dict[str, Any]) -> Priority:
        raw = form_data.get(URGENCY_FIELD)
        if isinstance(raw, str):
            try:
                return Priority(raw.strip().lower())
            except ValueError:
                logger.warning(f"Ignoring unknown urgency value: {raw}")
        return Priority.MEDIUM

    # =========================================================================
    # Action Processing
    # =========================================================================

    def process_action(self, ticket_id: str, payload: Union[Dict[str, Any], Action]) -> ActionResult:
        """
        Apply one action to a ticket and commit it

        Raises:
            ValidationError / UnknownActionError: malformed request
            TicketNotFoundError, FunctionalityNotFoundError, NodeNotFoundError,
            EmployeeNotFoundError: referential failures
            IllegalTransitionError: action not allowed here
            ConcurrencyError: the ticket changed since it was loaded
        """
        action = payload if isinstance(payload, BaseAction) else parse_action(payload)

        ticket = self.ticket_repo.get_ticket_or_raise(ticket_id)
        functionality = self.functionality_repo.get_functionality_or_raise(ticket.functionality_id)
        graph = WorkflowGraph(functionality.workflow)

        ctx = ActionContext(ticket.model_copy(deep=True), graph, action)
        history_before = len(ticket.workflow_history)

        try:
            self._handlers[type(action)](ctx)
            updates = ctx.ticket.model_dump(include=MUTABLE_FIELDS)
            committed = self.ticket_repo.update_ticket(ticket_id, updates, expected_version=ticket.version)
        except Exception:
            self._discard_attachments(ctx.ticket.workflow_history[history_before:])
            raise

        logger.info(
            f"Action {action.action} on {committed.ticket_number} by {action.performed_by.user_id}: "
            f"stage={committed.workflow_stage}, +{len(committed.workflow_history) - history_before} history",
            extra={
                "ticket_id": ticket_id,
                "action": action.action,
                "status": committed.status,
                "user_id": action.performed_by.user_id,
                "node_id": committed.workflow_stage
            }
        )

        if ctx.events:
            self.notification_service.dispatch(ctx.events, committed, action.performed_by)

        return ActionResult.from_ticket(committed)

    # =========================================================================
    # Status Handlers
    # =========================================================================

    def handle_in_progress(self, ctx: ActionContext) -> None:
        ctx.ledger.credit_actor(ctx.actor, ctx.is_first_node)
        ctx.ticket.status = TicketStatus.IN_PROGRESS
        ctx.history.write(HistoryActionType.IN_PROGRESS)

    def handle_blocker_reported(self, ctx: ActionContext) -> None:
        action: BlockerReportedAction = ctx.action

        ctx.ledger.credit_actor(ctx.actor, ctx.is_first_node)
        ctx.ticket.status = TicketStatus.BLOCKED
        ctx.ticket.blockers.append(Blocker(
            description=action.blocker_description,
            reported_by=ctx.actor.user_id,
            reported_by_name=ctx.actor.name,
            reported_at=ctx.history.performed_at,
            is_resolved=False
        ))
        ctx.history.write(
            HistoryActionType.BLOCKER_REPORTED,
            blocker_description=action.blocker_description
        )

    def handle_blocker_resolved(self, ctx: ActionContext) -> None:
        action: BlockerResolvedAction = ctx.action

        if not ctx.ticket.blockers:
            raise IllegalTransitionError(
                "Ticket has no blocker to resolve",
                details={"ticket_id": ctx.ticket.ticket_id}
            )

        ctx.ledger.credit_actor(ctx.actor, ctx.is_first_node)

        # Most recent open blocker, else the most recent one is stamped again
        open_blockers = [b for b in ctx.ticket.blockers if not b.is_resolved]
        blocker = (open_blockers or ctx.ticket.blockers)[-1]
        blocker.is_resolved = True
        blocker.resolved_by = ctx.actor.user_id
        blocker.resolved_by_name = ctx.actor.name
        blocker.resolved_at = ctx.history.performed_at

        ctx.ticket.status = TicketStatus.IN_PROGRESS
        ctx.history.write(
            HistoryActionType.BLOCKER_RESOLVED,
            blocker_description=blocker.description,
            explanation=action.explanation
        )

    def handle_resolve(self, ctx: ActionContext) -> None:
        action: ResolveAction = ctx.action

        ctx.ledger.credit_actor(ctx.actor, ctx.is_first_node)
        ctx.ticket.status = TicketStatus.RESOLVED
        ctx.history.write(HistoryActionType.RESOLVED, explanation=action.explanation)
        ctx.notify(NotificationTemplateKey.TICKET_RESOLVED, notify_requester=True)

    def handle_close(self, ctx: ActionContext) -> None:
        action: CloseAction = ctx.action

        ctx.ticket.status = TicketStatus.CLOSED
        ctx.history.write(HistoryActionType.CLOSED, explanation=action.explanation)

    # =========================================================================
    # Stage Handlers
    # =========================================================================

    def handle_forward(self, ctx: ActionContext) -> None:
        """
        Move the ticket to toNode

        End targets resolve the ticket (forwarded + resolved history). Employee
        targets hand the ticket to the node's holder(s).
        """
        action: ForwardAction = ctx.action
        graph = ctx.graph
        target = graph.target_of(action.to_node)

        if target.type == NodeKind.START:
            raise IllegalTransitionError(
                "Cannot forward a ticket to the start node",
                details={"to_node": action.to_node}
            )

        from_node = ctx.ticket.workflow_stage
        assignment = None
        holders: List[Credit] = []
        if target.type == NodeKind.EMPLOYEE:
            assignment = graph.assignment_for(target)
            holders = self._resolve_holders(assignment)

        attachment_paths = self._store_attachments(ctx.ticket.ticket_number, action.attachments)

        ctx.ledger.credit_actor(ctx.actor, ctx.is_first_node)
        ctx.ticket.workflow_stage = target.id

        if target.type == NodeKind.END:
            ctx.ticket.status = TicketStatus.RESOLVED
            ctx.history.forwarded(from_node, target.id, action.explanation, attachment_paths)
            ctx.history.write(HistoryActionType.RESOLVED, from_node=target.id, to_node=target.id)
            ctx.notify(NotificationTemplateKey.TICKET_RESOLVED, notify_requester=True)
            return

        ctx.ledger.credit_assignees(
            holders,
            is_first_node=graph.is_first_employee_node(target.id),
            lead_id=assignment.current_assignee
        )
        self._assign(ctx.ticket, assignment)
        ctx.ticket.status = TicketStatus.PENDING

        ctx.history.write(
            HistoryActionType.FORWARDED,
            from_node=from_node,
            to_node=target.id,
            explanation=action.explanation,
            attachments=attachment_paths,
            group_members=self._roster(holders, assignment.group_lead) if assignment.group_lead else None
        )
        ctx.notify(
            NotificationTemplateKey.TICKET_FORWARDED,
            recipient_ids=assignment.current_assignees,
            explanation=action.explanation,
            to_node_label=target.data.label or target.id
        )

    def handle_revert(self, ctx: ActionContext) -> None:
        """Send the ticket back along its unique inbound edge"""
        action: RevertAction = ctx.action
        graph = ctx.graph
        current = ctx.ticket.workflow_stage

        if ctx.is_first_node:
            raise IllegalTransitionError(
                "Cannot revert from the first employee node",
                details={"workflow_stage": current}
            )

        predecessor = graph.predecessor_of(current)
        if predecessor.type != NodeKind.EMPLOYEE:
            raise IllegalTransitionError(
                f"Cannot revert to a {predecessor.type} node",
                details={"workflow_stage": current, "predecessor": predecessor.id}
            )

        assignment = graph.assignment_for(predecessor)
        attachment_paths = self._store_attachments(ctx.ticket.ticket_number, action.attachments)

        # Reverting never happens at the first node, so this is always secondary
        ctx.ledger.add_secondary(ctx.actor)
        self._assign(ctx.ticket, assignment)
        ctx.ticket.workflow_stage = predecessor.id
        ctx.ticket.status = TicketStatus.PENDING

        ctx.history.reverted(current, predecessor.id, action.revert_message, attachment_paths)
        ctx.notify(
            NotificationTemplateKey.TICKET_REVERTED,
            recipient_ids=assignment.current_assignees,
            explanation=action.revert_message,
            to_node_label=predecessor.data.label or predecessor.id
        )

    def handle_reassign(self, ctx: ActionContext) -> None:
        """
        Hand the ticket to other people without moving the stage

        At the first node the primary credit moves to the first new assignee;
        elsewhere the performer gives up their secondary credit to the new
        assignees.
        """
        action: ReassignAction = ctx.action
        new_holders = self.directory_service.require_all(action.reassign_to)

        if ctx.is_first_node:
            ctx.ledger.transfer_primary(new_holders[0])
        else:
            ctx.ledger.hand_off(ctx.actor.user_id, new_holders)

        ctx.ticket.current_assignee = new_holders[0].user_id
        ctx.ticket.current_assignees = [c.user_id for c in new_holders]
        ctx.ticket.group_lead = None
        ctx.ticket.status = TicketStatus.PENDING

        ctx.history.write(
            HistoryActionType.REASSIGNED,
            from_node=ctx.ticket.workflow_stage,
            to_node=ctx.ticket.workflow_stage,
            explanation=action.explanation,
            reassigned_to=ctx.ticket.current_assignees
        )
        ctx.notify(
            NotificationTemplateKey.TICKET_REASSIGNED,
            recipient_ids=ctx.ticket.current_assignees,
            explanation=action.explanation
        )

    def handle_form_group(self, ctx: ActionContext) -> None:
        """Turn the current holder set into a lead plus members"""
        action: FormGroupAction = ctx.action
        roster = self.directory_service.require_all(action.roster_ids)

        ctx.ledger.credit_assignees(roster, ctx.is_first_node, lead_id=action.group_lead)

        ctx.ticket.current_assignee = action.group_lead
        ctx.ticket.current_assignees = [c.user_id for c in roster]
        ctx.ticket.group_lead = action.group_lead
        ctx.ticket.status = TicketStatus.PENDING

        ctx.history.group_formed(ctx.ticket.workflow_stage, roster, action.group_lead)
        lead_name = next(c.name for c in roster if c.user_id == action.group_lead)
        ctx.notify(
            NotificationTemplateKey.GROUP_FORMED,
            recipient_ids=ctx.ticket.current_assignees,
            group_lead_name=lead_name,
            member_names=[c.name for c in roster]
        )

    def handle_reopen(self, ctx: ActionContext) -> None:
        """
        Revive a ticket at a caller-chosen node

        Any node other than Start is accepted; holders are left untouched.
        """
        action: ReopenAction = ctx.action
        target = ctx.graph.target_of(action.to_node)

        if target.type == NodeKind.START:
            raise IllegalTransitionError(
                "Cannot reopen a ticket at the start node",
                details={"to_node": action.to_node}
            )
        if ctx.ticket.status not in (TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value):
            logger.info(
                f"Reopening non-terminal ticket {ctx.ticket.ticket_number} (status {ctx.ticket.status})",
                extra={"ticket_id": ctx.ticket.ticket_id}
            )

        from_node = ctx.ticket.workflow_stage
        ctx.ticket.workflow_stage = target.id
        ctx.ticket.status = TicketStatus.PENDING
        ctx.history.write(
            HistoryActionType.REOPENED,
            from_node=from_node,
            to_node=target.id,
            explanation=action.explanation
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_holders(self, assignment: NodeAssignment) -> List[Credit]:
        """Credits for a node's holders, lead first; unknown ids are skipped"""
        credits = self.directory_service.resolve(assignment.current_assignees)
        return [credits[i] for i in assignment.current_assignees if i in credits]

    @staticmethod
    def _assign(ticket: Ticket, assignment: NodeAssignment) -> None:
        ticket.current_assignee = assignment.current_assignee
        ticket.current_assignees = list(assignment.current_assignees)
        ticket.group_lead = assignment.group_lead

    @staticmethod
    def _roster(members: List[Credit], lead_id: Optional[str]) -> List[Dict[str, Any]]:
        return [
            {"user_id": m.user_id, "name": m.name, "is_lead": m.user_id == lead_id}
            for m in members
        ]

    def _store_attachments(self, ticket_number: str, attachments: List[AttachmentPayload]) -> List[str]:
        if not attachments:
            return []
        return self.attachment_service.save_all(ticket_number, attachments)

    def _discard_attachments(self, entries: List[HistoryEntry]) -> None:
        paths = [path for entry in entries for path in entry.attachments]
        if paths:
            self.attachment_service.discard(paths)
