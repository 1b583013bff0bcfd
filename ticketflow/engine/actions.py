"""
Action Variants

Each action the processor accepts is a distinct model carrying only the
fields that action needs. Payloads are parsed into the union by their
`action` tag; unknown tags are rejected before any field validation so
callers get UnknownActionError rather than a generic validation failure.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..domain.enums import ACTION_ALIASES, ActionKind
from ..domain.errors import UnknownActionError, ValidationError
from ..domain.models import AttachmentPayload, CamelModel, Credit


class BaseAction(CamelModel):
    """Fields shared by every action"""
    model_config = ConfigDict(str_strip_whitespace=True)

    performed_by: Credit


# =============================================================================
# Status-only actions
# =============================================================================

class InProgressAction(BaseAction):
    action: Literal["in_progress"]


class ResolveAction(BaseAction):
    action: Literal["resolve"]
    explanation: Optional[str] = None


class CloseAction(BaseAction):
    action: Literal["close"]
    explanation: Optional[str] = None


class BlockerReportedAction(BaseAction):
    action: Literal["blocker_reported"]
    blocker_description: str = Field(..., min_length=1, max_length=5000)


class BlockerResolvedAction(BaseAction):
    action: Literal["blocker_resolved"]
    explanation: Optional[str] = None


# =============================================================================
# Stage-moving actions
# =============================================================================

class ForwardAction(BaseAction):
    action: Literal["forward"]
    to_node: str = Field(..., min_length=1)
    explanation: str = Field(..., min_length=1, max_length=5000)
    attachments: List[AttachmentPayload] = Field(default_factory=list)


class RevertAction(BaseAction):
    action: Literal["revert"]
    revert_message: str = Field(..., min_length=1, max_length=5000)
    attachments: List[AttachmentPayload] = Field(default_factory=list)


class ReopenAction(BaseAction):
    action: Literal["reopen"]
    to_node: str = Field(..., min_length=1)
    explanation: Optional[str] = None


class ReassignAction(BaseAction):
    action: Literal["reassign"]
    reassign_to: List[str] = Field(..., min_length=1)
    explanation: Optional[str] = None

    @field_validator("reassign_to")
    @classmethod
    def dedupe_targets(cls, v: List[str]) -> List[str]:
        targets = list(dict.fromkeys(t.strip() for t in v if t and t.strip()))
        if not targets:
            raise ValueError("reassignTo must contain at least one user id")
        return targets


class GroupMemberInput(CamelModel):
    """Group member as sent by clients; a bare id string is also accepted"""
    user_id: str = Field(..., min_length=1)
    name: Optional[str] = None


class FormGroupAction(BaseAction):
    action: Literal["form_group"]
    group_members: List[GroupMemberInput] = Field(..., min_length=1)
    group_lead: str = Field(..., min_length=1)

    @field_validator("group_members", mode="before")
    @classmethod
    def coerce_member_ids(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [{"userId": m} if isinstance(m, str) else m for m in v]
        return v

    @model_validator(mode="after")
    def check_roster(self) -> "FormGroupAction":
        if len(self.roster_ids) < 2:
            raise ValueError("A group needs at least 2 members including the lead")
        return self

    @property
    def roster_ids(self) -> List[str]:
        """Lead first, then the remaining members in submitted order"""
        ids = [self.group_lead] + [m.user_id for m in self.group_members]
        return list(dict.fromkeys(ids))


Action = Annotated[
    Union[
        InProgressAction,
        ForwardAction,
        ReassignAction,
        FormGroupAction,
        RevertAction,
        BlockerReportedAction,
        BlockerResolvedAction,
        ResolveAction,
        CloseAction,
        ReopenAction,
    ],
    Field(discriminator="action"),
]

ACTION_TYPES = {
    ActionKind.IN_PROGRESS: InProgressAction,
    ActionKind.FORWARD: ForwardAction,
    ActionKind.REASSIGN: ReassignAction,
    ActionKind.FORM_GROUP: FormGroupAction,
    ActionKind.REVERT: RevertAction,
    ActionKind.BLOCKER_REPORTED: BlockerReportedAction,
    ActionKind.BLOCKER_RESOLVED: BlockerResolvedAction,
    ActionKind.RESOLVE: ResolveAction,
    ActionKind.CLOSE: CloseAction,
    ActionKind.REOPEN: ReopenAction,
}

_action_adapter = TypeAdapter(Action)


def normalize_action(raw: Any) -> ActionKind:
    """Map an action string (or legacy alias) onto ActionKind"""
    if isinstance(raw, str):
        value = raw.strip()
        if value in ACTION_ALIASES:
            return ACTION_ALIASES[value]
        try:
            return ActionKind(value)
        except ValueError:
            pass
    raise UnknownActionError(
        f"Unknown action: {raw}",
        details={"action": raw, "allowed": [k.value for k in ActionKind]}
    )


def parse_action(payload: Dict[str, Any]) -> Action:
    """
    Parse a raw request body into its action variant

    Raises:
        ValidationError: body is not an object, or required fields are missing
        UnknownActionError: action tag is not recognised
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    if not payload.get("action"):
        raise ValidationError("action is required", details={"field": "action"})

    kind = normalize_action(payload["action"])

    try:
        return _action_adapter.validate_python({**payload, "action": kind.value})
    except PydanticValidationError as e:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"][1:] or err["loc"]),
                "message": err["msg"],
            }
            for err in e.errors()
        ]
        raise ValidationError(
            f"Invalid {kind.value} action",
            details={"action": kind.value, "errors": errors}
        )
