from typing import List, Optional, Dict, Union
from pydantic import BaseModel
from enum import Enum

from helpdesk_rules.models.rule import ConditionType, LogicalOperator, ActionType
from helpdesk_rules.schemas.rule import MessageAnalysisResult


class DomainEvent(BaseModel):
    """Something happened to a ticket (created, status changed, message received, ...)."""
    trigger: str
    ticket_id: int
    workspace_id: int
    fields: Dict[ConditionType, str] = {}
    message_body: Optional[str] = None

    def facts(self) -> Dict[ConditionType, str]:
        """Fact map for condition evaluation, with USER_DOMAIN derived from the user email."""
        facts = dict(self.fields)
        if ConditionType.USER_DOMAIN not in facts:
            email = facts.get(ConditionType.USER, "")
            email_parts = email.split("@")
            if len(email_parts) > 1 and email_parts[-1]:
                facts[ConditionType.USER_DOMAIN] = email_parts[-1]
        return facts


class EventCreate(BaseModel):
    """Inbound event body; the workspace comes from the URL."""
    trigger: str
    ticket_id: int
    fields: Dict[ConditionType, str] = {}
    message_body: Optional[str] = None

    def to_event(self, workspace_id: int) -> DomainEvent:
        return DomainEvent(workspace_id=workspace_id, **self.model_dump())


class MutationResult(BaseModel):
    """Outcome of a single call on the ticket-mutation surface."""
    success: bool
    error: Optional[str] = None
    transient: bool = False

    @classmethod
    def ok(cls) -> "MutationResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str, transient: bool = False) -> "MutationResult":
        return cls(success=False, error=error, transient=transient)


class ActionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"  # not attempted, an earlier action already satisfied an OR policy
    NOTIFY_FAILED = "notify_failed"


class ReportStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


class ActionResult(BaseModel):
    action_type: ActionType
    value: Optional[Union[str, int, float]] = None
    status: ActionStatus
    attempts: int = 0
    error: Optional[str] = None


class ExecutionReport(BaseModel):
    operator: LogicalOperator
    status: ReportStatus
    results: List[ActionResult] = []

    @property
    def succeeded(self) -> List[ActionResult]:
        return [r for r in self.results if r.status == ActionStatus.SUCCESS]

    @property
    def failed(self) -> List[ActionResult]:
        return [r for r in self.results if r.status == ActionStatus.FAILED]


class RuleExecution(BaseModel):
    rule_id: int
    rule_name: str
    trigger: str
    fired: bool
    analysis: Optional[MessageAnalysisResult] = None
    report: Optional[ExecutionReport] = None
    skipped_reason: Optional[str] = None
