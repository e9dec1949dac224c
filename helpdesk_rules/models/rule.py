from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Enum, JSON, Index
from sqlalchemy.sql import func
from helpdesk_rules.database.base_class import Base
import enum


class ConditionType(str, enum.Enum):
    DESCRIPTION = "DESCRIPTION"  # shown as "Subject" in the UI, maps to the ticket title
    TICKET_BODY = "TICKET_BODY"
    USER = "USER"
    USER_DOMAIN = "USER_DOMAIN"
    INBOX = "INBOX"
    AGENT = "AGENT"
    COMPANY = "COMPANY"
    PRIORITY = "PRIORITY"
    CATEGORY = "CATEGORY"
    NOTE = "NOTE"


class ConditionOperator(str, enum.Enum):
    EQL = "eql"
    NEQL = "neql"
    CON = "con"
    NCON = "ncon"


class LogicalOperator(str, enum.Enum):
    AND = "AND"
    OR = "OR"


class ActionType(str, enum.Enum):
    SET_AGENT = "SET_AGENT"
    SET_PRIORITY = "SET_PRIORITY"
    SET_STATUS = "SET_STATUS"
    SET_TEAM = "SET_TEAM"
    SET_CATEGORY = "SET_CATEGORY"
    ALSO_NOTIFY = "ALSO_NOTIFY"


class AutomationRule(Base):
    """Automation/workflow rule. Conditions and actions are embedded JSON lists owned by the rule."""
    __tablename__ = "automation_rules"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_enabled = Column(Boolean, default=True, nullable=False)
    trigger = Column(String(100), nullable=False)  # 'ticket.created', 'message.urgency_high', etc.
    conditions_operator = Column(Enum(LogicalOperator), default=LogicalOperator.AND, nullable=False)
    actions_operator = Column(Enum(LogicalOperator), default=LogicalOperator.AND, nullable=False)
    conditions = Column(JSON, nullable=False, default=list)
    actions = Column(JSON, nullable=False, default=list)
    message_analysis_rules = Column(JSON, nullable=True)  # only for content-based (message.*) triggers
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_automation_rules_workspace_trigger", "workspace_id", "trigger"),
    )
