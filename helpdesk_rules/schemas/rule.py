from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime

from helpdesk_rules.models.rule import ConditionType, ConditionOperator, LogicalOperator, ActionType


# Condition schemas
class RuleCondition(BaseModel):
    condition_type: ConditionType
    condition_operator: ConditionOperator = ConditionOperator.EQL
    condition_value: Optional[str] = None
    # Connector between this condition and the next one; ignored on the last condition
    logical_operator: Optional[LogicalOperator] = None


# Action schemas
class RuleAction(BaseModel):
    action_type: ActionType
    action_value: Optional[str] = None
    config: Dict[str, Any] = {}


class MessageAnalysisRule(BaseModel):
    """Rules for analyzing message content"""
    keywords: List[str] = []
    exclude_keywords: List[str] = []
    sentiment_threshold: Optional[float] = Field(None, ge=-1.0, le=1.0)
    urgency_keywords: List[str] = []
    language: Optional[str] = None
    min_confidence: float = Field(0.7, ge=0.0, le=1.0)


# Rule schemas
class RuleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    is_enabled: bool = True
    trigger: str
    conditions_operator: LogicalOperator = LogicalOperator.AND
    actions_operator: LogicalOperator = LogicalOperator.AND
    message_analysis_rules: Optional[MessageAnalysisRule] = None
    conditions: List[RuleCondition] = []
    actions: List[RuleAction] = []

    @property
    def is_content_based(self) -> bool:
        return self.trigger.startswith("message.")


class RuleCreate(RuleBase):
    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()


class RuleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_enabled: Optional[bool] = None
    trigger: Optional[str] = None
    conditions_operator: Optional[LogicalOperator] = None
    actions_operator: Optional[LogicalOperator] = None
    message_analysis_rules: Optional[MessageAnalysisRule] = None
    conditions: Optional[List[RuleCondition]] = None
    actions: Optional[List[RuleAction]] = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip() if v else v


class Rule(RuleBase):
    id: int
    workspace_id: int
    created_at: datetime
    updated_at: datetime
    created_by: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class RuleToggle(BaseModel):
    is_enabled: bool


class RuleStats(BaseModel):
    total_count: int
    enabled_count: int


# Catalog options exposed to the configuration UI
class TriggerOption(BaseModel):
    value: str
    label: str
    description: str
    content_based: bool = False


class ActionOption(BaseModel):
    id: ActionType
    name: str
    description: str
    config_schema: Dict[str, Any] = {}


# Message analysis result
class MessageAnalysisResult(BaseModel):
    sentiment: float  # -1 to 1
    urgency_level: str  # low, medium, high
    keywords_found: List[str] = []
    excluded_keywords_found: List[str] = []
    categories: List[str] = []
    language: str = "unknown"
    confidence: float = 0.0
    vetoed: bool = False


class AnalysisRequest(BaseModel):
    message: str
    analysis_rules: Optional[MessageAnalysisRule] = None


class AnalysisResponse(BaseModel):
    message: str
    analysis: MessageAnalysisResult
    analysis_rules: Optional[MessageAnalysisRule] = None
