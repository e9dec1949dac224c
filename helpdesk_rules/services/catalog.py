"""
Trigger and action catalogs.

Both catalogs are plain registry data: validation, the action executor and the
configuration endpoints all read from them, so a new action type only needs a
new ActionSpec (plus the surface method it names).
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from helpdesk_rules.models.rule import ActionType, ConditionType
from helpdesk_rules.schemas.rule import ActionOption, RuleAction, TriggerOption

PRIORITY_OPTIONS: Tuple[str, ...] = ("Low", "Medium", "High", "Critical")
STATUS_OPTIONS: Tuple[str, ...] = ("Unread", "Open", "With User", "In Progress", "Closed")

# Condition fields whose values come from a closed set
ENUM_CONDITION_OPTIONS: Dict[ConditionType, Tuple[str, ...]] = {
    ConditionType.PRIORITY: PRIORITY_OPTIONS,
}


def canonicalize(value: Any, options: Iterable[str]) -> Optional[str]:
    """Return the option label matching value case-insensitively, or None."""
    if not isinstance(value, str):
        return None
    needle = value.strip().casefold()
    for option in options:
        if option.casefold() == needle:
            return option
    return None


class FieldKind(str, Enum):
    STRING = "string"
    ENUM = "enum"
    NUMBER = "number"


@dataclass(frozen=True)
class ConfigField:
    name: str
    kind: FieldKind
    description: str = ""
    required: bool = True
    options: Tuple[str, ...] = ()

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {
            "type": "number" if self.kind == FieldKind.NUMBER else "string",
            "description": self.description,
            "required": self.required,
        }
        if self.kind == FieldKind.ENUM:
            schema["enum"] = list(self.options)
        return schema

    def check(self, value: Any) -> Optional[str]:
        """Return an error message for value, or None if it is acceptable."""
        if value is None or (isinstance(value, str) and not value.strip()):
            return f"missing required config field '{self.name}'" if self.required else None

        if self.kind == FieldKind.NUMBER:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return f"config field '{self.name}' must be a number"
            return None

        if not isinstance(value, str):
            return f"config field '{self.name}' must be a string"

        if self.kind == FieldKind.ENUM and canonicalize(value, self.options) is None:
            return f"config field '{self.name}' must be one of {list(self.options)}, got '{value}'"
        return None


@dataclass(frozen=True)
class ActionSpec:
    action_type: ActionType
    name: str
    description: str
    mutation: str  # name of the TicketMutationSurface method this action calls
    fields: Tuple[ConfigField, ...]
    notify: bool = False

    @property
    def primary_field(self) -> ConfigField:
        return self.fields[0]

    def raw_value(self, action: RuleAction) -> Any:
        """The action's target value: config entry first, then action_value."""
        value = action.config.get(self.primary_field.name)
        if value is None:
            value = action.action_value
        return value

    def validate(self, action: RuleAction) -> List[str]:
        errors = []
        for config_field in self.fields:
            if config_field is self.primary_field:
                value = self.raw_value(action)
            else:
                value = action.config.get(config_field.name)
            error = config_field.check(value)
            if error:
                errors.append(f"{self.action_type.value}: {error}")
        return errors

    def resolve(self, action: RuleAction) -> Tuple[Any, Dict[str, Any]]:
        """Target value (canonicalized for enum fields) plus the secondary config values."""
        value = self.raw_value(action)
        if self.primary_field.kind == FieldKind.ENUM:
            value = canonicalize(value, self.primary_field.options)
        elif isinstance(value, str):
            value = value.strip()
        extra = {
            f.name: action.config[f.name]
            for f in self.fields[1:]
            if action.config.get(f.name) is not None
        }
        return value, extra

    def to_option(self) -> ActionOption:
        return ActionOption(
            id=self.action_type,
            name=self.name,
            description=self.description,
            config_schema={f.name: f.to_schema() for f in self.fields},
        )


class ActionRegistry:
    def __init__(self, specs: Iterable[ActionSpec]):
        self._specs: Dict[ActionType, ActionSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ActionSpec) -> None:
        self._specs[spec.action_type] = spec

    def get(self, action_type: ActionType) -> ActionSpec:
        return self._specs[action_type]

    def __contains__(self, action_type: object) -> bool:
        return action_type in self._specs

    def options(self) -> List[ActionOption]:
        return [spec.to_option() for spec in self._specs.values()]


@dataclass(frozen=True)
class TriggerSpec:
    value: str
    label: str
    description: str

    @property
    def content_based(self) -> bool:
        return self.value.startswith("message.")

    def to_option(self) -> TriggerOption:
        return TriggerOption(
            value=self.value,
            label=self.label,
            description=self.description,
            content_based=self.content_based,
        )


@dataclass
class TriggerRegistry:
    specs: List[TriggerSpec] = field(default_factory=list)

    def is_known(self, trigger: str) -> bool:
        return any(spec.value == trigger for spec in self.specs)

    def options(self) -> List[TriggerOption]:
        return [spec.to_option() for spec in self.specs]


MESSAGE_RECEIVED = "message.received"

DEFAULT_TRIGGERS = TriggerRegistry([
    # Event triggers
    TriggerSpec("ticket.created", "Ticket Created", "When a new ticket is created"),
    TriggerSpec("ticket.updated", "Ticket Updated", "When any ticket field is updated"),
    TriggerSpec("ticket.status_changed", "Status Changed", "When the ticket status changes"),
    TriggerSpec("comment.added", "Comment Added", "When a comment is added to a ticket"),
    TriggerSpec("customer.replied", "Customer Replied", "When the customer replies to a ticket"),
    TriggerSpec("agent.replied", "Agent Replied", "When an agent replies to a ticket"),
    # Content-based triggers
    TriggerSpec(MESSAGE_RECEIVED, "Message Received", "When an inbound message passes the content analysis rules"),
    TriggerSpec("message.contains_keywords", "Keywords Detected", "When configured keywords are found in messages"),
    TriggerSpec("message.sentiment_negative", "Negative Sentiment", "When negative sentiment is detected in messages"),
    TriggerSpec("message.sentiment_positive", "Positive Sentiment", "When positive sentiment is detected in messages"),
    TriggerSpec("message.urgency_high", "High Urgency Detected", "When high urgency keywords are detected in messages"),
    TriggerSpec("message.urgency_medium", "Medium or High Urgency Detected", "When medium or high urgency is detected in messages"),
    TriggerSpec("message.language_detected", "Language Detected", "When the message is written in the configured language"),
    TriggerSpec("message.category_support", "Support Request", "When the message looks like a support request"),
    TriggerSpec("message.category_billing", "Billing Question", "When the message is about payments or invoices"),
    TriggerSpec("message.category_technical", "Technical Issue", "When the message describes a technical issue"),
    TriggerSpec("message.category_complaint", "Complaint", "When the message contains a complaint"),
    TriggerSpec("message.category_praise", "Praise", "When the message contains praise"),
])

DEFAULT_ACTIONS = ActionRegistry([
    ActionSpec(
        ActionType.SET_AGENT, "Set Agent", "Assign the ticket to an agent",
        mutation="assign_agent",
        fields=(ConfigField("agent", FieldKind.STRING, "Email of the agent to assign"),),
    ),
    ActionSpec(
        ActionType.SET_TEAM, "Set Team", "Assign the ticket to a team",
        mutation="assign_team",
        fields=(ConfigField("team", FieldKind.STRING, "Name of the team to assign"),),
    ),
    ActionSpec(
        ActionType.SET_PRIORITY, "Set Priority", "Change the ticket priority",
        mutation="set_priority",
        fields=(ConfigField("priority", FieldKind.ENUM, "Priority level to set", options=PRIORITY_OPTIONS),),
    ),
    ActionSpec(
        ActionType.SET_STATUS, "Set Status", "Change the ticket status",
        mutation="set_status",
        fields=(ConfigField("status", FieldKind.ENUM, "Status to set", options=STATUS_OPTIONS),),
    ),
    ActionSpec(
        ActionType.SET_CATEGORY, "Set Category", "Change the ticket category",
        mutation="set_category",
        fields=(ConfigField("category", FieldKind.STRING, "Name of the category to set"),),
    ),
    ActionSpec(
        ActionType.ALSO_NOTIFY, "Also Notify", "Send a notification about the ticket to another agent",
        mutation="notify",
        fields=(
            ConfigField("agent", FieldKind.STRING, "Email of the agent to notify"),
            ConfigField("message", FieldKind.STRING, "Optional note included in the notification", required=False),
        ),
        notify=True,
    ),
])


def get_available_triggers() -> List[TriggerOption]:
    return DEFAULT_TRIGGERS.options()


def get_available_actions() -> List[ActionOption]:
    return DEFAULT_ACTIONS.options()
