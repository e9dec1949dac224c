from typing import List

from helpdesk_rules.core.exceptions import InvalidRuleDefinition
from helpdesk_rules.schemas.rule import RuleBase, RuleCondition
from helpdesk_rules.services.catalog import (
    DEFAULT_ACTIONS,
    DEFAULT_TRIGGERS,
    ENUM_CONDITION_OPTIONS,
    ActionRegistry,
    TriggerRegistry,
    canonicalize,
)
from helpdesk_rules.services.message_analysis_service import MessageAnalysisService


def collect_errors(
    rule: RuleBase,
    triggers: TriggerRegistry = DEFAULT_TRIGGERS,
    actions: ActionRegistry = DEFAULT_ACTIONS,
) -> List[str]:
    """Return every problem with the rule definition; an empty list means it can be saved."""
    errors = []

    if not triggers.is_known(rule.trigger):
        errors.append(f"Unknown trigger: '{rule.trigger}'")

    if rule.is_content_based and rule.message_analysis_rules is None:
        errors.append(f"Trigger '{rule.trigger}' is content-based and requires message_analysis_rules")

    if not rule.conditions:
        errors.append("A rule needs at least one condition")
    for index, condition in enumerate(rule.conditions):
        value = condition.condition_value
        if value is None or not value.strip():
            errors.append(f"Condition {index + 1} ({condition.condition_type.value}) has an empty value")
            continue
        options = ENUM_CONDITION_OPTIONS.get(condition.condition_type)
        if options and canonicalize(value, options) is None:
            errors.append(
                f"Condition {index + 1} ({condition.condition_type.value}) must be one of {list(options)}, got '{value}'"
            )

    if not rule.actions:
        errors.append("A rule needs at least one action")
    for index, action in enumerate(rule.actions):
        if action.action_type not in actions:
            errors.append(f"Action {index + 1}: unsupported action type {action.action_type.value}")
            continue
        errors.extend(f"Action {index + 1}: {error}" for error in actions.get(action.action_type).validate(action))

    return errors


def validate_rule(
    rule: RuleBase,
    triggers: TriggerRegistry = DEFAULT_TRIGGERS,
    actions: ActionRegistry = DEFAULT_ACTIONS,
) -> None:
    errors = collect_errors(rule, triggers, actions)
    if errors:
        raise InvalidRuleDefinition(f"Invalid rule '{rule.name}': {errors[0]}", errors)


def _canonical_condition(condition: RuleCondition) -> RuleCondition:
    options = ENUM_CONDITION_OPTIONS.get(condition.condition_type)
    value = condition.condition_value.strip() if condition.condition_value else condition.condition_value
    if options and value:
        value = canonicalize(value, options) or value
    return condition.model_copy(update={"condition_value": value})


def normalize_rule(rule: RuleBase) -> RuleBase:
    """
    Bring a valid rule to its stored form.

    Enum condition values are stored canonically, analysis rules are dropped
    from non-content triggers, and a content rule saved without urgency
    keywords gets the default urgency vocabulary.
    """
    analysis_rules = rule.message_analysis_rules
    if not rule.is_content_based:
        analysis_rules = None
    elif analysis_rules is not None and not analysis_rules.urgency_keywords:
        analysis_rules = analysis_rules.model_copy(
            update={"urgency_keywords": list(MessageAnalysisService.DEFAULT_URGENCY_KEYWORDS)}
        )

    return rule.model_copy(update={
        "message_analysis_rules": analysis_rules,
        "conditions": [_canonical_condition(c) for c in rule.conditions],
    })
