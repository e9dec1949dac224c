"""
Condition chain evaluation.

A rule stores its conditions as a flat list where each condition carries the
connector to the next one. The chain is read as an OR of AND-groups:

    [c1 AND, c2 OR, c3 AND, c4]  ->  (c1 and c2) or (c3 and c4)

There are no parentheses and no operator precedence beyond that; the
configuration UI cannot build nested expressions, so neither can the engine.
"""
from typing import Any, Dict, List, Mapping, Sequence

from helpdesk_rules.core.exceptions import EvaluationFault
from helpdesk_rules.models.rule import ConditionOperator, ConditionType, LogicalOperator
from helpdesk_rules.schemas.rule import RuleCondition
from helpdesk_rules.services.catalog import ENUM_CONDITION_OPTIONS, canonicalize
from helpdesk_rules.utils.logger import logger


def normalize_facts(facts: Any) -> Dict[ConditionType, str]:
    """Coerce a fact map to {ConditionType: str}. Unknown keys are dropped."""
    if not isinstance(facts, Mapping):
        raise EvaluationFault(f"Fact map must be a mapping, got {type(facts).__name__}")

    normalized: Dict[ConditionType, str] = {}
    for key, value in facts.items():
        try:
            condition_type = ConditionType(key)
        except ValueError:
            logger.debug(f"Ignoring unknown fact field: {key}")
            continue
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise EvaluationFault(
                f"Fact '{condition_type.value}' must be a string, got {type(value).__name__}"
            )
        normalized[condition_type] = value
    return normalized


def _comparable(value: str, condition_type: ConditionType) -> str:
    options = ENUM_CONDITION_OPTIONS.get(condition_type)
    if options:
        return canonicalize(value, options) or value.strip().casefold()
    return value.strip()


def evaluate_condition(condition: RuleCondition, facts: Mapping[ConditionType, str]) -> bool:
    """Evaluate one leaf. A missing fact reads as the empty string."""
    expected = condition.condition_value
    if expected is None or not expected.strip():
        raise EvaluationFault(f"Condition on {condition.condition_type.value} has a blank value")

    actual = facts.get(condition.condition_type, "")
    operator = condition.condition_operator

    if operator in (ConditionOperator.EQL, ConditionOperator.NEQL):
        equal = _comparable(actual, condition.condition_type) == _comparable(expected, condition.condition_type)
        return equal if operator == ConditionOperator.EQL else not equal

    if operator in (ConditionOperator.CON, ConditionOperator.NCON):
        contained = expected.strip().casefold() in actual.casefold()
        return contained if operator == ConditionOperator.CON else not contained

    raise EvaluationFault(f"Unknown condition operator: {operator}")


def split_groups(
    conditions: Sequence[RuleCondition],
    default_operator: LogicalOperator = LogicalOperator.AND,
) -> List[List[RuleCondition]]:
    """Split the chain at OR connectors into maximal AND-runs."""
    groups: List[List[RuleCondition]] = [[]]
    last_index = len(conditions) - 1
    for index, condition in enumerate(conditions):
        groups[-1].append(condition)
        if index == last_index:
            break
        connector = condition.logical_operator or default_operator
        if connector == LogicalOperator.OR:
            groups.append([])
    return groups


def evaluate(
    conditions: Sequence[RuleCondition],
    facts: Any,
    default_operator: LogicalOperator = LogicalOperator.AND,
) -> bool:
    """
    Evaluate a condition chain against a fact map.

    Args:
        conditions: ordered leaves; `logical_operator` on leaf i joins it to leaf i+1
        facts: {ConditionType: str}
        default_operator: connector for leaves that carry none (the rule's conditions_operator)

    Returns:
        True if any AND-group has all of its leaves true.
    """
    if not conditions:
        raise EvaluationFault("Cannot evaluate an empty condition chain")

    fact_map = normalize_facts(facts)
    for group in split_groups(conditions, default_operator):
        # all() stops at the first false leaf, which skips only the rest of this group
        if all(evaluate_condition(condition, fact_map) for condition in group):
            return True
    return False
