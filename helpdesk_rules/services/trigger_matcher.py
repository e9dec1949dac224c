from typing import Iterable, List

from helpdesk_rules.schemas.event import DomainEvent
from helpdesk_rules.schemas.rule import Rule
from helpdesk_rules.services.catalog import MESSAGE_RECEIVED
from helpdesk_rules.utils.logger import logger


def is_content_trigger(trigger: str) -> bool:
    return trigger.startswith("message.")


def trigger_selects(event_trigger: str, rule_trigger: str) -> bool:
    """An inbound message event also selects every content-qualified message.* rule."""
    if rule_trigger == event_trigger:
        return True
    return event_trigger == MESSAGE_RECEIVED and is_content_trigger(rule_trigger)


def match(event: DomainEvent, rules: Iterable[Rule]) -> List[Rule]:
    """
    Select the enabled rules of the event's workspace whose trigger matches the event.

    No ordering between rules is implied; every returned rule is evaluated on its own.
    """
    matched = []
    for rule in rules:
        if not rule.is_enabled or rule.workspace_id != event.workspace_id:
            continue
        if not trigger_selects(event.trigger, rule.trigger):
            continue
        if is_content_trigger(rule.trigger) and rule.message_analysis_rules is None:
            logger.warning(
                f"Rule {rule.id} ({rule.name}) has content trigger {rule.trigger} without analysis rules, not matched",
                extra={"rule_id": rule.id, "workspace_id": rule.workspace_id},
            )
            continue
        matched.append(rule)

    logger.debug(f"Trigger {event.trigger} matched {len(matched)} rules for ticket {event.ticket_id}")
    return matched
