"""
Tests for trigger matching.
"""
from helpdesk_rules.schemas.event import DomainEvent
from helpdesk_rules.services.trigger_matcher import match, trigger_selects

ANALYSIS = {"urgency_keywords": ["urgent"], "min_confidence": 0.5}


def event(trigger="ticket.created", workspace_id=1) -> DomainEvent:
    return DomainEvent(trigger=trigger, ticket_id=10, workspace_id=workspace_id)


class TestMatch:

    def test_exact_trigger_and_enabled_only(self, make_rule):
        rules = [
            make_rule(trigger="ticket.created"),
            make_rule(trigger="ticket.created", is_enabled=False),
            make_rule(trigger="ticket.updated"),
        ]
        assert [r.id for r in match(event(), rules)] == [1]

    def test_other_workspaces_are_ignored(self, make_rule):
        rules = [make_rule(workspace_id=1), make_rule(workspace_id=2)]
        assert [r.workspace_id for r in match(event(workspace_id=2), rules)] == [2]

    def test_message_received_selects_content_rules(self, make_rule):
        rules = [
            make_rule(trigger="message.received", message_analysis_rules=ANALYSIS),
            make_rule(trigger="message.urgency_high", message_analysis_rules=ANALYSIS),
            make_rule(trigger="ticket.created"),
        ]
        assert [r.trigger for r in match(event("message.received"), rules)] == [
            "message.received",
            "message.urgency_high",
        ]

    def test_content_rule_without_analysis_rules_is_not_matched(self, make_rule):
        rules = [make_rule(trigger="message.urgency_high")]
        assert match(event("message.urgency_high"), rules) == []


def test_trigger_selects():
    assert trigger_selects("ticket.created", "ticket.created")
    assert trigger_selects("message.received", "message.category_billing")
    assert not trigger_selects("message.urgency_high", "message.received")
    assert not trigger_selects("ticket.created", "message.received")
