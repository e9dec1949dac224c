"""
Tests for end-to-end event processing: matching, content gate, evaluation,
execution, fault isolation and per-ticket serialization.
"""
import asyncio

from helpdesk_rules.models.rule import ActionType
from helpdesk_rules.schemas.event import DomainEvent, ReportStatus
from helpdesk_rules.services.action_executor import ActionExecutor
from helpdesk_rules.services.message_analysis_service import MessageAnalysisService
from helpdesk_rules.services.workflow_service import TicketLocks, WorkflowService

TICKET = 100


def ticket_event(trigger="ticket.created", message_body=None, **fields) -> DomainEvent:
    return DomainEvent(trigger=trigger, ticket_id=TICKET, workspace_id=1, fields=fields, message_body=message_body)


def priority_company_rule(make_rule, **overrides):
    data = {
        "conditions": [
            {"condition_type": "PRIORITY", "condition_operator": "eql", "condition_value": "High", "logical_operator": "AND"},
            {"condition_type": "COMPANY", "condition_operator": "eql", "condition_value": "Acme"},
        ],
        "actions": [{"action_type": "SET_AGENT", "action_value": "alice@x.com"}],
        "actions_operator": "AND",
    }
    data.update(overrides)
    return make_rule(**data)


class TestScenario:

    async def test_matching_facts_assign_the_agent(self, make_rule, surface):
        service = WorkflowService()
        rule = priority_company_rule(make_rule)

        results = await service.process_event(ticket_event(PRIORITY="High", COMPANY="Acme"), [rule], surface)

        assert results[0].fired
        assert results[0].report.status == ReportStatus.SUCCESS
        assert surface.tickets[TICKET]["agent"] == "alice@x.com"

    async def test_other_company_does_not_fire(self, make_rule, surface):
        service = WorkflowService()
        rule = priority_company_rule(make_rule)

        results = await service.process_event(ticket_event(PRIORITY="High", COMPANY="Other"), [rule], surface)

        assert not results[0].fired
        assert results[0].skipped_reason == "conditions not met"
        assert surface.calls == []

    async def test_user_domain_is_derived_from_user_email(self, make_rule, surface):
        rule = make_rule(conditions=[{"condition_type": "USER_DOMAIN", "condition_value": "acme.com"}])
        results = await WorkflowService().process_event(ticket_event(USER="bob@acme.com"), [rule], surface)
        assert results[0].fired

    async def test_unmatched_trigger_returns_nothing(self, make_rule, surface):
        rule = priority_company_rule(make_rule)
        assert await WorkflowService().process_event(ticket_event("ticket.updated"), [rule], surface) == []


class TestContentRules:

    def content_rule(self, make_rule, trigger="message.urgency_high", **analysis):
        rules = {"urgency_keywords": ["urgent"], "min_confidence": 0.5}
        rules.update(analysis)
        return make_rule(
            trigger=trigger,
            message_analysis_rules=rules,
            conditions=[{"condition_type": "INBOX", "condition_operator": "con", "condition_value": "support"}],
            actions=[{"action_type": "SET_PRIORITY", "action_value": "Critical"}],
        )

    async def test_urgent_message_fires(self, make_rule, surface):
        rule = self.content_rule(make_rule)
        event = ticket_event("message.received", "This is urgent, the server is down", INBOX="support@x.com")

        results = await WorkflowService().process_event(event, [rule], surface)

        assert results[0].fired
        assert results[0].analysis.urgency_level == "high"
        assert surface.tickets[TICKET]["priority"] == "Critical"

    async def test_exclude_keyword_blocks_the_rule(self, make_rule, surface):
        rule = self.content_rule(make_rule, exclude_keywords=["ignore"], min_confidence=0.0)
        event = ticket_event("message.received", "urgent but please ignore", INBOX="support@x.com")

        results = await WorkflowService().process_event(event, [rule], surface)

        assert not results[0].fired
        assert results[0].analysis.confidence == 0
        assert "vetoed" in results[0].skipped_reason
        assert surface.calls == []

    async def test_confidence_below_threshold_blocks_the_rule(self, make_rule, surface):
        rule = self.content_rule(make_rule, keywords=["refund"], language="es", min_confidence=0.9)
        event = ticket_event("message.received", "This is urgent", INBOX="support@x.com")

        results = await WorkflowService().process_event(event, [rule], surface)
        assert not results[0].fired
        assert "confidence" in results[0].skipped_reason

    async def test_specific_predicate_must_hold(self, make_rule, surface):
        rule = self.content_rule(make_rule, trigger="message.category_billing", min_confidence=0.0)
        event = ticket_event("message.received", "urgent: the server is down", INBOX="support@x.com")

        results = await WorkflowService().process_event(event, [rule], surface)
        assert not results[0].fired
        assert "message.category_billing" in results[0].skipped_reason


class TestIsolation:

    async def test_faulty_rule_does_not_stop_others(self, make_rule, surface):
        faulty = make_rule(conditions=[{"condition_type": "COMPANY", "condition_value": " "}])
        healthy = make_rule(actions=[{"action_type": "SET_TEAM", "action_value": "Tier 1"}])

        results = await WorkflowService().process_event(ticket_event(COMPANY="Acme"), [faulty, healthy], surface)

        assert "evaluation fault" in results[0].skipped_reason
        assert results[1].fired
        assert surface.tickets[TICKET]["team"] == "Tier 1"

    async def test_failed_action_does_not_stop_other_rules(self, make_rule, surface):
        from helpdesk_rules.schemas.event import MutationResult

        surface.script("assign_agent", MutationResult.failed("agent inactive"))
        first = make_rule()
        second = make_rule(actions=[{"action_type": "SET_STATUS", "action_value": "Open"}])

        results = await WorkflowService().process_event(ticket_event(COMPANY="Acme"), [first, second], surface)

        assert results[0].report.status == ReportStatus.FAILED
        assert results[1].report.status == ReportStatus.SUCCESS

    async def test_stale_ticket_aborts_execution(self, make_rule, surface):
        surface.stale_tickets.add(TICKET)
        rules = [make_rule(), make_rule()]

        async def is_stale(event):
            return await surface.is_stale(event.ticket_id)

        results = await WorkflowService().process_event(ticket_event(COMPANY="Acme"), rules, surface, is_stale)

        assert surface.calls == []
        assert all(r.skipped_reason == "stale event" for r in results)
        assert all(r.report is None for r in results)

    async def test_analyzer_error_does_not_stop_other_rules(self, make_rule, surface):
        class KeywordBackendDown(MessageAnalysisService):
            def analyze(self, message_content, rules):
                if rules.keywords:
                    raise RuntimeError("scoring backend down")
                return super().analyze(message_content, rules)

        broken = make_rule(
            trigger="message.contains_keywords",
            message_analysis_rules={"keywords": ["refund"], "min_confidence": 0.0},
            actions=[{"action_type": "SET_CATEGORY", "action_value": "Billing"}],
        )
        healthy = make_rule(trigger="message.received", message_analysis_rules={"min_confidence": 0.0})
        event = ticket_event("message.received", "I want a refund", COMPANY="Acme")

        results = await WorkflowService(analyzer=KeywordBackendDown()).process_event(
            event, [broken, healthy], surface
        )

        assert not results[0].fired
        assert "scoring backend down" in results[0].skipped_reason
        assert results[1].report.status == ReportStatus.SUCCESS
        assert surface.tickets[TICKET] == {"agent": "alice@x.com"}

    async def test_failing_stale_check_skips_only_that_rule(self, make_rule, surface):
        first = make_rule()
        second = make_rule(actions=[{"action_type": "SET_TEAM", "action_value": "Tier 1"}])
        checks = []

        async def is_stale(event):
            checks.append(event.ticket_id)
            if len(checks) == 1:
                raise RuntimeError("ticket api unavailable")
            return False

        results = await WorkflowService().process_event(
            ticket_event(COMPANY="Acme"), [first, second], surface, is_stale
        )

        assert "staleness check failed" in results[0].skipped_reason
        assert results[0].report is None
        assert results[1].report.status == ReportStatus.SUCCESS
        assert surface.tickets[TICKET] == {"team": "Tier 1"}

    async def test_executor_error_does_not_stop_other_rules(self, make_rule, surface):
        class FlakyExecutor(ActionExecutor):
            async def execute(self, actions, operator, surface, ticket_id):
                if actions[0].action_type == ActionType.SET_AGENT:
                    raise AttributeError("surface has no assign_agent")
                return await super().execute(actions, operator, surface, ticket_id)

        first = make_rule()
        second = make_rule(actions=[{"action_type": "SET_STATUS", "action_value": "Open"}])

        results = await WorkflowService(executor=FlakyExecutor()).process_event(
            ticket_event(COMPANY="Acme"), [first, second], surface
        )

        assert "action error" in results[0].skipped_reason
        assert results[1].report.status == ReportStatus.SUCCESS
        assert surface.tickets[TICKET]["status"] == "Open"


class TestSerialization:

    async def test_actions_for_one_ticket_do_not_interleave(self, make_rule, surface):
        surface.delay = 0.01
        service = WorkflowService()
        rule = make_rule(actions=[
            {"action_type": "SET_STATUS", "action_value": "Open"},
            {"action_type": "SET_PRIORITY", "action_value": "Low"},
        ])

        await asyncio.gather(
            service.process_event(ticket_event(COMPANY="Acme"), [rule], surface),
            service.process_event(ticket_event(COMPANY="Acme"), [rule], surface),
        )

        assert surface.methods_called() == ["set_status", "set_priority", "set_status", "set_priority"]
        assert len(service.locks) == 0

    async def test_ticket_locks_are_released(self):
        locks = TicketLocks()
        async with locks.hold(1):
            assert len(locks) == 1
        assert len(locks) == 0


async def test_execute_workflows_loads_enabled_rules(repository, surface):
    from helpdesk_rules.schemas.rule import RuleCreate

    await repository.create(1, RuleCreate(
        name="Acme to Alice",
        trigger="ticket.created",
        conditions=[{"condition_type": "COMPANY", "condition_value": "Acme"}],
        actions=[{"action_type": "SET_AGENT", "action_value": "alice@x.com"}],
    ))
    await repository.create(1, RuleCreate(
        name="Disabled",
        is_enabled=False,
        trigger="ticket.created",
        conditions=[{"condition_type": "COMPANY", "condition_value": "Acme"}],
        actions=[{"action_type": "SET_TEAM", "action_value": "Ops"}],
    ))

    results = await WorkflowService().execute_workflows(repository, ticket_event(COMPANY="Acme"), surface)

    assert [r.rule_name for r in results] == ["Acme to Alice"]
    assert surface.tickets[TICKET] == {"agent": "alice@x.com"}
