import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from helpdesk_rules.core.exceptions import EvaluationFault
from helpdesk_rules.schemas.event import DomainEvent, RuleExecution
from helpdesk_rules.schemas.rule import Rule
from helpdesk_rules.services.action_executor import ActionExecutor
from helpdesk_rules.services.condition_evaluator import evaluate
from helpdesk_rules.services.message_analysis_service import (
    ContentAnalyzer,
    MessageAnalysisService,
    check_trigger_match,
    passes_gate,
)
from helpdesk_rules.services.rule_service import RuleRepository
from helpdesk_rules.services.ticket_mutation import TicketMutationSurface
from helpdesk_rules.services.trigger_matcher import match
from helpdesk_rules.utils.logger import engine_logger as logger

StaleCheck = Callable[[DomainEvent], Awaitable[bool]]


class TicketLocks:
    """One asyncio.Lock per ticket, dropped again once nobody holds or waits for it."""

    def __init__(self):
        self._locks: Dict[int, list] = {}

    @asynccontextmanager
    async def hold(self, ticket_id: int) -> AsyncIterator[None]:
        entry = self._locks.get(ticket_id)
        if entry is None:
            entry = self._locks[ticket_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[ticket_id]

    def __len__(self) -> int:
        return len(self._locks)


class WorkflowService:
    """
    Runs the rules of a workspace against a domain event.

    Evaluation (content gate and condition chain) has no side effects and runs
    for all candidate rules at once. Action lists of fired rules are applied
    one rule at a time under the ticket's lock, so two rules on the same
    ticket never interleave their mutations. A fault in one rule never stops
    the others; actions already applied are not rolled back.
    """

    def __init__(
        self,
        analyzer: Optional[ContentAnalyzer] = None,
        executor: Optional[ActionExecutor] = None,
        locks: Optional[TicketLocks] = None,
    ):
        self.analyzer = analyzer or MessageAnalysisService()
        self.executor = executor or ActionExecutor()
        self.locks = locks or TicketLocks()

    async def execute_workflows(
        self,
        repository: RuleRepository,
        event: DomainEvent,
        surface: TicketMutationSurface,
        is_stale: Optional[StaleCheck] = None,
    ) -> List[RuleExecution]:
        """Load the workspace's enabled rules and process the event against them."""
        rules = await repository.list(event.workspace_id, enabled_only=True)
        return await self.process_event(event, rules, surface, is_stale)

    async def process_event(
        self,
        event: DomainEvent,
        rules: Sequence[Rule],
        surface: TicketMutationSurface,
        is_stale: Optional[StaleCheck] = None,
    ) -> List[RuleExecution]:
        candidates = match(event, rules)
        if not candidates:
            return []

        evaluations = await asyncio.gather(*(self._evaluate_rule(event, rule) for rule in candidates))

        executions = []
        stale = False
        for rule, execution in zip(candidates, evaluations):
            if not execution.fired:
                executions.append(execution)
                continue
            if stale:
                executions.append(execution.model_copy(update={"skipped_reason": "stale event"}))
                continue

            async with self.locks.hold(event.ticket_id):
                try:
                    stale = is_stale is not None and await is_stale(event)
                except Exception as e:
                    logger.error(
                        f"Staleness check failed before rule {rule.name} on ticket {event.ticket_id}: {e}",
                        extra={"rule_id": rule.id, "workspace_id": rule.workspace_id, "trigger": event.trigger},
                        exc_info=True,
                    )
                    executions.append(execution.model_copy(update={"skipped_reason": f"staleness check failed: {e}"}))
                    continue
                if stale:
                    logger.info(f"Ticket {event.ticket_id} changed under event {event.trigger}, aborting remaining rules")
                    executions.append(execution.model_copy(update={"skipped_reason": "stale event"}))
                    continue
                executions.append(await self._run_actions(event, rule, execution, surface))

        fired = [e.rule_name for e in executions if e.report is not None]
        if fired:
            logger.info(f"Executed workflows {fired} for trigger {event.trigger} on ticket {event.ticket_id}")
        return executions

    async def _evaluate_rule(self, event: DomainEvent, rule: Rule) -> RuleExecution:
        execution = RuleExecution(rule_id=rule.id, rule_name=rule.name, trigger=rule.trigger, fired=False)
        try:
            if rule.is_content_based:
                analysis = self.analyzer.analyze(event.message_body or "", rule.message_analysis_rules)
                execution.analysis = analysis
                if analysis.vetoed:
                    execution.skipped_reason = f"vetoed by exclude keywords {analysis.excluded_keywords_found}"
                    return execution
                if not passes_gate(analysis, rule.message_analysis_rules):
                    execution.skipped_reason = (
                        f"confidence {analysis.confidence} below {rule.message_analysis_rules.min_confidence}"
                    )
                    return execution
                if not check_trigger_match(analysis, rule.trigger, rule.message_analysis_rules):
                    execution.skipped_reason = f"message does not satisfy {rule.trigger}"
                    return execution

            if not evaluate(rule.conditions, event.facts(), rule.conditions_operator):
                execution.skipped_reason = "conditions not met"
                return execution
        except EvaluationFault as e:
            logger.error(
                f"Skipping rule {rule.name}: {e}",
                extra={"rule_id": rule.id, "workspace_id": rule.workspace_id, "trigger": event.trigger},
            )
            execution.skipped_reason = f"evaluation fault: {e}"
            return execution
        except Exception as e:
            logger.error(
                f"Unexpected error evaluating rule {rule.name}: {e}",
                extra={"rule_id": rule.id, "workspace_id": rule.workspace_id, "trigger": event.trigger},
                exc_info=True,
            )
            execution.skipped_reason = f"evaluation error: {e}"
            return execution

        execution.fired = True
        return execution

    async def _run_actions(
        self,
        event: DomainEvent,
        rule: Rule,
        execution: RuleExecution,
        surface: TicketMutationSurface,
    ) -> RuleExecution:
        try:
            report = await self.executor.execute(rule.actions, rule.actions_operator, surface, event.ticket_id)
        except EvaluationFault as e:
            logger.error(
                f"Skipping actions of rule {rule.name}: {e}",
                extra={"rule_id": rule.id, "workspace_id": rule.workspace_id, "trigger": event.trigger},
            )
            return execution.model_copy(update={"skipped_reason": f"evaluation fault: {e}"})
        except Exception as e:
            logger.error(
                f"Unexpected error running actions of rule {rule.name} on ticket {event.ticket_id}: {e}",
                extra={"rule_id": rule.id, "workspace_id": rule.workspace_id, "trigger": event.trigger},
                exc_info=True,
            )
            return execution.model_copy(update={"skipped_reason": f"action error: {e}"})
        return execution.model_copy(update={"report": report})
