import asyncio
from typing import List, Optional, Sequence

from helpdesk_rules.core.config import settings
from helpdesk_rules.core.exceptions import ActionExecutionError, EvaluationFault, TransientMutationError
from helpdesk_rules.models.rule import LogicalOperator
from helpdesk_rules.schemas.event import ActionResult, ActionStatus, ExecutionReport, MutationResult, ReportStatus
from helpdesk_rules.schemas.rule import RuleAction
from helpdesk_rules.services.catalog import DEFAULT_ACTIONS, ActionRegistry, ActionSpec
from helpdesk_rules.services.ticket_mutation import TicketMutationSurface
from helpdesk_rules.utils.logger import logger


class ActionExecutor:
    """
    Runs a fired rule's actions, in order, against a ticket-mutation surface.

    AND: every action runs; failures are recorded and execution continues.
    OR: actions run until the first success; the rest are skipped.
    ALSO_NOTIFY never fails the rule, its failures are only logged.
    """

    def __init__(
        self,
        registry: ActionRegistry = DEFAULT_ACTIONS,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        self.registry = registry
        self.timeout = timeout if timeout is not None else settings.ACTION_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else settings.ACTION_MAX_RETRIES

    async def execute(
        self,
        actions: Sequence[RuleAction],
        operator: LogicalOperator,
        surface: TicketMutationSurface,
        ticket_id: int,
    ) -> ExecutionReport:
        unknown = [a.action_type for a in actions if a.action_type not in self.registry]
        if unknown:
            raise EvaluationFault(f"Unknown action types: {unknown}")

        results: List[ActionResult] = []
        satisfied = False
        for action in actions:
            if operator == LogicalOperator.OR and satisfied:
                results.append(ActionResult(action_type=action.action_type, status=ActionStatus.SKIPPED))
                continue

            result = await self._execute_single_action(action, surface, ticket_id)
            results.append(result)
            if result.status == ActionStatus.SUCCESS:
                satisfied = True

        report = ExecutionReport(operator=operator, status=self._report_status(operator, results), results=results)
        logger.info(
            f"Executed {len(report.succeeded)}/{len(actions)} actions on ticket {ticket_id} ({operator.value}): {report.status.value}"
        )
        return report

    async def _execute_single_action(
        self, action: RuleAction, surface: TicketMutationSurface, ticket_id: int
    ) -> ActionResult:
        spec = self.registry.get(action.action_type)

        errors = spec.validate(action)
        if errors:
            # Validation failures are never sent to the surface, so never retried
            logger.warning(f"Action {action.action_type.value} on ticket {ticket_id} failed validation: {errors}")
            return ActionResult(
                action_type=action.action_type,
                value=action.action_value,
                status=self._failure_status(spec),
                error="; ".join(errors),
            )

        value, extra = spec.resolve(action)
        attempts = 0
        while True:
            attempts += 1
            outcome = await self._call_surface(spec, surface, ticket_id, value, extra)
            if outcome.success or not outcome.transient or attempts > self.max_retries:
                break
            logger.warning(
                f"Transient failure on {spec.mutation} for ticket {ticket_id}, retrying: {outcome.error}"
            )

        if outcome.success:
            return ActionResult(action_type=action.action_type, value=value, status=ActionStatus.SUCCESS, attempts=attempts)

        status = self._failure_status(spec)
        if status == ActionStatus.NOTIFY_FAILED:
            logger.warning(f"Notification for ticket {ticket_id} to '{value}' failed: {outcome.error}")
        else:
            logger.error(f"Action {action.action_type.value}='{value}' failed on ticket {ticket_id}: {outcome.error}")
        return ActionResult(
            action_type=action.action_type,
            value=value,
            status=status,
            attempts=attempts,
            error=outcome.error,
        )

    async def _call_surface(self, spec: ActionSpec, surface: TicketMutationSurface, ticket_id: int, value, extra) -> MutationResult:
        mutation = getattr(surface, spec.mutation)
        try:
            return await asyncio.wait_for(mutation(ticket_id, value, **extra), timeout=self.timeout)
        except asyncio.TimeoutError:
            return MutationResult.failed(f"timed out after {self.timeout}s", transient=True)
        except TransientMutationError as e:
            return MutationResult.failed(str(e), transient=True)
        except ActionExecutionError as e:
            return MutationResult.failed(str(e))
        except Exception as e:
            logger.error(
                f"Unexpected error calling {spec.mutation} on ticket {ticket_id}: {e}",
                extra={"ticket_id": ticket_id, "action_type": spec.action_type.value},
                exc_info=True,
            )
            return MutationResult.failed(str(e))

    @staticmethod
    def _failure_status(spec: ActionSpec) -> ActionStatus:
        return ActionStatus.NOTIFY_FAILED if spec.notify else ActionStatus.FAILED

    @staticmethod
    def _report_status(operator: LogicalOperator, results: List[ActionResult]) -> ReportStatus:
        successes = sum(1 for r in results if r.status == ActionStatus.SUCCESS)
        failures = sum(1 for r in results if r.status == ActionStatus.FAILED)

        if failures == 0:
            return ReportStatus.SUCCESS
        if operator == LogicalOperator.OR:
            return ReportStatus.SUCCESS if successes else ReportStatus.FAILED
        return ReportStatus.PARTIAL_FAILURE if successes else ReportStatus.FAILED
