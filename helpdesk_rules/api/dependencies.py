from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_rules.database.session import get_db
from helpdesk_rules.services.message_analysis_service import ContentAnalyzer
from helpdesk_rules.services.rule_service import RuleRepository, SQLAlchemyRuleRepository
from helpdesk_rules.services.ticket_mutation import HttpTicketMutationSurface, TicketMutationSurface
from helpdesk_rules.services.workflow_service import WorkflowService

# Shared across requests so the per-ticket locks serialize every event for a ticket
workflow_service = WorkflowService()


async def get_rule_repository(db: AsyncSession = Depends(get_db)) -> RuleRepository:
    return SQLAlchemyRuleRepository(db)


def get_workflow_service() -> WorkflowService:
    return workflow_service


def get_content_analyzer(service: WorkflowService = Depends(get_workflow_service)) -> ContentAnalyzer:
    return service.analyzer


def get_ticket_surface() -> TicketMutationSurface:
    return HttpTicketMutationSurface()
