from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from helpdesk_rules.api.dependencies import (
    get_content_analyzer,
    get_rule_repository,
    get_ticket_surface,
    get_workflow_service,
)
from helpdesk_rules.schemas.event import EventCreate, RuleExecution
from helpdesk_rules.schemas.rule import (
    ActionOption,
    AnalysisRequest,
    AnalysisResponse,
    Rule,
    RuleCreate,
    RuleStats,
    RuleToggle,
    RuleUpdate,
    TriggerOption,
)
from helpdesk_rules.services.catalog import get_available_actions, get_available_triggers
from helpdesk_rules.services.message_analysis_service import (
    ContentAnalyzer,
    get_default_message_analysis_rules,
)
from helpdesk_rules.services.rule_service import RuleRepository
from helpdesk_rules.services.ticket_mutation import TicketMutationSurface
from helpdesk_rules.services.workflow_service import WorkflowService
from helpdesk_rules.utils.logger import logger

router = APIRouter()


@router.get("/{workspace_id}/rules", response_model=List[Rule])
async def get_rules(
    workspace_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    enabled_only: bool = False,
    repository: RuleRepository = Depends(get_rule_repository),
):
    """
    Get all rules of a workspace.
    """
    return await repository.list(workspace_id, enabled_only=enabled_only, skip=skip, limit=limit)


@router.get("/{workspace_id}/rules/stats/summary", response_model=RuleStats)
async def get_rule_stats(
    workspace_id: int,
    repository: RuleRepository = Depends(get_rule_repository),
):
    return await repository.get_stats(workspace_id)


@router.get("/{workspace_id}/triggers", response_model=List[TriggerOption])
def get_rule_triggers(workspace_id: int):
    """Get available rule triggers"""
    return get_available_triggers()


@router.get("/{workspace_id}/actions", response_model=List[ActionOption])
def get_rule_actions(workspace_id: int):
    """Get available rule actions and their config schemas"""
    return get_available_actions()


@router.post("/{workspace_id}/test-analysis", response_model=AnalysisResponse)
def test_message_analysis(
    workspace_id: int,
    request: AnalysisRequest,
    analyzer: ContentAnalyzer = Depends(get_content_analyzer),
):
    """Test message analysis against content-based rules"""
    if not request.message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message content is required")

    rules = request.analysis_rules or get_default_message_analysis_rules()
    analysis = analyzer.analyze(request.message, rules)
    logger.debug(f"Test analysis for workspace {workspace_id}: confidence {analysis.confidence}")

    return AnalysisResponse(message=request.message, analysis=analysis, analysis_rules=rules)


@router.post("/{workspace_id}/rules", response_model=Rule, status_code=status.HTTP_201_CREATED)
async def create_rule(
    workspace_id: int,
    rule: RuleCreate,
    repository: RuleRepository = Depends(get_rule_repository),
):
    """
    Create a new rule.
    Invalid definitions are rejected with 422, duplicate names with 400.
    """
    return await repository.create(workspace_id, rule)


@router.get("/{workspace_id}/rules/{rule_id}", response_model=Rule)
async def get_rule(
    workspace_id: int,
    rule_id: int,
    repository: RuleRepository = Depends(get_rule_repository),
):
    return await repository.get(workspace_id, rule_id)


@router.put("/{workspace_id}/rules/{rule_id}", response_model=Rule)
async def update_rule(
    workspace_id: int,
    rule_id: int,
    rule: RuleUpdate,
    repository: RuleRepository = Depends(get_rule_repository),
):
    """
    Update an existing rule.
    Conditions and actions, when sent, replace the stored lists.
    """
    return await repository.update(workspace_id, rule_id, rule)


@router.delete("/{workspace_id}/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    workspace_id: int,
    rule_id: int,
    repository: RuleRepository = Depends(get_rule_repository),
):
    await repository.delete(workspace_id, rule_id)


@router.post("/{workspace_id}/rules/{rule_id}/toggle", response_model=Rule)
async def toggle_rule(
    workspace_id: int,
    rule_id: int,
    toggle_data: RuleToggle,
    repository: RuleRepository = Depends(get_rule_repository),
):
    """
    Enable or disable a rule.
    """
    return await repository.toggle(workspace_id, rule_id, toggle_data.is_enabled)


@router.post("/{workspace_id}/rules/{rule_id}/duplicate", response_model=Rule, status_code=status.HTTP_201_CREATED)
async def duplicate_rule(
    workspace_id: int,
    rule_id: int,
    repository: RuleRepository = Depends(get_rule_repository),
):
    """
    Duplicate an existing rule. The copy is created disabled.
    """
    return await repository.duplicate(workspace_id, rule_id)


@router.post("/{workspace_id}/events", response_model=List[RuleExecution])
async def process_event(
    workspace_id: int,
    event_in: EventCreate,
    repository: RuleRepository = Depends(get_rule_repository),
    service: WorkflowService = Depends(get_workflow_service),
    surface: TicketMutationSurface = Depends(get_ticket_surface),
):
    """
    Run the workspace's enabled rules against a ticket event.
    Returns one entry per candidate rule, with its action report when it fired.
    """
    event = event_in.to_event(workspace_id)

    async def is_stale(evt) -> bool:
        return await surface.is_stale(evt.ticket_id)

    return await service.execute_workflows(repository, event, surface, is_stale=is_stale)
