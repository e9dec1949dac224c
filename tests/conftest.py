"""
Test configuration and fixtures.

Provides:
- In-memory SQLite session (aiosqlite), fresh schema per test
- A recording ticket-mutation surface with scriptable failures
- A rule factory for engine tests
- HTTPX AsyncClient wired to the app with overridden dependencies
"""
import asyncio
import itertools
from collections import defaultdict
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List, Optional, Union

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from helpdesk_rules.api.dependencies import get_rule_repository, get_ticket_surface, get_workflow_service
from helpdesk_rules.database.base import Base
from helpdesk_rules.main import app
from helpdesk_rules.schemas.event import MutationResult
from helpdesk_rules.schemas.rule import Rule
from helpdesk_rules.services.rule_service import SQLAlchemyRuleRepository
from helpdesk_rules.services.ticket_mutation import TicketMutationSurface
from helpdesk_rules.services.workflow_service import WorkflowService


# =============================================================================
# Ticket mutation surface
# =============================================================================

class RecordingTicketSurface(TicketMutationSurface):
    """
    In-memory tickets. Every call is recorded as (method, ticket_id, value).

    Queue outcomes per method with script(); a queued Exception is raised, a
    queued failed MutationResult is returned without touching the ticket.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.tickets: Dict[int, Dict[str, str]] = defaultdict(dict)
        self.notifications: List[tuple] = []
        self.outcomes: Dict[str, List[Union[MutationResult, Exception]]] = defaultdict(list)
        self.stale_tickets = set()
        self.delay = 0.0

    def script(self, method: str, *outcomes: Union[MutationResult, Exception]) -> None:
        self.outcomes[method].extend(outcomes)

    def methods_called(self) -> List[str]:
        return [call[0] for call in self.calls]

    async def _apply(self, method: str, ticket_id: int, field: Optional[str], value: str) -> MutationResult:
        self.calls.append((method, ticket_id, value))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcomes[method]:
            outcome = self.outcomes[method].pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            if not outcome.success:
                return outcome
        if field:
            self.tickets[ticket_id][field] = value
        return MutationResult.ok()

    async def assign_agent(self, ticket_id, agent_ref):
        return await self._apply("assign_agent", ticket_id, "agent", agent_ref)

    async def assign_team(self, ticket_id, team_ref):
        return await self._apply("assign_team", ticket_id, "team", team_ref)

    async def set_priority(self, ticket_id, priority):
        return await self._apply("set_priority", ticket_id, "priority", priority)

    async def set_status(self, ticket_id, status):
        return await self._apply("set_status", ticket_id, "status", status)

    async def set_category(self, ticket_id, category):
        return await self._apply("set_category", ticket_id, "category", category)

    async def notify(self, ticket_id, agent_ref, message=None):
        result = await self._apply("notify", ticket_id, None, agent_ref)
        if result.success:
            self.notifications.append((ticket_id, agent_ref, message))
        return result

    async def is_stale(self, ticket_id):
        return ticket_id in self.stale_tickets


@pytest.fixture(scope="function")
def surface() -> RecordingTicketSurface:
    return RecordingTicketSurface()


# =============================================================================
# Rule factory
# =============================================================================

@pytest.fixture(scope="function")
def make_rule():
    """Build a stored-looking Rule; defaults to an Acme routing rule on ticket.created."""
    ids = itertools.count(1)

    def _make(**overrides) -> Rule:
        now = datetime.now(timezone.utc)
        rule_id = overrides.pop("id", next(ids))
        data = {
            "id": rule_id,
            "workspace_id": 1,
            "name": f"Rule {rule_id}",
            "trigger": "ticket.created",
            "conditions": [
                {"condition_type": "COMPANY", "condition_operator": "eql", "condition_value": "Acme"},
            ],
            "actions": [{"action_type": "SET_AGENT", "action_value": "alice@x.com"}],
            "created_at": now,
            "updated_at": now,
        }
        data.update(overrides)
        return Rule.model_validate(data)

    return _make


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def db() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture(scope="function")
def repository(db: AsyncSession) -> SQLAlchemyRuleRepository:
    return SQLAlchemyRuleRepository(db)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(
    repository: SQLAlchemyRuleRepository,
    surface: RecordingTicketSurface,
) -> AsyncGenerator[AsyncClient, None]:
    service = WorkflowService()
    app.dependency_overrides[get_rule_repository] = lambda: repository
    app.dependency_overrides[get_ticket_surface] = lambda: surface
    app.dependency_overrides[get_workflow_service] = lambda: service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()
