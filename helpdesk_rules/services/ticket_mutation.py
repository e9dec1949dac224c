from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from helpdesk_rules.core.config import settings
from helpdesk_rules.schemas.event import MutationResult
from helpdesk_rules.utils.logger import logger


class TicketMutationSurface(ABC):
    """
    The only write path from the engine to a ticket.

    Every setter has set semantics: applying the same value twice leaves the
    ticket in the same state and reports success, so a re-delivered event
    cannot corrupt a ticket.
    """

    @abstractmethod
    async def assign_agent(self, ticket_id: int, agent_ref: str) -> MutationResult:
        ...

    @abstractmethod
    async def assign_team(self, ticket_id: int, team_ref: str) -> MutationResult:
        ...

    @abstractmethod
    async def set_priority(self, ticket_id: int, priority: str) -> MutationResult:
        ...

    @abstractmethod
    async def set_status(self, ticket_id: int, status: str) -> MutationResult:
        ...

    @abstractmethod
    async def set_category(self, ticket_id: int, category: str) -> MutationResult:
        ...

    @abstractmethod
    async def notify(self, ticket_id: int, agent_ref: str, message: Optional[str] = None) -> MutationResult:
        ...

    async def is_stale(self, ticket_id: int) -> bool:
        """True once the ticket is gone (deleted, merged away). Surfaces that cannot tell say False."""
        return False


class HttpTicketMutationSurface(TicketMutationSurface):
    """Applies mutations through the helpdesk ticket REST API."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.base_url = (base_url or settings.clean_ticket_api_base_url).rstrip('/')
        self.token = token if token is not None else settings.TICKET_API_TOKEN
        self.timeout = timeout if timeout is not None else settings.ACTION_TIMEOUT_SECONDS

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            yield client

    async def _send(self, method: str, path: str, payload: Dict[str, Any]) -> MutationResult:
        url = f"{self.base_url}{path}"
        try:
            async with self._client() as client:
                response = await client.request(method, url, json=payload, headers=self.headers)
        except httpx.TimeoutException as e:
            logger.warning(f"Ticket API timeout on {method} {url}: {e}")
            return MutationResult.failed(f"timeout calling ticket API: {e}", transient=True)
        except httpx.TransportError as e:
            logger.warning(f"Ticket API transport error on {method} {url}: {e}")
            return MutationResult.failed(f"ticket API unreachable: {e}", transient=True)

        if response.is_success:
            return MutationResult.ok()

        detail = self._error_detail(response)
        # 5xx and 429 are worth a retry; other 4xx mean the request itself is wrong
        transient = response.status_code >= 500 or response.status_code == 429
        logger.warning(f"Ticket API {method} {url} returned {response.status_code}: {detail}")
        return MutationResult.failed(f"{response.status_code}: {detail}", transient=transient)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict) and "detail" in body:
            return str(body["detail"])
        return str(body)

    async def assign_agent(self, ticket_id: int, agent_ref: str) -> MutationResult:
        return await self._send("PUT", f"/tasks/{ticket_id}", {"assignee_email": agent_ref})

    async def assign_team(self, ticket_id: int, team_ref: str) -> MutationResult:
        return await self._send("PUT", f"/tasks/{ticket_id}", {"team_name": team_ref})

    async def set_priority(self, ticket_id: int, priority: str) -> MutationResult:
        return await self._send("PUT", f"/tasks/{ticket_id}", {"priority": priority})

    async def set_status(self, ticket_id: int, status: str) -> MutationResult:
        return await self._send("PUT", f"/tasks/{ticket_id}", {"status": status})

    async def set_category(self, ticket_id: int, category: str) -> MutationResult:
        return await self._send("PUT", f"/tasks/{ticket_id}", {"category_name": category})

    async def notify(self, ticket_id: int, agent_ref: str, message: Optional[str] = None) -> MutationResult:
        payload = {"agent_email": agent_ref}
        if message:
            payload["message"] = message
        return await self._send("POST", f"/tasks/{ticket_id}/notifications", payload)

    async def is_stale(self, ticket_id: int) -> bool:
        url = f"{self.base_url}/tasks/{ticket_id}"
        try:
            async with self._client() as client:
                response = await client.get(url, headers=self.headers)
        except httpx.HTTPError as e:
            logger.warning(f"Could not check ticket {ticket_id} state: {e}")
            return False

        if response.status_code == 404:
            return True
        if not response.is_success:
            return False
        try:
            body = response.json()
        except ValueError:
            return False
        return bool(isinstance(body, dict) and (body.get("is_deleted") or body.get("is_merged")))
