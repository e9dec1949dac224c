from fastapi import APIRouter

from helpdesk_rules.api.endpoints import rules

api_router = APIRouter()
api_router.include_router(rules.router, prefix="/workspaces", tags=["rules"])
