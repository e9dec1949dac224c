import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from helpdesk_rules.api.api import api_router
from helpdesk_rules.core.config import settings
from helpdesk_rules.core.exceptions import DuplicateRuleName, InvalidRuleDefinition, RuleNotFound

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")
    yield
    logger.info("Application shutdown...")
    from helpdesk_rules.database.session import engine
    if engine is not None:
        await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Automation and workflow rule engine for the helpdesk",
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json" if settings.API_V1_STR else "/openapi.json",
    lifespan=lifespan
)


class HealthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/health":
            return Response("OK", status_code=200)
        return await call_next(request)


@app.exception_handler(InvalidRuleDefinition)
async def invalid_rule_handler(request: Request, exc: InvalidRuleDefinition):
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": exc.errors})


@app.exception_handler(RuleNotFound)
async def rule_not_found_handler(request: Request, exc: RuleNotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(DuplicateRuleName)
async def duplicate_rule_name_handler(request: Request, exc: DuplicateRuleName):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


origins = settings.BACKEND_CORS_ORIGINS
regex_parts = [o.replace('.', r'\.').replace('*', r'[a-zA-Z0-9-]+') for o in origins]
origin_regex = r"|".join(regex_parts) or None

app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(HealthMiddleware)
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
def read_root():
    """Root endpoint"""
    return {"message": f"{settings.PROJECT_NAME} is running"}
