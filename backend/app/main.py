from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.shared.core.config import settings
from app.shared.core.logging import setup_logging
from app.shared.db.session import dispose_engine
from app.shared.middleware.correlation import CorrelationIdMiddleware
from app.shared.utils.exceptions import TriggerAuthorizationError
from app.shared.utils.http_client import startup_http_client, shutdown_http_client
from app.modules.content_automation.api import automation_endpoints

setup_logging()

app = FastAPI(title=settings.PROJECT_NAME)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CORS_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID on every request
app.add_middleware(CorrelationIdMiddleware)


@app.exception_handler(TriggerAuthorizationError)
async def trigger_authorization_handler(request: Request, exc: TriggerAuthorizationError):
    return JSONResponse(status_code=401, content={"success": False, "error": exc.message})


@app.on_event("startup")
async def on_startup():
    await startup_http_client()


@app.on_event("shutdown")
async def on_shutdown():
    await shutdown_http_client()
    await dispose_engine()


# Automation triggers, schedules and monitoring
app.include_router(
    automation_endpoints.router,
    prefix=f"{settings.API_V1_STR}/automation",
    tags=["Content Automation"]
)


@app.get("/")
def root():
    return {"message": f"{settings.PROJECT_NAME} API is running"}


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}
