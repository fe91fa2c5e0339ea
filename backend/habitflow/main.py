"""Main FastAPI application for the HabitFlow backend."""
from fastapi import FastAPI, Request

from habitflow.api.routes.adaptations import router as adaptations_router
from habitflow.api.routes.change_plans import router as change_plans_router
from habitflow.api.routes.habits import router as habits_router
from habitflow.api.routes.jobs import router as jobs_router
from habitflow.api.routes.notifications import router as notifications_router
from habitflow.core.config import settings
from habitflow.core.logging import configure_logging
from habitflow.core.middleware import RequestIDMiddleware
from habitflow.observability.client import init_opik
from habitflow.observability.tracing import trace

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(habits_router)
app.include_router(adaptations_router)
app.include_router(change_plans_router)
app.include_router(jobs_router)
app.include_router(notifications_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok", "service": settings.app_name}
