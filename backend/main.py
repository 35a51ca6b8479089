import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from audit.logger import read_recent
from coordinator.request_coordinator import RequestCoordinator
from coordinator.state import build_gateway
from deps import config
from errors import (
    EscalationNotFound,
    EscalationUnauthorized,
    NoProviderAvailable,
    ProviderError,
)
from logging_setup import setup_logging
from metrics.metrics import get_metrics, CONTENT_TYPE_LATEST
from schemas import (
    AskRequest,
    AssignEventRequest,
    CostEstimate,
    EscalationEvent,
    EscalationMetrics,
    HealthResponse,
    LLMRequest,
    LLMResponse,
    ResolveRequest,
    TeacherAssignment,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    try:
        state = build_gateway(config)
    except Exception as e:
        logger.error("failed to build gateway: %s", e)
        raise

    if config.VALIDATE_PROVIDERS_ON_STARTUP:
        removed = await state.orchestrator.prune_unavailable()
        if removed:
            logger.warning("providers removed at startup: %s", ", ".join(removed))

    app.state.coordinator = RequestCoordinator(state)
    logger.info(
        "BuddyGuard gateway ready (providers: %s)",
        ", ".join(state.orchestrator.available_providers()) or "none",
    )

    yield

    await state.cache.store.close()
    logger.info("BuddyGuard gateway shutting down")


app = FastAPI(
    title="BuddyGuard Tutor Gateway",
    description="Moderated, cached, escalation-aware gateway in front of tutoring LLMs",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
origins = config.ALLOWED_ORIGINS.split(",") if config.ALLOWED_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_coordinator(request: Request) -> RequestCoordinator:
    return request.app.state.coordinator


def require_admin(authorization: str = Header(None)):
    if config.ADMIN_TOKEN and authorization != f"Bearer {config.ADMIN_TOKEN}":
        raise HTTPException(status_code=401, detail="Unauthorized")


@app.exception_handler(NoProviderAvailable)
async def no_provider_handler(request: Request, exc: NoProviderAvailable):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(EscalationNotFound)
async def escalation_not_found_handler(request: Request, exc: EscalationNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(EscalationUnauthorized)
async def escalation_unauthorized_handler(request: Request, exc: EscalationUnauthorized):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/health/providers")
async def provider_health(coordinator: RequestCoordinator = Depends(get_coordinator)):
    state = coordinator.state
    return {
        "providers": await state.orchestrator.provider_health(),
        "cache": await state.cache.healthy(),
        "cache_stats": state.cache.stats(),
        "usage": state.orchestrator.usage.summary(),
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)


@app.post("/ask", response_model=LLMResponse)
async def ask(body: AskRequest, coordinator: RequestCoordinator = Depends(get_coordinator)):
    """
    Main tutoring endpoint.

    Input moderation, cache, generation, output moderation, escalation and
    the cache write all happen inside the coordinator; provider failures map
    to 502/503 through the exception handlers.
    """
    request = LLMRequest(**body.model_dump())
    return await coordinator.process(request)


@app.post("/estimate", response_model=CostEstimate)
async def estimate(body: AskRequest, coordinator: RequestCoordinator = Depends(get_coordinator)):
    return coordinator.state.orchestrator.estimate_cost(LLMRequest(**body.model_dump()))


@app.get("/escalations/active", response_model=List[EscalationEvent])
async def active_escalations(
    teacher_id: Optional[str] = None,
    coordinator: RequestCoordinator = Depends(get_coordinator),
):
    engine = coordinator.state.escalation
    return engine.active_for_teacher(teacher_id) if teacher_id else engine.active_events()


@app.get("/escalations/metrics", response_model=EscalationMetrics)
async def escalation_metrics(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    coordinator: RequestCoordinator = Depends(get_coordinator),
):
    return coordinator.state.escalation.metrics(start, end)


@app.post("/escalations/{event_id}/assign", response_model=EscalationEvent)
async def assign_escalation(
    event_id: str,
    body: AssignEventRequest,
    coordinator: RequestCoordinator = Depends(get_coordinator),
):
    return coordinator.state.escalation.assign_event(event_id, body.teacher_id)


@app.post("/escalations/{event_id}/resolve", response_model=EscalationEvent)
async def resolve_escalation(
    event_id: str,
    body: ResolveRequest,
    coordinator: RequestCoordinator = Depends(get_coordinator),
):
    return coordinator.state.escalation.resolve(event_id, body.teacher_id, body.resolution)


@app.get("/users/{user_id}/escalations", response_model=List[EscalationEvent])
async def user_escalations(
    user_id: str,
    limit: Optional[int] = Query(None, ge=1),
    coordinator: RequestCoordinator = Depends(get_coordinator),
):
    return coordinator.state.escalation.user_history(user_id, limit)


@app.post("/teachers/assignments", status_code=201)
async def assign_teacher(body: TeacherAssignment, coordinator: RequestCoordinator = Depends(get_coordinator)):
    coordinator.state.escalation.teachers.assign(body.student_id, body.teacher_id, body.course_id)
    return {"status": "assigned"}


@app.delete("/cache", dependencies=[Depends(require_admin)])
async def clear_cache(coordinator: RequestCoordinator = Depends(get_coordinator)):
    return {"deleted": await coordinator.state.cache.clear()}


@app.delete("/cache/users/{user_id}", dependencies=[Depends(require_admin)])
async def invalidate_user_cache(user_id: str, coordinator: RequestCoordinator = Depends(get_coordinator)):
    return {"deleted": await coordinator.state.cache.invalidate_user(user_id)}


@app.delete("/cache/sessions/{session_id}", dependencies=[Depends(require_admin)])
async def invalidate_session_cache(session_id: str, coordinator: RequestCoordinator = Depends(get_coordinator)):
    return {"deleted": await coordinator.state.cache.invalidate_session(session_id)}


@app.get("/admin/logs", dependencies=[Depends(require_admin)])
async def get_logs(limit: int = 20):
    """
    Retrieve recent audit logs (admin only).
    Requires ADMIN_TOKEN in Authorization header.
    """
    try:
        return read_recent(limit)
    except (OSError, ValueError) as e:
        raise HTTPException(status_code=500, detail=f"Failed to read logs: {str(e)}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
