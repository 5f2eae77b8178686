from fastapi import APIRouter, Depends, Request

from app.api import deps
from app.core.limiter import limiter
from app.core.health import (
    health_payload,
    live_payload,
    ready_payload,
    status_summary_payload,
)
from app.services.loan_engine import LoanEngine

router = APIRouter(tags=["health"])


@router.get("/health/live", summary="Service liveness check")
@limiter.exempt
async def health_live(request: Request) -> dict:
    return await live_payload()


@router.get("/health/ready", summary="Service readiness check")
@limiter.exempt
async def health_ready(
    request: Request, engine: LoanEngine = Depends(deps.get_loan_engine)
) -> dict:
    return await ready_payload(engine)


@router.get("/health", summary="Backward-compatible readiness check")
@limiter.exempt
async def read_health(
    request: Request, engine: LoanEngine = Depends(deps.get_loan_engine)
) -> dict:
    return await health_payload(engine)


@router.get("/status/summary", tags=["status"], summary="Service status summary")
@limiter.exempt
async def status_summary(
    request: Request, engine: LoanEngine = Depends(deps.get_loan_engine)
) -> dict:
    return await status_summary_payload(engine)
