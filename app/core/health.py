from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from app.core.settings import settings
from app.services.loan_engine import LoanEngine

APP_VERSION = "0.1.0"


async def _check_store(engine: LoanEngine) -> dict[str, str]:
    try:
        engine.store.find_all(1, 1)
        return {"status": "ok"}
    except Exception as exc:
        return {"status": "error", "error": str(exc)}


async def _check_api() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def _run_checks(engine: LoanEngine) -> dict[str, dict[str, Any]]:
    return {
        "api": await _check_api(),
        "store": await _check_store(engine),
    }


async def live_payload() -> dict[str, str]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def ready_payload(engine: LoanEngine) -> dict[str, Any]:
    checks = await _run_checks(engine)
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


async def status_summary_payload(engine: LoanEngine) -> dict[str, Any]:
    payload = await ready_payload(engine)
    payload["version"] = APP_VERSION
    return payload


async def health_payload(engine: LoanEngine) -> dict[str, Any]:
    return await ready_payload(engine)
