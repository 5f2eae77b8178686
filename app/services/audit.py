from __future__ import annotations

import dataclasses
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from fastapi.encoders import jsonable_encoder

from app.core.logging import get_audit_logger
from app.models.loan import Loan


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            Decimal: lambda v: str(v),
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
            Enum: lambda v: v.value,
        },
    )


def loan_snapshot(loan: Loan | None) -> dict[str, Any]:
    if loan is None:
        return {}
    data = dataclasses.asdict(loan)
    # Investor lists grow unbounded; the count and running total are enough for a diff.
    investors = data.pop("investors", [])
    data["investor_count"] = len(investors)
    data["total_invested"] = loan.total_invested
    return serialize_for_audit(data)


def _diff_values(old: Any, new: Any, prefix: str = "") -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}
    if isinstance(old, dict) and isinstance(new, dict):
        keys = set(old.keys()) | set(new.keys())
        for key in sorted(keys):
            path = f"{prefix}.{key}" if prefix else str(key)
            changes.update(_diff_values(old.get(key), new.get(key), path))
        return changes
    if old != new:
        changes[prefix or "value"] = {"from": old, "to": new}
    return changes


def _build_summary(action: str, changes: dict[str, dict[str, Any]] | None) -> str:
    if not changes:
        return action
    keys = list(changes.keys())
    snippet = ", ".join(keys[:3])
    suffix = "..." if len(keys) > 3 else ""
    return f"{action}: {snippet}{suffix}"


def record_audit_event(
    *,
    action: str,
    loan_id: str,
    old_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Write one audit record for a loan transition and return it."""
    changes = None
    if old_value is not None or new_value is not None:
        changes = _diff_values(old_value or {}, new_value or {}) or None
    summary = _build_summary(action, changes)
    entry = {
        "action": action,
        "resource_type": "loan",
        "resource_id": loan_id,
        "changes": changes,
        "summary": summary,
    }
    if extra:
        entry["extra"] = serialize_for_audit(extra)
    get_audit_logger().info(summary, extra={"fields": entry})
    return entry
