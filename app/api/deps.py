from dataclasses import dataclass

from fastapi import Query, Request

from app.services.loan_engine import DEFAULT_LIMIT, DEFAULT_PAGE, LoanEngine


@dataclass(slots=True)
class PageParams:
    page: int
    limit: int


def _positive_int_or_default(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


async def get_page_params(
    page: str | None = Query(default=None, description="1-indexed page, defaults to 1"),
    limit: str | None = Query(default=None, description="Page size, defaults to 10"),
) -> PageParams:
    # Raw strings so malformed values fall back to defaults instead of failing validation.
    return PageParams(
        page=_positive_int_or_default(page, DEFAULT_PAGE),
        limit=_positive_int_or_default(limit, DEFAULT_LIMIT),
    )


def get_loan_engine(request: Request) -> LoanEngine:
    return request.app.state.loan_engine
