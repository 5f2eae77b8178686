from fastapi import APIRouter, Depends, status

from app.api import deps
from app.core.exceptions import InvalidStateError
from app.models.loan import Loan, LoanState
from app.schemas.loan import (
    LoanAgreementRequest,
    LoanApproveRequest,
    LoanCreateRequest,
    LoanDisburseRequest,
    LoanDTO,
    LoanInvestRequest,
    LoanListResponse,
)
from app.services.loan_engine import LoanEngine

router = APIRouter(prefix="/loans", tags=["loans"])


def _to_dto(loan: Loan) -> LoanDTO:
    return LoanDTO.model_validate(loan)


def _to_list(loans: list[Loan], *, page: int | None = None, limit: int | None = None) -> LoanListResponse:
    return LoanListResponse(
        items=[_to_dto(loan) for loan in loans],
        total=len(loans),
        page=page,
        limit=limit,
    )


def _require_loan_state(engine: LoanEngine, loan_id: str, *required: LoanState) -> None:
    loan = engine.get_loan(loan_id)
    if loan.state not in required:
        raise InvalidStateError(
            "loan is not in the required state for this action",
            details={
                "loan_id": loan_id,
                "state": loan.state.value,
                "required_states": [state.value for state in required],
            },
        )


@router.post(
    "",
    response_model=LoanDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Propose a new loan",
)
def create_loan(
    payload: LoanCreateRequest,
    engine: LoanEngine = Depends(deps.get_loan_engine),
) -> LoanDTO:
    loan = engine.create_loan(
        payload.borrower_id,
        payload.principal_amount,
        payload.rate,
        payload.roi,
    )
    return _to_dto(loan)


@router.get("", response_model=LoanListResponse, summary="List loans page by page")
def list_loans(
    params: deps.PageParams = Depends(deps.get_page_params),
    engine: LoanEngine = Depends(deps.get_loan_engine),
) -> LoanListResponse:
    loans = engine.get_loans(params.page, params.limit)
    return _to_list(loans, page=params.page, limit=params.limit)


@router.get(
    "/borrower/{borrower_id}",
    response_model=LoanListResponse,
    summary="List loans for a borrower",
)
def list_loans_by_borrower(
    borrower_id: str,
    engine: LoanEngine = Depends(deps.get_loan_engine),
) -> LoanListResponse:
    return _to_list(engine.get_loans_by_borrower(borrower_id))


@router.get(
    "/state/{state}",
    response_model=LoanListResponse,
    summary="List loans in a lifecycle state (PROPOSED, APPROVED, INVESTED, DISBURSED)",
)
def list_loans_by_state(
    state: str,
    engine: LoanEngine = Depends(deps.get_loan_engine),
) -> LoanListResponse:
    return _to_list(engine.get_loans_by_state(LoanState.parse(state)))


@router.get("/{loan_id}", response_model=LoanDTO, summary="Get a loan")
def get_loan(
    loan_id: str,
    engine: LoanEngine = Depends(deps.get_loan_engine),
) -> LoanDTO:
    return _to_dto(engine.get_loan(loan_id))


@router.post("/{loan_id}/approve", response_model=LoanDTO, summary="Approve a proposed loan")
def approve_loan(
    loan_id: str,
    payload: LoanApproveRequest,
    engine: LoanEngine = Depends(deps.get_loan_engine),
) -> LoanDTO:
    _require_loan_state(engine, loan_id, LoanState.PROPOSED)
    engine.approve_loan(loan_id, payload.validator_id, payload.proof_url)
    return _to_dto(engine.get_loan(loan_id))


@router.post("/{loan_id}/invest", response_model=LoanDTO, summary="Invest in an approved loan")
def add_investment(
    loan_id: str,
    payload: LoanInvestRequest,
    engine: LoanEngine = Depends(deps.get_loan_engine),
) -> LoanDTO:
    _require_loan_state(engine, loan_id, LoanState.APPROVED, LoanState.INVESTED)
    engine.add_investment(loan_id, payload.investor_id, str(payload.email), payload.amount)
    return _to_dto(engine.get_loan(loan_id))


@router.post("/{loan_id}/disburse", response_model=LoanDTO, summary="Disburse a fully funded loan")
def disburse_loan(
    loan_id: str,
    payload: LoanDisburseRequest,
    engine: LoanEngine = Depends(deps.get_loan_engine),
) -> LoanDTO:
    _require_loan_state(engine, loan_id, LoanState.INVESTED)
    engine.disburse_loan(loan_id, payload.field_officer_id, payload.signed_agreement_url)
    return _to_dto(engine.get_loan(loan_id))


@router.post(
    "/{loan_id}/agreement",
    response_model=LoanDTO,
    summary="Attach the agreement letter reference to a loan",
)
def generate_agreement_letter(
    loan_id: str,
    payload: LoanAgreementRequest,
    engine: LoanEngine = Depends(deps.get_loan_engine),
) -> LoanDTO:
    engine.generate_agreement_letter(loan_id, payload.letter_url)
    return _to_dto(engine.get_loan(loan_id))
