from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.loan import MONEY_MAX_DIGITS, LoanState


class _NonEmptyStrings(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def non_empty(cls, v):
        if isinstance(v, str):
            value = v.strip()
            if not value:
                raise ValueError("Value cannot be empty")
            return value
        return v


class LoanCreateRequest(_NonEmptyStrings):
    borrower_id: str
    principal_amount: Decimal = Field(gt=0, max_digits=MONEY_MAX_DIGITS, decimal_places=2)
    rate: Decimal = Field(ge=0)
    roi: Decimal = Field(ge=0)


class LoanApproveRequest(_NonEmptyStrings):
    validator_id: str
    proof_url: str


class LoanInvestRequest(_NonEmptyStrings):
    investor_id: str
    email: EmailStr
    amount: Decimal = Field(gt=0, max_digits=MONEY_MAX_DIGITS, decimal_places=2)


class LoanDisburseRequest(_NonEmptyStrings):
    field_officer_id: str
    signed_agreement_url: str


class LoanAgreementRequest(_NonEmptyStrings):
    letter_url: str


class ApprovalDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    validator_id: str
    proof_url: str
    approved_at: datetime


class InvestmentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    investor_id: str
    amount: Decimal
    email: str


class DisbursementDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    field_officer_id: str
    signed_agreement_url: str
    disbursed_at: datetime


class LoanDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    borrower_id: str
    principal_amount: Decimal
    rate: Decimal
    roi: Decimal
    state: LoanState
    agreement_letter: str | None = None
    approval: ApprovalDTO | None = None
    investors: list[InvestmentDTO] = Field(default_factory=list)
    disbursement: DisbursementDTO | None = None
    total_invested: Decimal
    remaining_amount: Decimal
    created_at: datetime
    updated_at: datetime


class LoanListResponse(BaseModel):
    items: list[LoanDTO]
    total: int
    page: int | None = None
    limit: int | None = None
