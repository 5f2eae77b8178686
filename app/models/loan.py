from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from app.core.exceptions import InvalidArgumentError, InvalidStateError, ValidationError


class LoanState(str, Enum):
    PROPOSED = "PROPOSED"
    APPROVED = "APPROVED"
    INVESTED = "INVESTED"
    DISBURSED = "DISBURSED"

    @classmethod
    def parse(cls, value: str | LoanState) -> LoanState:
        if isinstance(value, LoanState):
            return value
        normalized = str(value or "").strip().upper()
        member = cls._value2member_map_.get(normalized)
        if member is None:
            allowed = ", ".join(state.value for state in cls)
            raise ValidationError(
                f"invalid loan state {value!r}, expected one of {allowed}",
                details={"state": value, "allowed": [state.value for state in cls]},
            )
        return member  # type: ignore[return-value]

    @property
    def successor(self) -> LoanState | None:
        return _SUCCESSORS[self]


_SUCCESSORS: dict[LoanState, LoanState | None] = {
    LoanState.PROPOSED: LoanState.APPROVED,
    LoanState.APPROVED: LoanState.INVESTED,
    LoanState.INVESTED: LoanState.DISBURSED,
    LoanState.DISBURSED: None,
}


TWOPLACES = Decimal("0.01")
MONEY_MAX_DIGITS = 18


def as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _digit_count(value: Decimal) -> int:
    _, digits, exponent = value.normalize().as_tuple()
    if exponent >= 0:
        return len(digits) + exponent
    return max(len(digits), -exponent)


def as_money(value, field_name: str = "amount") -> Decimal:
    """Return ``value`` as a Decimal, rejecting anything that is not whole cents.

    Amounts keep at most two decimal places and 18 significant digits so that
    sums of them stay exact under the default decimal context.
    """
    try:
        amount = as_decimal(value)
        quantized = amount.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as exc:
        raise InvalidArgumentError(
            f"{field_name} is not a valid money amount",
            details={"field": field_name, field_name: str(value)},
        ) from exc
    if quantized != amount or _digit_count(amount) > MONEY_MAX_DIGITS:
        raise InvalidArgumentError(
            f"{field_name} must have at most 2 decimal places "
            f"and {MONEY_MAX_DIGITS} digits",
            details={"field": field_name, field_name: str(amount)},
        )
    return amount


@dataclass(slots=True)
class Approval:
    validator_id: str
    proof_url: str
    approved_at: datetime


@dataclass(slots=True)
class Investment:
    investor_id: str
    amount: Decimal
    email: str


@dataclass(slots=True)
class Disbursement:
    field_officer_id: str
    signed_agreement_url: str
    disbursed_at: datetime


@dataclass(slots=True)
class Loan:
    id: str
    borrower_id: str
    principal_amount: Decimal
    rate: Decimal
    roi: Decimal
    created_at: datetime
    updated_at: datetime
    state: LoanState = LoanState.PROPOSED
    approval: Approval | None = None
    investors: list[Investment] = field(default_factory=list)
    disbursement: Disbursement | None = None
    agreement_letter: str | None = None

    @property
    def total_invested(self) -> Decimal:
        return sum((investment.amount for investment in self.investors), Decimal("0"))

    @property
    def remaining_amount(self) -> Decimal:
        return self.principal_amount - self.total_invested

    def advance_to(self, target: LoanState) -> None:
        """Move to ``target``; only the immediate successor of the current state is allowed."""
        if self.state.successor is not target:
            raise InvalidStateError(
                f"loan cannot move from {self.state.value} to {target.value}",
                details={"loan_id": self.id, "state": self.state.value, "target": target.value},
            )
        self.state = target


__all__ = [
    "Approval",
    "Disbursement",
    "Investment",
    "Loan",
    "LoanState",
    "as_decimal",
]
