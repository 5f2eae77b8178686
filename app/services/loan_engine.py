"""Loan lifecycle engine.

A loan moves PROPOSED -> APPROVED -> INVESTED -> DISBURSED and never back.
The engine is the only writer of loan records: every transition loads the
loan inside a store transaction, checks its guard, mutates a private copy
and writes it back with ``LoanStore.update``. Nothing is persisted when a
guard, the notifier, or the store itself fails.

Funding is exact: a loan becomes INVESTED only when the sum of investments
equals the principal. An investment that would overshoot is rejected whole.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from app.core.exceptions import (
    InvalidArgumentError,
    InvalidStateError,
    LoanError,
    NotificationError,
    OverfundingError,
    PersistenceError,
)
from app.models.loan import (
    Approval,
    Disbursement,
    Investment,
    Loan,
    LoanState,
    as_decimal,
    as_money,
)
from app.services.audit import loan_snapshot, record_audit_event
from app.services.loan_store import LoanStore
from app.services.notifier import Notifier

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_loan_id() -> str:
    return str(uuid.uuid4())


def normalize_page(page: int | None, limit: int | None) -> tuple[int, int]:
    """Values below 1 (or missing) fall back to page 1 / limit 10."""
    if page is None or page < 1:
        page = DEFAULT_PAGE
    if limit is None or limit < 1:
        limit = DEFAULT_LIMIT
    return page, limit


def _require_non_empty(operation: str, **fields: str | None) -> None:
    # kwargs keep insertion order, so fields are checked in the order given.
    for name, value in fields.items():
        if not value:
            raise InvalidArgumentError(
                f"{operation}: {name.replace('_', ' ')} cannot be empty",
                details={"field": name},
            )


def _money(operation: str, value, field_name: str = "amount") -> Decimal:
    try:
        return as_money(value, field_name)
    except InvalidArgumentError as exc:
        raise exc.with_context(operation) from exc


def _require_state(operation: str, loan: Loan, *allowed: LoanState) -> None:
    if loan.state in allowed:
        return
    required = " or ".join(state.value for state in allowed)
    logger.error(
        "%s: loan not in %s state loan_id=%s state=%s",
        operation,
        required,
        loan.id,
        loan.state.value,
    )
    raise InvalidStateError(
        f"{operation}: loan must be in {required} state, current state is {loan.state.value}",
        details={
            "loan_id": loan.id,
            "state": loan.state.value,
            "required_states": [state.value for state in allowed],
        },
    )


class LoanEngine:
    def __init__(
        self,
        store: LoanStore,
        notifier: Notifier,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self._clock = clock or _utcnow
        self._id_factory = id_factory or _new_loan_id

    # ------------------------------------------------------------------
    # Store access with operation context
    # ------------------------------------------------------------------

    def _load(self, operation: str, loan_id: str) -> Loan:
        try:
            return self.store.find_by_id(loan_id)
        except LoanError as exc:
            logger.error("%s: failed to find loan loan_id=%s error=%s", operation, loan_id, exc)
            raise exc.with_context(operation) from exc
        except Exception as exc:
            logger.exception("%s: store lookup failed loan_id=%s", operation, loan_id)
            raise PersistenceError(
                f"{operation}: failed to load loan {loan_id}: {exc}",
                details={"loan_id": loan_id},
            ) from exc

    def _persist(self, operation: str, loan: Loan) -> None:
        try:
            self.store.update(loan)
        except Exception as exc:
            logger.error("%s: failed to update loan loan_id=%s error=%s", operation, loan.id, exc)
            raise PersistenceError(
                f"{operation}: failed to update loan {loan.id}: {exc}",
                details={"loan_id": loan.id},
            ) from exc

    def _scan(self, operation: str, fetch: Callable[[], list[Loan]]) -> list[Loan]:
        try:
            return fetch()
        except LoanError as exc:
            logger.error("%s: store scan failed error=%s", operation, exc)
            raise exc.with_context(operation) from exc
        except Exception as exc:
            logger.exception("%s: store scan failed", operation)
            raise PersistenceError(f"{operation}: {exc}") from exc

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create_loan(self, borrower_id: str, principal, rate, roi) -> Loan:
        operation = "create loan"
        logger.info(
            "Creating new loan borrower_id=%s principal_amount=%s rate=%s roi=%s",
            borrower_id,
            principal,
            rate,
            roi,
        )
        principal = _money(operation, principal, "principal_amount")
        now = self._clock()
        loan = Loan(
            id=self._id_factory(),
            borrower_id=borrower_id,
            principal_amount=principal,
            rate=as_decimal(rate),
            roi=as_decimal(roi),
            state=LoanState.PROPOSED,
            created_at=now,
            updated_at=now,
        )
        try:
            self.store.save(loan)
        except Exception as exc:
            logger.error("Failed to create loan loan_id=%s error=%s", loan.id, exc)
            raise PersistenceError(
                f"{operation}: {exc}", details={"loan_id": loan.id}
            ) from exc

        record_audit_event(action="loan.created", loan_id=loan.id, new_value=loan_snapshot(loan))
        logger.info("Loan created successfully loan_id=%s", loan.id)
        return loan

    def approve_loan(self, loan_id: str, validator_id: str, proof_url: str) -> None:
        operation = "approve loan"
        logger.info("Approving loan loan_id=%s validator_id=%s", loan_id, validator_id)
        with self.store.transaction():
            loan = self._load(operation, loan_id)
            _require_state(operation, loan, LoanState.PROPOSED)
            before = loan_snapshot(loan)

            now = self._clock()
            loan.approval = Approval(validator_id=validator_id, proof_url=proof_url, approved_at=now)
            loan.advance_to(LoanState.APPROVED)
            loan.updated_at = now
            self._persist(operation, loan)

        record_audit_event(
            action="loan.approved",
            loan_id=loan.id,
            old_value=before,
            new_value=loan_snapshot(loan),
        )
        logger.info("Loan approved successfully loan_id=%s", loan_id)

    def add_investment(self, loan_id: str, investor_id: str, email: str, amount) -> None:
        operation = "add investment"
        amount = _money(operation, amount)
        logger.info(
            "Adding investment to loan loan_id=%s investor_id=%s amount=%s",
            loan_id,
            investor_id,
            amount,
        )
        if amount <= 0:
            raise InvalidArgumentError(
                f"{operation}: amount must be greater than zero",
                details={"field": "amount", "amount": str(amount)},
            )

        with self.store.transaction():
            loan = self._load(operation, loan_id)
            _require_state(operation, loan, LoanState.APPROVED, LoanState.INVESTED)
            before = loan_snapshot(loan)

            total = loan.total_invested + amount
            if total > loan.principal_amount:
                logger.error(
                    "Investment exceeds principal loan_id=%s total=%s principal=%s",
                    loan_id,
                    total,
                    loan.principal_amount,
                )
                raise OverfundingError(
                    f"{operation}: investment exceeds principal: "
                    f"{total} > {loan.principal_amount}",
                    details={
                        "loan_id": loan_id,
                        "total": str(total),
                        "principal_amount": str(loan.principal_amount),
                        "remaining_amount": str(loan.remaining_amount),
                    },
                )

            loan.investors.append(Investment(investor_id=investor_id, amount=amount, email=email))
            fully_funded = total == loan.principal_amount
            if fully_funded:
                logger.info("Loan fully funded, transitioning to INVESTED loan_id=%s", loan_id)
                loan.advance_to(LoanState.INVESTED)
                self._notify_investors(operation, loan)

            loan.updated_at = self._clock()
            self._persist(operation, loan)

        record_audit_event(
            action="loan.investment_added",
            loan_id=loan.id,
            old_value=before,
            new_value=loan_snapshot(loan),
            extra={"investor_id": investor_id, "amount": amount},
        )
        if fully_funded:
            record_audit_event(
                action="loan.invested",
                loan_id=loan.id,
                extra={"investor_count": len(loan.investors), "total": loan.total_invested},
            )
        logger.info("Investment added successfully loan_id=%s", loan_id)

    def _notify_investors(self, operation: str, loan: Loan) -> None:
        # Sequential, in the order investments were made; the first failure aborts.
        for investment in loan.investors:
            logger.info(
                "Sending agreement email to investor loan_id=%s investor_id=%s",
                loan.id,
                investment.investor_id,
            )
            try:
                self.notifier.notify(investment.email, loan.id, loan.agreement_letter)
            except Exception as exc:
                logger.error(
                    "Failed to send agreement email loan_id=%s investor_id=%s error=%s",
                    loan.id,
                    investment.investor_id,
                    exc,
                )
                raise NotificationError(
                    f"{operation}: failed to send agreement to investor "
                    f"{investment.investor_id}: {exc}",
                    details={"loan_id": loan.id, "investor_id": investment.investor_id},
                ) from exc

    def disburse_loan(self, loan_id: str, field_officer_id: str, signed_agreement_url: str) -> None:
        operation = "disburse loan"
        logger.info("Disbursing loan loan_id=%s field_officer_id=%s", loan_id, field_officer_id)
        _require_non_empty(
            operation,
            loan_id=loan_id,
            field_officer_id=field_officer_id,
            signed_agreement_url=signed_agreement_url,
        )

        with self.store.transaction():
            loan = self._load(operation, loan_id)
            _require_state(operation, loan, LoanState.INVESTED)
            before = loan_snapshot(loan)

            now = self._clock()
            loan.disbursement = Disbursement(
                field_officer_id=field_officer_id,
                signed_agreement_url=signed_agreement_url,
                disbursed_at=now,
            )
            loan.advance_to(LoanState.DISBURSED)
            loan.updated_at = now
            self._persist(operation, loan)

        record_audit_event(
            action="loan.disbursed",
            loan_id=loan.id,
            old_value=before,
            new_value=loan_snapshot(loan),
        )
        logger.info("Loan disbursed successfully loan_id=%s", loan_id)

    def generate_agreement_letter(self, loan_id: str, letter_url: str) -> None:
        operation = "generate agreement letter"
        logger.info("Generating agreement letter loan_id=%s letter_url=%s", loan_id, letter_url)
        _require_non_empty(operation, loan_id=loan_id, letter_url=letter_url)

        with self.store.transaction():
            loan = self._load(operation, loan_id)
            before = loan_snapshot(loan)
            loan.agreement_letter = letter_url
            loan.updated_at = self._clock()
            self._persist(operation, loan)

        record_audit_event(
            action="loan.agreement_generated",
            loan_id=loan.id,
            old_value=before,
            new_value=loan_snapshot(loan),
        )
        logger.info("Agreement letter generated successfully loan_id=%s", loan_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_loan(self, loan_id: str) -> Loan:
        operation = "get loan"
        _require_non_empty(operation, loan_id=loan_id)
        return self._load(operation, loan_id)

    def get_loans_by_borrower(self, borrower_id: str) -> list[Loan]:
        operation = "get loans by borrower"
        _require_non_empty(operation, borrower_id=borrower_id)
        loans = self._scan(operation, lambda: self.store.find_by_borrower_id(borrower_id))
        logger.info("Loans retrieved borrower_id=%s count=%s", borrower_id, len(loans))
        return loans

    def get_loans_by_state(self, state: LoanState | str) -> list[Loan]:
        operation = "get loans by state"
        state = LoanState.parse(state)
        loans = self._scan(operation, lambda: self.store.find_by_state(state))
        logger.info("Loans retrieved state=%s count=%s", state.value, len(loans))
        return loans

    def get_loans(self, page: int | None = None, limit: int | None = None) -> list[Loan]:
        operation = "get loans"
        page, limit = normalize_page(page, limit)
        loans = self._scan(operation, lambda: self.store.find_all(page, limit))
        logger.info("Loans retrieved page=%s limit=%s count=%s", page, limit, len(loans))
        return loans


__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_PAGE",
    "LoanEngine",
    "normalize_page",
]
