from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator

from app.core.exceptions import AlreadyExistsError, NotFoundError
from app.models.loan import Loan, LoanState

logger = logging.getLogger(__name__)


class LoanStore(ABC):
    """Persistence contract the loan engine depends on.

    Implementations hold records only; they never apply business rules.
    """

    @abstractmethod
    def save(self, loan: Loan) -> None:
        """Insert ``loan``; raise ``AlreadyExistsError`` if its id is taken."""

    @abstractmethod
    def find_by_id(self, loan_id: str) -> Loan:
        """Return the loan or raise ``NotFoundError``."""

    @abstractmethod
    def update(self, loan: Loan) -> None:
        """Overwrite an existing loan; raise ``NotFoundError`` if absent."""

    @abstractmethod
    def find_by_borrower_id(self, borrower_id: str) -> list[Loan]:
        pass

    @abstractmethod
    def find_by_state(self, state: LoanState) -> list[Loan]:
        pass

    @abstractmethod
    def find_all(self, page: int, limit: int) -> list[Loan]:
        """1-indexed page of loans; an out-of-range page is an empty list."""

    @abstractmethod
    def transaction(self):
        """Context manager serialising a read-modify-write sequence."""


class InMemoryLoanStore(LoanStore):
    def __init__(self) -> None:
        self._loans: dict[str, Loan] = {}
        # Re-entrant so store calls made inside ``transaction()`` do not deadlock.
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            yield

    def save(self, loan: Loan) -> None:
        with self._lock:
            if loan.id in self._loans:
                logger.error("Loan already exists loan_id=%s", loan.id)
                raise AlreadyExistsError(
                    f"loan with ID {loan.id} already exists", details={"loan_id": loan.id}
                )
            self._loans[loan.id] = copy.deepcopy(loan)
        logger.debug("Loan saved loan_id=%s", loan.id)

    def find_by_id(self, loan_id: str) -> Loan:
        with self._lock:
            loan = self._loans.get(loan_id)
            if loan is None:
                logger.info("Loan not found loan_id=%s", loan_id)
                raise NotFoundError(
                    f"loan with ID {loan_id} not found", details={"loan_id": loan_id}
                )
            return copy.deepcopy(loan)

    def update(self, loan: Loan) -> None:
        with self._lock:
            if loan.id not in self._loans:
                logger.error("Loan not found for update loan_id=%s", loan.id)
                raise NotFoundError(
                    f"loan with ID {loan.id} not found", details={"loan_id": loan.id}
                )
            self._loans[loan.id] = copy.deepcopy(loan)
        logger.debug("Loan updated loan_id=%s", loan.id)

    def find_by_borrower_id(self, borrower_id: str) -> list[Loan]:
        with self._lock:
            result = [
                copy.deepcopy(loan)
                for loan in self._loans.values()
                if loan.borrower_id == borrower_id
            ]
        logger.debug("Found %s loans for borrower_id=%s", len(result), borrower_id)
        return result

    def find_by_state(self, state: LoanState) -> list[Loan]:
        with self._lock:
            result = [copy.deepcopy(loan) for loan in self._loans.values() if loan.state is state]
        logger.debug("Found %s loans in state=%s", len(result), state.value)
        return result

    def find_all(self, page: int, limit: int) -> list[Loan]:
        start = (page - 1) * limit
        end = start + limit
        with self._lock:
            loans = list(self._loans.values())
            if start >= len(loans) or start < 0:
                return []
            return [copy.deepcopy(loan) for loan in loans[start:end]]
