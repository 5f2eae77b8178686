from app.models.loan import Approval, Disbursement, Investment, Loan, LoanState

__all__ = [
    "Approval",
    "Disbursement",
    "Investment",
    "Loan",
    "LoanState",
]
