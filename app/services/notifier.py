from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from app.core.exceptions import NotificationError

logger = logging.getLogger("app.notifications")


class Notifier(ABC):
    @abstractmethod
    def notify(self, email: str, loan_id: str, agreement_url: str | None) -> None:
        """Deliver the agreement notice for ``loan_id`` to ``email``.

        Raises ``NotificationError`` when delivery fails. No retries.
        """


class LoggingNotifier(Notifier):
    """Records agreement e-mails on the log stream instead of sending them."""

    def notify(self, email: str, loan_id: str, agreement_url: str | None) -> None:
        if not email:
            raise NotificationError(
                f"no recipient address for loan {loan_id}", details={"loan_id": loan_id}
            )
        logger.info(
            "Sending agreement email to=%s loan_id=%s",
            email,
            loan_id,
            extra={
                "fields": {
                    "email": email,
                    "loan_id": loan_id,
                    "agreement_url": agreement_url or "",
                }
            },
        )
