"""Execution audit logging.

``record`` is fire-and-forget: it never raises. A failure to write the
audit row is logged as a warning and the session is rolled back so the
rest of the job can keep using it.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from botgate.models.execution import Execution

logger = logging.getLogger(__name__)

EXECUTION_SUCCESS = "success"
EXECUTION_ERROR = "error"


class ExecutionLogger:
    """Writes one ``executions`` row per AI invocation attempt.

    Args:
        db: Sync SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        bot_id: str,
        account_id: str,
        integration_id: str | None,
        status: str,
        error_message: str | None,
        duration_ms: int,
    ) -> Execution | None:
        """Create and persist an execution record.

        Returns:
            The created Execution, or None if logging failed.
        """
        try:
            execution = Execution(
                bot_id=bot_id,
                account_id=account_id,
                integration_id=integration_id,
                status=status,
                error_message=error_message,
                duration_ms=duration_ms,
                cost=0,
            )
            self.db.add(execution)
            self.db.commit()
            return execution
        except Exception:
            logger.warning(
                "Failed to log execution for bot '%s' status='%s'",
                bot_id,
                status,
                exc_info=True,
            )
            self.db.rollback()
            return None
