"""
BaseService -- common transaction handling for the ledger write services.

Responsibility:
    Gives every service that owns an all-or-nothing operation the same
    unit-of-work: a SAVEPOINT around the operation, commit when the service
    owns the boundary, rollback and typed error mapping on failure.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Extended by
    PostingEngine, ReversalService and the module posting services.

Invariants enforced:
    - A failed operation leaves nothing behind: the savepoint is rolled
      back, and with ``auto_commit`` the whole session is rolled back too.
    - With ``auto_commit=False`` the service never commits; the caller's
      transaction stays open and usable after a failure.

Failure modes:
    - LedgerError subclasses propagate unchanged after rollback.
    - StaleDataError (lost optimistic-lock race) -> ConcurrencyError.
    - Any other SQLAlchemyError -> PersistenceError (retryable).
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ledger_kernel.exceptions import ConcurrencyError, LedgerError, PersistenceError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.base")


class BaseService:
    """
    Base class for services that own a unit of work.

    Contract:
        Subclasses wrap each public write operation in ``self._atomic()``.
        Helpers they call (JournalWriter, InventoryLedger, AuditorService,
        AccountService) only flush.
    """

    def __init__(self, session: Session, auto_commit: bool = True):
        self.session = session
        self._auto_commit = auto_commit

    def _rollback(self) -> None:
        if self._auto_commit:
            self.session.rollback()

    @contextmanager
    def _atomic(self, operation: str, source_ref: str) -> Iterator[None]:
        """
        Run the body as one all-or-nothing unit.

        Raises:
            ConcurrencyError: A versioned row changed underneath us.
            PersistenceError: The store rejected a statement.
        """
        try:
            with self.session.begin_nested():
                yield
            if self._auto_commit:
                self.session.commit()
        except LedgerError:
            self._rollback()
            raise
        except StaleDataError as exc:
            self._rollback()
            logger.warning(
                "optimistic_lock_conflict",
                extra={"operation": operation, "source_ref": source_ref},
            )
            raise ConcurrencyError(operation, source_ref, str(exc)) from exc
        except SQLAlchemyError as exc:
            self._rollback()
            logger.error(
                "persistence_failed",
                extra={
                    "operation": operation,
                    "source_ref": source_ref,
                    "error_type": type(exc).__name__,
                },
            )
            raise PersistenceError(operation, source_ref, type(exc).__name__) from exc
