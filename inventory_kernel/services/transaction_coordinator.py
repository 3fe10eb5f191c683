"""
TransactionCoordinator -- all-or-nothing execution of a unit of work.

Responsibility:
    Runs a caller-supplied ``unit_of_work(session)`` so that every write it
    makes commits together or not at all, retrying transient storage
    conflicts and degrading to direct (autocommit) execution when the
    deployment cannot run multi-statement transactions.

Architecture position:
    Kernel > Services.  The engines in inventory_modules route every
    multi-write operation through ``run_atomically``.  Nothing else opens a
    transaction.

Strategy selection:
    Two execution strategies implement one interface:

        TransactionalStrategy  session bound to a transaction; commit on
                               success, rollback on any error
        DirectStrategy         session bound to an AUTOCOMMIT connection;
                               each statement is durable on its own

    The strategy is chosen once, from configuration plus a capability probe,
    never from the text of an error message.  ``transaction_mode``:

        auto      probe; transactional when supported, else direct
        required  always transactional; a TransactionsUnsupportedError fails
        disabled  always direct

Error disposition (classify_error):

    Condition                                          | Disposition
    ---------------------------------------------------|------------
    TransactionsUnsupportedError                       | DEGRADE
    TransientConflictError / OptimisticLockError       | RETRY
    ORM StaleDataError (version_id_col mismatch)       | RETRY
    PostgreSQL 40001 serialization failure             | RETRY
    PostgreSQL 40P01 deadlock detected                 | RETRY
    PostgreSQL 23505 unique violation                  | RETRY
    SQLite BUSY / LOCKED                               | RETRY
    SQLite CONSTRAINT_UNIQUE                           | RETRY
    any other InventoryError                           | FAIL
    anything else                                      | FAIL

    Unique violations are retryable because the only uniqueness races in
    the schema are first-use sequence counter inserts and document numbers;
    a retry re-reads the committed state.

Retry schedule:
    Attempt n that fails with RETRY sleeps ``n * backoff_unit`` seconds
    (0.1 s by default) and runs again on a fresh session.  After
    ``max_retries`` attempts the coordinator raises TransientConflictError
    chained from the last storage error.

Degraded mode:
    When a DEGRADE error surfaces from the transactional strategy the
    coordinator logs ``transactions_unsupported_degraded_mode`` once,
    switches permanently to DirectStrategy and re-runs the unit of work.
    Per-statement atomicity (the ledger's conditional update) is still
    guaranteed; cross-statement atomicity is not.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from inventory_kernel.exceptions import (
    ConcurrencyError,
    TransactionsUnsupportedError,
    TransientConflictError,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.transaction_coordinator")

T = TypeVar("T")

UnitOfWork = Callable[[Session], T]
SessionFactory = Callable[[], Session]

TRANSACTION_MODES = ("auto", "required", "disabled")
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_UNIT = 0.1

# SQLSTATE codes (psycopg2 ``pgcode`` / psycopg ``sqlstate``)
_PG_RETRYABLE_SQLSTATES = frozenset({
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "23505",  # unique_violation
})

# Extended result codes (sqlite3 ``sqlite_errorcode``)
_SQLITE_RETRYABLE_CODES = frozenset({
    5,     # SQLITE_BUSY
    6,     # SQLITE_LOCKED
    261,   # SQLITE_BUSY_RECOVERY
    517,   # SQLITE_BUSY_SNAPSHOT
    262,   # SQLITE_LOCKED_SHAREDCACHE
    2067,  # SQLITE_CONSTRAINT_UNIQUE
})


class Disposition(str, Enum):
    """What the coordinator does with an error raised by a unit of work."""

    RETRY = "retry"
    DEGRADE = "degrade"
    FAIL = "fail"


def _driver_error_code(exc: DBAPIError):
    orig = exc.orig
    for attr in ("pgcode", "sqlstate", "sqlite_errorcode"):
        code = getattr(orig, attr, None)
        if code is not None:
            return code
    return None


def classify_error(exc: BaseException) -> Disposition:
    """Map an exception to its disposition.  See the module table."""
    if isinstance(exc, TransactionsUnsupportedError):
        return Disposition.DEGRADE
    if isinstance(exc, ConcurrencyError):
        return Disposition.RETRY
    if isinstance(exc, StaleDataError):
        return Disposition.RETRY
    if isinstance(exc, DBAPIError):
        code = _driver_error_code(exc)
        if code in _PG_RETRYABLE_SQLSTATES or code in _SQLITE_RETRYABLE_CODES:
            return Disposition.RETRY
    return Disposition.FAIL


def probe_transaction_support(engine: Engine) -> bool:
    """
    Capability probe: can this deployment run multi-statement transactions?

    Opens a connection, begins and rolls back a transaction.  MySQL is
    additionally asked for its default storage engine, since MyISAM accepts
    BEGIN but ignores it.
    """
    with engine.connect() as conn:
        if engine.dialect.name in ("mysql", "mariadb"):
            storage = conn.execute(text("SELECT @@default_storage_engine")).scalar()
            if str(storage).lower() == "myisam":
                return False
        trans = conn.begin()
        trans.rollback()
    return True


class ExecutionStrategy(ABC):
    """Runs one attempt of a unit of work on a session it owns."""

    name: str = "abstract"

    @abstractmethod
    def execute(self, unit_of_work: UnitOfWork) -> T:
        ...


class TransactionalStrategy(ExecutionStrategy):
    """One session, one transaction: commit on success, rollback on error."""

    name = "transactional"

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def execute(self, unit_of_work: UnitOfWork) -> T:
        session = self._session_factory()
        try:
            result = unit_of_work(session)
            session.commit()
            return result
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()


class DirectStrategy(ExecutionStrategy):
    """
    Degraded execution on an AUTOCOMMIT session.

    Writes already issued when the unit of work fails stay applied.
    Pending ORM objects that were never flushed are discarded on close.
    """

    name = "direct"

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def execute(self, unit_of_work: UnitOfWork) -> T:
        session = self._session_factory()
        try:
            result = unit_of_work(session)
            # Flush remaining ORM state; COMMIT itself is a no-op here.
            session.commit()
            return result
        finally:
            session.close()


class TransactionCoordinator:
    """
    Runs units of work atomically, with bounded retry and degraded mode.

    Args:
        session_factory: Creates transactional sessions.
        autocommit_session_factory: Creates AUTOCOMMIT sessions.  Without
            it the coordinator cannot degrade and DEGRADE errors fail.
        transaction_mode: ``auto`` | ``required`` | ``disabled``.
        max_retries: Total attempts per call before giving up.
        backoff_unit: Seconds multiplied by the attempt number between tries.
        sleep: Injectable sleep (tests pass a recorder).
        probe: Zero-argument capability check used in ``auto`` mode.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        autocommit_session_factory: SessionFactory | None = None,
        *,
        transaction_mode: str = "auto",
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_unit: float = DEFAULT_BACKOFF_UNIT,
        sleep: Callable[[float], None] = time.sleep,
        probe: Callable[[], bool] | None = None,
    ):
        if transaction_mode not in TRANSACTION_MODES:
            raise ValueError(
                f"transaction_mode must be one of {TRANSACTION_MODES}, "
                f"got {transaction_mode!r}"
            )
        if transaction_mode == "disabled" and autocommit_session_factory is None:
            raise ValueError("transaction_mode 'disabled' needs an autocommit session factory")
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")

        self._transactional = TransactionalStrategy(session_factory)
        self._direct = (
            DirectStrategy(autocommit_session_factory)
            if autocommit_session_factory is not None
            else None
        )
        self._mode = transaction_mode
        self._max_retries = max_retries
        self._backoff_unit = backoff_unit
        self._sleep = sleep
        self._probe = probe
        self._strategy: ExecutionStrategy | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_engine(
        cls,
        engine: Engine,
        session_factory: SessionFactory,
        autocommit_session_factory: SessionFactory,
        **kwargs,
    ) -> TransactionCoordinator:
        """Build a coordinator whose ``auto`` mode probes ``engine``."""
        return cls(
            session_factory,
            autocommit_session_factory,
            probe=lambda: probe_transaction_support(engine),
            **kwargs,
        )

    @property
    def transaction_mode(self) -> str:
        return self._mode

    @property
    def degraded(self) -> bool:
        """True once the coordinator runs units of work in direct mode."""
        return self.strategy is self._direct

    @property
    def strategy(self) -> ExecutionStrategy:
        with self._lock:
            if self._strategy is None:
                self._strategy = self._select_strategy()
            return self._strategy

    def _select_strategy(self) -> ExecutionStrategy:
        if self._mode == "disabled":
            logger.info("transaction_mode_disabled", extra={"strategy": "direct"})
            return self._direct
        if self._mode == "required" or self._probe is None:
            return self._transactional
        if self._probe():
            return self._transactional
        if self._direct is None:
            return self._transactional
        self._log_degraded("capability probe reported no transaction support")
        return self._direct

    def _log_degraded(self, reason: str) -> None:
        logger.warning(
            "transactions_unsupported_degraded_mode",
            extra={"reason": reason, "strategy": "direct"},
        )

    def _degrade(self, exc: BaseException) -> None:
        """Switch to direct mode, or re-raise when degrading is not allowed."""
        if self._mode == "required" or self._direct is None:
            raise exc
        with self._lock:
            if self._strategy is not self._direct:
                self._strategy = self._direct
                self._log_degraded(str(exc))

    def run_atomically(self, unit_of_work: UnitOfWork, max_retries: int | None = None) -> T:
        """
        Execute ``unit_of_work`` so that its writes commit together or not at all.

        Preconditions:
            ``unit_of_work`` uses only the session it is given and is safe
            to run more than once (every attempt starts from a clean session).

        Returns:
            Whatever ``unit_of_work`` returns, after commit.

        Raises:
            TransientConflictError: retryable conflicts outlasted max_retries.
            Any FAIL-disposition error from the unit of work, unchanged.
        """
        limit = self._max_retries if max_retries is None else max_retries
        if limit < 1:
            raise ValueError(f"max_retries must be >= 1, got {limit}")

        attempt = 0
        while True:
            attempt += 1
            strategy = self.strategy
            try:
                return strategy.execute(unit_of_work)
            except Exception as exc:
                disposition = classify_error(exc)

                if disposition is Disposition.DEGRADE and strategy is not self._direct:
                    # Direct reruns get a fresh attempt budget
                    self._degrade(exc)
                    attempt = 0
                    continue

                if disposition is not Disposition.RETRY:
                    raise

                if attempt >= limit:
                    logger.error(
                        "transaction_retries_exhausted",
                        extra={
                            "attempts": attempt,
                            "strategy": strategy.name,
                            "error_type": type(exc).__name__,
                        },
                    )
                    raise TransientConflictError(attempts=attempt) from exc

                delay = attempt * self._backoff_unit
                logger.warning(
                    "transaction_retry",
                    extra={
                        "attempt": attempt,
                        "max_retries": limit,
                        "delay_seconds": delay,
                        "strategy": strategy.name,
                        "error_type": type(exc).__name__,
                    },
                )
                self._sleep(delay)
