"""
Stock ledger engine.

An item's balance is the fold of its append-only StockTransaction rows
(IN adds, OUT subtracts, starting from zero). `InventoryItem.stock` caches
that fold and is only ever changed here, together with the entry that
explains the change, in one transaction.

Two entry points:

- `apply_movement` is a complete unit of work: it opens and commits its
  own transaction, retries on lock contention and reports the outcome as a
  `MovementResult` instead of raising.
- `post_movement` performs the same steps inside a transaction the caller
  already owns (receptions, distributions, opening balances) and raises
  `LedgerError`, so that one bad line aborts the whole composite write.

Same-item movements are serialised by `SELECT ... FOR UPDATE` on the item
row and, independently of the lock, by a guarded UPDATE that refuses to
take the stored balance below zero. Different items never contend.
"""

from __future__ import annotations

import enum
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, NoReturn, Optional, Union

from fastapi import HTTPException, status
from sqlalchemy import case, func, text, update
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from arsipdb.database import scoped_transaction
from arsipdb.security import get_active_user

from .models import MAX_QUANTITY, InventoryItem, StockStatus, StockTransaction, TransactionType

logger = logging.getLogger(__name__)

# Bounded wait for the item row lock (PostgreSQL only).
LOCK_TIMEOUT_MS = int(os.getenv("LEDGER_LOCK_TIMEOUT_MS", "5000"))
# Extra attempts after a lock/serialisation conflict before giving up.
CONFLICT_RETRIES = int(os.getenv("LEDGER_CONFLICT_RETRIES", "3"))

# lock_not_available, serialization_failure, deadlock_detected
_CONTENTION_PGCODES = {"55P03", "40001", "40P01"}
_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "lock timeout",
    "could not obtain lock",
    "could not serialize access",
    "deadlock detected",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# RESULT / ERROR TYPES
# ---------------------------------------------------------------------------


class LedgerErrorKind(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    UNAUTHORIZED = "UNAUTHORIZED"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL"


_HTTP_STATUS = {
    LedgerErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    LedgerErrorKind.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    LedgerErrorKind.INSUFFICIENT_STOCK: status.HTTP_400_BAD_REQUEST,
    LedgerErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    LedgerErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    LedgerErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass(frozen=True)
class LedgerFailure:
    kind: LedgerErrorKind
    message: str

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.kind]


class LedgerError(Exception):
    """Raised by `post_movement`; aborts the enclosing transaction."""

    def __init__(self, kind: LedgerErrorKind, message: str):
        super().__init__(message)
        self.failure = LedgerFailure(kind=kind, message=message)

    @property
    def kind(self) -> LedgerErrorKind:
        return self.failure.kind


@dataclass
class MovementResult:
    entry: Optional[StockTransaction] = None
    error: Optional[LedgerFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.entry is not None


def raise_for_failure(failure: LedgerFailure) -> NoReturn:
    headers = {"WWW-Authenticate": "Bearer"} if failure.kind == LedgerErrorKind.UNAUTHORIZED else None
    raise HTTPException(status_code=failure.http_status, detail=failure.message, headers=headers)


def is_contention(exc: Exception) -> bool:
    """True for lock timeouts, deadlocks and serialisation failures."""
    if not isinstance(exc, DBAPIError):
        return False
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in _CONTENTION_PGCODES:
        return True
    message = str(exc.orig or exc).lower()
    return any(marker in message for marker in _CONTENTION_MARKERS)


# ---------------------------------------------------------------------------
# STATUS CLASSIFICATION
# ---------------------------------------------------------------------------


def classify_status(stock: int, min_stock: int) -> StockStatus:
    """
    critical: nothing left (stock <= 0)
    low:      0 < stock <= min_stock
    normal:   stock > min_stock
    """
    if stock <= 0:
        return StockStatus.CRITICAL
    if stock <= min_stock:
        return StockStatus.LOW
    return StockStatus.NORMAL


# ---------------------------------------------------------------------------
# VALIDATION
# ---------------------------------------------------------------------------


def _coerce_direction(direction: Union[TransactionType, str, None]) -> TransactionType:
    if isinstance(direction, TransactionType):
        return direction
    try:
        return TransactionType(str(direction).strip().upper())
    except ValueError:
        raise LedgerError(
            LedgerErrorKind.INVALID_ARGUMENT,
            "Transaction type must be IN or OUT",
        )


def _validate_quantity(quantity) -> int:
    # bool is an int subclass; True must not mean "1 unit"
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise LedgerError(
            LedgerErrorKind.INVALID_ARGUMENT,
            "Quantity must be a positive integer",
        )
    if quantity > MAX_QUANTITY:
        raise LedgerError(
            LedgerErrorKind.INVALID_ARGUMENT,
            f"Quantity must not exceed {MAX_QUANTITY}",
        )
    return quantity


def _set_lock_timeout(db: Session) -> None:
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text(f"SET LOCAL lock_timeout = {int(LOCK_TIMEOUT_MS)}"))


# ---------------------------------------------------------------------------
# MOVEMENTS
# ---------------------------------------------------------------------------


def post_movement(
    db: Session,
    *,
    item_id: str,
    direction: Union[TransactionType, str],
    quantity: int,
    actor_user_id: Optional[str],
    description: Optional[str] = None,
) -> StockTransaction:
    """
    Append one ledger entry and move the cached balance, inside the
    caller's transaction. Nothing is committed here.

    Raises LedgerError; the caller's transaction must then be rolled back
    (`scoped_transaction` does this).
    """
    kind = _coerce_direction(direction)
    qty = _validate_quantity(quantity)

    actor = get_active_user(db, actor_user_id)
    if actor is None:
        raise LedgerError(LedgerErrorKind.UNAUTHORIZED, "Unauthorized")

    _set_lock_timeout(db)
    item = (
        db.query(InventoryItem)
        .filter(InventoryItem.id == item_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if item is None:
        raise LedgerError(LedgerErrorKind.NOT_FOUND, "Item not found")

    delta = qty if kind == TransactionType.IN else -qty
    if item.stock + delta < 0:
        raise LedgerError(
            LedgerErrorKind.INSUFFICIENT_STOCK,
            f"Insufficient stock for {item.name}: available {item.stock} {item.unit}, requested {qty}",
        )
    if item.stock + delta > MAX_QUANTITY:
        raise LedgerError(
            LedgerErrorKind.INVALID_ARGUMENT,
            f"Balance of {item.name} would exceed {MAX_QUANTITY} {item.unit}",
        )

    # The WHERE clause re-checks the balance in the database, so an
    # overdraw is refused even where FOR UPDATE is not honoured (SQLite).
    result = db.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item.id, InventoryItem.stock + delta >= 0)
        .values(stock=InventoryItem.stock + delta, updated_at=_utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise LedgerError(
            LedgerErrorKind.INSUFFICIENT_STOCK,
            f"Insufficient stock for {item.name}: requested {qty}",
        )
    db.refresh(item)

    entry = StockTransaction(
        item=item,
        user=actor,
        type=kind,
        quantity=qty,
        description=description,
    )
    db.add(entry)
    db.flush()

    logger.debug(
        "Posted stock movement",
        extra={"item_id": item.id, "type": kind.value, "quantity": qty, "balance": item.stock},
    )
    return entry


def apply_movement(
    db: Session,
    *,
    item_id: str,
    direction: Union[TransactionType, str],
    quantity: int,
    actor_user_id: Optional[str],
    description: Optional[str] = None,
) -> MovementResult:
    """
    Atomically record one movement and update the item's balance.

    On success both the entry and the new balance are committed; on any
    failure neither is. Lock contention is retried up to CONFLICT_RETRIES
    times with a fresh read before CONFLICT is reported.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            with scoped_transaction(db):
                entry = post_movement(
                    db,
                    item_id=item_id,
                    direction=direction,
                    quantity=quantity,
                    actor_user_id=actor_user_id,
                    description=description,
                )
            return MovementResult(entry=entry)
        except LedgerError as exc:
            logger.info(
                "Stock movement rejected: %s",
                exc.failure.message,
                extra={"item_id": item_id, "kind": exc.kind.value},
            )
            return MovementResult(error=exc.failure)
        except OperationalError as exc:
            if not is_contention(exc):
                logger.exception("Stock movement failed", extra={"item_id": item_id})
                return MovementResult(
                    error=LedgerFailure(LedgerErrorKind.INTERNAL, "Failed to record stock movement")
                )
            if attempt <= CONFLICT_RETRIES:
                logger.warning(
                    "Stock movement contention, retrying (attempt %s of %s)",
                    attempt,
                    CONFLICT_RETRIES + 1,
                    extra={"item_id": item_id},
                )
                continue
            logger.warning("Stock movement gave up after contention", extra={"item_id": item_id})
            return MovementResult(
                error=LedgerFailure(
                    LedgerErrorKind.CONFLICT,
                    "Item is being updated concurrently; retry the request",
                )
            )
        except SQLAlchemyError:
            logger.exception("Stock movement failed", extra={"item_id": item_id})
            return MovementResult(
                error=LedgerFailure(LedgerErrorKind.INTERNAL, "Failed to record stock movement")
            )


@contextmanager
def ledger_transaction(db: Session) -> Iterator[Session]:
    """
    `scoped_transaction` for composite writes that post movements.

    Ledger failures and lock contention become HTTP errors after the
    rollback, so a reception or distribution is either written whole
    (document, lines and ledger entries) or not at all.
    """
    try:
        with scoped_transaction(db):
            yield db
    except LedgerError as exc:
        logger.info("Composite stock write rejected: %s", exc.failure.message)
        raise_for_failure(exc.failure)
    except OperationalError as exc:
        if not is_contention(exc):
            raise
        logger.warning("Composite stock write hit lock contention")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Stock is being updated concurrently; retry the request",
        ) from exc


# ---------------------------------------------------------------------------
# CONSISTENCY CHECKS
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceCheck:
    item_id: str
    stock: int
    ledger_balance: int

    @property
    def consistent(self) -> bool:
        return self.stock == self.ledger_balance


def ledger_balance(db: Session, item_id: str) -> int:
    """Fold of the item's ledger: sum(IN) - sum(OUT)."""
    signed = case(
        (StockTransaction.type == TransactionType.IN, StockTransaction.quantity),
        else_=-StockTransaction.quantity,
    )
    total = (
        db.query(func.coalesce(func.sum(signed), 0))
        .filter(StockTransaction.item_id == item_id)
        .scalar()
    )
    return int(total or 0)


def check_balance(db: Session, item_id: str) -> BalanceCheck:
    item = db.get(InventoryItem, item_id)
    if item is None:
        raise LedgerError(LedgerErrorKind.NOT_FOUND, "Item not found")
    return BalanceCheck(
        item_id=item.id,
        stock=int(item.stock),
        ledger_balance=ledger_balance(db, item.id),
    )
