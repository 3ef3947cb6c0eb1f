import threading
from dataclasses import dataclass, field
from decimal import Context, Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Dict, NamedTuple, Optional, Set, Union

from errors import (
    AccountLocked,
    DuplicateTransaction,
    InsufficientFunds,
    MalformedTransaction,
)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

# Amounts fit 28 significant digits: at most 24 before the point and 4 after.
MAX_AMOUNT_INTEGER_DIGITS = 24
MAX_AMOUNT_SCALE = 4

# Wide enough that summing 2**32 maximal amounts stays exact.
BALANCE_CONTEXT = Context(prec=64)


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @classmethod
    def parse(cls, token: str) -> "TransactionType":
        """Map an input token to a member, raising MalformedTransaction for anything else."""
        try:
            return cls(token.strip().lower())
        except (AttributeError, ValueError):
            raise MalformedTransaction(f"unknown transaction type {token!r}") from None

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class ProcessingResult(Enum):
    SUCCESS = "success"
    IGNORED = "ignored"
    REJECTED = "rejected"


def _check_id(value: int, name: str, upper: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= upper:
        raise MalformedTransaction(f"{name} must be an integer in [0, {upper}], got {value!r}")


def _check_amount_range(amount: Decimal) -> None:
    # Trailing zeros do not count against the scale: 1.50000 is 1.5.
    if amount.adjusted() >= MAX_AMOUNT_INTEGER_DIGITS:
        raise MalformedTransaction(
            f"amount {amount} has more than {MAX_AMOUNT_INTEGER_DIGITS} integer digits"
        )
    if amount.normalize(BALANCE_CONTEXT).as_tuple().exponent < -MAX_AMOUNT_SCALE:
        raise MalformedTransaction(
            f"amount {amount} has more than {MAX_AMOUNT_SCALE} fractional digits"
        )


@dataclass(frozen=True)
class AmountTransaction:
    """A deposit or withdrawal. Only these can later be referenced by a dispute."""

    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Decimal

    def __post_init__(self):
        if not isinstance(self.transaction_type, TransactionType) or not self.transaction_type.carries_amount:
            raise MalformedTransaction(f"{self.transaction_type!r} does not carry an amount")
        _check_id(self.client_id, "client", MAX_CLIENT_ID)
        _check_id(self.transaction_id, "tx", MAX_TRANSACTION_ID)
        if not isinstance(self.amount, Decimal) or not self.amount.is_finite() or self.amount <= 0:
            raise MalformedTransaction(
                f"{self.transaction_type.value} tx {self.transaction_id}: amount must be positive, got {self.amount!r}"
            )
        _check_amount_range(self.amount)

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass(frozen=True)
class ReferenceTransaction:
    """A dispute, resolve or chargeback naming an earlier transaction of the same client."""

    transaction_type: TransactionType
    client_id: int
    transaction_id: int

    def __post_init__(self):
        if not isinstance(self.transaction_type, TransactionType) or self.transaction_type.carries_amount:
            raise MalformedTransaction(f"{self.transaction_type!r} requires an amount")
        _check_id(self.client_id, "client", MAX_CLIENT_ID)
        _check_id(self.transaction_id, "tx", MAX_TRANSACTION_ID)

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id})"


Transaction = Union[AmountTransaction, ReferenceTransaction]


def _parse_id(text: Optional[str], name: str) -> int:
    text = (text or "").strip()
    if not text.isdecimal():
        raise MalformedTransaction(f"{name} must be a non-negative integer, got {text!r}")
    return int(text)


def _parse_amount(text: str) -> Decimal:
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise MalformedTransaction(f"amount {text!r} is not a decimal number") from None
    if not amount.is_finite():
        raise MalformedTransaction(f"amount {text!r} is not a finite number")
    _check_amount_range(amount)
    return amount


def parse_transaction(
    transaction_type: str,
    client_id: Optional[str],
    transaction_id: Optional[str],
    amount: Optional[str] = None,
) -> Transaction:
    """
    Build a Transaction from raw text fields.

    The amount must be present for deposits and withdrawals and absent
    (None or blank) for disputes, resolves and chargebacks. Any violation
    raises MalformedTransaction; nothing is coerced to zero.
    """
    kind = TransactionType.parse(transaction_type)
    client = _parse_id(client_id, "client")
    tx = _parse_id(transaction_id, "tx")
    amount_str = (amount or "").strip()

    if kind.carries_amount:
        if not amount_str:
            raise MalformedTransaction(f"{kind.value} tx {tx}: missing amount")
        return AmountTransaction(kind, client, tx, _parse_amount(amount_str))

    if amount_str:
        raise MalformedTransaction(f"{kind.value} tx {tx}: unexpected amount {amount_str!r}")
    return ReferenceTransaction(kind, client, tx)


class AccountSnapshot(NamedTuple):
    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


@dataclass
class ClientAccount:
    """
    Balances of one client plus the postings a later dispute may reference.

    total is always derived from available + held. Once a chargeback lands the
    account is locked and refuses further postings and dispute traffic.
    """

    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False
    disputed_transaction_ids: Set[int] = field(default_factory=set)
    _postings: Dict[int, AmountTransaction] = field(default_factory=dict, init=False, repr=False)

    # Balance arithmetic runs in BALANCE_CONTEXT so sums never round.

    @property
    def total(self) -> Decimal:
        return BALANCE_CONTEXT.add(self.available, self.held)

    def credit(self, amount: Decimal) -> None:
        with localcontext(BALANCE_CONTEXT):
            self.available += amount

    def debit(self, amount: Decimal) -> None:
        with localcontext(BALANCE_CONTEXT):
            self.available -= amount

    def hold(self, amount: Decimal) -> None:
        with localcontext(BALANCE_CONTEXT):
            self.available -= amount
            self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        with localcontext(BALANCE_CONTEXT):
            self.held -= amount
            self.available += amount

    def remove_held(self, amount: Decimal) -> None:
        with localcontext(BALANCE_CONTEXT):
            self.held -= amount

    def find_transaction(self, transaction_id: int) -> Optional[AmountTransaction]:
        return self._postings.get(transaction_id)

    def is_disputed(self, transaction_id: int) -> bool:
        return transaction_id in self.disputed_transaction_ids

    def deposit(self, transaction: AmountTransaction, allow_when_locked: bool = False) -> None:
        """
        Credit a deposit to available funds.

        Raises:
            MalformedTransaction: not a deposit for this client
            AccountLocked: account is frozen and allow_when_locked is off
            DuplicateTransaction: transaction id already posted here
        """
        self._check_posting(transaction, TransactionType.DEPOSIT)
        if self.locked and not allow_when_locked:
            raise AccountLocked(self.client_id, transaction.transaction_id)
        self._check_not_posted(transaction)

        self.credit(transaction.amount)
        self._postings[transaction.transaction_id] = transaction

    def withdraw(self, transaction: AmountTransaction) -> None:
        """
        Debit a withdrawal from available funds, all or nothing.

        Raises:
            MalformedTransaction: not a withdrawal for this client
            AccountLocked: account is frozen
            DuplicateTransaction: transaction id already posted here
            InsufficientFunds: available is smaller than the amount
        """
        self._check_posting(transaction, TransactionType.WITHDRAWAL)
        if self.locked:
            raise AccountLocked(self.client_id, transaction.transaction_id)
        self._check_not_posted(transaction)
        if self.available < transaction.amount:
            raise InsufficientFunds(
                self.client_id, transaction.transaction_id, transaction.amount, self.available
            )

        self.debit(transaction.amount)
        self._postings[transaction.transaction_id] = transaction

    def dispute(self, transaction_id: int) -> bool:
        """Move a posted amount from available to held. False when nothing changed."""
        if self.locked:
            return False

        original = self._postings.get(transaction_id)
        if original is None or self.is_disputed(transaction_id):
            return False

        self.disputed_transaction_ids.add(transaction_id)
        self.hold(original.amount)
        return True

    def resolve(self, transaction_id: int) -> bool:
        """Release a disputed amount back to available. False when nothing changed."""
        if self.locked or not self.is_disputed(transaction_id):
            return False

        self.disputed_transaction_ids.discard(transaction_id)
        self.release_hold(self._postings[transaction_id].amount)
        return True

    def chargeback(self, transaction_id: int) -> bool:
        """Drop a disputed amount from the account and lock it. False when nothing changed."""
        if self.locked or not self.is_disputed(transaction_id):
            return False

        self.disputed_transaction_ids.discard(transaction_id)
        self.remove_held(self._postings[transaction_id].amount)
        self.locked = True
        return True

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(self.client_id, self.available, self.held, self.total, self.locked)

    def _check_posting(self, transaction: AmountTransaction, expected: TransactionType) -> None:
        if not isinstance(transaction, AmountTransaction) or transaction.transaction_type is not expected:
            raise MalformedTransaction(f"expected a {expected.value}, got {transaction!r}")
        if transaction.client_id != self.client_id:
            raise MalformedTransaction(
                f"{expected.value} tx {transaction.transaction_id} belongs to client "
                f"{transaction.client_id}, not {self.client_id}"
            )

    def _check_not_posted(self, transaction: AmountTransaction) -> None:
        if transaction.transaction_id in self._postings:
            raise DuplicateTransaction(self.client_id, transaction.transaction_id)


class ProcessingStats:
    """Thread-safe counters for tracking processing statistics."""

    def __init__(self):
        self._lock = threading.Lock()
        self.processed = 0
        self.ignored = 0
        self.rejected = 0
        self.failed = 0
        self.malformed = 0

    def record(self, result: ProcessingResult) -> None:
        with self._lock:
            if result == ProcessingResult.SUCCESS:
                self.processed += 1
            elif result == ProcessingResult.IGNORED:
                self.ignored += 1
            else:
                self.rejected += 1

    def record_failure(self):
        with self._lock:
            self.failed += 1

    def record_malformed(self):
        with self._lock:
            self.malformed += 1

    def summary(self) -> str:
        return (
            f"Processed: {self.processed}, "
            f"Ignored: {self.ignored}, "
            f"Rejected: {self.rejected}, "
            f"Failed: {self.failed}, "
            f"Malformed: {self.malformed}"
        )
