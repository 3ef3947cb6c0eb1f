import logging

from errors import AccountLocked, DuplicateTransaction, InsufficientFunds, MalformedTransaction
from ledger import Ledger
from models import (
    AmountTransaction,
    ClientAccount,
    ProcessingResult,
    ReferenceTransaction,
    Transaction,
    TransactionType,
)

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies transactions to the accounts of a Ledger.
    Returns ProcessingResult to indicate what happened to the transaction.
    Caller is responsible for feeding each client's transactions in order.
    """

    def __init__(self, ledger: Ledger, allow_deposits_when_locked: bool = False):
        self._ledger = ledger
        self._allow_deposits_when_locked = allow_deposits_when_locked

    def process_transaction(self, transaction: Transaction) -> ProcessingResult:
        """
        Process a single transaction.

        Returns:
            SUCCESS: Balances were updated
            IGNORED: Dispute traffic that did not apply (unknown tx, wrong stage, locked account)
            REJECTED: Deposit or withdrawal refused (locked account, insufficient funds, duplicate id)

        Raises:
            LedgerError: for a deposit or withdrawal that should have been caught
                at construction time (wrong kind or foreign client)
        """
        account = self._ledger.get_or_create_account(transaction.client_id)

        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(account, transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(account, transaction)
            case TransactionType.DISPUTE:
                return self._handle_reference(account, transaction, account.dispute)
            case TransactionType.RESOLVE:
                return self._handle_reference(account, transaction, account.resolve)
            case TransactionType.CHARGEBACK:
                return self._handle_reference(account, transaction, account.chargeback)
            case _:
                raise MalformedTransaction(f"unsupported transaction {transaction!r}")

    def _handle_deposit(self, account: ClientAccount, transaction: AmountTransaction) -> ProcessingResult:
        try:
            account.deposit(transaction, allow_when_locked=self._allow_deposits_when_locked)
        except (AccountLocked, DuplicateTransaction) as e:
            logger.warning(f"Deposit tx {transaction.transaction_id} rejected: {e}")
            return ProcessingResult.REJECTED
        return ProcessingResult.SUCCESS

    def _handle_withdrawal(self, account: ClientAccount, transaction: AmountTransaction) -> ProcessingResult:
        try:
            account.withdraw(transaction)
        except (AccountLocked, DuplicateTransaction, InsufficientFunds) as e:
            logger.warning(f"Withdrawal tx {transaction.transaction_id} rejected: {e}")
            return ProcessingResult.REJECTED
        return ProcessingResult.SUCCESS

    def _handle_reference(self, account: ClientAccount, transaction: ReferenceTransaction, operation) -> ProcessingResult:
        if operation(transaction.transaction_id):
            return ProcessingResult.SUCCESS

        # Mismatched references come from the partner side and are not our error.
        logger.info(
            f"{transaction.transaction_type.value.capitalize()} for tx {transaction.transaction_id} "
            f"ignored for client {account.client_id} "
            f"(locked={account.locked}, known={account.find_transaction(transaction.transaction_id) is not None}, "
            f"disputed={account.is_disputed(transaction.transaction_id)})"
        )
        return ProcessingResult.IGNORED
