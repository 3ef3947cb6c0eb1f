class LedgerError(Exception):
    """Base class for every error raised by the ledger core."""


class MalformedTransaction(LedgerError):
    """Input row or transaction value has the wrong shape or types."""


class InsufficientFunds(LedgerError):
    def __init__(self, client_id: int, transaction_id: int, requested, available):
        super().__init__(
            f"client {client_id} tx {transaction_id}: requested {requested}, available {available}"
        )
        self.client_id = client_id
        self.transaction_id = transaction_id
        self.requested = requested
        self.available = available


class AccountLocked(LedgerError):
    def __init__(self, client_id: int, transaction_id: int):
        super().__init__(f"client {client_id} is locked, tx {transaction_id} refused")
        self.client_id = client_id
        self.transaction_id = transaction_id


class DuplicateTransaction(LedgerError):
    def __init__(self, client_id: int, transaction_id: int):
        super().__init__(f"client {client_id}: tx {transaction_id} already posted")
        self.client_id = client_id
        self.transaction_id = transaction_id
