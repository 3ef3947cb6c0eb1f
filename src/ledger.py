import threading
from typing import Dict, List, Optional

from models import AccountSnapshot, ClientAccount


class Ledger:
    """
    Registry of client accounts, created lazily on first reference.
    One Ledger is owned by one engine run; nothing here is process-global.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}

        # Guards insertion only. Each account is mutated by the single worker
        # its client is sharded to, so balances need no lock of their own.
        self._lock = threading.Lock()

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        with self._lock:
            account = self._accounts.get(client_id)
            if account is None:
                account = ClientAccount(client_id=client_id)
                self._accounts[client_id] = account
            return account

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        return self._accounts.get(client_id)

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        """Return all accounts (for final output)."""
        with self._lock:
            return dict(self._accounts)

    def snapshot(self) -> List[AccountSnapshot]:
        """Final balances of every account, ordered by client id."""
        return [account.snapshot() for _, account in sorted(self.get_all_accounts().items())]

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, client_id: int) -> bool:
        return client_id in self._accounts
