import csv
import logging
import threading
from typing import Dict, Iterable, Iterator, Optional, TextIO

from errors import LedgerError, MalformedTransaction
from ledger import Ledger
from message_queue import ShardedQueue
from models import ClientAccount, ProcessingStats, Transaction, parse_transaction
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Drives a transaction stream through the ledger.

    With one worker every transaction is applied inline, in arrival order.
    With more, transactions are sharded by client id onto dedicated worker
    threads; each client's sub-sequence still runs in arrival order.
    """

    def __init__(self, num_workers: int = 1, allow_deposits_when_locked: bool = False):
        if num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {num_workers}")
        self._num_workers = num_workers
        self._ledger = Ledger()
        self._processor = TransactionProcessor(self._ledger, allow_deposits_when_locked)
        self._stats = ProcessingStats()

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""
        with open(filepath, "r", newline="") as f:
            return self.process_stream(f)

    def process_stream(self, stream: TextIO) -> Dict[int, ClientAccount]:
        """Process CSV text from an open stream and return final account states."""
        return self.process(self.read_transactions(stream))

    def process(self, transactions: Iterable[Transaction]) -> Dict[int, ClientAccount]:
        """Apply already-parsed transactions and return final account states."""
        logger.info(f"Starting processing with {self._num_workers} worker(s)")

        if self._num_workers == 1:
            for transaction in transactions:
                self._apply(transaction)
        else:
            self._process_sharded(transactions)

        logger.info(f"Processing complete: {self._stats.summary()}")
        return self._ledger.get_all_accounts()

    def read_transactions(self, stream: TextIO) -> Iterator[Transaction]:
        """
        Yield a Transaction per well-formed CSV row; malformed rows are logged and skipped.
        A row the csv module itself cannot read ends the input; everything before it is kept.
        """
        reader = csv.DictReader(stream)
        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as e:
                self._stats.record_malformed()
                logger.warning(f"Stopped reading input at line {reader.line_num}: {e}")
                return

            transaction = self._parse_csv_row(row)
            if transaction:
                yield transaction

    def _process_sharded(self, transactions: Iterable[Transaction]) -> None:
        queue = ShardedQueue(self._num_workers)

        workers = []
        for shard in range(self._num_workers):
            worker_thread = threading.Thread(
                target=self._consume_transactions, args=(queue, shard), name=f"ledger-shard-{shard}"
            )
            worker_thread.start()
            workers.append(worker_thread)

        try:
            for transaction in transactions:
                queue.publish_message(transaction)
        finally:
            queue.shutdown()
            for worker_thread in workers:
                worker_thread.join()

    def _consume_transactions(self, queue: ShardedQueue, shard: int) -> None:
        """Worker loop: drain one shard in order until shutdown."""
        while True:
            transaction = queue.consume_message(shard)
            if transaction is None:
                if queue.is_shutdown() and queue.is_empty(shard):
                    break
                continue

            self._apply(transaction)

    def _apply(self, transaction: Transaction) -> None:
        try:
            result = self._processor.process_transaction(transaction)
        except (LedgerError, ArithmeticError) as e:
            self._stats.record_failure()
            logger.error(f"Transaction {transaction} failed: {e}")
            return
        self._stats.record(result)

    def _parse_csv_row(self, row: Dict[Optional[str], str]) -> Optional[Transaction]:
        """Parse CSV row into Transaction."""
        try:
            normalized = {k.strip().lower(): (v or "").strip() for k, v in row.items() if isinstance(k, str)}
            return parse_transaction(
                normalized["type"],
                normalized["client"],
                normalized["tx"],
                normalized.get("amount"),
            )
        except (KeyError, MalformedTransaction) as e:
            self._stats.record_malformed()
            logger.warning(f"Failed to parse row {row}: {e}")
            return None
