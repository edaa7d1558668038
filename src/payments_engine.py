import logging
from typing import Iterable, Optional

from models import Transaction, ProcessingReport, ProcessingStats
from settlement_queue import SettlementQueue
from ledger_state import LedgerState
from settlement_engine import SettlementEngine
from csv_io import read_transactions

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Replays an ordered transaction stream into final account states.
    Dispute-family transactions that reference a tx not seen yet are requeued
    at the end and retried once the rest of the queue has been processed.
    """

    def __init__(self, settlement_engine: Optional[SettlementEngine] = None):
        self._settlement_engine = settlement_engine or SettlementEngine()

    def process_file(self, filepath: str) -> ProcessingReport:
        """Read CSV file and return final account states."""
        return self.process_transactions(read_transactions(filepath))

    def process_transactions(self, transactions: Iterable[Transaction]) -> ProcessingReport:
        """
        Settle every transaction in order and return the per-client result.

        The loop stops early once every queued transaction has been deferred
        since the last settlement: the reference index can no longer change, so
        those transactions are reported as unresolved instead of spinning forever.
        """
        state = LedgerState()
        queue = SettlementQueue(transactions)
        stats = ProcessingStats()

        logger.info(f"Starting settlement of {len(queue)} transactions")

        deferred_in_a_row = 0
        while not queue.is_empty():
            if deferred_in_a_row >= len(queue):
                break

            transaction = queue.consume_message()
            account = state.get_or_create_account(transaction.client_id)

            if transaction.transaction_type.is_referenceable:
                result = self._settlement_engine.settle(account, transaction)
                state.store_transaction(transaction)
            else:
                referenced = state.get_transaction(transaction.transaction_id)
                if referenced is None:
                    logger.debug(f"{transaction}: referenced tx not seen yet, requeueing")
                    queue.requeue_message(transaction)
                    stats.record_deferral()
                    deferred_in_a_row += 1
                    continue
                result = self._settlement_engine.settle(account, transaction, referenced)

            stats.record_result(result)
            deferred_in_a_row = 0

        unresolved = queue.drain_unresolved()
        if unresolved:
            stats.record_unresolved(len(unresolved))
            logger.warning(f"{len(unresolved)} transactions reference unknown tx ids and were dropped")
            for transaction in unresolved:
                logger.warning(f"  Discarding: {transaction}")

        logger.info(f"Settlement complete: {stats}")

        return ProcessingReport(
            accounts=state.get_all_accounts(),
            unresolved=unresolved,
            stats=stats,
        )
