import logging
from decimal import Decimal
from typing import Optional

from models import Transaction, TransactionType, ClientAccount, SettlementResult

logger = logging.getLogger(__name__)


class SettlementEngine:
    """
    Applies one transaction to one account.
    Dispute-family transactions take the referenced deposit/withdrawal and always
    re-read its amount. Dispute state is not tracked, so resolve without dispute
    or a second dispute still moves funds.
    """

    def __init__(self, reject_locked: bool = False):
        self._reject_locked = reject_locked

    def settle(
        self,
        account: ClientAccount,
        transaction: Transaction,
        referenced: Optional[Transaction] = None,
    ) -> SettlementResult:
        """
        Settle a single transaction against account, mutating it in place.

        Returns:
            APPLIED: Balances changed
            IGNORED: Semantic no-op (missing amount, insufficient funds, no reference, locked account)
        """
        if account.locked and self._reject_locked:
            logger.info(f"{transaction}: account {account.client_id} is locked, skipping")
            return SettlementResult.IGNORED

        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(account, transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(account, transaction)
            case TransactionType.DISPUTE:
                return self._handle_dispute(account, transaction, referenced)
            case TransactionType.RESOLVE:
                return self._handle_resolve(account, transaction, referenced)
            case TransactionType.CHARGEBACK:
                return self._handle_chargeback(account, transaction, referenced)
            case _:
                return SettlementResult.IGNORED

    def _handle_deposit(self, account: ClientAccount, transaction: Transaction) -> SettlementResult:
        if transaction.amount is None:
            logger.warning(f"Deposit tx {transaction.transaction_id}: missing amount, ignored")
            return SettlementResult.IGNORED

        account.credit(transaction.amount)
        return SettlementResult.APPLIED

    def _handle_withdrawal(self, account: ClientAccount, transaction: Transaction) -> SettlementResult:
        if transaction.amount is None:
            logger.warning(f"Withdrawal tx {transaction.transaction_id}: missing amount, ignored")
            return SettlementResult.IGNORED

        if account.available < transaction.amount:
            logger.warning(f"Withdrawal tx {transaction.transaction_id}: insufficient funds (available {account.available}, requested {transaction.amount})")
            return SettlementResult.IGNORED

        account.debit(transaction.amount)
        return SettlementResult.APPLIED

    def _handle_dispute(self, account: ClientAccount, transaction: Transaction, referenced: Optional[Transaction]) -> SettlementResult:
        amount = self._referenced_amount(transaction, referenced)
        if amount is None:
            return SettlementResult.IGNORED

        account.hold(amount)
        return SettlementResult.APPLIED

    def _handle_resolve(self, account: ClientAccount, transaction: Transaction, referenced: Optional[Transaction]) -> SettlementResult:
        amount = self._referenced_amount(transaction, referenced)
        if amount is None:
            return SettlementResult.IGNORED

        account.release_hold(amount)
        return SettlementResult.APPLIED

    def _handle_chargeback(self, account: ClientAccount, transaction: Transaction, referenced: Optional[Transaction]) -> SettlementResult:
        amount = self._referenced_amount(transaction, referenced)
        if amount is None:
            return SettlementResult.IGNORED

        account.remove_held(amount)
        account.lock()
        return SettlementResult.APPLIED

    def _referenced_amount(self, transaction: Transaction, referenced: Optional[Transaction]) -> Optional[Decimal]:
        name = transaction.transaction_type.value.capitalize()

        if referenced is None:
            logger.info(f"{name} for tx {transaction.transaction_id}: referenced transaction not found")
            return None

        if referenced.client_id != transaction.client_id:
            logger.warning(f"{name} for tx {transaction.transaction_id}: client mismatch (original {referenced.client_id}, got {transaction.client_id})")

        if referenced.amount is None:
            logger.info(f"{name} for tx {transaction.transaction_id}: referenced transaction has no amount")
            return None

        return referenced.amount
