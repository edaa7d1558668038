from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def is_referenceable(self) -> bool:
        """Deposits and withdrawals can be pointed at by the dispute family."""
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class SettlementResult(Enum):
    APPLIED = "applied"
    IGNORED = "ignored"


@dataclass(frozen=True)
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        self.available += amount

    def debit(self, amount: Decimal) -> None:
        self.available -= amount

    def hold(self, amount: Decimal) -> None:
        self.available -= amount
        self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        self.held -= amount
        self.available += amount

    def remove_held(self, amount: Decimal) -> None:
        # held funds leave the account entirely, so total drops with them
        self.held -= amount

    def lock(self) -> None:
        self.locked = True


class ProcessingStats:
    """Counters for a single replay run."""

    def __init__(self):
        self.applied = 0
        self.ignored = 0
        self.deferred = 0
        self.unresolved = 0

    def record_result(self, result: SettlementResult) -> None:
        if result == SettlementResult.APPLIED:
            self.applied += 1
        else:
            self.ignored += 1

    def record_deferral(self) -> None:
        self.deferred += 1

    def record_unresolved(self, count: int) -> None:
        self.unresolved += count

    def __repr__(self) -> str:
        return f"ProcessingStats(applied={self.applied}, ignored={self.ignored}, deferred={self.deferred}, unresolved={self.unresolved})"


@dataclass
class ProcessingReport:
    accounts: Dict[int, ClientAccount]
    unresolved: List[Transaction] = field(default_factory=list)
    stats: ProcessingStats = field(default_factory=ProcessingStats)
