import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models import Transaction, TransactionType
from payments_engine import PaymentsEngine
from settlement_engine import SettlementEngine


@pytest.fixture
def run_csv(tmp_path):
    def run(*rows, engine=None):
        csv_file = tmp_path / "test.csv"
        csv_file.write_text('\n'.join(["type, client, tx, amount", *rows]))
        return (engine or PaymentsEngine()).process_file(str(csv_file))
    return run


class TestPaymentsEngine:
    def test_basic_transactions(self, run_csv):
        report = run_csv(
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
        )
        accounts = report.accounts

        assert set(accounts) == {1, 2}

        assert accounts[1].available == Decimal("1.5")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("1.5")
        assert accounts[1].locked is False

        assert accounts[2].available == Decimal("2.0")
        assert accounts[2].held == Decimal("0")
        assert accounts[2].total == Decimal("2.0")

    def test_dispute_resolve(self, run_csv):
        accounts = run_csv(
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
        ).accounts

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].locked is False

    def test_chargeback(self, run_csv):
        accounts = run_csv(
            "deposit, 1, 1, 500",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
        ).accounts

        assert accounts[1].available == Decimal("0")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("0")
        assert accounts[1].locked is True

    def test_out_of_order_dispute_requeued(self, run_csv):
        """Dispute before deposit settles once the deposit has been processed."""
        report = run_csv(
            "dispute, 1, 1,",
            "deposit, 1, 1, 100.0",
        )
        accounts = report.accounts

        assert accounts[1].available == Decimal("0")
        assert accounts[1].held == Decimal("100")
        assert accounts[1].total == Decimal("100")
        assert report.unresolved == []
        assert report.stats.deferred == 1

    def test_deferred_chain_keeps_fifo_order(self, run_csv):
        """Dispute and resolve both arrive early; they retry in their original order."""
        accounts = run_csv(
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
            "deposit, 1, 2, 10.0",
            "deposit, 1, 1, 100.0",
        ).accounts

        assert accounts[1].available == Decimal("10")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("10")
        assert accounts[1].locked is True

    def test_dangling_reference_terminates(self, run_csv):
        report = run_csv(
            "deposit, 1, 1, 100.0",
            "dispute, 1, 99,",
            "resolve, 2, 77,",
        )

        assert [tx.transaction_id for tx in report.unresolved] == [99, 77]
        assert report.stats.unresolved == 2
        assert report.accounts[1].available == Decimal("100")
        assert report.accounts[1].held == Decimal("0")

    def test_account_created_for_dangling_dispute(self, run_csv):
        accounts = run_csv("dispute, 5, 1,").accounts

        assert accounts[5].total == Decimal("0")
        assert accounts[5].locked is False

    def test_dangling_reference_logged(self, run_csv, caplog):
        with caplog.at_level("WARNING"):
            run_csv("chargeback, 1, 42,")

        assert "Discarding: Transaction(chargeback, client=1, tx=42, amount=None)" in caplog.text

    def test_insufficient_funds(self, run_csv):
        accounts = run_csv(
            "deposit, 1, 1, 50.0",
            "withdrawal, 1, 2, 100.0",
        ).accounts

        assert accounts[1].available == Decimal("50")
        assert accounts[1].total == Decimal("50")

    def test_decimal_precision(self, run_csv):
        accounts = run_csv(
            "deposit, 1, 1, 1.2345",
            "deposit, 1, 2, 0.0001",
            "withdrawal, 1, 3, 0.2346",
        ).accounts

        # 1.2345 + 0.0001 - 0.2346 = 1.0000
        assert accounts[1].available == Decimal("1.0000")

    def test_resolve_and_chargeback(self, run_csv):
        accounts = run_csv(
            "deposit, 1, 1, 500.0005",
            "deposit, 1, 2, 1000",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
            "deposit, 1, 3, 100",
            "dispute, 1, 3,",
            "chargeback, 1, 3,",
        ).accounts

        assert accounts[1].available == Decimal("1500.0005")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("1500.0005")
        assert accounts[1].locked is True

    def test_partial_withdrawal_then_dispute(self, run_csv):
        """Dispute after partial withdrawal holds full deposit amount."""
        accounts = run_csv(
            "deposit, 1, 1, 100.0",
            "withdrawal, 1, 2, 30.0",
            "dispute, 1, 1,",
        ).accounts

        # available = 70 - 100 = -30, held = 100
        assert accounts[1].available == Decimal("-30")
        assert accounts[1].held == Decimal("100")
        assert accounts[1].total == Decimal("70")

    def test_multiple_disputes_same_client(self, run_csv):
        accounts = run_csv(
            "deposit, 1, 1, 100.0",
            "deposit, 1, 2, 50.0",
            "dispute, 1, 1,",
            "dispute, 1, 2,",
            "resolve, 1, 1,",
            "chargeback, 1, 2,",
        ).accounts

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("100")
        assert accounts[1].locked is True

    def test_locked_account_keeps_settling(self, run_csv):
        accounts = run_csv(
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
            "deposit, 1, 2, 50.0",
            "withdrawal, 1, 3, 10.0",
        ).accounts

        assert accounts[1].available == Decimal("40")
        assert accounts[1].total == Decimal("40")
        assert accounts[1].locked is True

    def test_locked_account_rejects_when_configured(self, run_csv):
        engine = PaymentsEngine(SettlementEngine(reject_locked=True))
        accounts = run_csv(
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
            "deposit, 1, 2, 50.0",
            "withdrawal, 1, 3, 10.0",
            engine=engine,
        ).accounts

        assert accounts[1].available == Decimal("0")
        assert accounts[1].total == Decimal("0")
        assert accounts[1].locked is True

    def test_failed_withdrawal_still_referenceable(self, run_csv):
        accounts = run_csv(
            "deposit, 1, 1, 10.0",
            "withdrawal, 1, 2, 50.0",
            "dispute, 1, 2,",
        ).accounts

        assert accounts[1].available == Decimal("-40")
        assert accounts[1].held == Decimal("50")
        assert accounts[1].total == Decimal("10")

    def test_missing_amount_deposit_ignored(self, run_csv):
        report = run_csv(
            "deposit, 1, 1,",
            "deposit, 1, 2, abc",
            "deposit, 1, 3, 5",
        )

        assert report.accounts[1].available == Decimal("5")
        assert report.stats.applied == 1
        assert report.stats.ignored == 2

    def test_runs_do_not_share_state(self):
        engine = PaymentsEngine()
        deposit = Transaction(TransactionType.DEPOSIT, 1, 1, Decimal("10"))

        first = engine.process_transactions([deposit])
        second = engine.process_transactions([deposit])

        assert first.accounts[1].available == Decimal("10")
        assert second.accounts[1].available == Decimal("10")

    def test_total_invariant_holds(self, run_csv):
        accounts = run_csv(
            "deposit, 1, 1, 10",
            "deposit, 2, 2, 20",
            "withdrawal, 1, 3, 4",
            "dispute, 2, 2,",
            "dispute, 1, 3,",
            "resolve, 1, 1,",
            "chargeback, 2, 2,",
        ).accounts

        for account in accounts.values():
            assert account.total == account.available + account.held
