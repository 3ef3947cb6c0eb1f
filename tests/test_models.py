import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from errors import MalformedTransaction
from models import (
    AmountTransaction,
    ProcessingResult,
    ProcessingStats,
    ReferenceTransaction,
    TransactionType,
    parse_transaction,
)


class TestTransactionType:
    @pytest.mark.parametrize("token, expected", [
        ("deposit", TransactionType.DEPOSIT),
        (" Withdrawal ", TransactionType.WITHDRAWAL),
        ("DISPUTE", TransactionType.DISPUTE),
        ("resolve", TransactionType.RESOLVE),
        ("chargeback", TransactionType.CHARGEBACK),
    ])
    def test_parse_known(self, token, expected):
        assert TransactionType.parse(token) is expected

    @pytest.mark.parametrize("token", ["refund", "", "deposits", None])
    def test_parse_unknown(self, token):
        with pytest.raises(MalformedTransaction):
            TransactionType.parse(token)

    def test_carries_amount(self):
        assert TransactionType.DEPOSIT.carries_amount
        assert TransactionType.WITHDRAWAL.carries_amount
        assert not TransactionType.DISPUTE.carries_amount
        assert not TransactionType.RESOLVE.carries_amount
        assert not TransactionType.CHARGEBACK.carries_amount


class TestParseTransaction:
    def test_deposit(self):
        transaction = parse_transaction("deposit", "1", "1", "1.0")
        assert isinstance(transaction, AmountTransaction)
        assert transaction.transaction_type == TransactionType.DEPOSIT
        assert transaction.client_id == 1
        assert transaction.transaction_id == 1
        assert transaction.amount == Decimal("1.0")

    def test_withdrawal_keeps_precision(self):
        transaction = parse_transaction("withdrawal", "2", "5", "0.0001")
        assert transaction.amount == Decimal("0.0001")

    @pytest.mark.parametrize("kind", ["dispute", "resolve", "chargeback"])
    @pytest.mark.parametrize("amount", [None, "", "  "])
    def test_reference_kinds_without_amount(self, kind, amount):
        transaction = parse_transaction(kind, "1", "7", amount)
        assert isinstance(transaction, ReferenceTransaction)
        assert transaction.transaction_type == TransactionType.parse(kind)
        assert transaction.transaction_id == 7
        assert not hasattr(transaction, "amount")

    def test_reference_kind_with_amount_is_malformed(self):
        with pytest.raises(MalformedTransaction):
            parse_transaction("dispute", "1", "1", "5.0")

    def test_reference_kind_with_zero_amount_is_malformed(self):
        with pytest.raises(MalformedTransaction):
            parse_transaction("resolve", "1", "1", "0")

    @pytest.mark.parametrize("amount", [None, "", "abc", "0", "-1.5", "NaN", "Infinity"])
    def test_bad_amounts_are_malformed(self, amount):
        with pytest.raises(MalformedTransaction):
            parse_transaction("deposit", "1", "1", amount)

    @pytest.mark.parametrize("client, tx", [
        ("-1", "1"),
        ("65536", "1"),
        ("1.5", "1"),
        ("", "1"),
        ("1", "4294967296"),
        ("1", "x"),
        ("1", None),
    ])
    def test_bad_ids_are_malformed(self, client, tx):
        with pytest.raises(MalformedTransaction):
            parse_transaction("deposit", client, tx, "1.0")

    def test_id_bounds_accepted(self):
        transaction = parse_transaction("deposit", "65535", "4294967295", "1")
        assert transaction.client_id == 65535
        assert transaction.transaction_id == 4294967295

    @pytest.mark.parametrize("amount", [
        "100000000000000000000000000",
        "1000000000000000000000000",
        "9e999999",
        "12345678901234567890123456.7891",
        "0.00001",
        "1.23456",
    ])
    def test_amounts_outside_28_digits_are_malformed(self, amount):
        with pytest.raises(MalformedTransaction):
            parse_transaction("deposit", "1", "1", amount)

    @pytest.mark.parametrize("amount", [
        "999999999999999999999999.9999",
        "1.50000",
        "1E+3",
    ])
    def test_amounts_at_bounds_accepted(self, amount):
        assert parse_transaction("withdrawal", "1", "1", amount).amount == Decimal(amount)

    def test_unknown_type_is_malformed(self):
        with pytest.raises(MalformedTransaction):
            parse_transaction("transfer", "1", "1", "1.0")


class TestTransactionConstruction:
    def test_amount_transaction_rejects_reference_kind(self):
        with pytest.raises(MalformedTransaction):
            AmountTransaction(TransactionType.DISPUTE, 1, 1, Decimal("1"))

    def test_reference_transaction_rejects_amount_kind(self):
        with pytest.raises(MalformedTransaction):
            ReferenceTransaction(TransactionType.DEPOSIT, 1, 1)

    def test_non_positive_amount(self):
        with pytest.raises(MalformedTransaction):
            AmountTransaction(TransactionType.WITHDRAWAL, 1, 1, Decimal("0"))

    def test_oversized_amount_rejected(self):
        with pytest.raises(MalformedTransaction):
            AmountTransaction(TransactionType.DEPOSIT, 1, 1, Decimal("9e999999"))

    def test_float_amount_rejected(self):
        with pytest.raises(MalformedTransaction):
            AmountTransaction(TransactionType.DEPOSIT, 1, 1, 1.5)

    def test_immutable(self):
        transaction = AmountTransaction(TransactionType.DEPOSIT, 1, 1, Decimal("1"))
        with pytest.raises(AttributeError):
            transaction.amount = Decimal("2")

    def test_repr(self):
        transaction = AmountTransaction(TransactionType.DEPOSIT, 1, 2, Decimal("3.5"))
        assert repr(transaction) == "Transaction(deposit, client=1, tx=2, amount=3.5)"


class TestProcessingResult:
    def test_enum_values(self):
        assert ProcessingResult.SUCCESS.value == "success"
        assert ProcessingResult.IGNORED.value == "ignored"
        assert ProcessingResult.REJECTED.value == "rejected"


class TestProcessingStats:
    def test_counts(self):
        stats = ProcessingStats()
        stats.record(ProcessingResult.SUCCESS)
        stats.record(ProcessingResult.SUCCESS)
        stats.record(ProcessingResult.IGNORED)
        stats.record(ProcessingResult.REJECTED)
        stats.record_failure()
        stats.record_malformed()

        assert stats.processed == 2
        assert stats.ignored == 1
        assert stats.rejected == 1
        assert stats.failed == 1
        assert stats.malformed == 1
        assert stats.summary() == "Processed: 2, Ignored: 1, Rejected: 1, Failed: 1, Malformed: 1"
