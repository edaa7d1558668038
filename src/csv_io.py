import csv
import logging
import re
from decimal import Decimal, localcontext
from typing import Dict, List, Optional, TextIO

from models import Transaction, TransactionType, ClientAccount

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

# plain decimal notation only, no exponents, within a 96-bit mantissa and 28 fractional digits
AMOUNT_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
MAX_AMOUNT_MANTISSA = 2**96 - 1
MAX_AMOUNT_SCALE = 28

OUTPUT_FIELDS = ["client", "available", "held", "total", "locked"]
OUTPUT_PRECISION = Decimal("0.0001")


class TransactionParseError(ValueError):
    """A CSV row could not be decoded into a Transaction."""


def read_transactions(filepath: str) -> List[Transaction]:
    """
    Read the whole CSV file into Transactions, in file order.
    Raises TransactionParseError on the first bad row or undecodable byte; nothing is returned partially.
    """
    transactions = []
    with open(filepath, "r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        try:
            for row in reader:
                try:
                    transactions.append(parse_csv_row(row))
                except TransactionParseError as e:
                    raise TransactionParseError(f"line {reader.line_num}: {e}") from e
        except UnicodeDecodeError as e:
            raise TransactionParseError(f"after line {reader.line_num}: {e}") from e

    logger.info(f"Read {len(transactions)} transactions from {filepath}")
    return transactions


def parse_csv_row(row: Dict[Optional[str], Optional[str]]) -> Transaction:
    """Parse CSV row into Transaction."""
    # DictReader puts overflow fields under the None key and fills short rows with None
    normalized = {k.strip(): (v or "").strip() for k, v in row.items() if k is not None}

    try:
        transaction_type = TransactionType(normalized["type"].lower())
    except KeyError:
        raise TransactionParseError(f"missing 'type' column in row {row}")
    except ValueError:
        raise TransactionParseError(f"unknown transaction type {normalized['type']!r} in row {row}")

    client_id = _parse_id(normalized, "client", MAX_CLIENT_ID, row)
    transaction_id = _parse_id(normalized, "tx", MAX_TRANSACTION_ID, row)

    amount = None
    if transaction_type.is_referenceable:
        amount = _parse_amount(normalized.get("amount", ""))

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )


def _parse_id(normalized: Dict[str, str], column: str, upper_bound: int, row) -> int:
    if column not in normalized:
        raise TransactionParseError(f"missing {column!r} column in row {row}")
    try:
        value = int(normalized[column])
    except ValueError:
        raise TransactionParseError(f"invalid {column} id {normalized[column]!r} in row {row}")
    if not 0 <= value <= upper_bound:
        raise TransactionParseError(f"{column} id {value} out of range in row {row}")
    return value


def _parse_amount(amount_str: str) -> Optional[Decimal]:
    """Blank, malformed or out-of-range amounts decode to None instead of failing the row."""
    if not amount_str:
        return None
    if not AMOUNT_PATTERN.match(amount_str):
        logger.warning(f"Unparsable amount {amount_str!r}, treating as missing")
        return None
    amount = Decimal(amount_str)
    _, digits, exponent = amount.as_tuple()
    if int("".join(map(str, digits))) > MAX_AMOUNT_MANTISSA or -exponent > MAX_AMOUNT_SCALE:
        logger.warning(f"Amount {amount_str!r} out of range, treating as missing")
        return None
    return amount


def format_decimal(value: Decimal) -> str:
    """Format decimal with up to 4 decimal places, removing trailing zeros."""
    with localcontext() as ctx:
        # room for every integer digit plus the 4 fractional ones
        ctx.prec = max(ctx.prec, value.adjusted() + 1 + 4)
        normalized = value.quantize(OUTPUT_PRECISION).normalize()
    return f"{normalized:f}"


def write_accounts(accounts: Dict[int, ClientAccount], stream: TextIO) -> None:
    """Write one CSV row per account, ordered by client id."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_FIELDS)
    for client_id in sorted(accounts.keys()):
        account = accounts[client_id]
        writer.writerow([
            client_id,
            format_decimal(account.available),
            format_decimal(account.held),
            format_decimal(account.total),
            str(account.locked).lower(),
        ])
    stream.flush()
