import csv
import sys
import logging
from typing import List, Optional

from config import Config, ConfigError, USAGE
from csv_io import TransactionParseError, write_accounts
from payments_engine import PaymentsEngine


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = Config.from_argv(sys.argv if argv is None else argv)
    except ConfigError as e:
        print(f"{e}\n{USAGE}", file=sys.stderr)
        return 1

    try:
        report = PaymentsEngine().process_file(config.transactions_path)
    except (OSError, csv.Error, TransactionParseError) as e:
        print(f"CSV processing error: {e}", file=sys.stderr)
        return 1

    try:
        write_accounts(report.accounts, sys.stdout)
    except OSError as e:
        print(f"CSV output error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
