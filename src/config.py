from dataclasses import dataclass
from typing import Sequence

USAGE = "Usage: payments-engine <transactions.csv>"


class ConfigError(ValueError):
    """Command line did not name an input file."""


@dataclass(frozen=True)
class Config:
    transactions_path: str

    @classmethod
    def from_argv(cls, argv: Sequence[str]) -> "Config":
        """Build config from a full argv (program name first). Extra arguments are ignored."""
        if len(argv) < 2 or not argv[1]:
            raise ConfigError("No transactions file provided, please specify a transaction file.")
        return cls(transactions_path=argv[1])
