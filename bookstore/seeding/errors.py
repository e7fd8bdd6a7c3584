"""Errors raised by the seeding routine.

Each error records the step it came from ("connect", "reset", "insert",
"verify") and the underlying driver exception, if any, so an operator can
diagnose a failed run from the CLI output alone. `exit_code` is the process
exit status the CLI uses for that class of failure.
"""

from typing import Optional


class SeedError(Exception):
    exit_code = 1
    label = "Seeding error"

    def __init__(self, message: str, step: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.step = step
        self.cause = cause

    def __str__(self) -> str:
        text = f"[{self.step}] {self.message}"
        if self.cause is not None:
            text += f": {self.cause}"
        return text


class ConfigurationError(SeedError):
    """Malformed address, invalid options, rejected credentials or a bad seed file."""

    exit_code = 2
    label = "Configuration error"


class StoreConnectionError(SeedError):
    """The store could not be reached, or a call timed out."""

    exit_code = 3
    label = "Connection error"


class WriteError(SeedError):
    """The store rejected a drop or the bulk insert."""

    exit_code = 4
    label = "Write error"

    def __init__(
        self,
        message: str,
        step: str,
        cause: Optional[BaseException] = None,
        inserted_count: int = 0,
    ):
        super().__init__(message, step, cause)
        self.inserted_count = inserted_count  # accepted by the store before the rollback


class ConsistencyError(SeedError):
    """Post-insert document count does not match what was inserted."""

    exit_code = 5
    label = "Consistency error"

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"expected {expected} documents after insert, found {actual}", step="verify"
        )
        self.expected = expected
        self.actual = actual
