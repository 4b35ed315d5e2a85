"""
Clash Staking — Error Types
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0

Every failure of a sync run is one of these. None of them is recovered from:
they travel up to the CLI, which logs them and exits with a non-zero code.
"""

from typing import Any, Optional


class StakingSyncError(Exception):
    """Base class for all sync failures"""


class ConfigurationError(StakingSyncError):
    """Missing or invalid configuration (raised before any network call)"""


class AuthenticationError(ConfigurationError):
    """CDP key secret could not be loaded or the JWT could not be signed"""


class TransportError(StakingSyncError):
    """Event source unreachable or answered with an error"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            return f"{message} (HTTP {self.status_code})"
        return message


class EventDecodingError(StakingSyncError):
    """A raw event or a stored document could not be converted into typed data"""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class LedgerInconsistencyError(StakingSyncError):
    """The event stream does not describe a consistent set of stake transactions"""

    def __init__(self, message: str, transaction_id: int):
        super().__init__(message)
        self.transaction_id = transaction_id


class UnknownTransactionError(LedgerInconsistencyError):
    def __init__(self, transaction_id: int):
        super().__init__(f"Transaction {transaction_id} not found", transaction_id)


class DuplicateTransactionError(LedgerInconsistencyError):
    def __init__(self, transaction_id: int):
        super().__init__(f"Duplicate transaction {transaction_id}", transaction_id)
