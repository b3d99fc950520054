"""
Error taxonomy for the staking client.
"""


class StakingError(Exception):
    """Base class for every error raised by the client."""


class NotFoundError(StakingError):
    """The queried entity is absent on-chain."""


class ValidatorNotFoundError(NotFoundError):
    """A validator id did not resolve to a complete validator record."""

    def __init__(self, validator_id: int, message: str | None = None):
        self.validator_id = validator_id
        super().__init__(message or f'Validator with id "{validator_id}" not found!')


class ValidationError(StakingError):
    """Caller context is incomplete. Raised before any network call."""


class TransportError(StakingError):
    """The RPC endpoint could not be reached or answered with an error."""


class DecodeError(StakingError):
    """A returned value did not have the expected shape."""


class SimulationRejectedError(StakingError):
    """The ledger rejected the dry run of a mutating group."""

    def __init__(self, operation: str, failure_message: str):
        self.operation = operation
        self.failure_message = failure_message
        super().__init__(f"{operation} rejected in dry run: {failure_message}")
