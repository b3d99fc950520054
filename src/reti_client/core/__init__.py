"""Core ledger functionality."""

from reti_client.core.errors import (
    DecodeError,
    NotFoundError,
    SimulationRejectedError,
    StakingError,
    TransportError,
    ValidationError,
    ValidatorNotFoundError,
)
from reti_client.core.fees import CommittedGroup, FeeEstimator, FeePolicy, required_fee
from reti_client.core.group_builder import AtomicGroupBuilder, budget_extensions
from reti_client.core.transaction import AppCall, PaymentTxn, TransactionGroup
from reti_client.core.transport import (
    ExecuteResult,
    JsonRpcTransport,
    LedgerTransport,
    SimulateOptions,
    SimulateResult,
)

__all__ = [
    # Errors
    "StakingError",
    "NotFoundError",
    "ValidatorNotFoundError",
    "ValidationError",
    "TransportError",
    "DecodeError",
    "SimulationRejectedError",
    # Fees
    "FeeEstimator",
    "FeePolicy",
    "CommittedGroup",
    "required_fee",
    # Groups
    "AtomicGroupBuilder",
    "budget_extensions",
    "AppCall",
    "PaymentTxn",
    "TransactionGroup",
    # Transport
    "LedgerTransport",
    "JsonRpcTransport",
    "SimulateOptions",
    "SimulateResult",
    "ExecuteResult",
]
