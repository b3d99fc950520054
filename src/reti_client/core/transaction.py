"""
Unsigned transaction values handed to the ledger transport.

ABI encoding happens behind the transport, so an app call is described by its
method name and positional arguments only.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Union

# Ledger-wide minimum fee per transaction, in microAlgos
MIN_TXN_FEE = 1_000


@dataclass(frozen=True)
class PaymentTxn:
    """Plain payment, used as a method argument (MBR or stake transfer)."""

    sender: str
    receiver: str
    amount: int
    fee: int = MIN_TXN_FEE
    note: Optional[str] = None
    group_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": "pay", **asdict(self)}


@dataclass(frozen=True)
class AppCall:
    """ABI method call against an application.

    ``payment`` is a transaction-typed method argument; the group builder
    places it immediately before the call.
    """

    app_id: int
    method: str
    sender: str
    args: tuple = ()
    fee: int = 0
    note: Optional[str] = None
    payment: Optional[PaymentTxn] = None
    group_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "appl",
            "app_id": self.app_id,
            "method": self.method,
            "sender": self.sender,
            "args": [_encode_arg(arg) for arg in self.args],
            "fee": self.fee,
            "note": self.note,
            "group_id": self.group_id,
        }


Transaction = Union[AppCall, PaymentTxn]


def _encode_arg(value: Any) -> Any:
    if isinstance(value, (tuple, list)):
        return [_encode_arg(v) for v in value]
    return value


@dataclass(frozen=True)
class TransactionGroup:
    """An ordered atomic group, every member stamped with ``group_id``.

    ``primary_indices`` index into the app-call return list, one entry per
    segment, in segment order.
    """

    transactions: tuple
    group_id: str
    primary_indices: tuple = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.transactions)

    @property
    def app_calls(self) -> list[AppCall]:
        return [txn for txn in self.transactions if isinstance(txn, AppCall)]

    @property
    def total_fee(self) -> int:
        return sum(txn.fee for txn in self.transactions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "group_id": self.group_id,
            "transactions": [txn.to_dict() for txn in self.transactions],
        }
