"""
Atomic group composition.

A group is a concatenation of segments. Each segment is laid out as::

    extension calls..., [payment argument], primary call

Extension ("gas") calls are no-ops that only donate compute budget to the
group, so they must come before the call that spends it. The whole group
commits or fails together.
"""

import uuid
from dataclasses import dataclass, replace
from typing import Sequence

from reti_client.core.errors import ValidationError
from reti_client.core.transaction import AppCall, Transaction, TransactionGroup
from reti_client.utils.logger import get_logger

logger = get_logger(__name__)

MAX_GROUP_SIZE = 16
BUDGET_EXTENSION_METHOD = "gas"


def budget_extensions(app_id: int, sender: str, count: int) -> list[AppCall]:
    """Build ``count`` zero-fee extension calls against ``app_id``.

    Identical calls would hash to the same transaction id, so each one
    carries a distinct note ("1", "2", ...).
    """
    return [
        AppCall(
            app_id=app_id,
            method=BUDGET_EXTENSION_METHOD,
            sender=sender,
            fee=0,
            note=str(i + 1),
        )
        for i in range(count)
    ]


@dataclass(frozen=True)
class GroupSegment:
    primary: AppCall
    extensions: tuple = ()

    @property
    def transactions(self) -> list[Transaction]:
        txns: list[Transaction] = list(self.extensions)
        if self.primary.payment is not None:
            txns.append(self.primary.payment)
        txns.append(self.primary)
        return txns


class AtomicGroupBuilder:
    """Collects segments and stamps them into one TransactionGroup."""

    def __init__(self, max_group_size: int = MAX_GROUP_SIZE):
        self.max_group_size = max_group_size
        self._segments: list[GroupSegment] = []

    def add_segment(
        self, primary: AppCall, extensions: Sequence[AppCall] = ()
    ) -> "AtomicGroupBuilder":
        """Append one (extensions..., primary) segment."""
        self._segments.append(GroupSegment(primary=primary, extensions=tuple(extensions)))
        return self

    def add_call(
        self, primary: AppCall, extension_count: int = 0
    ) -> "AtomicGroupBuilder":
        """Append a segment whose extensions target the primary's app."""
        return self.add_segment(
            primary, budget_extensions(primary.app_id, primary.sender, extension_count)
        )

    @property
    def size(self) -> int:
        return sum(len(segment.transactions) for segment in self._segments)

    def build(self) -> TransactionGroup:
        """Stamp a fresh group marker on copies of every transaction.

        Raises:
            ValidationError: If the group is empty or exceeds the size limit
            ValueError: If a transaction already carries a group marker
        """
        if not self._segments:
            raise ValidationError("Cannot build an empty transaction group")
        if self.size > self.max_group_size:
            raise ValidationError(
                f"Group of {self.size} transactions exceeds limit of {self.max_group_size}"
            )

        group_id = uuid.uuid4().hex
        transactions: list[Transaction] = []
        primary_indices: list[int] = []
        app_call_index = 0

        for segment in self._segments:
            for txn in segment.transactions:
                if txn.group_id is not None:
                    raise ValueError(
                        f"Transaction already belongs to group {txn.group_id}; build a fresh one"
                    )
                if isinstance(txn, AppCall):
                    if txn is segment.primary:
                        primary_indices.append(app_call_index)
                    app_call_index += 1
                    txn = replace(
                        txn,
                        group_id=group_id,
                        payment=replace(txn.payment, group_id=group_id) if txn.payment else None,
                    )
                else:
                    txn = replace(txn, group_id=group_id)
                transactions.append(txn)

        logger.debug(
            f"Built group {group_id[:8]}: {len(transactions)} txns, "
            f"{len(self._segments)} segments"
        )
        return TransactionGroup(
            transactions=tuple(transactions),
            group_id=group_id,
            primary_indices=tuple(primary_indices),
        )
