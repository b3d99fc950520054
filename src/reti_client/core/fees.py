"""
Dynamic fee estimation for budget-hungry contract calls.

The compute cost of a call depends on chain state, so the fee is measured,
not guessed:

1. Compose the group with a provisional fee and simulate it (no signatures,
   no commit).
2. Read the compute budget the group consumed. The ledger grants budget in
   whole units, so the larger of the added and consumed figures is used.
3. fee = surcharge + unit_cost * ceil(budget / unit_size), floored at the
   minimum fee.
4. Compose a fresh group with that fee and execute it.
"""

from dataclasses import dataclass
from typing import Callable

from reti_client.core.errors import SimulationRejectedError
from reti_client.core.transaction import MIN_TXN_FEE, TransactionGroup
from reti_client.core.transport import (
    ExecuteResult,
    LedgerTransport,
    SimulateOptions,
    TransactionSigner,
)
from reti_client.utils.logger import get_logger, log_group_event

logger = get_logger(__name__)

# Budget granted per app call, and what each such unit costs
BUDGET_UNIT_SIZE = 700
BUDGET_UNIT_COST = 1_000

# Composes a group carrying the given fee on its primary call(s)
GroupComposer = Callable[[int], TransactionGroup]


@dataclass(frozen=True)
class FeePolicy:
    """Per-operation fee knobs.

    ``ceiling`` is the provisional fee used for the dry run, ``surcharge``
    the fixed amount added on top of the budget-derived fee.
    """

    ceiling: int
    surcharge: int = 0


def required_fee(
    budget_added: int,
    surcharge: int = 0,
    unit_size: int = BUDGET_UNIT_SIZE,
    unit_cost: int = BUDGET_UNIT_COST,
    min_fee: int = MIN_TXN_FEE,
) -> int:
    """Compute the fee covering ``budget_added`` units of compute.

    Rounds up so a partial unit is always paid for.

    Args:
        budget_added: Budget reported by the dry run (>= 0)
        surcharge: Fixed per-call amount added to the result
        unit_size: Budget granted per unit
        unit_cost: Fee per unit in microAlgos
        min_fee: Floor applied to the result

    Returns:
        Fee in microAlgos
    """
    if budget_added < 0:
        raise ValueError(f"Budget cannot be negative: {budget_added}")
    units = -(-budget_added // unit_size)
    return max(min_fee, surcharge + unit_cost * units)


@dataclass(frozen=True)
class CommittedGroup:
    """A group that made it to the ledger, with the fee it paid."""

    group: TransactionGroup
    result: ExecuteResult
    fee: int

    def primary_return(self, segment: int = 0):
        """Return value of the primary call of ``segment``."""
        index = self.group.primary_indices[segment]
        returns = self.result.returns
        return returns[index] if index < len(returns) else None


class FeeEstimator:
    """Runs the simulate-then-execute protocol for one transport."""

    def __init__(
        self,
        transport: LedgerTransport,
        unit_size: int = BUDGET_UNIT_SIZE,
        unit_cost: int = BUDGET_UNIT_COST,
        min_fee: int = MIN_TXN_FEE,
    ):
        self.transport = transport
        self.unit_size = unit_size
        self.unit_cost = unit_cost
        self.min_fee = min_fee

    def required_fee(self, budget_added: int, surcharge: int = 0) -> int:
        return required_fee(
            budget_added,
            surcharge=surcharge,
            unit_size=self.unit_size,
            unit_cost=self.unit_cost,
            min_fee=self.min_fee,
        )

    async def estimate(
        self, compose: GroupComposer, policy: FeePolicy, operation: str = "call"
    ) -> int:
        """Dry-run the group at the ceiling fee and return the real fee.

        Raises:
            SimulationRejectedError: If the ledger rejects the dry run
        """
        dry_group = compose(policy.ceiling)
        simulation = await self.transport.simulate(
            dry_group,
            SimulateOptions(allow_empty_signatures=True, allow_unnamed_resources=True),
        )
        if simulation.failed:
            raise SimulationRejectedError(operation, simulation.failure_message)

        budget = max(simulation.app_budget_added, simulation.app_budget_consumed)
        fee = self.required_fee(budget, policy.surcharge)
        logger.info(
            f"{operation}: budget added={simulation.app_budget_added:,}, "
            f"consumed={simulation.app_budget_consumed:,}, fee={fee:,} µA"
        )
        return fee

    async def commit(
        self,
        group: TransactionGroup,
        signer: TransactionSigner,
        fee: int,
        operation: str = "call",
    ) -> CommittedGroup:
        """Execute an already composed group and record it."""
        result = await self.transport.execute(group, signer, populate_resources=True)
        log_group_event(operation, fee, len(group), tx_ids=result.tx_ids)
        logger.info(f"{operation}: committed {len(group)} txns in round {result.confirmed_round}")
        return CommittedGroup(group=group, result=result, fee=fee)

    async def estimate_then_commit(
        self,
        compose: GroupComposer,
        policy: FeePolicy,
        signer: TransactionSigner,
        operation: str = "call",
    ) -> CommittedGroup:
        """Estimate the fee, then execute a freshly composed group.

        ``compose`` runs once per phase. The dry-run group carries its own
        group marker and must never be submitted.
        """
        fee = await self.estimate(compose, policy, operation)
        group = compose(fee)
        return await self.commit(group, signer, fee, operation)
