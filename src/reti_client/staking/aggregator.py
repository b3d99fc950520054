"""
Bounded fan-out over many entities and merging of per-pool records.

Batches run one after another; inside a batch every fetch runs
concurrently. Output order always equals input order.
"""

import asyncio
from typing import Awaitable, Callable, Iterable, Sequence, TypeVar

from reti_client.staking.models import StakerPoolData, StakerValidatorData, Validator
from reti_client.staking.state_fetcher import StakingStateFetcher
from reti_client.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_BATCH_SIZE = 10


async def gather_in_batches(
    items: Sequence[T],
    fetch: Callable[[T], Awaitable[R]],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> list[R]:
    """Run ``fetch`` over ``items``, at most ``batch_size`` at a time.

    The first failure in a batch is logged and re-raised, and no partial
    result is returned. Requests already in flight are not cancelled.

    Args:
        items: Inputs, in the order results should come back
        fetch: Coroutine function applied to each item
        batch_size: Maximum number of concurrent fetches

    Returns:
        One result per item, in input order
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    results: list[R] = []
    for start in range(0, len(items), batch_size):
        batch = items[start:start + batch_size]
        try:
            batch_results = await asyncio.gather(*(fetch(item) for item in batch))
        except Exception:
            logger.exception(
                f"Batch {start // batch_size + 1} failed "
                f"(items {start}-{start + len(batch) - 1} of {len(items)})"
            )
            raise
        results.extend(batch_results)
    return results


def merge_staker_pools(pools: Iterable[StakerPoolData]) -> list[StakerValidatorData]:
    """Group per-pool positions by validator.

    Balances and rewards are summed, ``entry_time`` is the earliest of the
    pools. Validators keep the order of their first pool; each keeps its
    pools in input order.
    """
    grouped: dict[int, list[StakerPoolData]] = {}
    for pool in pools:
        grouped.setdefault(pool.validator_id, []).append(pool)

    return [
        StakerValidatorData(
            validator_id=validator_id,
            balance=sum(p.balance for p in members),
            total_rewarded=sum(p.total_rewarded for p in members),
            reward_token_balance=sum(p.reward_token_balance for p in members),
            entry_time=min(p.entry_time for p in members),
            pools=tuple(members),
        )
        for validator_id, members in grouped.items()
    ]


class BatchAggregator:
    """Registry-wide reads built on a StakingStateFetcher."""

    def __init__(self, fetcher: StakingStateFetcher, batch_size: int | None = None):
        self.fetcher = fetcher
        self.batch_size = batch_size or fetcher.config.batch_size or DEFAULT_BATCH_SIZE

    async def fetch_validators(self) -> list[Validator]:
        """Fetch every registered validator, ids 1..count."""
        self.fetcher.require_sender()
        num_validators = await self.fetcher.fetch_num_validators()
        if not num_validators:
            return []

        validator_ids = list(range(1, num_validators + 1))
        validators = await gather_in_batches(
            validator_ids, self.fetcher.fetch_validator, self.batch_size
        )
        logger.info(f"Fetched {len(validators)} validators")
        return validators

    async def fetch_staker_validator_data(self, staker: str) -> list[StakerValidatorData]:
        """Fetch a staker's positions in every pool and merge them per validator."""
        self.fetcher.require_sender()
        pool_keys = await self.fetcher.fetch_staked_pools_for_account(staker)

        pools = await gather_in_batches(
            pool_keys,
            lambda pool_key: self.fetcher.fetch_staker_pool_data(pool_key, staker),
            self.batch_size,
        )
        return merge_staker_pools(pools)
