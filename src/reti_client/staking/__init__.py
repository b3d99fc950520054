"""
Reti staking protocol: validator registry and staking pool contracts.

State is read through dry runs (StakingStateFetcher), aggregated across
validators and pools (BatchAggregator), and changed through signed atomic
groups (StakingOperations).
"""

from .aggregator import BatchAggregator, gather_in_batches, merge_staker_pools
from .operations import SignerAccount, StakingOperations
from .state_fetcher import StakingStateFetcher

__all__ = [
    "BatchAggregator",
    "gather_in_batches",
    "merge_staker_pools",
    "SignerAccount",
    "StakingOperations",
    "StakingStateFetcher",
]
