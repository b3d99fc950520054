"""
Immutable records for registry and pool state.

Every value is rebuilt on each fetch; nothing here is cached or mutated.
Amounts are microAlgos, times are unix seconds.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PoolKey:
    """Identifies one pool: the validator, its index there and its app id."""

    validator_id: int
    pool_id: int
    pool_app_id: int

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.validator_id, self.pool_id, self.pool_app_id)


@dataclass(frozen=True)
class PoolInfo:
    pool_app_id: int
    total_stakers: int
    total_algo_staked: int


@dataclass(frozen=True)
class StakedInfo:
    account: str
    balance: int
    total_rewarded: int
    reward_token_balance: int
    entry_time: int


@dataclass(frozen=True)
class StakerPoolData:
    """A staker's position in one pool."""

    account: str
    balance: int
    total_rewarded: int
    reward_token_balance: int
    entry_time: int
    pool_key: PoolKey

    @classmethod
    def from_staked_info(cls, info: StakedInfo, pool_key: PoolKey) -> "StakerPoolData":
        return cls(
            account=info.account,
            balance=info.balance,
            total_rewarded=info.total_rewarded,
            reward_token_balance=info.reward_token_balance,
            entry_time=info.entry_time,
            pool_key=pool_key,
        )

    @property
    def validator_id(self) -> int:
        return self.pool_key.validator_id


@dataclass(frozen=True)
class StakerValidatorData:
    """A staker's positions under one validator, summed across its pools."""

    validator_id: int
    balance: int
    total_rewarded: int
    reward_token_balance: int
    entry_time: int
    pools: tuple = ()


@dataclass(frozen=True)
class ValidatorConfig:
    id: int
    owner: str
    manager: str
    nfd_for_info: int
    entry_gating_type: int
    entry_gating_address: str
    entry_gating_assets: tuple
    gating_asset_min_balance: int
    reward_token_id: int
    reward_per_payout: int
    epoch_round_length: int
    percent_to_validator: int
    validator_commission_address: str
    min_entry_stake: int
    max_algo_per_pool: int
    pools_per_node: int
    sunsetting_on: int
    sunsetting_to: int


@dataclass(frozen=True)
class ValidatorState:
    num_pools: int
    total_stakers: int
    total_algo_staked: int
    reward_token_held_back: int


@dataclass(frozen=True)
class PoolTokenPayoutRatio:
    pool_pct_of_whole: tuple
    updated_for_payout: int


@dataclass(frozen=True)
class NodePoolAssignmentConfig:
    """Pool app ids hosted by each node, empty slots dropped."""

    nodes: tuple

    @property
    def pool_app_ids(self) -> list[int]:
        return [app_id for node in self.nodes for app_id in node]


@dataclass(frozen=True)
class Validator:
    id: int
    config: ValidatorConfig
    state: ValidatorState
    pools: tuple
    token_payout_ratio: PoolTokenPayoutRatio
    node_pool_assignment: NodePoolAssignmentConfig


@dataclass(frozen=True)
class Constraints:
    payout_mins_min: int
    payout_mins_max: int
    commission_pct_min: int
    commission_pct_max: int
    min_entry_stake: int
    max_algo_per_pool: int
    max_algo_per_validator: int
    max_nodes: int
    max_pools_per_node: int
    max_stakers_per_pool: int


@dataclass(frozen=True)
class MbrAmounts:
    validator_mbr: int
    pool_mbr: int
    pool_init_mbr: int
    staker_mbr: int
