"""
Decoding of positional ABI return values into named records.

Each record type has a layout: an ordered list of (field name, converter).
A value must match its layout's arity exactly; anything else is schema drift
and raises DecodeError. A missing value (``None``) means the entity does not
exist and raises NotFoundError instead.
"""

from typing import Any, Callable, Sequence

from reti_client.core.errors import DecodeError, NotFoundError
from reti_client.staking.models import (
    Constraints,
    MbrAmounts,
    NodePoolAssignmentConfig,
    PoolInfo,
    PoolKey,
    PoolTokenPayoutRatio,
    StakedInfo,
    ValidatorConfig,
    ValidatorState,
)

Converter = Callable[[Any, str], Any]
Layout = Sequence[tuple[str, Converter]]

ENTRY_GATING_ASSET_SLOTS = 4
MAX_POOLS_PER_VALIDATOR = 24
MAX_NODES = 8
MAX_POOLS_PER_NODE = 3


def uint(value: Any, name: str = "value") -> int:
    """Widen a protocol unsigned integer to ``int``."""
    if isinstance(value, bool):
        raise DecodeError(f"{name}: expected integer, got bool")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise DecodeError(f"{name}: expected integer, got {value!r}") from None
    if number < 0:
        raise DecodeError(f"{name}: expected unsigned integer, got {number}")
    return number


def address(value: Any, name: str = "value") -> str:
    if not isinstance(value, str) or not value:
        raise DecodeError(f"{name}: expected address string, got {value!r}")
    return value


def boolean(value: Any, name: str = "value") -> bool:
    if isinstance(value, bool):
        return value
    if value in (0, 1):
        return bool(value)
    raise DecodeError(f"{name}: expected boolean, got {value!r}")


def fixed_uints(length: int) -> Converter:
    def convert(value: Any, name: str) -> tuple:
        items = expect_sequence(value, length, name)
        return tuple(uint(item, f"{name}[{i}]") for i, item in enumerate(items))

    return convert


def expect_present(value: Any, name: str) -> Any:
    if value is None:
        raise NotFoundError(f"{name}: no value returned")
    return value


def expect_sequence(value: Any, arity: int | None, name: str) -> Sequence:
    """Check that ``value`` is a list/tuple of ``arity`` items."""
    if not isinstance(value, (list, tuple)):
        raise DecodeError(f"{name}: expected tuple, got {type(value).__name__}")
    if arity is not None and len(value) != arity:
        raise DecodeError(f"{name}: expected {arity} fields, got {len(value)}")
    return value


def decode_record(cls: type, layout: Layout, raw: Any, name: str | None = None):
    """Decode a positional tuple into ``cls`` using ``layout``."""
    name = name or cls.__name__
    values = expect_sequence(expect_present(raw, name), len(layout), name)
    kwargs = {
        field_name: convert(value, f"{name}.{field_name}")
        for (field_name, convert), value in zip(layout, values)
    }
    return cls(**kwargs)


POOL_KEY_LAYOUT: Layout = (
    ("validator_id", uint),
    ("pool_id", uint),
    ("pool_app_id", uint),
)

POOL_INFO_LAYOUT: Layout = (
    ("pool_app_id", uint),
    ("total_stakers", uint),
    ("total_algo_staked", uint),
)

STAKED_INFO_LAYOUT: Layout = (
    ("account", address),
    ("balance", uint),
    ("total_rewarded", uint),
    ("reward_token_balance", uint),
    ("entry_time", uint),
)

VALIDATOR_CONFIG_LAYOUT: Layout = (
    ("id", uint),
    ("owner", address),
    ("manager", address),
    ("nfd_for_info", uint),
    ("entry_gating_type", uint),
    ("entry_gating_address", address),
    ("entry_gating_assets", fixed_uints(ENTRY_GATING_ASSET_SLOTS)),
    ("gating_asset_min_balance", uint),
    ("reward_token_id", uint),
    ("reward_per_payout", uint),
    ("epoch_round_length", uint),
    ("percent_to_validator", uint),
    ("validator_commission_address", address),
    ("min_entry_stake", uint),
    ("max_algo_per_pool", uint),
    ("pools_per_node", uint),
    ("sunsetting_on", uint),
    ("sunsetting_to", uint),
)

VALIDATOR_STATE_LAYOUT: Layout = (
    ("num_pools", uint),
    ("total_stakers", uint),
    ("total_algo_staked", uint),
    ("reward_token_held_back", uint),
)

TOKEN_PAYOUT_RATIO_LAYOUT: Layout = (
    ("pool_pct_of_whole", fixed_uints(MAX_POOLS_PER_VALIDATOR)),
    ("updated_for_payout", uint),
)

CONSTRAINTS_LAYOUT: Layout = (
    ("payout_mins_min", uint),
    ("payout_mins_max", uint),
    ("commission_pct_min", uint),
    ("commission_pct_max", uint),
    ("min_entry_stake", uint),
    ("max_algo_per_pool", uint),
    ("max_algo_per_validator", uint),
    ("max_nodes", uint),
    ("max_pools_per_node", uint),
    ("max_stakers_per_pool", uint),
)

MBR_AMOUNTS_LAYOUT: Layout = (
    ("validator_mbr", uint),
    ("pool_mbr", uint),
    ("pool_init_mbr", uint),
    ("staker_mbr", uint),
)


def decode_pool_key(raw: Any) -> PoolKey:
    return decode_record(PoolKey, POOL_KEY_LAYOUT, raw)


def decode_pool_info(raw: Any) -> PoolInfo:
    return decode_record(PoolInfo, POOL_INFO_LAYOUT, raw)


def decode_pools(raw: Any) -> list[PoolInfo]:
    """Decode ``getPools``: a list of pool info tuples."""
    items = expect_sequence(expect_present(raw, "pools"), None, "pools")
    return [decode_record(PoolInfo, POOL_INFO_LAYOUT, item, f"pools[{i}]") for i, item in enumerate(items)]


def decode_staked_pools(raw: Any) -> list[PoolKey]:
    """Decode ``getStakedPoolsForAccount``, skipping empty slots."""
    items = expect_sequence(expect_present(raw, "stakedPools"), None, "stakedPools")
    keys = [
        decode_record(PoolKey, POOL_KEY_LAYOUT, item, f"stakedPools[{i}]")
        for i, item in enumerate(items)
    ]
    return [key for key in keys if key.pool_app_id != 0]


def decode_staked_info(raw: Any) -> StakedInfo:
    return decode_record(StakedInfo, STAKED_INFO_LAYOUT, raw)


def decode_validator_config(raw: Any) -> ValidatorConfig:
    return decode_record(ValidatorConfig, VALIDATOR_CONFIG_LAYOUT, raw)


def decode_validator_state(raw: Any) -> ValidatorState:
    return decode_record(ValidatorState, VALIDATOR_STATE_LAYOUT, raw)


def decode_token_payout_ratio(raw: Any) -> PoolTokenPayoutRatio:
    return decode_record(PoolTokenPayoutRatio, TOKEN_PAYOUT_RATIO_LAYOUT, raw)


def decode_node_pool_assignment(raw: Any) -> NodePoolAssignmentConfig:
    """Decode ``((uint64[3])[8])`` into per-node pool app id tuples."""
    name = "NodePoolAssignmentConfig"
    (nodes,) = expect_sequence(expect_present(raw, name), 1, name)
    nodes = expect_sequence(nodes, MAX_NODES, f"{name}.nodes")

    decoded = []
    for i, node in enumerate(nodes):
        (pool_app_ids,) = expect_sequence(node, 1, f"{name}.nodes[{i}]")
        app_ids = fixed_uints(MAX_POOLS_PER_NODE)(pool_app_ids, f"{name}.nodes[{i}].poolAppIds")
        decoded.append(tuple(app_id for app_id in app_ids if app_id != 0))
    return NodePoolAssignmentConfig(nodes=tuple(decoded))


def decode_constraints(raw: Any) -> Constraints:
    return decode_record(Constraints, CONSTRAINTS_LAYOUT, raw)


def decode_mbr_amounts(raw: Any) -> MbrAmounts:
    return decode_record(MbrAmounts, MBR_AMOUNTS_LAYOUT, raw)


def decode_find_pool_result(raw: Any) -> tuple[PoolKey, bool]:
    """Decode ``findPoolForStaker``: (pool key, is new staker)."""
    pool_key_raw, is_new = expect_sequence(
        expect_present(raw, "findPoolForStaker"), 2, "findPoolForStaker"
    )
    return decode_pool_key(pool_key_raw), boolean(is_new, "findPoolForStaker.isNewStaker")
