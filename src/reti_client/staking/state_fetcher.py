"""
Read-only queries against the validator registry and its staking pools.

Every read is a one-call group run through ``simulate`` with empty
signatures, so nothing is signed or committed. A call that returns nothing
or that the ledger rejects is treated as "entity absent".
"""

import asyncio
from typing import Any, Optional, Sequence

from reti_client.config_loader import StakingConfig
from reti_client.core.errors import NotFoundError, ValidationError, ValidatorNotFoundError
from reti_client.core.group_builder import AtomicGroupBuilder
from reti_client.core.transaction import AppCall
from reti_client.core.transport import LedgerTransport, SimulateOptions
from reti_client.staking import decoder
from reti_client.staking.models import (
    Constraints,
    MbrAmounts,
    NodePoolAssignmentConfig,
    PoolInfo,
    PoolKey,
    PoolTokenPayoutRatio,
    StakerPoolData,
    Validator,
    ValidatorConfig,
    ValidatorState,
)
from reti_client.utils.logger import get_logger

logger = get_logger(__name__)

READONLY_OPTIONS = SimulateOptions(allow_empty_signatures=True, allow_unnamed_resources=True)


class StakingStateFetcher:
    """Fetches and decodes registry and pool state."""

    def __init__(
        self,
        config: StakingConfig,
        transport: LedgerTransport,
        active_address: Optional[str] = None,
    ):
        """Initialize the fetcher.

        Args:
            config: Client configuration (registry app id)
            transport: Ledger transport used for dry runs
            active_address: Sender of read calls, defaults to the configured one
        """
        self.config = config
        self.transport = transport
        self.active_address = active_address or config.active_address

    @property
    def registry_app_id(self) -> int:
        return self.config.registry_app_id

    def require_sender(self) -> str:
        if not self.active_address:
            raise ValidationError("No active wallet found")
        return self.active_address

    async def call_readonly(
        self,
        app_id: int,
        method: str,
        args: Sequence[Any] = (),
        sender: Optional[str] = None,
    ) -> Any:
        """Simulate a single call and return its ABI result.

        Returns:
            The decoded-by-transport return value, or None when the call
            returned nothing or was rejected
        """
        sender = sender or self.require_sender()
        group = (
            AtomicGroupBuilder()
            .add_call(AppCall(app_id=app_id, method=method, sender=sender, args=tuple(args)))
            .build()
        )
        result = await self.transport.simulate(group, READONLY_OPTIONS)
        if result.failed:
            logger.debug(f"{method}{tuple(args)} on app {app_id} rejected: {result.failure_message}")
            return None

        index = group.primary_indices[0]
        return result.returns[index] if index < len(result.returns) else None

    async def _registry_call(self, method: str, *args: Any) -> Any:
        return await self.call_readonly(self.registry_app_id, method, args)

    async def fetch_num_validators(self) -> int:
        raw = await self._registry_call("getNumValidators")
        return decoder.uint(decoder.expect_present(raw, "getNumValidators"), "numValidators")

    async def fetch_validator_config(self, validator_id: int) -> ValidatorConfig:
        raw = await self._registry_call("getValidatorConfig", validator_id)
        if raw is None:
            raise ValidatorNotFoundError(validator_id)
        return decoder.decode_validator_config(raw)

    async def fetch_validator_state(self, validator_id: int) -> ValidatorState:
        raw = await self._registry_call("getValidatorState", validator_id)
        if raw is None:
            raise ValidatorNotFoundError(validator_id)
        return decoder.decode_validator_state(raw)

    async def fetch_validator_pools(self, validator_id: int) -> list[PoolInfo]:
        raw = await self._registry_call("getPools", validator_id)
        if raw is None:
            raise ValidatorNotFoundError(validator_id)
        return decoder.decode_pools(raw)

    async def fetch_token_payout_ratio(self, validator_id: int) -> PoolTokenPayoutRatio:
        raw = await self._registry_call("getTokenPayoutRatio", validator_id)
        if raw is None:
            raise ValidatorNotFoundError(validator_id)
        return decoder.decode_token_payout_ratio(raw)

    async def fetch_node_pool_assignments(self, validator_id: int) -> NodePoolAssignmentConfig:
        raw = await self._registry_call("getNodePoolAssignments", validator_id)
        if raw is None:
            raise NotFoundError(f"No node pool assignment found for validator {validator_id}")
        return decoder.decode_node_pool_assignment(raw)

    async def fetch_validator(self, validator_id: int) -> Validator:
        """Fetch the five validator sub-records concurrently and merge them.

        Raises:
            ValidatorNotFoundError: If any sub-record is missing
        """
        self.require_sender()
        validator_id = int(validator_id)

        raw_config, raw_state, raw_pools, raw_ratio, raw_assignment = await asyncio.gather(
            self._registry_call("getValidatorConfig", validator_id),
            self._registry_call("getValidatorState", validator_id),
            self._registry_call("getPools", validator_id),
            self._registry_call("getTokenPayoutRatio", validator_id),
            self._registry_call("getNodePoolAssignments", validator_id),
        )

        if any(
            raw is None
            for raw in (raw_config, raw_state, raw_pools, raw_ratio, raw_assignment)
        ):
            raise ValidatorNotFoundError(validator_id)

        return Validator(
            id=validator_id,
            config=decoder.decode_validator_config(raw_config),
            state=decoder.decode_validator_state(raw_state),
            pools=tuple(decoder.decode_pools(raw_pools)),
            token_payout_ratio=decoder.decode_token_payout_ratio(raw_ratio),
            node_pool_assignment=decoder.decode_node_pool_assignment(raw_assignment),
        )

    async def fetch_pool_info(self, pool_key: PoolKey) -> PoolInfo:
        raw = await self._registry_call("getPoolInfo", pool_key.as_tuple())
        if raw is None:
            raise NotFoundError(f"Pool {pool_key.as_tuple()} not found")
        return decoder.decode_pool_info(raw)

    async def fetch_mbr_amounts(self) -> MbrAmounts:
        return decoder.decode_mbr_amounts(await self._registry_call("getMbrAmounts"))

    async def fetch_protocol_constraints(self) -> Constraints:
        return decoder.decode_constraints(await self._registry_call("getProtocolConstraints"))

    async def find_pool_for_staker(
        self, validator_id: int, staker: str, amount_to_stake: int
    ) -> tuple[PoolKey, bool]:
        """Ask the registry which pool would take ``amount_to_stake``.

        Returns:
            (pool key, whether the staker is new to this validator)
        """
        raw = await self._registry_call("findPoolForStaker", validator_id, staker, amount_to_stake)
        if raw is None:
            raise NotFoundError(f"No pool available for staker on validator {validator_id}")
        return decoder.decode_find_pool_result(raw)

    async def is_new_staker_to_validator(
        self, validator_id: int, staker: str, min_entry_stake: int
    ) -> bool:
        _, is_new_staker = await self.find_pool_for_staker(validator_id, staker, min_entry_stake)
        return is_new_staker

    async def fetch_staked_pools_for_account(self, staker: str) -> list[PoolKey]:
        raw = await self._registry_call("getStakedPoolsForAccount", staker)
        return decoder.decode_staked_pools(raw)

    async def fetch_staker_pool_data(self, pool_key: PoolKey, staker: str) -> StakerPoolData:
        raw = await self.call_readonly(pool_key.pool_app_id, "getStakerInfo", (staker,))
        if raw is None:
            raise NotFoundError(f"Staker {staker} not found in pool {pool_key.pool_app_id}")
        info = decoder.decode_staked_info(raw)
        return StakerPoolData.from_staked_info(info, pool_key)

    async def does_staker_need_to_pay_mbr(self, staker: str) -> bool:
        raw = await self.call_readonly(
            self.registry_app_id, "doesStakerNeedToPayMbr", (staker,), sender=staker
        )
        return decoder.boolean(decoder.expect_present(raw, "doesStakerNeedToPayMbr"))

    async def fetch_max_available_to_stake(self, validator_id: int) -> int:
        """Largest stake any single pool of the validator can still accept."""
        config, pools = await asyncio.gather(
            self.fetch_validator_config(validator_id),
            self.fetch_validator_pools(validator_id),
        )
        available = [config.max_algo_per_pool - pool.total_algo_staked for pool in pools]
        return max([0, *available])
