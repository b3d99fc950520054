"""
Mutating staking operations.

Operations whose compute cost depends on chain state go through
FeeEstimator.estimate_then_commit; the rest pay a configured flat fee.
Each builds its group with AtomicGroupBuilder so budget-extension calls
always precede the call that spends the budget.
"""

from dataclasses import dataclass
from functools import wraps
from typing import Optional, Sequence

from algosdk.logic import get_application_address

from reti_client.config_loader import StakingConfig
from reti_client.core.errors import ValidationError
from reti_client.core.fees import FeeEstimator
from reti_client.core.group_builder import AtomicGroupBuilder
from reti_client.core.transaction import AppCall, PaymentTxn, TransactionGroup
from reti_client.core.transport import LedgerTransport, TransactionSigner
from reti_client.staking import decoder
from reti_client.staking.models import PoolInfo, PoolKey
from reti_client.utils.logger import get_logger

logger = get_logger(__name__)

# Extra MBR a pool needs to opt in to the validator's reward token
REWARD_TOKEN_OPT_IN_MBR = 100_000

# Budget-extension calls placed ahead of each primary call
ADD_POOL_EXTENSIONS = 2
INIT_STORAGE_EXTENSIONS = 2
ADD_STAKE_EXTENSIONS = 1
REMOVE_STAKE_EXTENSIONS = 2
EPOCH_UPDATE_EXTENSIONS = 2
CLAIM_TOKENS_EXTENSIONS = 2


@dataclass(frozen=True)
class SignerAccount:
    """The active wallet: its address and a signer for its transactions."""

    address: str
    signer: TransactionSigner


def logged_operation(operation: str):
    """Log a failed operation once, then re-raise."""

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception:
                logger.exception(f"{operation} failed")
                raise

        return wrapper

    return decorator


class StakingOperations:
    """Signed, committing calls against the registry and its pools."""

    def __init__(
        self,
        config: StakingConfig,
        transport: LedgerTransport,
        account: Optional[SignerAccount] = None,
        estimator: Optional[FeeEstimator] = None,
    ):
        """Initialize the operations layer.

        Args:
            config: Client configuration (app ids, fee settings)
            transport: Ledger transport for simulate/execute
            account: Active wallet; every operation fails without one
            estimator: Fee estimator, built from ``config.fees`` if omitted
        """
        self.config = config
        self.transport = transport
        self.account = account
        self.estimator = estimator or FeeEstimator(
            transport,
            unit_size=config.fees.unit_size,
            unit_cost=config.fees.unit_cost,
            min_fee=config.fees.min_fee,
        )

    @property
    def registry_app_id(self) -> int:
        return self.config.registry_app_id

    def _require_account(self) -> SignerAccount:
        if self.account is None or not self.account.address:
            raise ValidationError("No active wallet found")
        return self.account

    def _payment(self, sender: str, receiver: str, amount: int) -> PaymentTxn:
        return PaymentTxn(
            sender=sender,
            receiver=receiver,
            amount=amount,
            fee=self.config.fees.min_fee,
        )

    @logged_operation("add_pool")
    async def add_pool(self, validator_id: int, node_num: int, pool_mbr: int) -> PoolKey:
        """Create a new pool for a validator on the given node.

        Args:
            validator_id: Validator owning the pool
            node_num: Node (1-based) that will host the pool
            pool_mbr: MBR payment for the pool record (see fetch_mbr_amounts)

        Returns:
            Key of the created pool
        """
        account = self._require_account()
        fee = self.config.fees.fixed_fee("add_pool")

        payment = self._payment(
            account.address, get_application_address(self.registry_app_id), pool_mbr
        )
        call = AppCall(
            app_id=self.registry_app_id,
            method="addPool",
            sender=account.address,
            args=(validator_id, node_num),
            fee=fee,
            payment=payment,
        )
        group = AtomicGroupBuilder().add_call(call, ADD_POOL_EXTENSIONS).build()

        committed = await self.estimator.commit(group, account.signer, fee, "add_pool")
        pool_key = decoder.decode_pool_key(committed.primary_return())
        logger.info(f"Added pool {pool_key.pool_id} (app {pool_key.pool_app_id}) to validator {validator_id}")
        return pool_key

    @logged_operation("init_pool_storage")
    async def init_pool_storage(
        self, pool_app_id: int, pool_init_mbr: int, opt_in_reward_token: bool = False
    ) -> None:
        """Pay for and initialise a new pool's storage."""
        account = self._require_account()
        fee = self.config.fees.fixed_fee("init_pool_storage")

        mbr_amount = pool_init_mbr + REWARD_TOKEN_OPT_IN_MBR if opt_in_reward_token else pool_init_mbr
        payment = self._payment(account.address, get_application_address(pool_app_id), mbr_amount)
        call = AppCall(
            app_id=pool_app_id,
            method="initStorage",
            sender=account.address,
            fee=fee,
            payment=payment,
        )
        group = AtomicGroupBuilder().add_call(call, INIT_STORAGE_EXTENSIONS).build()
        await self.estimator.commit(group, account.signer, fee, "init_pool_storage")

    @logged_operation("add_stake")
    async def add_stake(self, validator_id: int, stake_amount: int) -> PoolKey:
        """Stake ``stake_amount`` microAlgos with a validator.

        The registry picks the pool; its key is returned.
        """
        account = self._require_account()
        if stake_amount <= 0:
            raise ValidationError(f"Stake amount must be positive, got {stake_amount}")
        registry_address = get_application_address(self.registry_app_id)

        def compose(fee: int) -> TransactionGroup:
            payment = self._payment(account.address, registry_address, stake_amount)
            call = AppCall(
                app_id=self.registry_app_id,
                method="addStake",
                sender=account.address,
                args=(validator_id, 0),
                fee=fee,
                payment=payment,
            )
            return AtomicGroupBuilder().add_call(call, ADD_STAKE_EXTENSIONS).build()

        committed = await self.estimator.estimate_then_commit(
            compose, self.config.fees.policy("add_stake"), account.signer, "add_stake"
        )
        pool_key = decoder.decode_pool_key(committed.primary_return())
        logger.info(f"Staked {stake_amount:,} µA into pool app {pool_key.pool_app_id}")
        return pool_key

    @logged_operation("remove_stake")
    async def remove_stake(self, pool_app_id: int, amount_to_unstake: int) -> None:
        """Withdraw stake from a pool. Zero withdraws everything."""
        account = self._require_account()
        if amount_to_unstake < 0:
            raise ValidationError(f"Unstake amount cannot be negative, got {amount_to_unstake}")

        def compose(fee: int) -> TransactionGroup:
            call = AppCall(
                app_id=pool_app_id,
                method="removeStake",
                sender=account.address,
                args=(amount_to_unstake,),
                fee=fee,
            )
            return AtomicGroupBuilder().add_call(call, REMOVE_STAKE_EXTENSIONS).build()

        await self.estimator.estimate_then_commit(
            compose, self.config.fees.policy("remove_stake"), account.signer, "remove_stake"
        )

    @logged_operation("epoch_balance_update")
    async def epoch_balance_update(self, pool_app_id: int) -> None:
        """Trigger the pool's epoch payout."""
        account = self._require_account()

        def compose(fee: int) -> TransactionGroup:
            call = AppCall(
                app_id=pool_app_id,
                method="epochBalanceUpdate",
                sender=account.address,
                fee=fee,
            )
            return AtomicGroupBuilder().add_call(call, EPOCH_UPDATE_EXTENSIONS).build()

        await self.estimator.estimate_then_commit(
            compose,
            self.config.fees.policy("epoch_balance_update"),
            account.signer,
            "epoch_balance_update",
        )

    @logged_operation("claim_tokens")
    async def claim_tokens(self, pools: Sequence[PoolInfo]) -> None:
        """Claim reward tokens from several pools in one atomic group.

        The fee measured for the whole group is pooled on the first claim;
        the other calls carry none.
        """
        account = self._require_account()
        if not pools:
            raise ValidationError("No pools to claim from")

        def compose(fee: int) -> TransactionGroup:
            builder = AtomicGroupBuilder()
            for i, pool in enumerate(pools):
                call = AppCall(
                    app_id=pool.pool_app_id,
                    method="claimTokens",
                    sender=account.address,
                    fee=fee if i == 0 else 0,
                )
                builder.add_call(call, CLAIM_TOKENS_EXTENSIONS)
            return builder.build()

        await self.estimator.estimate_then_commit(
            compose, self.config.fees.policy("claim_tokens"), account.signer, "claim_tokens"
        )
