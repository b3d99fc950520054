"""Tests for mutating staking operations"""
import pytest
from algosdk import encoding
from algosdk.logic import get_application_address

from reti_client.core.errors import SimulationRejectedError, ValidationError
from reti_client.core.transaction import AppCall, PaymentTxn
from reti_client.staking.models import PoolInfo, PoolKey
from reti_client.staking.operations import REWARD_TOKEN_OPT_IN_MBR, StakingOperations


@pytest.fixture
def operations(config, ledger, account):
    return StakingOperations(config, ledger, account)


@pytest.mark.asyncio
async def test_add_stake_estimates_then_commits(operations, ledger, signer, config):
    ledger.app_budget_added = 4_200
    ledger.on("addStake", lambda validator_id, value_to_verify: [validator_id, 2, 2002])

    pool_key = await operations.add_stake(1, 5_000_000)

    assert pool_key == PoolKey(validator_id=1, pool_id=2, pool_app_id=2002)
    assert len(ledger.simulated) == 1
    assert len(ledger.executed) == 1

    dry_group, options = ledger.simulated[0]
    real_group = ledger.executed[0]
    assert dry_group.transactions[-1].fee == 240_000
    # 2000 surcharge + 6 budget units
    assert real_group.transactions[-1].fee == 8_000
    assert [type(txn) for txn in real_group.transactions] == [AppCall, PaymentTxn, AppCall]
    assert real_group.transactions[0].method == "gas"
    payment = real_group.transactions[1]
    assert payment.amount == 5_000_000
    assert payment.receiver == get_application_address(config.registry_app_id)
    signer.assert_awaited_once_with(real_group)


@pytest.mark.asyncio
async def test_add_stake_requires_wallet(config, ledger):
    operations = StakingOperations(config, ledger, account=None)

    with pytest.raises(ValidationError, match="No active wallet"):
        await operations.add_stake(1, 5_000_000)
    assert ledger.simulated == []


@pytest.mark.asyncio
async def test_add_stake_rejects_non_positive_amount(operations, ledger):
    with pytest.raises(ValidationError):
        await operations.add_stake(1, 0)
    assert ledger.simulated == []


@pytest.mark.asyncio
async def test_rejected_dry_run_is_not_submitted(operations, ledger, signer):
    ledger.write_failure = "insufficient stake"

    with pytest.raises(SimulationRejectedError):
        await operations.remove_stake(2001, 1_000)

    assert ledger.executed == []
    signer.assert_not_awaited()


@pytest.mark.asyncio
async def test_remove_stake_layout_and_fee(operations, ledger):
    ledger.app_budget_added = 2_800

    await operations.remove_stake(2001, 1_000)

    group = ledger.executed[0]
    assert [txn.method for txn in group.transactions] == ["gas", "gas", "removeStake"]
    assert [txn.fee for txn in group.transactions] == [0, 0, 4_000]
    assert group.transactions[-1].args == (1_000,)
    assert all(txn.app_id == 2001 for txn in group.transactions)


@pytest.mark.asyncio
async def test_epoch_balance_update_adds_surcharge(operations, ledger):
    ledger.app_budget_added = 2_100

    await operations.epoch_balance_update(2001)

    group = ledger.executed[0]
    assert [txn.method for txn in group.transactions] == ["gas", "gas", "epochBalanceUpdate"]
    assert group.transactions[-1].fee == 6_000


@pytest.mark.asyncio
async def test_claim_tokens_builds_one_segment_per_pool(operations, ledger):
    ledger.app_budget_added = 6_300
    pools = [PoolInfo(2001, 1, 100), PoolInfo(2002, 1, 100), PoolInfo(3001, 1, 100)]

    await operations.claim_tokens(pools)

    group = ledger.executed[0]
    assert len(group) == 9
    assert group.primary_indices == (2, 5, 8)
    for segment, pool in enumerate(pools):
        txns = group.transactions[segment * 3:segment * 3 + 3]
        assert [txn.method for txn in txns] == ["gas", "gas", "claimTokens"]
        assert {txn.app_id for txn in txns} == {pool.pool_app_id}
    assert [group.transactions[i].fee for i in (2, 5, 8)] == [9_000, 0, 0]
    assert group.total_fee == 9_000


@pytest.mark.asyncio
async def test_claim_tokens_without_pools(operations, ledger):
    with pytest.raises(ValidationError):
        await operations.claim_tokens([])
    assert ledger.simulated == []


@pytest.mark.asyncio
async def test_claim_tokens_too_many_pools_fails_before_network(operations, ledger):
    pools = [PoolInfo(2000 + i, 1, 100) for i in range(6)]

    with pytest.raises(ValidationError):
        await operations.claim_tokens(pools)
    assert ledger.simulated == []


@pytest.mark.asyncio
async def test_add_pool_pays_fixed_fee(operations, ledger, config):
    ledger.on("addPool", lambda validator_id, node_num: [validator_id, 3, 2003])

    pool_key = await operations.add_pool(1, 1, 1_500_000)

    assert pool_key == PoolKey(1, 3, 2003)
    assert ledger.simulated == []
    group = ledger.executed[0]
    assert [getattr(txn, "method", "pay") for txn in group.transactions] == [
        "gas", "gas", "pay", "addPool",
    ]
    assert group.transactions[-1].fee == config.fees.fixed_fee("add_pool")
    assert group.transactions[2].amount == 1_500_000


@pytest.mark.asyncio
async def test_init_pool_storage_adds_opt_in_mbr(operations, ledger):
    await operations.init_pool_storage(2003, 400_000, opt_in_reward_token=True)

    group = ledger.executed[0]
    payment = group.transactions[2]
    assert payment.amount == 400_000 + REWARD_TOKEN_OPT_IN_MBR
    assert payment.receiver == get_application_address(2003)
    assert group.transactions[-1].method == "initStorage"
    assert group.transactions[-1].fee == 3_000


@pytest.mark.asyncio
async def test_payments_go_to_application_escrow(operations, ledger):
    ledger.on("addStake", lambda validator_id, value_to_verify: [validator_id, 1, 2001])

    await operations.add_stake(1, 2_000_000)
    await operations.init_pool_storage(2003, 400_000)

    stake_payment = ledger.executed[0].transactions[1]
    mbr_payment = ledger.executed[1].transactions[2]
    assert encoding.is_valid_address(stake_payment.receiver)
    assert encoding.is_valid_address(mbr_payment.receiver)
    assert stake_payment.receiver != mbr_payment.receiver
    assert encoding.decode_address(mbr_payment.receiver) == encoding.checksum(
        b"appID" + (2003).to_bytes(8, "big")
    )
