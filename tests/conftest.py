"""
Pytest fixtures for reti-staking-client tests
"""
import inspect
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from reti_client.config_loader import FeeConfig, NetworkConfig, StakingConfig
from reti_client.core.transport import ExecuteResult, SimulateOptions, SimulateResult
from reti_client.staking.operations import SignerAccount
from reti_client.staking.state_fetcher import StakingStateFetcher

REGISTRY_APP_ID = 1000
ACTIVE_ADDRESS = "A" * 58
OWNER_ADDRESS = "O" * 58
REJECTED = object()


def raw_validator_config(validator_id, max_algo_per_pool=70_000_000_000_000):
    return [
        validator_id, OWNER_ADDRESS, OWNER_ADDRESS, 0,
        0, OWNER_ADDRESS, [0, 0, 0, 0], 0,
        0, 0, 1_000, 50_000,
        OWNER_ADDRESS, 1_000_000_000, max_algo_per_pool, 3,
        0, 0,
    ]


def raw_validator_state(num_pools=1, total_stakers=1, total_algo_staked=0):
    return [num_pools, total_stakers, total_algo_staked, 0]


def raw_token_payout_ratio():
    return [[0] * 24, 0]


def raw_node_pool_assignment(pool_app_ids=()):
    nodes = [[[0, 0, 0]] for _ in range(8)]
    for i, app_id in enumerate(pool_app_ids[:3]):
        nodes[0][0][i] = app_id
    return [nodes]


class FakeLedger:
    """In-memory transport answering calls from a handler table.

    Handlers are keyed by (app_id, method); a key with app_id ``None``
    matches any app. A handler is a value or a callable taking the call
    args; returning REJECTED makes the dry run fail.
    """

    def __init__(self):
        self.handlers = {}
        self.simulated = []
        self.executed = []
        self.app_budget_added = 0
        self.app_budget_consumed = None
        self.write_failure = None
        self.closed = False

    def on(self, method, handler, app_id=None):
        self.handlers[(app_id, method)] = handler
        return self

    def add_validator(self, validator_id, pools=((2000, 1, 5_000_000),)):
        """Register the five sub-query answers for one validator."""
        pools = [list(pool) for pool in pools]
        self._by_id("getValidatorConfig")[validator_id] = raw_validator_config(validator_id)
        self._by_id("getValidatorState")[validator_id] = raw_validator_state(num_pools=len(pools))
        self._by_id("getPools")[validator_id] = pools
        self._by_id("getTokenPayoutRatio")[validator_id] = raw_token_payout_ratio()
        self._by_id("getNodePoolAssignments")[validator_id] = raw_node_pool_assignment(
            [pool[0] for pool in pools]
        )
        table = self._by_id("getValidatorConfig")
        self.on("getNumValidators", len(table), REGISTRY_APP_ID)
        return self

    def _by_id(self, method):
        key = (REGISTRY_APP_ID, method)
        if key not in self.handlers:
            table = {}
            handler = lambda validator_id, _table=table: _table.get(validator_id)
            handler.table = table
            self.handlers[key] = handler
        return self.handlers[key].table

    async def _answer(self, call):
        handler = self.handlers.get((call.app_id, call.method), self.handlers.get((None, call.method)))
        value = handler(*call.args) if callable(handler) else handler
        if inspect.isawaitable(value):
            value = await value
        return value

    async def simulate(self, group, options=SimulateOptions()):
        self.simulated.append((group, options))
        returns = []
        for call in group.app_calls:
            value = await self._answer(call)
            if value is REJECTED:
                return SimulateResult(failure_message=f"assert failed in {call.method}")
            returns.append(value)
        if self.write_failure and any(call.fee > 0 for call in group.app_calls):
            return SimulateResult(failure_message=self.write_failure)
        return SimulateResult(
            returns=returns,
            app_budget_added=self.app_budget_added,
            app_budget_consumed=(
                self.app_budget_added // 2
                if self.app_budget_consumed is None
                else self.app_budget_consumed
            ),
        )

    async def execute(self, group, signer, populate_resources=True):
        await signer(group)
        self.executed.append(group)
        returns = [await self._answer(call) for call in group.app_calls]
        return ExecuteResult(
            returns=returns,
            tx_ids=[f"TX{i}" for i in range(len(group))],
            confirmed_round=42,
        )

    async def close(self):
        self.closed = True


@pytest.fixture
def config():
    return StakingConfig(
        network=NetworkConfig(endpoint="http://localhost:8980/rpc"),
        registry_app_id=REGISTRY_APP_ID,
        active_address=ACTIVE_ADDRESS,
        batch_size=10,
        fees=FeeConfig(),
    )


@pytest.fixture
def ledger():
    return FakeLedger().on("gas", None)


@pytest.fixture
def fetcher(config, ledger):
    return StakingStateFetcher(config, ledger)


@pytest.fixture
def signer():
    async def sign(group):
        return [b"signed"] * len(group)

    return AsyncMock(side_effect=sign)


@pytest.fixture
def account(signer):
    return SignerAccount(address=ACTIVE_ADDRESS, signer=signer)


@pytest.fixture
def sample_pool_records():
    """Raw getStakerInfo answers keyed by pool app id."""
    return {
        2001: [ACTIVE_ADDRESS, 10, 1, 0, 100],
        2002: [ACTIVE_ADDRESS, 20, 2, 5, 50],
        3001: [ACTIVE_ADDRESS, 7, 0, 0, 300],
    }


@pytest.fixture
def raw_records():
    """Builders for raw registry answers."""
    return SimpleNamespace(
        validator_config=raw_validator_config,
        validator_state=raw_validator_state,
        token_payout_ratio=raw_token_payout_ratio,
        node_pool_assignment=raw_node_pool_assignment,
    )


@pytest.fixture
def rejected():
    """Handler value that makes a dry run fail."""
    return REJECTED
