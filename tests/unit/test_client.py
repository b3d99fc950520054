"""Tests for StakingClient wiring"""
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from reti_client import StakingClient
from reti_client.config_loader import LoggingConfig
from reti_client.core.transport import JsonRpcTransport
from reti_client.staking.operations import SignerAccount


@pytest.mark.asyncio
async def test_client_shares_one_transport(config, ledger, account):
    async with StakingClient(config, transport=ledger, account=account) as client:
        assert client.fetcher.transport is ledger
        assert client.operations.transport is ledger
        assert client.aggregator.batch_size == config.batch_size

    assert ledger.closed


def test_client_builds_json_rpc_transport(config):
    client = StakingClient(config)

    assert isinstance(client.transport, JsonRpcTransport)
    assert client.transport.endpoint == config.network.endpoint


def test_account_overrides_configured_address(config, ledger, signer):
    client = StakingClient(config, transport=ledger, account=SignerAccount("W" * 58, signer))

    assert client.fetcher.active_address == "W" * 58


def test_client_applies_logging_settings(config, ledger, monkeypatch):
    configure = MagicMock()
    monkeypatch.setattr("reti_client.client.configure_logging", configure)
    settings = LoggingConfig(level="DEBUG", console=False, events_file="events.jsonl")

    StakingClient(replace(config, logging=settings), transport=ledger)

    configure.assert_called_once_with(
        level="DEBUG",
        console=False,
        file=None,
        events_file="events.jsonl",
        directory="logs",
    )


def test_client_leaves_logging_alone_without_settings(config, ledger, monkeypatch):
    configure = MagicMock()
    monkeypatch.setattr("reti_client.client.configure_logging", configure)

    StakingClient(config, transport=ledger)

    configure.assert_not_called()
