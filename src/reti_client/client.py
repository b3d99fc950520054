"""
Entry point wiring the staking components to one transport.
"""

from pathlib import Path
from typing import Optional

from reti_client.config_loader import StakingConfig, load_staking_config
from reti_client.core.transport import JsonRpcTransport, LedgerTransport
from reti_client.staking.aggregator import BatchAggregator
from reti_client.staking.operations import SignerAccount, StakingOperations
from reti_client.staking.state_fetcher import StakingStateFetcher
from reti_client.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


class StakingClient:
    """Reads, aggregates and mutates staking state for one wallet."""

    def __init__(
        self,
        config: StakingConfig,
        transport: Optional[LedgerTransport] = None,
        account: Optional[SignerAccount] = None,
    ):
        """Initialize the client.

        Args:
            config: Loaded configuration
            transport: Ledger transport, a JsonRpcTransport on the configured
                endpoint if omitted
            account: Active wallet used as sender and signer
        """
        self.config = config
        if config.logging is not None:
            settings = config.logging
            configure_logging(
                level=settings.level,
                console=settings.console,
                file=settings.file,
                events_file=settings.events_file,
                directory=settings.directory,
            )

        self.transport = transport or JsonRpcTransport(
            config.network.endpoint, timeout=config.network.timeout
        )
        active_address = account.address if account else config.active_address

        self.fetcher = StakingStateFetcher(config, self.transport, active_address)
        self.aggregator = BatchAggregator(self.fetcher, config.batch_size)
        self.operations = StakingOperations(config, self.transport, account)

        logger.info(
            f"StakingClient ready: registry={config.registry_app_id}, "
            f"wallet={'set' if active_address else 'none'}"
        )

    @classmethod
    def from_config_file(
        cls, config_path: str | Path, account: Optional[SignerAccount] = None
    ) -> "StakingClient":
        return cls(load_staking_config(config_path), account=account)

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> "StakingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
