"""Client-side orchestration for the Reti staking protocol."""

from reti_client.client import StakingClient
from reti_client.config_loader import StakingConfig, load_staking_config

__all__ = ["StakingClient", "StakingConfig", "load_staking_config"]

__version__ = "0.1.0"
