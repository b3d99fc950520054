"""
Configuration loading.

The client is configured by one YAML file. ``${VAR}`` placeholders in its
values are resolved from the environment (a local ``.env`` is loaded first);
``${VAR:-default}`` supplies a fallback. Substitution runs on the parsed
values, so comments are never touched. The result is an immutable
StakingConfig built once at startup and handed to each component.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from reti_client.core.fees import BUDGET_UNIT_COST, BUDGET_UNIT_SIZE, FeePolicy
from reti_client.core.transaction import MIN_TXN_FEE
from reti_client.utils.logger import get_logger

logger = get_logger(__name__)

ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")

DEFAULT_BATCH_SIZE = 10
DEFAULT_FEE_CEILING = 240_000
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Operations whose fee comes from a dry run
DEFAULT_FEE_POLICIES = {
    "add_stake": FeePolicy(ceiling=DEFAULT_FEE_CEILING, surcharge=2_000),
    "remove_stake": FeePolicy(ceiling=DEFAULT_FEE_CEILING, surcharge=0),
    "epoch_balance_update": FeePolicy(ceiling=DEFAULT_FEE_CEILING, surcharge=3_000),
    "claim_tokens": FeePolicy(ceiling=DEFAULT_FEE_CEILING, surcharge=0),
}

# Operations paying a flat fee on the primary call
DEFAULT_FIXED_FEES = {
    "add_pool": 2_000,
    "init_pool_storage": 3_000,
}


class ConfigError(ValueError):
    """Configuration is missing or invalid."""


@dataclass(frozen=True)
class NetworkConfig:
    endpoint: str
    timeout: float = 10.0


@dataclass(frozen=True)
class FeeConfig:
    unit_size: int = BUDGET_UNIT_SIZE
    unit_cost: int = BUDGET_UNIT_COST
    min_fee: int = MIN_TXN_FEE
    policies: dict = field(default_factory=lambda: dict(DEFAULT_FEE_POLICIES))
    fixed: dict = field(default_factory=lambda: dict(DEFAULT_FIXED_FEES))

    def policy(self, operation: str) -> FeePolicy:
        try:
            return self.policies[operation]
        except KeyError:
            raise ConfigError(f"No fee policy configured for {operation}") from None

    def fixed_fee(self, operation: str) -> int:
        try:
            return self.fixed[operation]
        except KeyError:
            raise ConfigError(f"No fixed fee configured for {operation}") from None


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    console: bool = True
    file: Optional[str] = None
    events_file: Optional[str] = None
    directory: str = "logs"


@dataclass(frozen=True)
class StakingConfig:
    """Everything the client needs, resolved once."""

    network: NetworkConfig
    registry_app_id: int
    active_address: Optional[str] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    fees: FeeConfig = field(default_factory=FeeConfig)
    logging: Optional[LoggingConfig] = None


def substitute_env(raw: str, environ: Optional[dict] = None) -> str:
    """Replace ``${VAR}`` / ``${VAR:-default}`` placeholders.

    Raises:
        ConfigError: If a placeholder without default is not set
    """
    missing: list[str] = []
    resolved = _substitute(raw, os.environ if environ is None else environ, missing)
    _raise_missing(missing)
    return resolved


def resolve_env(data: Any, environ: Optional[dict] = None) -> Any:
    """Substitute placeholders in every string value of a loaded document.

    Raises:
        ConfigError: Listing every placeholder without default that is not set
    """
    env = os.environ if environ is None else environ
    missing: list[str] = []

    def _walk(value: Any) -> Any:
        if isinstance(value, str):
            return _substitute(value, env, missing)
        if isinstance(value, dict):
            return {key: _walk(item) for key, item in value.items()}
        if isinstance(value, list):
            return [_walk(item) for item in value]
        return value

    resolved = _walk(data)
    _raise_missing(missing)
    return resolved


def _substitute(raw: str, env, missing: list[str]) -> str:
    def _replace(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        value = env.get(name)
        if value:
            return value
        if default is not None:
            return default
        missing.append(name)
        return ""

    return ENV_PATTERN.sub(_replace, raw)


def _raise_missing(missing: list[str]) -> None:
    if missing:
        raise ConfigError(f"Environment variables not set: {', '.join(sorted(set(missing)))}")


def _positive_int(data: dict, key: str, default: Any = None) -> int:
    value = data.get(key, default)
    if value is None:
        raise ConfigError(f"Missing required setting: {key}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}") from None
    if number <= 0:
        raise ConfigError(f"{key} must be positive, got {number}")
    return number


def _parse_fees(data: dict) -> FeeConfig:
    policies = dict(DEFAULT_FEE_POLICIES)
    for operation, policy in (data.get("policies") or {}).items():
        base = policies.get(operation, FeePolicy(ceiling=DEFAULT_FEE_CEILING))
        policies[operation] = FeePolicy(
            ceiling=int(policy.get("ceiling", base.ceiling)),
            surcharge=int(policy.get("surcharge", base.surcharge)),
        )

    fixed = dict(DEFAULT_FIXED_FEES)
    fixed.update({op: int(fee) for op, fee in (data.get("fixed") or {}).items()})

    return FeeConfig(
        unit_size=_positive_int(data, "unit_size", BUDGET_UNIT_SIZE),
        unit_cost=_positive_int(data, "unit_cost", BUDGET_UNIT_COST),
        min_fee=_positive_int(data, "min_fee", MIN_TXN_FEE),
        policies=policies,
        fixed=fixed,
    )


def _flag(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "yes", "on", "1", "false", "no", "off", "0"):
        return value.lower() in ("true", "yes", "on", "1")
    raise ConfigError(f"{key} must be true or false, got {value!r}")


def _parse_logging(data: Optional[dict]) -> Optional[LoggingConfig]:
    if not data:
        return None

    level = str(data.get("level", "INFO")).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {level}")

    return LoggingConfig(
        level=level,
        console=_flag(data.get("console", True), "logging.console"),
        file=data.get("file") or None,
        events_file=data.get("events_file") or None,
        directory=str(data.get("directory") or "logs"),
    )


def parse_staking_config(data: dict) -> StakingConfig:
    """Validate a loaded mapping and build the StakingConfig."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    network = data.get("network") or {}
    endpoint = network.get("endpoint")
    if not endpoint:
        raise ConfigError("Missing required setting: network.endpoint")

    return StakingConfig(
        network=NetworkConfig(endpoint=endpoint, timeout=float(network.get("timeout", 10.0))),
        registry_app_id=_positive_int(data, "registry_app_id"),
        active_address=data.get("active_address") or None,
        batch_size=_positive_int(data, "batch_size", DEFAULT_BATCH_SIZE),
        fees=_parse_fees(data.get("fees") or {}),
        logging=_parse_logging(data.get("logging")),
    )


def load_staking_config(config_path: str | Path) -> StakingConfig:
    """Load and validate a YAML configuration file."""
    load_dotenv()

    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    config = parse_staking_config(resolve_env(data))

    logger.info(
        f"Loaded config {path.name}: registry={config.registry_app_id}, "
        f"endpoint={config.network.endpoint}, batch_size={config.batch_size}"
    )
    return config
