"""
Runtime configuration for the relayer.

Values are read from the environment (optionally seeded from a ``.env`` file
by the CLI) and validated once at startup.
"""
import os
import urllib.parse
from typing import Optional, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError

# Confidence above which the predictor favours settling now
CONFIDENCE_CUTOFF = 0.7

# Number of recent base-fee samples the predictor trains on
PREDICTOR_WINDOW = 10

# Hardhat default account #1 - NEVER use in production
DEFAULT_RELAYER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class RelayerConfig(BaseModel):
    """Validated relayer settings"""
    rpc_url: str = "http://localhost:8545"
    relayer_private_key: str = DEFAULT_RELAYER_KEY
    vault_address: str = ZERO_ADDRESS
    port: int = Field(4000, gt=0, lt=65536)
    batch_size_threshold: int = Field(5, ge=1)
    cooldown_seconds: float = Field(10.0, ge=0)
    gas_safety_margin: float = Field(1.2, ge=1.0)
    start_block: int = Field(0, ge=0)
    poll_interval_seconds: float = Field(2.0, gt=0)
    confirmation_timeout_seconds: float = Field(120.0, gt=0)
    cors_origin: str = "*"

    @property
    def confidence_cutoff(self) -> float:
        return CONFIDENCE_CUTOFF

    @property
    def predictor_window(self) -> int:
        return PREDICTOR_WINDOW

    @field_validator("rpc_url")
    @classmethod
    def _check_rpc_url(cls, url: str) -> str:
        parsed = urllib.parse.urlparse(url)
        # Check if it's a localhost or 127.0.0.1 address (with or without port)
        host = parsed.netloc.split(':')[0]
        is_local = host in ('localhost', '127.0.0.1')
        if parsed.scheme != 'https' and not is_local:
            raise ValueError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")
        return url

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "RelayerConfig":
        """
        Build a config from environment variables

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)
            **overrides: Explicit values that win over the environment

        Returns:
            Validated RelayerConfig

        Raises:
            ConfigError: If any value is missing or invalid
        """
        env = os.environ if environ is None else environ
        names = {
            "rpc_url": "RPC_URL",
            "relayer_private_key": "RELAYER_PRIVATE_KEY",
            "vault_address": "VAULT_ADDRESS",
            "port": "PORT",
            "batch_size_threshold": "BATCH_SIZE_THRESHOLD",
            "cooldown_seconds": "COOLDOWN_SECONDS",
            "gas_safety_margin": "GAS_SAFETY_MARGIN",
            "start_block": "START_BLOCK",
            "poll_interval_seconds": "POLL_INTERVAL_SECONDS",
            "confirmation_timeout_seconds": "CONFIRMATION_TIMEOUT_SECONDS",
            "cors_origin": "CORS_ORIGIN",
        }
        values = {field: env[var] for field, var in names.items() if env.get(var)}
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid relayer configuration: {e}") from e
