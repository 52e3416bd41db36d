"""Configuration surface for aligned-submit.

Settings are read from ``ALIGNED_*`` environment variables (and an optional
``.env`` file). Chain selection lives here as well, including the explicit
fallback to the default testnet for chain ids we do not recognise.
"""
from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from web3 import Web3

logger = logging.getLogger(__name__)


BATCHER_URL = "wss://batcher.alignedlayer.com"
BATCHER_PAYMENTS_ADDRESS = "0x815aeCA64a974297942D2Bbf034ABEe22a38A003"
EXPLORER_URL = "https://explorer.alignedlayer.com"

# 0.004 ETH, paid straight to the batcher payment contract
DEFAULT_PAYMENT_AMOUNT_WEI = 4_000_000_000_000_000
DEFAULT_MAX_FEE_WEI = 1_300_000_000_000_000


class Chain(str, Enum):
    """Networks the batcher accepts submissions for."""
    HOLESKY = "holesky"
    DEVNET = "devnet"

    @property
    def chain_id(self) -> int:
        return CHAIN_IDS[self]

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


CHAIN_IDS: Dict[Chain, int] = {
    Chain.HOLESKY: 17000,
    Chain.DEVNET: 31337,
}

SUPPORTED_CHAINS: Dict[str, Chain] = {chain.value: chain for chain in Chain}

# Unrecognised chain ids are submitted to the public testnet. When mainnet
# is live this becomes the mainnet chain.
DEFAULT_CHAIN = Chain.HOLESKY


def resolve_chain(chain_id: int) -> Chain:
    """Map a numeric chain id to a Chain, falling back to DEFAULT_CHAIN."""
    for chain, known_id in CHAIN_IDS.items():
        if known_id == chain_id:
            return chain

    logger.warning(
        f"Chain id {chain_id} is not recognised, defaulting to "
        f"{DEFAULT_CHAIN.display_name} ({DEFAULT_CHAIN.chain_id})"
    )
    return DEFAULT_CHAIN


class SubmitSettings(BaseSettings):
    """Runtime settings for a proof submission."""

    model_config = SettingsConfigDict(
        env_prefix="ALIGNED_",
        env_file=".env",
        extra="ignore",
    )

    # Batcher
    batcher_url: str = BATCHER_URL
    payment_contract_address: str = BATCHER_PAYMENTS_ADDRESS
    explorer_url: str = EXPLORER_URL

    # Fees
    payment_amount_wei: int = DEFAULT_PAYMENT_AMOUNT_WEI
    default_max_fee_wei: int = DEFAULT_MAX_FEE_WEI
    payment_gas_limit: int = 21_000

    # Timeouts
    rpc_timeout_seconds: float = 30.0
    receipt_timeout_seconds: float = 120.0
    receipt_poll_interval_seconds: float = 2.0
    submission_timeout_seconds: float = 600.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("payment_contract_address")
    @classmethod
    def validate_payment_contract(cls, v: str) -> str:
        if not Web3.is_address(v):
            raise ValueError(f"Invalid payment contract address: {v}")
        return Web3.to_checksum_address(v)

    @field_validator("payment_amount_wei")
    @classmethod
    def validate_payment_amount(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("payment_amount_wei must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("explorer_url")
    @classmethod
    def strip_explorer_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache
def load_settings(env_file: str | None = None) -> SubmitSettings:
    """Load SubmitSettings once per process."""
    if env_file:
        return SubmitSettings(_env_file=Path(env_file))
    return SubmitSettings()
