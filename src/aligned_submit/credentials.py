"""Keystore decryption into a chain-bound signing identity."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

import click
from eth_account import Account
from web3 import Web3

from .exceptions import CredentialError
from .models import SigningIdentity
from .prompts import PromptProvider

logger = logging.getLogger(__name__)

PASSWORD_PROMPT = "Enter keystore password: "


def read_keystore(keystore_path: Union[str, Path]) -> Dict[str, Any]:
    """Read an encrypted keystore (Web3 Secret Storage JSON)."""
    path = Path(keystore_path)
    try:
        with open(path) as f:
            keystore = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CredentialError(
            "Failed to decrypt keystore", keystore_path=str(path)
        ) from e

    if not isinstance(keystore, dict) or "crypto" not in {k.lower() for k in keystore}:
        raise CredentialError(
            "Failed to decrypt keystore: unsupported keystore format",
            keystore_path=str(path),
        )
    return keystore


def load_signing_identity(
    keystore_path: Union[str, Path],
    prompts: PromptProvider,
    chain_id: int,
) -> SigningIdentity:
    """
    Prompt for the keystore password and decrypt the wallet.

    Args:
        keystore_path: Path to the encrypted keystore
        prompts: Prompt provider used to read the password
        chain_id: Chain the identity will sign for

    Raises:
        CredentialError: If the password cannot be read or decryption fails
    """
    try:
        password = prompts.password(PASSWORD_PROMPT)
    except (EOFError, OSError, click.Abort) as e:
        raise CredentialError("Failed to read keystore password") from e

    keystore = read_keystore(keystore_path)

    try:
        private_key = Account.decrypt(keystore, password)
    except (ValueError, KeyError, TypeError, NotImplementedError) as e:
        raise CredentialError(
            "Failed to decrypt keystore", keystore_path=str(keystore_path)
        ) from e

    account = Account.from_key(private_key)

    expected = keystore.get("address")
    if expected and not expected.startswith("0x"):
        expected = "0x" + expected
    if expected and Web3.is_address(expected):
        if Web3.to_checksum_address(expected) != account.address:
            raise CredentialError(
                "Decrypted key does not match keystore address",
                keystore_path=str(keystore_path),
                details={"expected": Web3.to_checksum_address(expected)},
            )

    logger.info(f"Loaded wallet {account.address} for chain {chain_id}")
    return SigningIdentity(account=account, chain_id=chain_id)
