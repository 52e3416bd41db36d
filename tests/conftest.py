"""
Pytest configuration for aligned-submit tests.
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from eth_account import Account

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

from aligned_submit.config import SubmitSettings
from aligned_submit.rpc_client import ChainRPCClient

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TEST_PASSWORD = "correct horse battery staple"


@pytest.fixture
def private_key():
    return TEST_PRIVATE_KEY


@pytest.fixture
def account():
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def password():
    return TEST_PASSWORD


@pytest.fixture
def keystore_path(tmp_path):
    """Encrypted keystore with a cheap KDF so tests stay fast."""
    keystore = Account.encrypt(TEST_PRIVATE_KEY, TEST_PASSWORD, kdf="pbkdf2", iterations=2)
    path = tmp_path / "keystore.json"
    path.write_text(json.dumps(keystore))
    return path


@pytest.fixture
def artifact_paths(tmp_path):
    proof = tmp_path / "proof.bin"
    proof.write_bytes(b"\x01\x02\x03proof")
    elf = tmp_path / "program.elf"
    elf.write_bytes(b"\x7fELFprogram")
    pub_input = tmp_path / "pub_input.bin"
    pub_input.write_bytes(b"\x2a")
    return proof, elf, pub_input


@pytest.fixture
def settings():
    return SubmitSettings(
        receipt_timeout_seconds=0.1,
        receipt_poll_interval_seconds=0.01,
    )


@pytest.fixture
def sample_tx_hash():
    """Valid transaction hash for testing."""
    return "0x" + "a" * 64


@pytest.fixture
def fake_rpc(sample_tx_hash):
    """RPC client double with a node that accepts and mines the payment."""
    rpc = AsyncMock(spec=ChainRPCClient)
    rpc.rpc_url = "https://rpc.example.org"
    rpc.get_chain_id.return_value = 17000
    rpc.get_transaction_count.return_value = 3
    rpc.estimate_gas.return_value = 21_000
    rpc.get_base_fee.return_value = 1_000_000_000
    rpc.get_max_priority_fee.return_value = 1_500_000_000
    rpc.get_gas_price.return_value = 2_000_000_000
    rpc.send_raw_transaction.return_value = sample_tx_hash
    rpc.wait_for_receipt.return_value = {
        "transactionHash": sample_tx_hash,
        "blockNumber": "0x10",
        "status": "0x1",
        "gasUsed": "0x5208",
    }
    return rpc
