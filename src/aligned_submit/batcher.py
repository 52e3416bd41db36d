"""
Adapters for the Aligned batcher.

The batcher is an external service reached through two calls: the next
nonce for a signer (read from the payment contract) and a submission that
blocks until the request is included in a batch. The workflow only depends
on the NonceCoordinator / SubmissionClient protocols below.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Union

import websockets
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_account.messages import encode_typed_data
from web3 import Web3
from websockets.exceptions import WebSocketException

from .config import Chain
from .exceptions import ChainConnectionError, NonceError, SubmissionError
from .models import BatchInclusionData, ProvingSystemId, SigningIdentity, VerificationData
from .rpc_client import ChainRPCClient

logger = logging.getLogger(__name__)


_USER_NONCES_SELECTOR = Web3.keccak(text="user_nonces(address)")[:4]

# Proving systems whose auxiliary data is the program, not a verification key
_ZKVM_SYSTEMS = (ProvingSystemId.SP1, ProvingSystemId.RISC0)

# Error responses that mean the request itself was refused
BATCHER_ERRORS = {
    "InvalidNonce": "nonce is stale or already used",
    "InvalidSignature": "signature does not match the request",
    "InsufficientBalance": "not enough funds deposited in the payment contract",
    "ProofTooLarge": "proof exceeds the batcher size limit",
    "InvalidProof": "proof was rejected by the batcher",
    "InvalidMaxFee": "max fee is below the batcher minimum",
    "InvalidChainId": "request targets a different chain",
    "InvalidPaymentServiceAddress": "payment contract address does not match",
    "CreateNewTaskError": "batcher failed to create the batch task",
    "ProtocolVersionMismatch": "client protocol version is not supported",
}


class NonceCoordinator(Protocol):
    async def get_next_nonce(
        self,
        rpc_url: str,
        signer_address: str,
        payment_contract_address: str,
    ) -> int: ...


class SubmissionClient(Protocol):
    async def submit_and_wait_verification(
        self,
        batcher_url: str,
        rpc_url: str,
        chain: Chain,
        verification_data: VerificationData,
        max_fee: int,
        identity: SigningIdentity,
        nonce: int,
        payment_contract_address: str,
    ) -> BatchInclusionData: ...


# =============================================================================
# Commitments and signatures
# =============================================================================

def verification_data_commitment(data: VerificationData) -> bytes:
    """Keccak commitment the batcher uses as the Merkle leaf for a request."""
    proof_commitment = Web3.keccak(data.proof)
    pub_input_commitment = Web3.keccak(data.pub_input or b"")

    if data.proving_system in _ZKVM_SYSTEMS:
        aux = data.vm_program_code or b""
    else:
        aux = data.verification_key or b""
    aux_commitment = Web3.keccak(aux + bytes([data.proving_system.wire_id]))

    generator = bytes.fromhex(data.proof_generator_addr[2:])

    return bytes(Web3.keccak(
        proof_commitment + pub_input_commitment + aux_commitment + generator
    ))


def build_typed_message(
    commitment: bytes,
    nonce: int,
    max_fee: int,
    chain_id: int,
    payment_contract_address: str,
) -> Dict[str, Any]:
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "NoncedVerificationData": [
                {"name": "verification_data_hash", "type": "bytes32"},
                {"name": "nonce", "type": "uint256"},
                {"name": "max_fee", "type": "uint256"},
            ],
        },
        "primaryType": "NoncedVerificationData",
        "domain": {
            "name": "Aligned",
            "version": "1",
            "chainId": chain_id,
            "verifyingContract": Web3.to_checksum_address(payment_contract_address),
        },
        "message": {
            "verification_data_hash": commitment,
            "nonce": nonce,
            "max_fee": max_fee,
        },
    }


def build_client_message(
    verification_data: VerificationData,
    identity: SigningIdentity,
    nonce: int,
    max_fee: int,
    chain: Chain,
    payment_contract_address: str,
) -> Dict[str, Any]:
    """Nonced verification data plus the EIP-712 signature over it."""
    commitment = verification_data_commitment(verification_data)
    typed = build_typed_message(
        commitment, nonce, max_fee, chain.chain_id, payment_contract_address
    )
    signed = identity.account.sign_message(encode_typed_data(full_message=typed))

    return {
        "verification_data": {
            "verification_data": verification_data.to_dict(),
            "nonce": hex(nonce),
            "max_fee": hex(max_fee),
            "chain_id": hex(chain.chain_id),
            "payment_service_addr": Web3.to_checksum_address(payment_contract_address),
        },
        "signature": {
            "r": hex(signed.r),
            "s": hex(signed.s),
            "v": signed.v,
        },
    }


def _as_bytes(value: Union[str, List[int], bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    return bytes(value)


def parse_batcher_response(message: Union[str, bytes]) -> Optional[BatchInclusionData]:
    """
    Decode one batcher message.

    Returns the inclusion data, None for messages that are not a final
    answer (protocol greetings, progress notices).

    Raises:
        SubmissionError: If the batcher refused the request or the message
            cannot be decoded
    """
    try:
        payload = json.loads(message)
    except (TypeError, ValueError) as e:
        raise SubmissionError("Malformed batcher response", reason="ProtocolError") from e

    if isinstance(payload, str):
        if payload in BATCHER_ERRORS:
            raise SubmissionError(
                f"Batcher rejected the proof: {BATCHER_ERRORS[payload]}",
                reason=payload,
            )
        return None

    if not isinstance(payload, dict):
        return None

    for key, description in BATCHER_ERRORS.items():
        if key in payload:
            raise SubmissionError(
                f"Batcher rejected the proof: {description}",
                reason=key,
                details={"batcher": payload[key]},
            )

    if "Error" in payload:
        raise SubmissionError(
            f"Batcher error: {payload['Error']}",
            reason="BatcherError",
        )

    inclusion = payload.get("BatchInclusionData")
    if inclusion is None:
        return None

    try:
        root = _as_bytes(inclusion["batch_merkle_root"])
        proof = inclusion.get("batch_inclusion_proof", {})
        hashes = proof.get("merkle_path", []) if isinstance(proof, dict) else proof
        return BatchInclusionData(
            batch_merkle_root=root,
            batch_inclusion_proof=[_as_bytes(h) for h in hashes],
            index_in_batch=int(inclusion.get("index_in_batch", 0)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SubmissionError(
            "Malformed batch inclusion data", reason="ProtocolError"
        ) from e


# =============================================================================
# Default adapters
# =============================================================================

class ContractNonceCoordinator:
    """Reads ``user_nonces(address)`` from the batcher payment contract."""

    def __init__(self, timeout_seconds: float = 30.0):
        self._timeout = timeout_seconds

    async def get_next_nonce(
        self,
        rpc_url: str,
        signer_address: str,
        payment_contract_address: str,
    ) -> int:
        call_data = _USER_NONCES_SELECTOR + encode(
            ["address"], [Web3.to_checksum_address(signer_address)]
        )
        tx = {
            "to": Web3.to_checksum_address(payment_contract_address),
            "data": "0x" + call_data.hex(),
        }

        result = None
        try:
            async with ChainRPCClient(rpc_url, timeout_seconds=self._timeout) as rpc:
                result = await rpc.eth_call(tx)
            (nonce,) = decode(["uint256"], _as_bytes(result))
        except ChainConnectionError as e:
            raise NonceError(f"could not get nonce: {e}") from e
        except (DecodingError, TypeError, ValueError) as e:
            raise NonceError(f"could not decode nonce: {result!r}") from e

        logger.debug(f"Next nonce for {signer_address}: {nonce}")
        return nonce


class BatcherSubmissionClient:
    """Submits a request to the batcher over a websocket and waits for inclusion."""

    def __init__(self, timeout_seconds: float = 600.0):
        self._timeout = timeout_seconds

    async def submit_and_wait_verification(
        self,
        batcher_url: str,
        rpc_url: str,
        chain: Chain,
        verification_data: VerificationData,
        max_fee: int,
        identity: SigningIdentity,
        nonce: int,
        payment_contract_address: str,
    ) -> BatchInclusionData:
        try:
            message = build_client_message(
                verification_data, identity, nonce, max_fee, chain, payment_contract_address
            )
        except (TypeError, ValueError) as e:
            raise SubmissionError(
                f"Failed to sign verification data: {e}", reason="SigningError"
            ) from e

        try:
            return await asyncio.wait_for(
                self._exchange(batcher_url, message),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise SubmissionError(
                f"Batcher did not answer within {self._timeout}s", reason="Timeout"
            ) from e
        except (OSError, WebSocketException) as e:
            raise SubmissionError(
                f"Batcher connection failed: {e}", reason="ConnectionError"
            ) from e

    async def _exchange(self, batcher_url: str, message: Dict[str, Any]) -> BatchInclusionData:
        async with websockets.connect(batcher_url, max_size=None) as ws:
            greeting = await ws.recv()
            logger.debug(f"Batcher greeting: {greeting!r}")

            await ws.send(json.dumps(message))
            logger.info("Proof sent to batcher, waiting for batch inclusion")

            async for raw in ws:
                inclusion = parse_batcher_response(raw)
                if inclusion is not None:
                    return inclusion

        raise SubmissionError(
            "Batcher closed the connection before answering", reason="ConnectionClosed"
        )
