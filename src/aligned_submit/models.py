"""Value types passed between the workflow steps."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from eth_account.signers.local import LocalAccount


class ProvingSystemId(str, Enum):
    """Proof formats accepted by the batcher."""
    GNARK_PLONK_BLS12_381 = "GnarkPlonkBls12_381"
    GNARK_PLONK_BN254 = "GnarkPlonkBn254"
    GROTH16_BN254 = "Groth16Bn254"
    SP1 = "SP1"
    RISC0 = "Risc0"

    @property
    def wire_id(self) -> int:
        """Position used when hashing the proving system into a commitment."""
        return list(ProvingSystemId).index(self)

    @classmethod
    def parse(cls, value: str) -> "ProvingSystemId":
        """Accept enum values or names, case-insensitively."""
        needle = value.strip().lower()
        for member in cls:
            if needle in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown proving system: {value}")


class WorkflowState(str, Enum):
    """States of a single submission run."""
    START = "start"
    CREDENTIALS_LOADED = "credentials_loaded"
    ARTIFACTS_LOADED = "artifacts_loaded"
    CONNECTED = "connected"
    PAID = "paid"
    NONCE_ACQUIRED = "nonce_acquired"
    SUBMITTED = "submitted"
    REPORTED = "reported"
    ABORTED = "aborted"


class Stage(str, Enum):
    """Workflow stage a failure is attributed to."""
    CREDENTIALS = "credentials"
    ARTIFACTS = "artifacts"
    CONNECTION = "connection"
    PAYMENT = "payment"
    NONCE = "nonce"
    SUBMISSION = "submission"


@dataclass(frozen=True)
class SigningIdentity:
    """A decrypted wallet bound to the chain it signs for."""
    account: LocalAccount
    chain_id: int

    @property
    def address(self) -> str:
        return self.account.address

    def with_chain_id(self, chain_id: int) -> "SigningIdentity":
        return replace(self, chain_id=chain_id)

    def sign_transaction(self, tx: Dict[str, Any]) -> bytes:
        """Sign a transaction dict, forcing this identity's chain id."""
        signed = self.account.sign_transaction({**tx, "chainId": self.chain_id})
        return bytes(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"SigningIdentity(address={self.address}, chain_id={self.chain_id})"


@dataclass(frozen=True)
class ProofArtifacts:
    proof: bytes
    program_binary: bytes
    public_input: Optional[bytes] = None


@dataclass(frozen=True)
class VerificationData:
    """A verification request for the batcher. Never mutated once built."""
    proving_system: ProvingSystemId
    proof: bytes
    proof_generator_addr: str
    vm_program_code: Optional[bytes] = None
    verification_key: Optional[bytes] = None
    pub_input: Optional[bytes] = None

    @classmethod
    def from_artifacts(
        cls,
        proving_system: ProvingSystemId,
        artifacts: ProofArtifacts,
        generator_address: str,
    ) -> "VerificationData":
        return cls(
            proving_system=proving_system,
            proof=artifacts.proof,
            proof_generator_addr=generator_address,
            vm_program_code=artifacts.program_binary,
            verification_key=None,
            pub_input=artifacts.public_input,
        )

    def to_dict(self) -> Dict[str, Any]:
        def as_list(data: Optional[bytes]) -> Optional[List[int]]:
            return list(data) if data is not None else None

        return {
            "proving_system": self.proving_system.value,
            "proof": list(self.proof),
            "pub_input": as_list(self.pub_input),
            "verification_key": as_list(self.verification_key),
            "vm_program_code": as_list(self.vm_program_code),
            "proof_generator_addr": self.proof_generator_addr,
        }


@dataclass(frozen=True)
class PaymentReceipt:
    """Confirmed payment to the batcher payment contract."""
    tx_hash: str
    block_number: int
    amount_wei: int
    from_address: str
    to_address: str
    gas_used: Optional[int] = None


@dataclass(frozen=True)
class BatchInclusionData:
    """Proof that a verification request landed in a batch."""
    batch_merkle_root: bytes
    batch_inclusion_proof: List[bytes] = field(default_factory=list)
    index_in_batch: int = 0

    @property
    def batch_merkle_root_hex(self) -> str:
        return "0x" + self.batch_merkle_root.hex()


# =============================================================================
# Outcomes
# =============================================================================

@dataclass(frozen=True)
class SubmissionOutcome:
    """Result of one run. Exactly one of the subclasses is returned."""

    @property
    def ok(self) -> bool:
        return False

    @property
    def exit_code(self) -> int:
        return 0


@dataclass(frozen=True)
class Success(SubmissionOutcome):
    explorer_url: str
    batch_merkle_root: str
    payment: PaymentReceipt

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Cancelled(SubmissionOutcome):
    """The user declined to pay. No funds moved."""
    reason: str = "Payment cancelled"


@dataclass(frozen=True)
class Failed(SubmissionOutcome):
    stage: Stage
    cause: str
    payment: Optional[PaymentReceipt] = None
    # Set whenever a payment transaction was broadcast, confirmed or not
    payment_tx_hash: Optional[str] = None

    @property
    def payment_spent(self) -> bool:
        return self.payment is not None

    @property
    def payment_unconfirmed(self) -> bool:
        """A payment was broadcast but no receipt confirmed it."""
        return self.payment is None and self.payment_tx_hash is not None

    @property
    def exit_code(self) -> int:
        return 1
