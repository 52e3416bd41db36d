"""
Tests for value types and outcomes.
"""
import dataclasses

import pytest

from aligned_submit.models import (
    BatchInclusionData,
    Cancelled,
    Failed,
    PaymentReceipt,
    ProofArtifacts,
    ProvingSystemId,
    Stage,
    Success,
    VerificationData,
)

PAYMENT = PaymentReceipt(
    tx_hash="0x" + "a" * 64,
    block_number=1,
    amount_wei=4_000_000_000_000_000,
    from_address="0x" + "1" * 40,
    to_address="0x" + "2" * 40,
)


class TestProvingSystemId:
    """Tests for ProvingSystemId.parse."""

    @pytest.mark.parametrize("value,expected", [
        ("sp1", ProvingSystemId.SP1),
        ("SP1", ProvingSystemId.SP1),
        ("risc0", ProvingSystemId.RISC0),
        ("Risc0", ProvingSystemId.RISC0),
        ("groth16bn254", ProvingSystemId.GROTH16_BN254),
        ("GNARK_PLONK_BN254", ProvingSystemId.GNARK_PLONK_BN254),
    ])
    def test_parse(self, value, expected):
        assert ProvingSystemId.parse(value) is expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            ProvingSystemId.parse("stark")

    def test_wire_ids_are_distinct(self):
        assert len({member.wire_id for member in ProvingSystemId}) == len(ProvingSystemId)


class TestVerificationData:
    """Tests for VerificationData."""

    def test_from_artifacts(self):
        artifacts = ProofArtifacts(proof=b"p", program_binary=b"elf", public_input=None)

        data = VerificationData.from_artifacts(ProvingSystemId.RISC0, artifacts, "0x" + "1" * 40)

        assert data.proof == b"p"
        assert data.vm_program_code == b"elf"
        assert data.pub_input is None
        assert data.verification_key is None
        assert data.proof_generator_addr == "0x" + "1" * 40

    def test_immutable(self):
        data = VerificationData(ProvingSystemId.SP1, b"p", "0x" + "1" * 40)
        with pytest.raises(dataclasses.FrozenInstanceError):
            data.proof = b"other"

    def test_to_dict(self):
        data = VerificationData(ProvingSystemId.SP1, b"\x01\x02", "0x" + "1" * 40, vm_program_code=b"\x03")

        assert data.to_dict() == {
            "proving_system": "SP1",
            "proof": [1, 2],
            "pub_input": None,
            "verification_key": None,
            "vm_program_code": [3],
            "proof_generator_addr": "0x" + "1" * 40,
        }


class TestOutcomes:
    """Tests for the tagged outcomes."""

    def test_success(self):
        outcome = Success(explorer_url="https://x/batches/0xabc", batch_merkle_root="0xabc", payment=PAYMENT)
        assert outcome.ok is True
        assert outcome.exit_code == 0

    def test_cancelled(self):
        outcome = Cancelled()
        assert outcome.ok is False
        assert outcome.exit_code == 0
        assert outcome.reason == "Payment cancelled"

    def test_failed_before_payment(self):
        outcome = Failed(stage=Stage.CONNECTION, cause="unreachable")
        assert outcome.ok is False
        assert outcome.exit_code == 1
        assert outcome.payment_spent is False

    def test_failed_after_payment(self):
        outcome = Failed(stage=Stage.SUBMISSION, cause="rejected", payment=PAYMENT)
        assert outcome.payment_spent is True
        assert outcome.payment_unconfirmed is False

    def test_failed_with_unconfirmed_payment(self):
        outcome = Failed(stage=Stage.PAYMENT, cause="no receipt", payment_tx_hash=PAYMENT.tx_hash)
        assert outcome.payment_spent is False
        assert outcome.payment_unconfirmed is True


class TestBatchInclusionData:

    def test_root_hex(self):
        inclusion = BatchInclusionData(batch_merkle_root=bytes.fromhex("ab" * 32))
        assert inclusion.batch_merkle_root_hex == "0x" + "ab" * 32
