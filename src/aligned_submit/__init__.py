"""Pay the Aligned batcher and submit proofs for verification."""

from .config import (
    BATCHER_PAYMENTS_ADDRESS,
    BATCHER_URL,
    DEFAULT_CHAIN,
    Chain,
    SubmitSettings,
    load_settings,
    resolve_chain,
)
from .exceptions import (
    AlignedSubmitError,
    ArtifactError,
    ChainConnectionError,
    CredentialError,
    NonceError,
    PaymentCancelled,
    PaymentError,
    RPCError,
    SubmissionError,
)
from .models import (
    BatchInclusionData,
    Cancelled,
    Failed,
    PaymentReceipt,
    ProvingSystemId,
    SigningIdentity,
    Stage,
    SubmissionOutcome,
    Success,
    VerificationData,
    WorkflowState,
)
from .orchestrator import SubmissionWorkflow, SubmitProofRequest, submit_proof

__all__ = [
    "BATCHER_PAYMENTS_ADDRESS",
    "BATCHER_URL",
    "DEFAULT_CHAIN",
    "Chain",
    "SubmitSettings",
    "load_settings",
    "resolve_chain",
    "AlignedSubmitError",
    "ArtifactError",
    "ChainConnectionError",
    "CredentialError",
    "NonceError",
    "PaymentCancelled",
    "PaymentError",
    "RPCError",
    "SubmissionError",
    "BatchInclusionData",
    "Cancelled",
    "Failed",
    "PaymentReceipt",
    "ProvingSystemId",
    "SigningIdentity",
    "Stage",
    "SubmissionOutcome",
    "Success",
    "VerificationData",
    "WorkflowState",
    "SubmissionWorkflow",
    "SubmitProofRequest",
    "submit_proof",
]
