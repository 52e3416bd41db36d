"""Exception hierarchy for the proof submission workflow.

Every error raised by a workflow step inherits from AlignedSubmitError, so
the orchestrator can map it onto the stage that failed:

- CredentialError: keystore password or decryption problems
- ArtifactError: proof / program binary / public input reads
- ChainConnectionError, RPCError: the JSON-RPC node
- PaymentCancelled: the user declined the payment (not a failure)
- PaymentError: signing, broadcast or receipt wait for the payment
- NonceError: the batcher nonce lookup
- SubmissionError: the batcher websocket exchange

All exceptions have:
- error_code: Machine-readable error code (e.g., "CREDENTIAL_ERROR")
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to a loggable dictionary
"""
from __future__ import annotations

from typing import Any, Optional


class AlignedSubmitError(Exception):
    """Base exception for all submission workflow errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "SUBMIT_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a structured log payload."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Local inputs
# =============================================================================

class CredentialError(AlignedSubmitError):
    """Keystore password could not be read or keystore could not be decrypted."""

    error_code = "CREDENTIAL_ERROR"

    def __init__(
        self,
        message: str,
        keystore_path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if keystore_path:
            details["keystore_path"] = keystore_path
        super().__init__(message, details=details)


class ArtifactError(AlignedSubmitError):
    """A proof artifact that was asked for could not be read."""

    error_code = "ARTIFACT_ERROR"

    def __init__(
        self,
        message: str,
        artifact: str,
        path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.artifact = artifact
        self.path = path
        details = details or {}
        details["artifact"] = artifact
        if path:
            details["path"] = path
        super().__init__(message, details=details)


# =============================================================================
# Chain
# =============================================================================

class ChainConnectionError(AlignedSubmitError, ConnectionError):
    """The RPC node is unreachable, misbehaving, or on the wrong chain."""

    error_code = "CHAIN_CONNECTION_ERROR"

    def __init__(
        self,
        message: str,
        rpc_url: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if rpc_url:
            details["rpc_url"] = rpc_url
        super().__init__(message, details=details)


class RPCError(ChainConnectionError):
    """The node answered with a JSON-RPC error object."""

    error_code = "RPC_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Any = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.data = data
        details = details or {}
        if code is not None:
            details["rpc_code"] = code
        super().__init__(message, details=details)


# =============================================================================
# Payment
# =============================================================================

class PaymentCancelled(AlignedSubmitError):
    """The user declined the payment confirmation."""

    error_code = "PAYMENT_CANCELLED"

    def __init__(self, message: str = "Payment cancelled") -> None:
        super().__init__(message)


class PaymentError(AlignedSubmitError):
    """The payment transaction could not be sent or was not confirmed."""

    error_code = "PAYMENT_ERROR"

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.tx_hash = tx_hash
        details = details or {}
        if tx_hash:
            details["tx_hash"] = tx_hash
        super().__init__(message, details=details)


# =============================================================================
# Batcher
# =============================================================================

class NonceError(AlignedSubmitError):
    """The next batcher nonce could not be fetched."""

    error_code = "NONCE_ERROR"


class SubmissionError(AlignedSubmitError):
    """The batcher refused the request or the connection failed."""

    error_code = "SUBMISSION_ERROR"

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.reason = reason
        details = details or {}
        if reason:
            details["reason"] = reason
        super().__init__(message, details=details)
