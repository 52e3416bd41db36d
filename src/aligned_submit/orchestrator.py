"""Proof submission workflow tying credentials, payment and the batcher."""
from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Protocol, Union

from .artifacts import load_artifacts
from .batcher import (
    BatcherSubmissionClient,
    ContractNonceCoordinator,
    NonceCoordinator,
    SubmissionClient,
)
from .config import Chain, SubmitSettings, load_settings, resolve_chain
from .credentials import load_signing_identity
from .exceptions import AlignedSubmitError, PaymentCancelled, PaymentError
from .logging_config import run_context
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
from .payment import PaymentAuthorizer
from .prompts import ConsolePromptProvider, PromptProvider
from .rpc_client import ChainRPCClient, connect_chain

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

RPCConnector = Callable[[str, int, float], Awaitable[ChainRPCClient]]


class PaymentPort(Protocol):
    async def pay(self, identity: SigningIdentity) -> PaymentReceipt: ...


AuthorizerFactory = Callable[..., PaymentPort]

_ORDER = list(WorkflowState)


@dataclass(frozen=True)
class SubmitProofRequest:
    keystore_path: PathLike
    proof_path: PathLike
    program_binary_path: PathLike
    public_input_path: Optional[PathLike]
    rpc_url: str
    chain_id: int
    max_fee: int
    proving_system: ProvingSystemId


class SubmissionWorkflow:
    """
    Runs one proof submission from keystore to explorer link.

    Steps run strictly in order and none is retried. Any error moves the run
    to ABORTED and comes back as a Failed or Cancelled outcome instead of an
    exception. Submission can only be reached after a confirmed payment.
    """

    def __init__(
        self,
        *,
        settings: SubmitSettings,
        prompts: PromptProvider,
        nonce_coordinator: NonceCoordinator,
        submission_client: SubmissionClient,
        rpc_connector: RPCConnector = connect_chain,
        authorizer_factory: AuthorizerFactory = PaymentAuthorizer,
    ) -> None:
        self._settings = settings
        self._prompts = prompts
        self._nonce_coordinator = nonce_coordinator
        self._submission_client = submission_client
        self._rpc_connector = rpc_connector
        self._authorizer_factory = authorizer_factory
        self._history: List[WorkflowState] = [WorkflowState.START]

    @property
    def state(self) -> WorkflowState:
        return self._history[-1]

    @property
    def history(self) -> List[WorkflowState]:
        return list(self._history)

    def _advance(self, state: WorkflowState) -> None:
        current = self.state
        if current == WorkflowState.ABORTED or _ORDER.index(state) != _ORDER.index(current) + 1:
            raise RuntimeError(f"Illegal workflow transition {current.value} -> {state.value}")
        self._history.append(state)
        logger.debug(f"Workflow state: {state.value}")

    def _abort(self) -> None:
        if self.state not in (WorkflowState.REPORTED, WorkflowState.ABORTED):
            self._history.append(WorkflowState.ABORTED)

    def explorer_url(self, inclusion: BatchInclusionData) -> str:
        return f"{self._settings.explorer_url}/batches/{inclusion.batch_merkle_root_hex}"

    async def run(self, request: SubmitProofRequest) -> SubmissionOutcome:
        with run_context():
            self._history = [WorkflowState.START]
            payment: Optional[PaymentReceipt] = None
            stage = Stage.CREDENTIALS

            try:
                async with AsyncExitStack() as stack:
                    chain = resolve_chain(request.chain_id)

                    identity = await asyncio.to_thread(
                        load_signing_identity,
                        request.keystore_path,
                        self._prompts,
                        chain.chain_id,
                    )
                    self._advance(WorkflowState.CREDENTIALS_LOADED)

                    stage = Stage.ARTIFACTS
                    artifacts = load_artifacts(
                        request.proof_path,
                        request.program_binary_path,
                        request.public_input_path,
                    )
                    self._advance(WorkflowState.ARTIFACTS_LOADED)

                    stage = Stage.CONNECTION
                    rpc = await self._rpc_connector(
                        request.rpc_url,
                        chain.chain_id,
                        self._settings.rpc_timeout_seconds,
                    )
                    stack.push_async_callback(rpc.close)
                    self._advance(WorkflowState.CONNECTED)

                    stage = Stage.PAYMENT
                    authorizer = self._authorizer_factory(
                        rpc=rpc,
                        prompts=self._prompts,
                        payment_contract_address=self._settings.payment_contract_address,
                        amount_wei=self._settings.payment_amount_wei,
                        receipt_timeout_seconds=self._settings.receipt_timeout_seconds,
                        poll_interval_seconds=self._settings.receipt_poll_interval_seconds,
                        gas_limit=self._settings.payment_gas_limit,
                    )
                    payment = await authorizer.pay(identity)
                    self._advance(WorkflowState.PAID)

                    verification_data = VerificationData.from_artifacts(
                        request.proving_system, artifacts, identity.address
                    )

                    stage = Stage.NONCE
                    nonce = await self._nonce_coordinator.get_next_nonce(
                        request.rpc_url,
                        identity.address,
                        self._settings.payment_contract_address,
                    )
                    self._advance(WorkflowState.NONCE_ACQUIRED)

                    stage = Stage.SUBMISSION
                    inclusion = await self._submit(
                        chain, verification_data, request.max_fee, identity, nonce, request.rpc_url
                    )
                    self._advance(WorkflowState.SUBMITTED)

            except PaymentCancelled as e:
                self._abort()
                logger.warning(f"{e.message}, nothing was paid or submitted")
                return Cancelled(reason=e.message)

            except AlignedSubmitError as e:
                self._abort()
                return self._failed(stage, e, payment)

            except Exception as e:
                # Errors outside the hierarchy still end the run as Failed
                self._abort()
                logger.exception(f"Unexpected error at {stage.value}")
                return self._failed(
                    stage,
                    AlignedSubmitError(f"{type(e).__name__}: {e}", error_code="UNEXPECTED_ERROR"),
                    payment,
                )

            url = self.explorer_url(inclusion)
            self._advance(WorkflowState.REPORTED)
            logger.info("Proof submitted to Aligned!")
            logger.info(url)
            return Success(
                explorer_url=url,
                batch_merkle_root=inclusion.batch_merkle_root_hex,
                payment=payment,
            )

    async def _submit(
        self,
        chain: Chain,
        verification_data: VerificationData,
        max_fee: int,
        identity: SigningIdentity,
        nonce: int,
        rpc_url: str,
    ) -> BatchInclusionData:
        logger.info("Submitting proof to Aligned for verification")
        return await self._submission_client.submit_and_wait_verification(
            self._settings.batcher_url,
            rpc_url,
            chain,
            verification_data,
            max_fee,
            identity,
            nonce,
            self._settings.payment_contract_address,
        )

    def _failed(
        self,
        stage: Stage,
        error: AlignedSubmitError,
        payment: Optional[PaymentReceipt],
    ) -> Failed:
        logger.error(f"Submission aborted at {stage.value}: {error.message}")
        if error.details:
            logger.debug(f"Failure details: {error.to_dict()}")

        payment_tx_hash = None
        if payment is not None:
            payment_tx_hash = payment.tx_hash
            logger.error(
                f"Payment {payment.tx_hash} was already confirmed; "
                f"{payment.amount_wei} wei spent without a verified submission"
            )
        elif isinstance(error, PaymentError) and error.tx_hash:
            payment_tx_hash = error.tx_hash
            logger.error(
                f"Payment transaction {error.tx_hash} was broadcast but not confirmed, "
                f"check its status before paying again"
            )

        return Failed(
            stage=stage,
            cause=error.message,
            payment=payment,
            payment_tx_hash=payment_tx_hash,
        )


def build_workflow(
    settings: Optional[SubmitSettings] = None,
    prompts: Optional[PromptProvider] = None,
) -> SubmissionWorkflow:
    """Wire the workflow to the live RPC node and batcher."""
    settings = settings or load_settings()
    return SubmissionWorkflow(
        settings=settings,
        prompts=prompts or ConsolePromptProvider(),
        nonce_coordinator=ContractNonceCoordinator(timeout_seconds=settings.rpc_timeout_seconds),
        submission_client=BatcherSubmissionClient(
            timeout_seconds=settings.submission_timeout_seconds
        ),
    )


async def submit_proof(
    keystore_path: PathLike,
    proof_path: PathLike,
    program_binary_path: PathLike,
    public_input_path: Optional[PathLike],
    rpc_url: str,
    chain_id: int,
    max_fee: int,
    proving_system: ProvingSystemId,
    *,
    settings: Optional[SubmitSettings] = None,
    prompts: Optional[PromptProvider] = None,
) -> SubmissionOutcome:
    """Submit a proof to Aligned, paying the batcher fee first."""
    workflow = build_workflow(settings=settings, prompts=prompts)
    return await workflow.run(SubmitProofRequest(
        keystore_path=keystore_path,
        proof_path=proof_path,
        program_binary_path=program_binary_path,
        public_input_path=public_input_path,
        rpc_url=rpc_url,
        chain_id=chain_id,
        max_fee=max_fee,
        proving_system=proving_system,
    ))
