"""Flat fee payment to the batcher payment contract."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from web3 import Web3

from .exceptions import ChainConnectionError, PaymentCancelled, PaymentError
from .models import PaymentReceipt, SigningIdentity
from .prompts import PromptProvider
from .rpc_client import ChainRPCClient

logger = logging.getLogger(__name__)


class PaymentAuthorizer:
    """
    Confirms, signs and broadcasts the batcher payment.

    The transfer moves funds irreversibly, so one authorizer pays at most
    once. Nothing touches the chain until the user has confirmed.
    """

    def __init__(
        self,
        rpc: ChainRPCClient,
        prompts: PromptProvider,
        payment_contract_address: str,
        amount_wei: int,
        receipt_timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 2.0,
        gas_limit: int = 21_000,
    ):
        self._rpc = rpc
        self._prompts = prompts
        self._to = Web3.to_checksum_address(payment_contract_address)
        self._amount_wei = amount_wei
        self._receipt_timeout = receipt_timeout_seconds
        self._poll_interval = poll_interval_seconds
        self._gas_limit = gas_limit
        self._executed = False

    @property
    def amount_eth(self) -> str:
        return f"{Web3.from_wei(self._amount_wei, 'ether').normalize():f}"

    def confirmation_message(self) -> str:
        return (
            f"We are going to pay {self.amount_eth}eth for the proof submission "
            f"to aligned ({self._to}). Do you want to continue?"
        )

    async def confirm(self) -> bool:
        return await asyncio.to_thread(self._prompts.confirm, self.confirmation_message())

    async def pay(self, identity: SigningIdentity) -> PaymentReceipt:
        """
        Ask for confirmation, then pay and wait for the receipt.

        Raises:
            PaymentCancelled: If the user declines
            PaymentError: If signing, broadcast or confirmation fails
        """
        if self._executed:
            raise PaymentError("payment already executed")

        if not await self.confirm():
            raise PaymentCancelled()

        self._executed = True

        try:
            tx = await self._build_transaction(identity)
        except ChainConnectionError as e:
            raise PaymentError(f"Failed to prepare payment: {e}") from e

        try:
            signed_tx = identity.sign_transaction(tx)
        except (TypeError, ValueError) as e:
            raise PaymentError(f"Failed to sign payment: {e}") from e

        logger.info("Submitting payment to batcher")
        try:
            tx_hash = await self._rpc.send_raw_transaction(signed_tx)
        except ChainConnectionError as e:
            raise PaymentError(f"Failed to send tx {e}") from e

        try:
            receipt = await self._rpc.wait_for_receipt(
                tx_hash,
                timeout_seconds=self._receipt_timeout,
                poll_interval_seconds=self._poll_interval,
            )
        except ChainConnectionError as e:
            raise PaymentError(f"Failed to submit tx {e}", tx_hash=tx_hash) from e

        if not receipt:
            raise PaymentError("Payment failed: no receipt", tx_hash=tx_hash)

        if int(receipt.get("status") or "0x1", 16) == 0:
            raise PaymentError("Payment failed: transaction reverted", tx_hash=tx_hash)

        logger.info(f"Payment sent. Transaction hash: {tx_hash}")

        gas_used = receipt.get("gasUsed")
        return PaymentReceipt(
            tx_hash=tx_hash,
            block_number=int(receipt.get("blockNumber", "0x0"), 16),
            amount_wei=self._amount_wei,
            from_address=identity.address,
            to_address=self._to,
            gas_used=int(gas_used, 16) if gas_used else None,
        )

    async def _build_transaction(self, identity: SigningIdentity) -> Dict[str, Any]:
        nonce = await self._rpc.get_transaction_count(identity.address, "pending")
        gas_limit = await self._estimate_gas(identity.address)

        tx: Dict[str, Any] = {
            "from": identity.address,
            "to": self._to,
            "value": self._amount_wei,
            "nonce": nonce,
            "gas": gas_limit,
            "chainId": identity.chain_id,
        }

        base_fee = await self._rpc.get_base_fee()
        if base_fee is None:
            tx["gasPrice"] = await self._rpc.get_gas_price()
        else:
            priority_fee = await self._rpc.get_max_priority_fee()
            tx["type"] = 2
            tx["maxPriorityFeePerGas"] = priority_fee
            tx["maxFeePerGas"] = 2 * base_fee + priority_fee

        logger.debug(f"Payment transaction: {tx}")
        return tx

    async def _estimate_gas(self, from_address: str) -> int:
        try:
            return await self._rpc.estimate_gas({
                "from": from_address,
                "to": self._to,
                "value": hex(self._amount_wei),
            })
        except ChainConnectionError as e:
            logger.warning(f"Gas estimation failed: {e}, using default")
            return self._gas_limit

    @property
    def executed(self) -> bool:
        return self._executed
