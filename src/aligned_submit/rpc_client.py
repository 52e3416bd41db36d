"""
JSON-RPC client for the chain node.

Features:
- Async httpx transport, closed on context exit
- Chain ID validation on connect
- Uniform ChainConnectionError for transport / malformed responses
- Receipt polling with a bounded wait
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from .exceptions import ChainConnectionError, RPCError

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY_FEE_WEI = 1_500_000_000  # 1.5 gwei


class ChainRPCClient:
    """JSON-RPC client for blockchain interaction."""

    def __init__(
        self,
        rpc_url: str,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._rpc_url = rpc_url
        self._timeout = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None
        self._request_id = 0

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def __aenter__(self) -> "ChainRPCClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=10.0),
                transport=self._transport,
            )
        return self._http_client

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Make a JSON-RPC call.

        Raises:
            RPCError: If the node returns an error object
            ChainConnectionError: If the node is unreachable or the response
                is not valid JSON-RPC
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        client = self._get_client()
        try:
            response = await client.post(
                self._rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            raise ChainConnectionError(
                f"RPC call {method} failed: {e}", rpc_url=self._rpc_url
            ) from e
        except ValueError as e:
            raise ChainConnectionError(
                f"RPC call {method} returned a malformed response", rpc_url=self._rpc_url
            ) from e

        if not isinstance(result, dict):
            raise ChainConnectionError(
                f"RPC call {method} returned a malformed response", rpc_url=self._rpc_url
            )

        if result.get("error") is not None:
            error = result["error"]
            if isinstance(error, dict):
                raise RPCError(
                    message=error.get("message", str(error)),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise RPCError(message=str(error))

        if "result" not in result:
            raise ChainConnectionError(
                f"RPC call {method} returned no result", rpc_url=self._rpc_url
            )

        logger.debug(f"RPC call {method} succeeded")
        return result["result"]

    async def _call_int(self, method: str, params: Optional[List[Any]] = None) -> int:
        result = await self.call(method, params)
        try:
            return int(result, 16)
        except (TypeError, ValueError) as e:
            raise ChainConnectionError(
                f"RPC call {method} returned a non-quantity: {result!r}",
                rpc_url=self._rpc_url,
            ) from e

    async def get_chain_id(self) -> int:
        return await self._call_int("eth_chainId")

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        """Get transaction count (nonce) for address."""
        return await self._call_int("eth_getTransactionCount", [address, block])

    async def get_gas_price(self) -> int:
        """Get current gas price in wei."""
        return await self._call_int("eth_gasPrice")

    async def get_max_priority_fee(self) -> int:
        """Get max priority fee for EIP-1559."""
        try:
            return await self._call_int("eth_maxPriorityFeePerGas")
        except RPCError:
            # Fallback for nodes that don't support this
            return DEFAULT_PRIORITY_FEE_WEI

    async def get_base_fee(self) -> Optional[int]:
        """Get current base fee from latest block, None before London."""
        block = await self.call("eth_getBlockByNumber", ["latest", False])
        if block and block.get("baseFeePerGas"):
            return int(block["baseFeePerGas"], 16)
        return None

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return await self._call_int("eth_estimateGas", [tx])

    async def eth_call(self, tx: Dict[str, Any], block: str = "latest") -> str:
        return await self.call("eth_call", [tx, block])

    async def send_raw_transaction(self, signed_tx: bytes) -> str:
        """Broadcast signed transaction, returning its hash."""
        return await self.call("eth_sendRawTransaction", ["0x" + signed_tx.hex()])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def wait_for_receipt(
        self,
        tx_hash: str,
        timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 2.0,
    ) -> Optional[Dict[str, Any]]:
        """Poll for a receipt. Returns None if none shows up in time."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds

        while True:
            receipt = await self.get_transaction_receipt(tx_hash)
            if receipt:
                return receipt

            if loop.time() >= deadline:
                logger.warning(f"No receipt for {tx_hash} after {timeout_seconds}s")
                return None

            logger.debug(f"Waiting for receipt of {tx_hash}")
            await asyncio.sleep(poll_interval_seconds)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


async def connect_chain(
    rpc_url: str,
    expected_chain_id: int,
    timeout_seconds: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ChainRPCClient:
    """
    Connect to a node and check it serves the chain we sign for.

    Raises:
        ChainConnectionError: On a bad URL, unreachable node, or chain id
            mismatch
    """
    try:
        url = httpx.URL(rpc_url)
    except httpx.InvalidURL as e:
        raise ChainConnectionError(f"Invalid RPC URL: {rpc_url}", rpc_url=rpc_url) from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ChainConnectionError(f"Invalid RPC URL: {rpc_url}", rpc_url=rpc_url)

    client = ChainRPCClient(rpc_url, timeout_seconds=timeout_seconds, transport=transport)
    try:
        chain_id = await client.get_chain_id()
    except ChainConnectionError:
        await client.close()
        raise

    if chain_id != expected_chain_id:
        await client.close()
        raise ChainConnectionError(
            f"Chain ID mismatch: node serves {chain_id}, signer is bound to {expected_chain_id}",
            rpc_url=rpc_url,
            details={"expected": expected_chain_id, "received": chain_id},
        )

    logger.info(f"Connected to {rpc_url} (chain {chain_id})")
    return client
