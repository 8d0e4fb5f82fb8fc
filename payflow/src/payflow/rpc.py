"""
Bitcoin Core JSON-RPC client.

A thin blocking client over httpx. Node-level calls go to the base URL and
wallet calls go to <rpc_url>/wallet/<name>; both share one HTTP connection pool.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from payflow.errors import NodeConnectionError, RPCError
from payflow.models import BlockRef, MempoolEntry, TransactionDetails, btc_to_sats


class NodeClient:
    """
    Typed access to the subset of Bitcoin Core RPC used by the payment pipeline.

    The client never retries. Calls block until the node answers; pass a timeout
    to bound them.
    """

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:18443",
        rpc_user: str = "alice",
        rpc_password: str = "password",
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
        *,
        client: httpx.Client | None = None,
        wallet_name: str | None = None,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        self.rpc_user = rpc_user
        self.rpc_password = rpc_password
        self.timeout = timeout
        self.wallet_name = wallet_name
        self.client = client or httpx.Client(
            timeout=timeout, auth=(rpc_user, rpc_password), transport=transport
        )
        self._owns_client = client is None
        self._request_id = 0

    @property
    def endpoint(self) -> str:
        if self.wallet_name is None:
            return self.rpc_url
        return f"{self.rpc_url}/wallet/{quote(self.wallet_name)}"

    def wallet(self, name: str) -> NodeClient:
        """Client view bound to one wallet's RPC endpoint."""
        return NodeClient(
            self.rpc_url,
            self.rpc_user,
            self.rpc_password,
            self.timeout,
            client=self.client,
            wallet_name=name,
        )

    def _rpc_call(self, method: str, params: list | None = None) -> Any:
        """
        Make an RPC call to Bitcoin Core.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            RPC result, with JSON numbers decoded as Decimal

        Raises:
            RPCError: On RPC errors reported by the node
            NodeConnectionError: On transport or authentication failures
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        url = self.endpoint
        logger.debug(f"RPC {method} {payload['params']} -> {url}")

        try:
            response = self.client.post(url, json=payload)
        except httpx.TransportError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise NodeConnectionError(f"Cannot reach node at {self.rpc_url}", cause=e) from e

        if response.status_code in (401, 403):
            raise NodeConnectionError(
                f"Node at {self.rpc_url} rejected credentials for user '{self.rpc_user}'"
            )

        try:
            data = response.json(parse_float=Decimal)
        except ValueError:
            # Bitcoin Core answers some failures (unknown path, work queue full) with plain text
            raise RPCError(response.status_code, response.text.strip() or "empty reply", method)

        if data.get("error"):
            error_info = data["error"]
            error_code = error_info.get("code", "unknown")
            error_msg = error_info.get("message", str(error_info))
            raise RPCError(error_code, error_msg, method)

        return data.get("result")

    def get_blockchain_info(self) -> dict[str, Any]:
        return self._rpc_call("getblockchaininfo")

    def get_block_count(self) -> int:
        return self._rpc_call("getblockcount")

    def list_wallets(self) -> list[str]:
        """Names of wallets currently loaded by the node."""
        return self._rpc_call("listwallets")

    def list_wallet_dir(self) -> list[str]:
        """Names of wallets present in the node's wallet directory."""
        result = self._rpc_call("listwalletdir")
        return [entry["name"] for entry in result.get("wallets", [])]

    def create_wallet(self, name: str) -> dict[str, Any]:
        return self._rpc_call("createwallet", [name])

    def load_wallet(self, name: str) -> dict[str, Any]:
        return self._rpc_call("loadwallet", [name])

    def get_new_address(self, label: str = "") -> str:
        return self._rpc_call("getnewaddress", [label])

    def generate_to_address(self, count: int, address: str) -> list[str]:
        """Mine `count` blocks paying the coinbase to `address`. Returns block hashes."""
        return self._rpc_call("generatetoaddress", [count, address])

    def get_balance(self) -> int:
        """Trusted spendable wallet balance in satoshis."""
        return btc_to_sats(self._rpc_call("getbalance"))

    def send_to_address(self, address: str, amount: Decimal, comment: str = "") -> str:
        # Amounts go over the wire as strings to keep all 8 decimals exact
        return self._rpc_call("sendtoaddress", [address, f"{amount:.8f}", comment])

    def get_raw_mempool(self) -> list[str]:
        return self._rpc_call("getrawmempool")

    def get_mempool_entry(self, txid: str) -> MempoolEntry:
        return MempoolEntry.from_rpc(txid, self._rpc_call("getmempoolentry", [txid]))

    def get_raw_transaction(self, txid: str) -> TransactionDetails:
        return TransactionDetails.from_rpc(self._rpc_call("getrawtransaction", [txid, True]))

    def get_block_header(self, block_hash: str) -> BlockRef:
        header = self._rpc_call("getblockheader", [block_hash])
        return BlockRef(hash=header["hash"], height=header["height"])

    def get_address_script(self, address: str) -> str:
        """scriptPubKey hex the node derives for `address`."""
        info = self._rpc_call("validateaddress", [address])
        if not info.get("isvalid"):
            raise RPCError("invalid", f"Invalid address: {address}", "validateaddress")
        return info["scriptPubKey"].lower()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> NodeClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
