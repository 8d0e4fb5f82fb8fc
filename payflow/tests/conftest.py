"""
Pytest configuration and fixtures for payflow tests.

FakeRegtestNode answers the Bitcoin Core JSON-RPC calls the pipeline makes,
served to a real NodeClient through httpx.MockTransport. It models coinbase
maturity, a flat fee per payment and a change output back to the sender.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Generator
from decimal import Decimal
from typing import Any
from urllib.parse import unquote

import httpx
import pytest

from payflow.config import Settings
from payflow.rpc import NodeClient

COINBASE_REWARD = 50 * 100_000_000
DEFAULT_FEE = 1_410  # sats
MATURITY_DEPTH = 101


class FakeRPCError(Exception):
    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _btc(sats: int) -> float:
    return sats / 100_000_000


def _sha(*parts: object) -> str:
    return hashlib.sha256("|".join(str(p) for p in parts).encode()).hexdigest()


class FakeRegtestNode:
    def __init__(self, fee: int = DEFAULT_FEE, change_index: int = 1):
        self.fee = fee
        self.change_index = change_index
        self.wallets_on_disk: set[str] = set()
        self.loaded: list[str] = []
        self.addresses: dict[str, dict[str, Any]] = {}
        self.blocks: list[dict[str, Any]] = [{"hash": _sha("genesis"), "height": 0}]
        self.txs: dict[str, dict[str, Any]] = {}
        self.mempool: list[str] = []
        # (txid, vout) -> {"wallet", "value", "height", "coinbase"}
        self.utxos: dict[tuple[str, int], dict[str, Any]] = {}
        self.calls: list[tuple[str | None, str, list]] = []
        self.errors: dict[str, tuple[int, str]] = {}
        self._counter = 0

    @property
    def height(self) -> int:
        return self.blocks[-1]["height"]

    def fail(self, method: str, code: int, message: str) -> None:
        """Make every later call to `method` return an RPC error."""
        self.errors[method] = (code, message)

    def call_count(self, method: str) -> int:
        return sum(1 for _, m, _ in self.calls if m == method)

    def handle(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        path = request.url.path
        wallet = unquote(path.split("/wallet/", 1)[1]) if "/wallet/" in path else None
        method, params = payload["method"], payload.get("params", [])
        self.calls.append((wallet, method, params))

        try:
            if method in self.errors:
                raise FakeRPCError(*self.errors[method])
            result = getattr(self, f"rpc_{method}")(wallet, *params)
        except FakeRPCError as e:
            body = {"result": None, "error": {"code": e.code, "message": e.message}}
            return httpx.Response(500, json={**body, "id": payload["id"]})

        return httpx.Response(200, json={"result": result, "error": None, "id": payload["id"]})

    def _require_wallet(self, wallet: str | None) -> str:
        if wallet is None or wallet not in self.loaded:
            raise FakeRPCError(-18, "Requested wallet does not exist or is not loaded")
        return wallet

    def _new_address(self, wallet: str, label: str) -> str:
        self._counter += 1
        program = _sha("address", wallet, self._counter)[:40]
        address = f"bcrt1q{program[:32]}"
        self.addresses[address] = {
            "wallet": wallet,
            "label": label,
            "script": f"0014{program}",
        }
        return address

    def _script_json(self, address: str) -> dict[str, Any]:
        script = self.addresses[address]["script"]
        return {
            "asm": f"0 {script[4:]}",
            "hex": script,
            "address": address,
            "type": "witness_v0_keyhash",
        }

    def _spendable(self, wallet: str) -> list[tuple[tuple[str, int], dict[str, Any]]]:
        spendable = []
        for outpoint, utxo in self.utxos.items():
            if utxo["wallet"] != wallet:
                continue
            if utxo["coinbase"] and self.height - utxo["height"] + 1 < MATURITY_DEPTH:
                continue
            spendable.append((outpoint, utxo))
        return spendable

    def rpc_getblockchaininfo(self, wallet: str | None) -> dict[str, Any]:
        return {"chain": "regtest", "blocks": self.height, "bestblockhash": self.blocks[-1]["hash"]}

    def rpc_getblockcount(self, wallet: str | None) -> int:
        return self.height

    def rpc_listwallets(self, wallet: str | None) -> list[str]:
        return list(self.loaded)

    def rpc_listwalletdir(self, wallet: str | None) -> dict[str, Any]:
        return {"wallets": [{"name": name} for name in sorted(self.wallets_on_disk)]}

    def rpc_createwallet(self, wallet: str | None, name: str, *args: Any) -> dict[str, Any]:
        if name in self.wallets_on_disk:
            raise FakeRPCError(-4, "Wallet file verification failed. Database already exists.")
        self.wallets_on_disk.add(name)
        self.loaded.append(name)
        return {"name": name}

    def rpc_loadwallet(self, wallet: str | None, name: str) -> dict[str, Any]:
        if name in self.loaded:
            raise FakeRPCError(-35, f"Wallet \"{name}\" is already loaded.")
        if name not in self.wallets_on_disk:
            raise FakeRPCError(-18, f"Wallet file not found: {name}")
        self.loaded.append(name)
        return {"name": name}

    def rpc_getnewaddress(self, wallet: str | None, label: str = "") -> str:
        return self._new_address(self._require_wallet(wallet), label)

    def rpc_validateaddress(self, wallet: str | None, address: str) -> dict[str, Any]:
        if address not in self.addresses:
            return {"isvalid": False}
        return {
            "isvalid": True,
            "address": address,
            "scriptPubKey": self.addresses[address]["script"],
        }

    def rpc_generatetoaddress(self, wallet: str | None, count: int, address: str) -> list[str]:
        if address not in self.addresses:
            raise FakeRPCError(-5, "Invalid address")
        hashes = []
        for _ in range(count):
            height = self.height + 1
            included = list(self.mempool)
            self.mempool.clear()
            fees = sum(self.txs[txid]["fee"] for txid in included)

            coinbase_txid = _sha("coinbase", height)
            block_hash = _sha("block", height)
            self.txs[coinbase_txid] = {
                "vin": [{"coinbase": f"{height:04x}"}],
                "vout": [(address, COINBASE_REWARD + fees)],
                "fee": 0,
                "blockhash": block_hash,
            }
            self.utxos[(coinbase_txid, 0)] = {
                "wallet": self.addresses[address]["wallet"],
                "value": COINBASE_REWARD + fees,
                "height": height,
                "coinbase": True,
            }
            for txid in included:
                self.txs[txid]["blockhash"] = block_hash
                for utxo in self.utxos.values():
                    if utxo.get("txid") == txid:
                        utxo["height"] = height

            self.blocks.append({"hash": block_hash, "height": height})
            hashes.append(block_hash)
        return hashes

    def rpc_getbalance(self, wallet: str | None, *args: Any) -> float:
        wallet = self._require_wallet(wallet)
        return _btc(sum(utxo["value"] for _, utxo in self._spendable(wallet)))

    def rpc_sendtoaddress(
        self, wallet: str | None, address: str, amount: str, comment: str = ""
    ) -> str:
        wallet = self._require_wallet(wallet)
        if address not in self.addresses:
            raise FakeRPCError(-5, "Invalid address")
        value = int(Decimal(str(amount)) * 100_000_000)
        if value <= 0:
            raise FakeRPCError(-3, "Invalid amount for send")

        selected: list[tuple[str, int]] = []
        total = 0
        for outpoint, utxo in self._spendable(wallet):
            if total >= value + self.fee:
                break
            selected.append(outpoint)
            total += utxo["value"]
        if total < value + self.fee:
            raise FakeRPCError(-6, "Insufficient funds")

        change_address = self._new_address(wallet, "")
        outputs = [(address, value)]
        outputs.insert(self.change_index, (change_address, total - value - self.fee))

        txid = _sha("tx", *selected, address, value)
        self.txs[txid] = {
            "vin": [{"txid": prev_txid, "vout": n} for prev_txid, n in selected],
            "vout": outputs,
            "fee": self.fee,
            "blockhash": None,
            "comment": comment,
        }
        for outpoint in selected:
            del self.utxos[outpoint]
        for n, (out_address, out_value) in enumerate(outputs):
            self.utxos[(txid, n)] = {
                "wallet": self.addresses[out_address]["wallet"],
                "value": out_value,
                "height": None,
                "coinbase": False,
                "txid": txid,
            }
        self.mempool.append(txid)
        return txid

    def rpc_getrawmempool(self, wallet: str | None) -> list[str]:
        return list(self.mempool)

    def rpc_getmempoolentry(self, wallet: str | None, txid: str) -> dict[str, Any]:
        if txid not in self.mempool:
            raise FakeRPCError(-5, "Transaction not in mempool")
        return {
            "vsize": 141,
            "weight": 561,
            "fees": {"base": _btc(self.txs[txid]["fee"])},
            "ancestorcount": 1,
        }

    def rpc_getrawtransaction(self, wallet: str | None, txid: str, verbose: Any = False) -> Any:
        if txid not in self.txs:
            raise FakeRPCError(-5, "No such mempool or blockchain transaction")
        tx = self.txs[txid]
        result: dict[str, Any] = {
            "txid": txid,
            "hash": txid,
            "vin": tx["vin"],
            "vout": [
                {"value": _btc(value), "n": n, "scriptPubKey": self._script_json(address)}
                for n, (address, value) in enumerate(tx["vout"])
            ],
        }
        if tx["blockhash"]:
            block = next(b for b in self.blocks if b["hash"] == tx["blockhash"])
            result["blockhash"] = tx["blockhash"]
            result["confirmations"] = self.height - block["height"] + 1
        return result

    def rpc_getblockheader(self, wallet: str | None, block_hash: str) -> dict[str, Any]:
        for block in self.blocks:
            if block["hash"] == block_hash:
                return {
                    "hash": block_hash,
                    "height": block["height"],
                    "confirmations": self.height - block["height"] + 1,
                }
        raise FakeRPCError(-5, "Block not found")


@pytest.fixture
def node() -> FakeRegtestNode:
    return FakeRegtestNode()


@pytest.fixture
def client(node: FakeRegtestNode) -> Generator[NodeClient]:
    client = NodeClient(
        rpc_url="http://fake-node:18443",
        rpc_user="alice",
        rpc_password="password",
        transport=httpx.MockTransport(node.handle),
    )
    yield client
    client.close()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        rpc_url="http://fake-node:18443",
        output_path=tmp_path / "out.txt",
    )


@pytest.fixture
def payment(client: NodeClient) -> dict[str, Any]:
    """Matured Miner wallet that has just broadcast 20 BTC to Trader."""
    from payflow.maturation import CoinbaseMaturationEngine
    from payflow.payment import PaymentIssuer
    from payflow.wallets import WalletManager

    manager = WalletManager(client)
    miner = manager.ensure("Miner")
    trader = manager.ensure("Trader")
    reward_address = miner.new_address("Mining Reward")
    CoinbaseMaturationEngine().mature(miner, reward_address, 150)
    payee_address = trader.new_address("Received")
    txid = PaymentIssuer().pay(miner, payee_address, Decimal("20"), "Payment to Trader")
    return {
        "miner": miner,
        "trader": trader,
        "reward_address": reward_address,
        "payee_address": payee_address,
        "txid": txid,
    }
