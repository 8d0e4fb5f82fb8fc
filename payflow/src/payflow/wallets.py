"""
Node-custodied wallets and wallet-scoped RPC handles.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from payflow.constants import RPC_WALLET_ALREADY_LOADED
from payflow.errors import RPCError, WalletCreationError
from payflow.rpc import NodeClient


@dataclass(frozen=True)
class Address:
    """Address derived by the node from a wallet's keys."""

    address: str
    label: str
    wallet: str

    def __str__(self) -> str:
        return self.address


class WalletHandle:
    """RPC handle bound to one named wallet."""

    def __init__(self, name: str, rpc: NodeClient):
        self.name = name
        self.rpc = rpc

    def new_address(self, label: str = "") -> Address:
        """Fresh, never-used address for this wallet, tagged with `label`."""
        address = self.rpc.get_new_address(label)
        logger.debug(f"New address for {self.name} ({label!r}): {address}")
        return Address(address=address, label=label, wallet=self.name)

    def balance(self) -> int:
        """Spendable balance in satoshis."""
        return self.rpc.get_balance()

    def __repr__(self) -> str:
        return f"WalletHandle({self.name!r})"


class WalletManager:
    """
    Makes sure named wallets exist on the node.

    ensure() is idempotent: a loaded wallet is reused, a wallet present on disk
    is loaded, and only a wallet unknown to the node is created.
    """

    def __init__(self, client: NodeClient):
        self.client = client

    def ensure(self, name: str) -> WalletHandle:
        try:
            loaded = self.client.list_wallets()
            if name in loaded:
                logger.info(f"Wallet already loaded: {name}")
            elif name in self.client.list_wallet_dir():
                logger.info(f"Loading wallet: {name}")
                self.client.load_wallet(name)
            else:
                logger.info(f"Creating wallet: {name}")
                self.client.create_wallet(name)
        except RPCError as e:
            # Another actor loaded it between our listing and our request
            if e.code == RPC_WALLET_ALREADY_LOADED:
                logger.debug(f"Wallet {name} was loaded concurrently")
            else:
                raise WalletCreationError(
                    f"Node refused to create or load wallet '{name}'", cause=e
                ) from e

        return WalletHandle(name, self.client.wallet(name))
