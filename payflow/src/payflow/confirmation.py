"""
Mempool observation and single-block confirmation.
"""

from __future__ import annotations

from loguru import logger

from payflow.errors import RPCError
from payflow.models import BlockRef, MempoolEntry
from payflow.rpc import NodeClient
from payflow.wallets import Address, WalletHandle


class ConfirmationTracker:
    def __init__(self, client: NodeClient):
        self.client = client

    def await_mempool(self, txid: str) -> MempoolEntry | None:
        """
        Look up `txid` in the node's mempool.

        Returns None when the transaction is not there. That is not an error: it
        may already be mined by another actor, or relay may be lagging.
        """
        if txid not in self.client.get_raw_mempool():
            logger.warning(f"Transaction {txid} not found in mempool")
            return None

        try:
            entry = self.client.get_mempool_entry(txid)
        except RPCError as e:
            # Mined between the two calls
            logger.warning(f"Transaction {txid} left the mempool before inspection: {e}")
            return None

        logger.info(
            f"Transaction in mempool: vsize={entry.vsize} fee={entry.fee} sats "
            f"ancestors={entry.ancestor_count}"
        )
        return entry

    def confirm(self, wallet: WalletHandle, mining_address: Address | str, txid: str) -> BlockRef:
        """
        Mine exactly one block to `mining_address`.

        Inclusion of `txid` is expected but not checked here; the audit stage
        fails if the transaction is still unconfirmed.
        """
        block_hashes = wallet.rpc.generate_to_address(1, str(mining_address))
        block = BlockRef(hash=block_hashes[0])
        logger.info(f"Mined block {block.hash} to confirm {txid}")
        return block
