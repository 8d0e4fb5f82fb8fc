"""
End-to-end payment pipeline.

connect -> wallets -> maturation -> payment -> mempool -> confirmation -> audit

Each stage consumes only the previous stage's output. The first failure aborts
the run; the error carries the name of the stage that raised it.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from loguru import logger

from payflow.auditor import TransactionAuditor
from payflow.config import Settings
from payflow.confirmation import ConfirmationTracker
from payflow.errors import NodeConnectionError, PayflowError, RPCError
from payflow.maturation import CoinbaseMaturationEngine, MaturationResult
from payflow.models import AuditRecord, BlockRef, MempoolEntry
from payflow.payment import PaymentIssuer
from payflow.rpc import NodeClient
from payflow.wallets import WalletManager


@dataclass
class PipelineResult:
    record: AuditRecord
    start_height: int
    maturation: MaturationResult
    mempool_entry: MempoolEntry | None
    confirming_block: BlockRef


@contextmanager
def stage(name: str) -> Iterator[None]:
    """Tag errors escaping the block with the stage name."""
    logger.debug(f"Stage {name} started")
    try:
        yield
    except PayflowError as e:
        if e.stage is None:
            e.stage = name
        raise
    except RPCError as e:
        raise PayflowError(f"Node error during {name}", cause=e, stage=name) from e
    logger.debug(f"Stage {name} finished")


def run_pipeline(settings: Settings, client: NodeClient) -> PipelineResult:
    with stage("connect"):
        try:
            chain_info = client.get_blockchain_info()
        except RPCError as e:
            # e.g. node still warming up (-28)
            raise NodeConnectionError(f"Node at {settings.rpc_url} is not ready", cause=e) from e
        start_height = chain_info["blocks"]
        logger.info(
            f"Connected to {settings.rpc_url}: chain={chain_info.get('chain')} "
            f"blocks={start_height}"
        )

    with stage("wallets"):
        manager = WalletManager(client)
        miner = manager.ensure(settings.miner_wallet)
        trader = manager.ensure(settings.trader_wallet)
        logger.info(f"Wallets {miner.name} and {trader.name} are ready")

    with stage("maturation"):
        reward_address = miner.new_address(settings.mining_label)
        maturation = CoinbaseMaturationEngine().mature(
            miner, reward_address, settings.max_maturation_attempts
        )

    with stage("payment"):
        payee_address = trader.new_address(settings.receive_label)
        txid = PaymentIssuer().pay(
            miner, payee_address, settings.payment_amount, settings.payment_memo
        )

    tracker = ConfirmationTracker(client)
    with stage("mempool"):
        mempool_entry = tracker.await_mempool(txid)

    with stage("confirmation"):
        block = tracker.confirm(miner, reward_address, txid)

    with stage("audit"):
        record = TransactionAuditor(client, payee_address).audit(txid)

    return PipelineResult(
        record=record,
        start_height=start_height,
        maturation=maturation,
        mempool_entry=mempool_entry,
        confirming_block=block,
    )
