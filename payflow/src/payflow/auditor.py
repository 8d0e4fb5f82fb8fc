"""
Reconstruction of a confirmed payment's money flow.

Given a txid, the auditor resolves where the spent funds came from, splits the
outputs into the payee output and change, derives the fee and identifies the
confirming block. Outputs are matched on exact scriptPubKey bytes, never on
address strings, so encoding differences cannot cause false matches.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from payflow.errors import (
    BlockLookupError,
    InvalidReferenceError,
    MalformedTransactionError,
    RPCError,
    UnconfirmedTransactionError,
)
from payflow.models import AuditRecord, TransactionDetails, TxOutput, format_btc
from payflow.rpc import NodeClient
from payflow.wallets import Address


@dataclass
class OutputClassification:
    """Every output lands in exactly one of payee or change."""

    payee: TxOutput | None
    change: TxOutput | None
    change_count: int = 0


def classify_outputs(outputs: list[TxOutput], payee_script: str) -> OutputClassification:
    """
    Split outputs by comparing each scriptPubKey with the payee's.

    If more than one output is not the payee's, the last one is reported as
    change. The count is returned so callers can flag that case.
    """
    payee_script = payee_script.lower()
    payee: TxOutput | None = None
    change: TxOutput | None = None
    change_count = 0

    for output in outputs:
        if output.script_pubkey.script_hex == payee_script:
            payee = output
        else:
            change = output
            change_count += 1

    return OutputClassification(payee=payee, change=change, change_count=change_count)


def compute_fee(input_amount: int, outputs: list[TxOutput]) -> int:
    """
    Fee in satoshis, assuming `input_amount` is everything the transaction spent.

    Floored at zero so a transaction with inputs we did not account for can
    never report a negative fee.
    """
    return max(0, input_amount - sum(output.value for output in outputs))


class TransactionAuditor:
    """Builds the AuditRecord for a payment to a known address."""

    def __init__(self, client: NodeClient, payee_address: Address | str):
        self.client = client
        self.payee_address = str(payee_address)

    def _fetch_confirmed(self, txid: str) -> TransactionDetails:
        tx = self.client.get_raw_transaction(txid)
        if not tx.blockhash:
            raise UnconfirmedTransactionError(f"Transaction {txid} is not in a block")
        return tx

    def _resolve_funding_output(self, tx: TransactionDetails) -> TxOutput:
        if not tx.inputs:
            raise MalformedTransactionError(f"Transaction {tx.txid} has no inputs")

        first = tx.inputs[0]
        if first.is_coinbase or first.txid is None or first.vout is None:
            raise MalformedTransactionError(
                f"Transaction {tx.txid} is a coinbase and spends no prior output"
            )
        if len(tx.inputs) > 1:
            logger.warning(
                f"Transaction {tx.txid} has {len(tx.inputs)} inputs; input and fee "
                "figures only account for the first one"
            )

        prev = self.client.get_raw_transaction(first.txid)
        if not 0 <= first.vout < len(prev.outputs):
            raise InvalidReferenceError(
                f"Input references {first.txid}:{first.vout} but that transaction "
                f"has {len(prev.outputs)} outputs"
            )
        return prev.outputs[first.vout]

    def audit(self, txid: str) -> AuditRecord:
        """
        Reconstruct the money flow of confirmed transaction `txid`.

        Raises:
            UnconfirmedTransactionError: no confirming block yet
            MalformedTransactionError: transaction spends nothing
            InvalidReferenceError: input points past the referenced outputs
            BlockLookupError: confirming block unknown to the node
        """
        tx = self._fetch_confirmed(txid)
        funding = self._resolve_funding_output(tx)

        payee_script = self.client.get_address_script(self.payee_address)
        outputs = classify_outputs(tx.outputs, payee_script)
        if outputs.payee is None:
            logger.warning(f"No output of {txid} pays {self.payee_address}")
        if outputs.change_count > 1:
            logger.warning(
                f"Transaction {txid} has {outputs.change_count} non-payee outputs; "
                f"reporting output {outputs.change.n} as change"
            )

        fee = compute_fee(funding.value, tx.outputs)

        try:
            block = self.client.get_block_header(tx.blockhash)
        except RPCError as e:
            raise BlockLookupError(f"Block {tx.blockhash} unknown to node", cause=e) from e

        record = AuditRecord(
            txid=tx.txid,
            input_address=funding.script_pubkey.render(),
            input_amount=funding.value,
            payee_address=outputs.payee.script_pubkey.render() if outputs.payee else "",
            payee_amount=outputs.payee.value if outputs.payee else 0,
            change_address=outputs.change.script_pubkey.render() if outputs.change else "",
            change_amount=outputs.change.value if outputs.change else 0,
            fee=fee,
            block_height=block.height,
            block_hash=block.hash,
        )
        logger.info(
            f"Audited {txid}: fee {format_btc(fee)} BTC, block {block.height} ({block.hash})"
        )
        return record
