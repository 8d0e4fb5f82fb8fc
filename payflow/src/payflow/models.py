"""
Transaction, block and audit data models.

Amounts are held as integer satoshis. The node reports BTC decimals, which are
converted exactly with btc_to_sats().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from payflow.constants import BTC_QUANTUM, SATS_PER_BTC


def btc_to_sats(value: Decimal | int | str | float) -> int:
    """Convert a BTC amount to satoshis without float rounding."""
    sats = Decimal(str(value)) * SATS_PER_BTC
    return int(sats.to_integral_value())


def sats_to_btc(sats: int) -> Decimal:
    return (Decimal(sats) / SATS_PER_BTC).quantize(BTC_QUANTUM)


def format_btc(sats: int) -> str:
    """Render satoshis as BTC with exactly 8 fractional digits."""
    return f"{sats_to_btc(sats):.8f}"


@dataclass(frozen=True)
class ScriptPubKey:
    script_hex: str
    asm: str = ""
    address: str | None = None
    type: str = ""

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> ScriptPubKey:
        address = data.get("address")
        # Pre-22.0 nodes report a list of addresses
        if not address and data.get("addresses"):
            address = data["addresses"][0]
        return cls(
            script_hex=data.get("hex", "").lower(),
            asm=data.get("asm", ""),
            address=address,
            type=data.get("type", ""),
        )

    def render(self) -> str:
        """Human-facing form: the address when the script has one, else its asm."""
        return self.address or self.asm or self.script_hex


@dataclass(frozen=True)
class TxInput:
    txid: str | None
    vout: int | None
    coinbase: str | None = None

    @property
    def is_coinbase(self) -> bool:
        return self.coinbase is not None


@dataclass(frozen=True)
class TxOutput:
    n: int
    value: int  # satoshis
    script_pubkey: ScriptPubKey


@dataclass
class TransactionDetails:
    """Decoded transaction as reported by getrawtransaction (verbose)."""

    txid: str
    inputs: list[TxInput] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    blockhash: str | None = None
    confirmations: int = 0

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> TransactionDetails:
        inputs = [
            TxInput(txid=vin.get("txid"), vout=vin.get("vout"), coinbase=vin.get("coinbase"))
            for vin in data.get("vin", [])
        ]
        outputs = [
            TxOutput(
                n=vout.get("n", index),
                value=btc_to_sats(vout["value"]),
                script_pubkey=ScriptPubKey.from_rpc(vout.get("scriptPubKey", {})),
            )
            for index, vout in enumerate(data.get("vout", []))
        ]
        return cls(
            txid=data["txid"],
            inputs=inputs,
            outputs=outputs,
            blockhash=data.get("blockhash"),
            confirmations=data.get("confirmations", 0),
        )

    @property
    def total_output_value(self) -> int:
        return sum(out.value for out in self.outputs)


@dataclass(frozen=True)
class MempoolEntry:
    txid: str
    vsize: int
    fee: int  # satoshis
    ancestor_count: int

    @classmethod
    def from_rpc(cls, txid: str, data: dict[str, Any]) -> MempoolEntry:
        fees = data.get("fees") or {}
        # "fee" was removed from getmempoolentry in Bitcoin Core 23
        fee = fees.get("base", data.get("fee", 0))
        return cls(
            txid=txid,
            vsize=data.get("vsize", data.get("size", 0)),
            fee=btc_to_sats(fee),
            ancestor_count=data.get("ancestorcount", 1),
        )


@dataclass(frozen=True)
class BlockRef:
    hash: str
    height: int | None = None


@dataclass(frozen=True)
class AuditRecord:
    """
    Money flow of one confirmed payment.

    Field order is the order of the ten output lines and must not change.
    """

    txid: str
    input_address: str
    input_amount: int
    payee_address: str
    payee_amount: int
    change_address: str
    change_amount: int
    fee: int
    block_height: int
    block_hash: str

    def to_lines(self) -> list[str]:
        return [
            self.txid,
            self.input_address,
            format_btc(self.input_amount),
            self.payee_address,
            format_btc(self.payee_amount),
            self.change_address,
            format_btc(self.change_amount),
            format_btc(self.fee),
            str(self.block_height),
            self.block_hash,
        ]

    def render(self) -> str:
        return "".join(f"{line}\n" for line in self.to_lines())
