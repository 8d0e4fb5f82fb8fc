"""
Payment construction and broadcast.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from loguru import logger

from payflow.constants import BTC_QUANTUM, RPC_WALLET_INSUFFICIENT_FUNDS
from payflow.errors import BroadcastError, InsufficientFundsError, RPCError
from payflow.wallets import Address, WalletHandle


def validate_amount(amount: Decimal | str | int) -> Decimal:
    """Check that `amount` is a positive BTC value with at most 8 decimals."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite() or value <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")
    if value != value.quantize(BTC_QUANTUM):
        raise ValueError(f"Amount {amount} has more than 8 decimal places")
    return value


class PaymentIssuer:
    """Sends value from a node wallet and returns the broadcast txid."""

    def pay(
        self,
        from_wallet: WalletHandle,
        to_address: Address | str,
        amount: Decimal | str | int,
        memo: str = "",
    ) -> str:
        """
        Send `amount` BTC to `to_address`.

        The memo is stored in the sending wallet only and is not part of the
        transaction. On success the transaction sits in the node's mempool.

        Raises:
            InsufficientFundsError: wallet cannot cover amount plus fee
            BroadcastError: node rejected the transaction
        """
        value = validate_amount(amount)
        logger.info(f"Sending {value} BTC from {from_wallet.name} to {to_address}")

        try:
            txid = from_wallet.rpc.send_to_address(str(to_address), value, memo)
        except RPCError as e:
            if e.code == RPC_WALLET_INSUFFICIENT_FUNDS:
                raise InsufficientFundsError(
                    f"Wallet '{from_wallet.name}' cannot fund {value} BTC plus fee", cause=e
                ) from e
            raise BroadcastError(f"Node rejected payment to {to_address}", cause=e) from e

        logger.info(f"Broadcast transaction: {txid}")
        return txid
