"""
Coinbase maturation.

Mines one block at a time to the reward address until the wallet reports a
spendable balance. Every attempt adds a block to the chain, so this is a counted
loop and never a retry with backoff.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from payflow.constants import COINBASE_MATURITY, DEFAULT_MAX_MATURATION_ATTEMPTS
from payflow.errors import MaturationTimeoutError
from payflow.models import format_btc
from payflow.wallets import Address, WalletHandle


class MaturationState(str, Enum):
    ADVANCING = "advancing"
    MATURED = "matured"
    TIMED_OUT = "timed_out"


@dataclass
class MaturationResult:
    state: MaturationState
    attempts: int
    balance: int  # satoshis


class CoinbaseMaturationEngine:
    """Advances the chain until coinbase rewards become spendable."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Return to ADVANCING with no blocks mined."""
        self.state = MaturationState.ADVANCING
        self.attempts = 0
        self.balance = 0

    def step(
        self, wallet: WalletHandle, reward_address: Address | str, max_attempts: int
    ) -> MaturationState:
        """Mine one block, observe the balance and return the resulting state."""
        if self.state is not MaturationState.ADVANCING:
            return self.state

        wallet.rpc.generate_to_address(1, str(reward_address))
        self.attempts += 1
        self.balance = wallet.balance()
        logger.debug(f"Block {self.attempts} -> balance {format_btc(self.balance)} BTC")

        if self.balance > 0:
            self.state = MaturationState.MATURED
        elif self.attempts >= max_attempts:
            self.state = MaturationState.TIMED_OUT
        return self.state

    def mature(
        self,
        wallet: WalletHandle,
        reward_address: Address | str,
        max_attempts: int = DEFAULT_MAX_MATURATION_ATTEMPTS,
    ) -> MaturationResult:
        """
        Mine until `wallet` has a strictly positive spendable balance.

        Raises:
            MaturationTimeoutError: max_attempts blocks mined without a spendable balance
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if max_attempts <= COINBASE_MATURITY:
            logger.warning(
                f"max_attempts={max_attempts} is not above coinbase maturity "
                f"({COINBASE_MATURITY}); a fresh chain cannot mature in time"
            )

        self.reset()
        logger.info(f"Mining to {reward_address} until {wallet.name} has a spendable balance")
        while self.step(wallet, reward_address, max_attempts) is MaturationState.ADVANCING:
            pass

        if self.state is MaturationState.TIMED_OUT:
            raise MaturationTimeoutError(
                f"No spendable balance in wallet '{wallet.name}' after {self.attempts} blocks",
                attempts=self.attempts,
            )

        logger.info(
            f"Spendable balance {format_btc(self.balance)} BTC after {self.attempts} blocks"
        )
        return MaturationResult(state=self.state, attempts=self.attempts, balance=self.balance)
