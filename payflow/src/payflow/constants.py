"""
Bitcoin and regtest network constants.
"""

from __future__ import annotations

from decimal import Decimal

SATS_PER_BTC = 100_000_000

# Smallest representable amount (1 satoshi)
BTC_QUANTUM = Decimal("0.00000001")

# Coinbase outputs are spendable only after this many confirmations
COINBASE_MATURITY = 100

# Upper bound on blocks mined while waiting for coinbase maturity.
# Must stay above COINBASE_MATURITY + 1 or maturation can never succeed.
DEFAULT_MAX_MATURATION_ATTEMPTS = 150

# Bitcoin Core RPC error codes we translate
RPC_WALLET_INSUFFICIENT_FUNDS = -6
RPC_INVALID_ADDRESS_OR_KEY = -5
RPC_WALLET_NOT_FOUND = -18
RPC_WALLET_ALREADY_LOADED = -35
