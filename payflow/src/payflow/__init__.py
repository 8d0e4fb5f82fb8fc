"""
payflow - Regtest payment lifecycle and audit trace

Provisions two node wallets, matures coinbase funds, pays from one wallet to the
other, confirms the payment and reconstructs its money flow.
"""

__version__ = "0.1.0"

from payflow.auditor import TransactionAuditor, classify_outputs, compute_fee
from payflow.confirmation import ConfirmationTracker
from payflow.errors import (
    BlockLookupError,
    BroadcastError,
    InsufficientFundsError,
    InvalidReferenceError,
    MalformedTransactionError,
    MaturationTimeoutError,
    NodeConnectionError,
    PayflowError,
    RPCError,
    UnconfirmedTransactionError,
    WalletCreationError,
)
from payflow.maturation import CoinbaseMaturationEngine, MaturationResult, MaturationState
from payflow.models import AuditRecord, MempoolEntry, TransactionDetails
from payflow.payment import PaymentIssuer
from payflow.pipeline import PipelineResult, run_pipeline
from payflow.rpc import NodeClient
from payflow.wallets import Address, WalletHandle, WalletManager

__all__ = [
    "Address",
    "AuditRecord",
    "BlockLookupError",
    "BroadcastError",
    "CoinbaseMaturationEngine",
    "ConfirmationTracker",
    "InsufficientFundsError",
    "InvalidReferenceError",
    "MalformedTransactionError",
    "MaturationResult",
    "MaturationState",
    "MaturationTimeoutError",
    "MempoolEntry",
    "NodeClient",
    "NodeConnectionError",
    "PayflowError",
    "PaymentIssuer",
    "PipelineResult",
    "RPCError",
    "TransactionAuditor",
    "TransactionDetails",
    "UnconfirmedTransactionError",
    "WalletCreationError",
    "WalletHandle",
    "WalletManager",
    "classify_outputs",
    "compute_fee",
    "run_pipeline",
]
