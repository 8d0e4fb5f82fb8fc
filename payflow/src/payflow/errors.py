"""
Error taxonomy for the payment pipeline.

Every error raised by a pipeline stage derives from PayflowError. The pipeline
tags errors with the stage they escaped from so the operator sees where a run
stopped and which node error caused it.
"""

from __future__ import annotations


class RPCError(ValueError):
    """JSON-RPC error reply from the node."""

    def __init__(self, code: int | str, message: str, method: str = ""):
        self.code = code
        self.message = message
        self.method = method
        super().__init__(f"RPC error {code}: {message}")


class PayflowError(Exception):
    """Base class for pipeline failures."""

    def __init__(self, message: str, *, cause: Exception | None = None, stage: str | None = None):
        super().__init__(message)
        self.cause = cause
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.cause is not None:
            return f"{message} ({self.cause})"
        return message


class NodeConnectionError(PayflowError, ConnectionError):
    """Node unreachable or credentials rejected."""


class WalletCreationError(PayflowError):
    pass


class MaturationTimeoutError(PayflowError):
    """Block ceiling reached without a spendable balance."""

    def __init__(self, message: str, *, attempts: int, **kwargs):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class InsufficientFundsError(PayflowError):
    pass


class BroadcastError(PayflowError):
    pass


class UnconfirmedTransactionError(PayflowError):
    pass


class MalformedTransactionError(PayflowError):
    pass


class InvalidReferenceError(PayflowError):
    pass


class BlockLookupError(PayflowError):
    pass
