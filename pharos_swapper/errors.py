"""
Failure taxonomy for the swapper.

StartupFatal aborts the process before any account runs. AccountSkip is a
normal early exit of one account run. StepFailure (and its ChainError form)
is retried locally; once the retry budget or the step deadline
(TimeoutFailure) is exhausted it escalates to PipelineFailure, which ends
that account's run only.
"""

from typing import Any, Dict, Optional


class SwapperError(Exception):
    """Base exception for all swapper errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class StartupFatal(SwapperError):
    """No credentials, bad run parameters or unreachable RPC."""

    pass


class AccountSkip(SwapperError):
    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(reason, details)
        self.reason = reason


class StepFailure(SwapperError):
    def __init__(
        self,
        message: str,
        step: Optional[str] = None,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.step = step
        self.cause = cause


class ChainError(StepFailure):
    """A gateway call failed: connectivity, on-chain revert or insufficient funds."""

    NETWORK = "network"
    REVERT = "revert"
    INSUFFICIENT_FUNDS = "insufficient_funds"

    def __init__(
        self,
        message: str,
        kind: str = NETWORK,
        cause: Optional[BaseException] = None,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(message, cause=cause, details={"kind": kind, "tx_hash": tx_hash})
        self.kind = kind
        self.tx_hash = tx_hash


class TimeoutFailure(SwapperError):
    def __init__(self, label: str, timeout: Optional[float] = None):
        super().__init__(label, {"timeout": timeout})
        self.label = label
        self.timeout = timeout


class PipelineFailure(SwapperError):
    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"{step}: {cause}", {"step": step})
        self.step = step
        self.cause = cause
