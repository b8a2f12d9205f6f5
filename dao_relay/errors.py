"""
DAO Relay - Errors

Every failure surfaced to a caller is one of these kinds. `retryable`
separates "try again later" from "rebuild and re-sign the request".
"""

from typing import Optional

import requests
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    TimeExhausted,
)


class DAORelayError(Exception):
    """Base class for relay and daemon failures."""
    kind = "error"
    retryable = False

    def __init__(self, message: str, reason: Optional[str] = None):
        self.message = message
        self.reason = reason
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, "retryable": self.retryable}


class LedgerUnavailable(DAORelayError):
    """RPC unreachable, or no contract deployed at the configured address."""
    kind = "ledger_unavailable"
    retryable = True


class InvalidSignature(DAORelayError):
    """Forwarder verify() returned false for a current nonce."""
    kind = "invalid_signature"


class StaleNonce(DAORelayError):
    """Request nonce already consumed (replay or out-of-date signature)."""
    kind = "stale_nonce"


class ExecutionReverted(DAORelayError):
    """The underlying call failed on-chain."""
    kind = "execution_reverted"


class RelayerFundsExhausted(DAORelayError):
    """Relayer account cannot pay for gas."""
    kind = "relayer_funds_exhausted"


# Fragments of node/contract error messages, lowercase
_NO_CODE_MARKERS = (
    "returned no data",
    "address is not a contract",
    "contract does not have the function",
    "could not transact with/call contract function",
)
_FUNDS_MARKERS = (
    "insufficient funds",
    "sender doesn't have enough funds",
)
_REPLAY_MARKERS = (
    "signature does not match request",
    "invalid nonce",
    "nonce mismatch",
)


def _message_of(exc: Exception) -> str:
    """Best-effort message text, including JSON-RPC error dicts."""
    if exc.args and isinstance(exc.args[0], dict):
        return str(exc.args[0].get("message", exc.args[0]))
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc)


def revert_reason(exc: Exception) -> str:
    """Extract a revert reason from a web3 exception."""
    text = _message_of(exc)
    prefix = "execution reverted: "
    if prefix in text:
        return text.split(prefix, 1)[1]
    return text


def classify_error(exc: Exception) -> DAORelayError:
    """
    Map a library exception onto the relay error taxonomy.

    Args:
        exc: exception raised by web3 or requests

    Returns:
        DAORelayError subclass instance (the input itself if already one)
    """
    if isinstance(exc, DAORelayError):
        return exc

    text = _message_of(exc)
    lowered = text.lower()

    if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout,
                        ConnectionError, TimeoutError)):
        return LedgerUnavailable(f"Ledger unreachable: {text}")
    if isinstance(exc, BadFunctionCallOutput) or any(m in lowered for m in _NO_CODE_MARKERS):
        return LedgerUnavailable(f"No contract at configured address: {text}")
    if isinstance(exc, TimeExhausted):
        return LedgerUnavailable(f"Transaction not mined in time: {text}")
    if any(m in lowered for m in _REPLAY_MARKERS):
        return StaleNonce(f"Request rejected by forwarder: {text}", reason=revert_reason(exc))
    # Contract reverts are domain failures even when the reason mentions funds
    if isinstance(exc, ContractLogicError) or "execution reverted" in lowered:
        reason = revert_reason(exc)
        return ExecutionReverted(f"Execution reverted: {reason}", reason=reason)
    if any(m in lowered for m in _FUNDS_MARKERS):
        return RelayerFundsExhausted(f"Relayer cannot pay for gas: {text}")
    if "revert" in lowered:
        reason = revert_reason(exc)
        return ExecutionReverted(f"Execution reverted: {reason}", reason=reason)
    return ExecutionReverted(f"Execution failed: {text}", reason=text)
