"""
DAO Relay - Relay Submitter

Turns a signed ForwardRequest into an executed call, paid for by the
relayer account:

  1. verify(request, signature) on the forwarder (view call)
  2. execute(request, signature) from the relayer, forwarding request.value

No deduplication and no retries: the request nonce is the only replay
protection, and a rejected request must be rebuilt with a fresh nonce.
"""

import logging
from typing import Union

from .dao_types import ForwardRequest, RequestValidationError
from .errors import DAORelayError, InvalidSignature, StaleNonce
from .utils import mask_secret, short_address

log = logging.getLogger(__name__)

# r (32) + s (32) + v (1)
SIGNATURE_LENGTH = 65


def decode_signature(signature: Union[str, bytes]) -> bytes:
    """Validate a 65-byte ECDSA signature given as bytes or 0x hex."""
    if isinstance(signature, str):
        text = signature[2:] if signature.startswith(("0x", "0X")) else signature
        try:
            signature = bytes.fromhex(text)
        except ValueError:
            raise RequestValidationError("signature: not hex")
    if not isinstance(signature, (bytes, bytearray)):
        raise RequestValidationError(f"signature: expected bytes or hex, got {type(signature).__name__}")
    if len(signature) != SIGNATURE_LENGTH:
        raise RequestValidationError(f"signature: expected {SIGNATURE_LENGTH} bytes, got {len(signature)}")
    return bytes(signature)


class Relayer:
    """
    Relay submitter.

    Usage:
        relayer = Relayer(ledger)
        tx_hash = relayer.submit(request, signature)
    """

    def __init__(self, ledger):
        """
        Args:
            ledger: LedgerClient (or anything with verify/execute/get_nonce)
        """
        self.ledger = ledger

    def _rejection(self, request: ForwardRequest, detail: str) -> DAORelayError:
        """
        Explain why the forwarder refused a request.

        The forwarder checks signature and nonce together, so the current
        nonce decides between stale nonce (behind or ahead of it) and bad
        signature.
        """
        current = self.ledger.get_nonce(request.from_)
        if request.nonce != current:
            return StaleNonce(
                f"Nonce {request.nonce} is not current for {request.from_} (expected {current}); "
                f"rebuild and re-sign the request",
                reason=detail,
            )
        return InvalidSignature(f"Signature does not match request from {request.from_}", reason=detail)

    def verify(self, request: ForwardRequest, signature: Union[str, bytes]) -> bool:
        return self.ledger.verify(request, decode_signature(signature))

    def submit(self, request: ForwardRequest, signature: Union[str, bytes]) -> str:
        """
        Verify and execute a signed request.

        Args:
            request: validated ForwardRequest
            signature: 65-byte EIP-712 signature from the principal

        Returns:
            transaction hash of the execute() call

        Raises:
            InvalidSignature: signature does not recover to request.from
            StaleNonce: request nonce already consumed (replay) or not yet valid
            RelayerFundsExhausted: relayer cannot pay for gas
            ExecutionReverted: execute() reverted
            LedgerUnavailable: RPC failure
        """
        sig = decode_signature(signature)
        who = short_address(request.from_)

        log.info(f"Relay request from {who} -> {short_address(request.to)} "
                 f"nonce={request.nonce} gas={request.gas} sig={mask_secret(sig.hex())}")

        # Step 1 - verify
        if not self.ledger.verify(request, sig):
            error = self._rejection(request, "verify() returned false")
            log.warning(f"Relay rejected for {who}: {error.kind}")
            raise error

        # Step 2 - execute
        try:
            tx_hash = self.ledger.execute(request, sig)
        except StaleNonce as e:
            # execute() re-verifies; a race with another relay consumed the nonce
            error = self._rejection(request, e.reason or e.message)
            log.warning(f"Relay execute rejected for {who}: {error.kind}")
            raise error from e
        except DAORelayError as e:
            log.error(f"Relay execute failed for {who}: {e.kind}: {e.message}")
            raise

        log.info(f"Relayed request from {who}: {tx_hash}")
        return tx_hash
