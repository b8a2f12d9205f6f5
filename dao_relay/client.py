"""
DAO Relay - HTTP client

Client side of the gasless vote flow, talking to the relay API:

  1. GET  /api/nonce            - fresh nonce for the voter
  2. build vote() calldata and the ForwardRequest
  3. GET  /api/eip712-domain    - signing domain
  4. sign typed data            - external signer (wallet)
  5. POST /api/relay            - verify + execute, returns tx hash
"""

import logging
from typing import Any, Callable, Dict, Optional, Union

import requests
from eth_account import Account
from eth_account.messages import encode_typed_data

from .abi import encode_vote_call
from .dao_types import ForwardRequest, RequestValidationError, SigningDomain, VoteType
from .eip712 import DEFAULT_GAS, build_request, typed_data
from .errors import (
    DAORelayError,
    ExecutionReverted,
    InvalidSignature,
    LedgerUnavailable,
    RelayerFundsExhausted,
    StaleNonce,
)

log = logging.getLogger(__name__)

Signer = Callable[[Dict[str, Any]], Union[str, bytes]]

ERROR_KINDS = {
    cls.kind: cls for cls in (
        LedgerUnavailable, InvalidSignature, StaleNonce, ExecutionReverted, RelayerFundsExhausted,
    )
}


def local_signer(private_key: str) -> Signer:
    """
    Signer backed by a local key (development and tests only).

    Wallets produce the same signature via eth_signTypedData_v4.
    """
    def sign(message: Dict[str, Any]) -> str:
        signed = Account.sign_message(encode_typed_data(full_message=message), private_key=private_key)
        return "0x" + bytes(signed.signature).hex()
    return sign


class RelayClient:
    """
    Client for the relay API.

    Usage:
        client = RelayClient("http://localhost:8080")
        tx_hash = client.vote(voter, dao_address, 1, VoteType.FOR, local_signer(key))
    """

    def __init__(self, base_url: str = "http://127.0.0.1:8080", timeout: int = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._domain: Optional[SigningDomain] = None

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Make API call, mapping failures onto the relay error kinds."""
        try:
            response = requests.request(method, f"{self.base_url}{path}",
                                        timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise LedgerUnavailable(f"Relay API unreachable: {e}")

        try:
            result = response.json()
        except ValueError:
            result = None

        if not isinstance(result, dict):
            if response.status_code < 400:
                raise LedgerUnavailable(f"Unexpected response from relay API (HTTP {response.status_code})")
            result = {}

        if response.status_code >= 400:
            message = result.get("error") or f"HTTP {response.status_code}"
            kind = result.get("kind", "")
            if kind == "invalid_request":
                raise RequestValidationError(message)
            error_cls = ERROR_KINDS.get(kind)
            if error_cls is None:
                error_cls = LedgerUnavailable if response.status_code >= 500 else ExecutionReverted
            raise error_cls(message)

        return result

    def get_nonce(self, address: str) -> int:
        return int(self._request("GET", "/api/nonce", params={"address": address})["nonce"])

    def get_domain(self) -> SigningDomain:
        """Signing domain (cached after first fetch)."""
        if self._domain is None:
            self._domain = SigningDomain.from_dict(self._request("GET", "/api/eip712-domain"))
        return self._domain

    def relay(self, request: ForwardRequest, signature: Union[str, bytes]) -> str:
        if isinstance(signature, (bytes, bytearray)):
            signature = "0x" + bytes(signature).hex()
        result = self._request("POST", "/api/relay",
                               json={"request": request.to_dict(), "signature": signature})
        return result["txHash"]

    def run_daemon(self) -> dict:
        return self._request("GET", "/api/daemon")

    def get_proposal(self, proposal_id: int) -> dict:
        return self._request("GET", f"/api/proposals/{proposal_id}")

    def vote(self, voter: str, dao_address: str, proposal_id: int, choice: VoteType,
             sign: Signer, gas: int = DEFAULT_GAS) -> str:
        """
        Cast a vote without paying gas.

        Args:
            voter: voter address (must match the signer)
            dao_address: DAO contract address
            proposal_id: proposal to vote on
            choice: VoteType.FOR / AGAINST / ABSTAIN
            sign: callable turning the EIP-712 message into a signature

        Returns:
            transaction hash of the relayed call

        Raises:
            DAORelayError subclass; StaleNonce/InvalidSignature mean the vote
            must be rebuilt and signed again
        """
        nonce = self.get_nonce(voter)
        data = encode_vote_call(proposal_id, VoteType(choice))
        request = build_request(voter, dao_address, data, nonce=nonce, gas=gas)

        signature = sign(typed_data(request, self.get_domain()))

        try:
            tx_hash = self.relay(request, signature)
        except DAORelayError as e:
            log.warning(f"Vote on proposal {proposal_id} failed: {e.kind}: {e.message}")
            raise
        log.info(f"Vote {VoteType(choice).name} on proposal {proposal_id} relayed: {tx_hash}")
        return tx_hash
