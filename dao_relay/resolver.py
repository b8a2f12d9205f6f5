"""
DAO Relay - Nonce & Domain Resolver

Supplies the two pieces of forwarder state a signature depends on:
  - nonce: read fresh for every request (any accepted relay advances it)
  - domain: read once per process (changes only on redeploy)

Failures propagate as LedgerUnavailable. Nothing is retried: signing
against a stale nonce or domain only produces a signature the forwarder
rejects.
"""

import logging
import threading
from typing import Any, Dict, Optional, Tuple, Union

from .dao_types import ForwardRequest, SigningDomain, to_address
from .eip712 import DEFAULT_GAS, build_request, typed_data
from .errors import DAORelayError, LedgerUnavailable

log = logging.getLogger(__name__)


class RequestResolver:
    """
    Resolves nonce and domain from the ledger and prepares signable requests.

    Usage:
        resolver = RequestResolver(ledger)
        request, message = resolver.prepare(user, dao_address, vote_calldata)
        # hand `message` to the wallet for eth_signTypedData_v4
    """

    def __init__(self, ledger, default_gas: int = DEFAULT_GAS):
        self.ledger = ledger
        self.default_gas = default_gas
        self._domain: Optional[SigningDomain] = None
        self._lock = threading.Lock()

    def resolve_nonce(self, principal: str) -> int:
        """Current forwarder nonce for `principal`. Never cached."""
        principal = to_address(principal, "principal")
        try:
            nonce = self.ledger.get_nonce(principal)
        except DAORelayError as e:
            raise LedgerUnavailable(f"Cannot read nonce for {principal}: {e.message}") from e
        log.debug(f"Nonce for {principal}: {nonce}")
        return nonce

    def resolve_domain(self) -> SigningDomain:
        """Forwarder signing domain, cached for the process lifetime."""
        with self._lock:
            if self._domain is None:
                try:
                    self.ledger.ensure_deployed()
                    self._domain = self.ledger.get_domain()
                except DAORelayError as e:
                    raise LedgerUnavailable(f"Cannot read signing domain: {e.message}") from e
                log.info(f"Signing domain: {self._domain.name} v{self._domain.version} "
                         f"chain={self._domain.chain_id} contract={self._domain.verifying_contract}")
            return self._domain

    def invalidate(self):
        """Forget the cached domain (forwarder redeployed)."""
        with self._lock:
            self._domain = None

    def prepare(self, principal: str, to: str, data: Union[str, bytes], value: int = 0,
                gas: Optional[int] = None) -> Tuple[ForwardRequest, Dict[str, Any]]:
        """
        Build a request with a fresh nonce and its EIP-712 message.

        Returns:
            (request, typed_data) ready for the external signer
        """
        domain = self.resolve_domain()
        nonce = self.resolve_nonce(principal)
        request = build_request(principal, to, data, nonce=nonce, value=value,
                                gas=gas or self.default_gas)
        return request, typed_data(request, domain)
