"""
DAO Relay

Gasless voting relay and proposal execution daemon for a DAO treasury.

Architecture:
  - Votes are EIP-712 signed ForwardRequests, relayed through a
    MinimalForwarder by a relayer account that pays gas
  - Proposal status is derived from stored fields and time, never stored
  - The execution daemon sweeps proposals and executes approved ones
    after the execution delay

Usage:
    from dao_relay import Config, LedgerClient, RequestResolver, Relayer

    config = Config.from_env()
    ledger = LedgerClient(config)

    # Build a vote request for the user to sign
    resolver = RequestResolver(ledger)
    request, message = resolver.prepare(voter, config.dao_address,
                                        ledger.encode_vote(1, VoteType.FOR))

    # Relay the signed request
    tx_hash = Relayer(ledger).submit(request, signature)

    # Execute whatever is ready
    executed = ExecutionDaemon(ledger, config).sweep().executed
"""

from .dao_types import (
    ForwardRequest,
    SigningDomain,
    Proposal,
    ProposalStatus,
    VoteType,
    NotEligible,
    RequestValidationError,
)
from .errors import (
    DAORelayError,
    LedgerUnavailable,
    InvalidSignature,
    StaleNonce,
    ExecutionReverted,
    RelayerFundsExhausted,
    classify_error,
)
from .config import Config, EXECUTION_DELAY, MAX_PROPOSALS
from .eip712 import build_request, typed_data, digest, struct_hash, recover_signer
from .ledger_client import LedgerClient
from .resolver import RequestResolver
from .relayer import Relayer
from .proposal_state import (
    classify,
    is_approved,
    is_executable,
    eligibility,
    can_create_proposal,
)
from .daemon import ExecutionDaemon, SweepResult
from .client import RelayClient, local_signer

__version__ = "0.1.0"
__all__ = [
    # Types
    "ForwardRequest", "SigningDomain", "Proposal", "ProposalStatus",
    "VoteType", "NotEligible", "RequestValidationError",
    # Errors
    "DAORelayError", "LedgerUnavailable", "InvalidSignature", "StaleNonce",
    "ExecutionReverted", "RelayerFundsExhausted", "classify_error",
    # Core
    "Config", "EXECUTION_DELAY", "MAX_PROPOSALS",
    "build_request", "typed_data", "digest", "struct_hash", "recover_signer",
    "LedgerClient", "RequestResolver", "Relayer",
    "classify", "is_approved", "is_executable", "eligibility", "can_create_proposal",
    "ExecutionDaemon", "SweepResult",
    "RelayClient", "local_signer",
]
