"""
DAO Relay - Ledger Client

web3 adapter for the two contracts the relay talks to:
  - MinimalForwarder: getNonce / eip712Domain / verify / execute
  - DAOVoting: proposals, balances, votes, executeProposal

Every library exception is translated into the errors.py taxonomy here,
so callers never see raw web3/requests errors.
"""

import logging
import threading
from typing import Callable, Optional, TypeVar

from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError

from .abi import DAO_VOTING_ABI, MINIMAL_FORWARDER_ABI, decode_revert_data, encode_vote_call
from .config import Config
from .dao_types import ForwardRequest, Proposal, SigningDomain, VoteType, to_address
from .errors import DAORelayError, ExecutionReverted, LedgerUnavailable, classify_error

log = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerClient:
    """
    Reads and writes against the forwarder and DAO contracts.

    Usage:
        ledger = LedgerClient(config)
        nonce = ledger.get_nonce("0x...")
        proposal = ledger.get_proposal(1)
        tx_hash = ledger.execute(request, signature)
    """

    def __init__(self, config: Config, w3: Optional[Web3] = None):
        """
        Args:
            config: relay configuration (addresses, RPC URL, relayer key)
            w3: pre-built Web3 instance (defaults to HTTPProvider on config.rpc_url)
        """
        self.config = config
        self.w3 = w3 or Web3(Web3.HTTPProvider(
            config.rpc_url, request_kwargs={"timeout": config.rpc_timeout}))

        self.forwarder_address = to_address(config.forwarder_address, "forwarder")
        self.dao_address = to_address(config.dao_address, "dao")

        self.forwarder = self.w3.eth.contract(address=self.forwarder_address, abi=MINIMAL_FORWARDER_ABI)
        self.dao = self.w3.eth.contract(address=self.dao_address, abi=DAO_VOTING_ABI)

        self.account = Account.from_key(config.relayer_private_key) if config.relayer_private_key else None
        # Relayer transactions share one account nonce
        self._send_lock = threading.Lock()

    # ═══════════════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════════════

    def _call(self, what: str, fn: Callable[[], T]) -> T:
        """Run an RPC round-trip, classifying failures."""
        try:
            return fn()
        except DAORelayError:
            raise
        except Exception as e:
            error = classify_error(e)
            log.debug(f"{what} failed: {error.kind}: {e}")
            raise error from e

    def _require_account(self):
        if self.account is None:
            raise ValueError("RELAYER_PRIVATE_KEY is required for write operations")
        return self.account

    def _transact(self, what: str, contract_fn, value: int = 0, account=None) -> str:
        """
        Build, sign and send a transaction from the relayer (or given) account.

        Returns:
            transaction hash (0x hex)
        """
        sender = account or self._require_account()

        def send():
            with self._send_lock:
                tx = contract_fn.build_transaction({
                    "from": sender.address,
                    "value": value,
                    "nonce": self.w3.eth.get_transaction_count(sender.address, "pending"),
                    "chainId": self.config.chain_id,
                })
                signed = sender.sign_transaction(tx)
                return self.w3.eth.send_raw_transaction(signed.raw_transaction)

        tx_hash = "0x" + bytes(self._call(what, send)).hex()
        log.info(f"{what} TX sent: {tx_hash}")

        if self.config.wait_for_receipt:
            receipt = self._call(what, lambda: self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.config.receipt_timeout))
            if receipt["status"] != 1:
                raise ExecutionReverted(f"{what} reverted in TX {tx_hash}", reason="status 0")
        return tx_hash

    # ═══════════════════════════════════════════════════════════════════════
    # CHAIN
    # ═══════════════════════════════════════════════════════════════════════

    def is_connected(self) -> bool:
        try:
            return self.w3.is_connected()
        except Exception as e:
            log.debug(f"Connection check failed: {e}")
            return False

    def chain_id(self) -> int:
        return self._call("eth_chainId", lambda: self.w3.eth.chain_id)

    def block_timestamp(self) -> int:
        """Timestamp of the latest block."""
        return self._call("eth_getBlockByNumber", lambda: self.w3.eth.get_block("latest")["timestamp"])

    def ensure_deployed(self):
        """Raise LedgerUnavailable if either contract has no code."""
        for label, address in (("forwarder", self.forwarder_address), ("dao", self.dao_address)):
            code = self._call("eth_getCode", lambda a=address: self.w3.eth.get_code(a))
            if not code or len(code) == 0:
                raise LedgerUnavailable(f"No contract code at {label} address {address}")

    @property
    def relayer_address(self) -> Optional[str]:
        return self.account.address if self.account else None

    def relayer_balance(self) -> int:
        account = self._require_account()
        return self._call("eth_getBalance", lambda: self.w3.eth.get_balance(account.address))

    # ═══════════════════════════════════════════════════════════════════════
    # FORWARDER
    # ═══════════════════════════════════════════════════════════════════════

    def get_nonce(self, principal: str) -> int:
        principal = to_address(principal, "principal")
        return int(self._call("getNonce", lambda: self.forwarder.functions.getNonce(principal).call()))

    def get_domain(self) -> SigningDomain:
        result = self._call("eip712Domain", lambda: self.forwarder.functions.eip712Domain().call())
        return SigningDomain.from_eip5267(result)

    def verify(self, request: ForwardRequest, signature: bytes) -> bool:
        return bool(self._call("verify", lambda: self.forwarder.functions.verify(
            request.as_tuple(), signature).call()))

    def execute(self, request: ForwardRequest, signature: bytes) -> str:
        """
        Relay a signed request; the relayer pays gas, request.value is forwarded.

        The forwarder returns (success, returndata) instead of reverting when
        the forwarded call fails, so the call is simulated first and an inner
        failure raises ExecutionReverted without sending anything.
        """
        sender = self._require_account()
        fn = self.forwarder.functions.execute(request.as_tuple(), signature)

        success, returndata = self._call("execute (simulated)", lambda: fn.call(
            {"from": sender.address, "value": request.value}))
        if not success:
            reason = decode_revert_data(returndata)
            log.warning(f"Relayed call to {request.to} would revert: {reason}")
            raise ExecutionReverted(f"Relayed call reverted: {reason}", reason=reason)

        return self._transact("execute", fn, value=request.value, account=sender)

    # ═══════════════════════════════════════════════════════════════════════
    # DAO
    # ═══════════════════════════════════════════════════════════════════════

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        """
        Read a proposal.

        Returns:
            Proposal, or None if it does not exist (id == 0 record or revert)
        """
        try:
            result = self.dao.functions.getProposal(proposal_id).call()
        except ContractLogicError as e:
            log.debug(f"getProposal({proposal_id}) reverted: {e}")
            return None
        except Exception as e:
            raise classify_error(e) from e
        proposal = Proposal.from_tuple(result)
        return proposal if proposal.exists else None

    def proposal_count(self) -> int:
        return int(self._call("proposalCount", lambda: self.dao.functions.proposalCount().call()))

    def get_user_balance(self, user: str) -> int:
        user = to_address(user, "user")
        return int(self._call("getUserBalance", lambda: self.dao.functions.getUserBalance(user).call()))

    def total_balance(self) -> int:
        return int(self._call("totalBalance", lambda: self.dao.functions.totalBalance().call()))

    def get_user_vote(self, proposal_id: int, user: str) -> VoteType:
        user = to_address(user, "user")
        return VoteType(self._call("getUserVote",
                                   lambda: self.dao.functions.getUserVote(proposal_id, user).call()))

    def encode_vote(self, proposal_id: int, choice: VoteType) -> bytes:
        """Calldata for vote(proposalId, choice), used as ForwardRequest.data."""
        return encode_vote_call(proposal_id, VoteType(choice))

    def execute_proposal(self, proposal_id: int) -> str:
        """Direct executeProposal() from the relayer identity (daemon path)."""
        return self._transact(f"executeProposal({proposal_id})",
                              self.dao.functions.executeProposal(proposal_id))

    def fund_dao(self, amount: int, account=None) -> str:
        return self._transact("fundDAO", self.dao.functions.fundDAO(), value=amount, account=account)

    def create_proposal(self, name: str, recipient: str, amount: int, deadline: int,
                        account=None) -> str:
        recipient = to_address(recipient, "recipient")
        fn = self.dao.functions.createProposal(name, recipient, amount, deadline)
        return self._transact("createProposal", fn, account=account)
