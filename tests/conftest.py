"""
Shared fixtures: an in-memory ledger standing in for the forwarder and
DAO contracts. Signatures are checked for real with eth_account, so
replay protection and domain binding behave as on-chain.
"""

import itertools

import pytest
from eth_account import Account

from dao_relay.abi import decode_vote_call, encode_vote_call
from dao_relay.config import Config, EXECUTION_DELAY
from dao_relay.dao_types import Proposal, SigningDomain, VoteType
from dao_relay.eip712 import build_request, recover_signer, sign_request
from dao_relay.errors import ExecutionReverted, LedgerUnavailable, RelayerFundsExhausted, StaleNonce

FORWARDER = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
DAO = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

ALICE_KEY = "0x" + "11" * 32
BOB_KEY = "0x" + "22" * 32
RELAYER_KEY = "0x" + "33" * 32

T0 = 1_700_000_000


class FakeLedger:
    """In-memory forwarder + DAO with the LedgerClient surface."""

    def __init__(self, domain: SigningDomain, now: int = T0):
        self.domain = domain
        self.now = now
        self.nonces = {}
        self.balances = {}
        self.proposals = {}
        self.votes = {}
        self.failing = set()
        self.available = True
        self.deployed = True
        self.relayer_funds = 10 ** 18
        self.executed_calls = []
        self.domain_reads = 0
        self.nonce_reads = 0
        self._tx = itertools.count(1)

    # helpers for tests
    def add_proposal(self, proposal_id, deadline, votes_for=0, votes_against=0,
                     amount=10, name="Grant", executed=False):
        self.proposals[proposal_id] = {
            "id": proposal_id, "name": name, "recipient": RECIPIENT, "amount": amount,
            "deadline": deadline, "proposer": RECIPIENT, "votesFor": votes_for,
            "votesAgainst": votes_against, "votesAbstain": 0, "executed": executed,
            "executionTime": 0,
        }

    def _check(self):
        if not self.available:
            raise LedgerUnavailable("Ledger unreachable: connection refused")

    def _tx_hash(self):
        return "0x" + format(next(self._tx), "064x")

    # forwarder
    def ensure_deployed(self):
        self._check()
        if not self.deployed:
            raise LedgerUnavailable(f"No contract code at forwarder address {FORWARDER}")

    def get_domain(self):
        self._check()
        self.domain_reads += 1
        return self.domain

    def get_nonce(self, principal):
        self._check()
        self.nonce_reads += 1
        return self.nonces.get(principal, 0)

    def verify(self, request, signature):
        self._check()
        try:
            signer = recover_signer(request, self.domain, signature)
        except Exception:
            return False
        return signer == request.from_ and self.nonces.get(request.from_, 0) == request.nonce

    def execute(self, request, signature):
        if not self.verify(request, signature):
            raise StaleNonce("Request rejected by forwarder: MinimalForwarder: signature does not match request")
        if self.relayer_funds <= 0:
            raise RelayerFundsExhausted("Relayer cannot pay for gas: insufficient funds for gas * price + value")
        if request.to == DAO:
            proposal_id, choice = decode_vote_call(request.data)
            if self.now > self.proposals[proposal_id]["deadline"]:
                raise ExecutionReverted("Relayed call reverted: Voting period ended",
                                        reason="Voting period ended")
            self._vote(request.from_, proposal_id, VoteType(choice))
        self.nonces[request.from_] = request.nonce + 1
        self.executed_calls.append(("execute", request.from_, request.nonce))
        return self._tx_hash()

    # dao
    def _vote(self, voter, proposal_id, choice):
        stored = self.proposals[proposal_id]
        self.votes[(proposal_id, voter)] = choice
        weights = {VoteType.FOR: 0, VoteType.AGAINST: 0, VoteType.ABSTAIN: 0}
        for (pid, who), vote in self.votes.items():
            if pid == proposal_id:
                weights[vote] += self.balances.get(who, 0)
        stored["votesFor"] = weights[VoteType.FOR]
        stored["votesAgainst"] = weights[VoteType.AGAINST]
        stored["votesAbstain"] = weights[VoteType.ABSTAIN]

    def get_proposal(self, proposal_id):
        self._check()
        stored = self.proposals.get(proposal_id)
        return Proposal.from_dict(stored) if stored else None

    def proposal_count(self):
        self._check()
        return max(self.proposals, default=0)

    def execute_proposal(self, proposal_id):
        self._check()
        stored = self.proposals[proposal_id]
        if proposal_id in self.failing:
            raise ExecutionReverted("Execution reverted: Insufficient treasury balance",
                                    reason="Insufficient treasury balance")
        if stored["executed"]:
            raise ExecutionReverted("Execution reverted: Proposal already executed")
        if self.now < stored["deadline"] + EXECUTION_DELAY:
            raise ExecutionReverted("Execution reverted: Execution delay not met")
        stored["executed"] = True
        stored["executionTime"] = self.now
        self.executed_calls.append(("executeProposal", proposal_id))
        return self._tx_hash()

    def get_user_balance(self, user):
        return self.balances.get(user, 0)

    def total_balance(self):
        return sum(self.balances.values())

    def get_user_vote(self, proposal_id, user):
        return self.votes[(proposal_id, user)]

    # chain
    def block_timestamp(self):
        self._check()
        return self.now

    def is_connected(self):
        return self.available

    def chain_id(self):
        return self.domain.chain_id

    @property
    def relayer_address(self):
        return Account.from_key(RELAYER_KEY).address

    def relayer_balance(self):
        return self.relayer_funds


@pytest.fixture
def domain():
    return SigningDomain(name="MinimalForwarder", version="0.0.1", chain_id=31337,
                         verifying_contract=FORWARDER)


@pytest.fixture
def alice():
    return Account.from_key(ALICE_KEY)


@pytest.fixture
def bob():
    return Account.from_key(BOB_KEY)


@pytest.fixture
def ledger(domain, alice, bob):
    fake = FakeLedger(domain)
    fake.balances[alice.address] = 10
    fake.balances[bob.address] = 3
    return fake


@pytest.fixture
def config():
    return Config(forwarder_address=FORWARDER, dao_address=DAO, relayer_private_key=RELAYER_KEY)


@pytest.fixture
def signed_vote(ledger, domain):
    """Build and sign a vote request with the principal's current nonce."""
    def make(account, proposal_id, choice, nonce=None, sign_domain=None):
        if nonce is None:
            nonce = ledger.nonces.get(account.address, 0)
        request = build_request(account.address, DAO, encode_vote_call(proposal_id, choice), nonce=nonce)
        signature = sign_request(request, sign_domain or domain, account.key)
        return request, signature
    return make
