"""
DAO Relay - Contract ABIs (minimal)

Only the functions the relay and daemon call.
"""

from typing import Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

FORWARD_REQUEST_COMPONENTS = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "gas", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "data", "type": "bytes"},
]

_FORWARD_REQUEST_INPUT = {
    "name": "req",
    "type": "tuple",
    "internalType": "struct MinimalForwarder.ForwardRequest",
    "components": FORWARD_REQUEST_COMPONENTS,
}

MINIMAL_FORWARDER_ABI = [
    {
        "name": "getNonce",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "from", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}]
    },
    {
        "name": "verify",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            _FORWARD_REQUEST_INPUT,
            {"name": "signature", "type": "bytes"}
        ],
        "outputs": [{"name": "", "type": "bool"}]
    },
    {
        "name": "execute",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            _FORWARD_REQUEST_INPUT,
            {"name": "signature", "type": "bytes"}
        ],
        "outputs": [
            {"name": "", "type": "bool"},
            {"name": "", "type": "bytes"}
        ]
    },
    {
        "name": "eip712Domain",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "fields", "type": "bytes1"},
            {"name": "name", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "chainId", "type": "uint256"},
            {"name": "verifyingContract", "type": "address"},
            {"name": "salt", "type": "bytes32"},
            {"name": "extensions", "type": "uint256[]"}
        ]
    }
]

PROPOSAL_COMPONENTS = [
    {"name": "id", "type": "uint256"},
    {"name": "name", "type": "string"},
    {"name": "recipient", "type": "address"},
    {"name": "amount", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
    {"name": "proposer", "type": "address"},
    {"name": "votesFor", "type": "uint256"},
    {"name": "votesAgainst", "type": "uint256"},
    {"name": "votesAbstain", "type": "uint256"},
    {"name": "executed", "type": "bool"},
    {"name": "executionTime", "type": "uint256"},
]

DAO_VOTING_ABI = [
    {
        "name": "getProposal",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "proposalId", "type": "uint256"}],
        "outputs": [{
            "name": "",
            "type": "tuple",
            "internalType": "struct DAOVoting.Proposal",
            "components": PROPOSAL_COMPONENTS
        }]
    },
    {
        "name": "getUserBalance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}]
    },
    {
        "name": "totalBalance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}]
    },
    {
        "name": "getUserVote",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "proposalId", "type": "uint256"},
            {"name": "user", "type": "address"}
        ],
        "outputs": [{"name": "", "type": "uint8"}]
    },
    {
        "name": "proposalCount",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}]
    },
    {
        "name": "vote",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "proposalId", "type": "uint256"},
            {"name": "voteType", "type": "uint8"}
        ],
        "outputs": []
    },
    {
        "name": "createProposal",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "name", "type": "string"},
            {"name": "recipient", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "deadline", "type": "uint256"}
        ],
        "outputs": [{"name": "", "type": "uint256"}]
    },
    {
        "name": "executeProposal",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "proposalId", "type": "uint256"}],
        "outputs": []
    },
    {
        "name": "fundDAO",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [],
        "outputs": []
    }
]


# =============================================================================
# CALLDATA
# =============================================================================

VOTE_SIGNATURE = "vote(uint256,uint8)"


def selector(signature: str) -> bytes:
    return bytes(Web3.keccak(text=signature)[:4])


def encode_vote_call(proposal_id: int, choice: int) -> bytes:
    """Calldata for vote(proposalId, choice), used as ForwardRequest.data."""
    return selector(VOTE_SIGNATURE) + abi_encode(["uint256", "uint8"], [proposal_id, int(choice)])


def decode_vote_call(data: bytes) -> Tuple[int, int]:
    """Inverse of encode_vote_call: (proposal_id, choice)."""
    if data[:4] != selector(VOTE_SIGNATURE):
        raise ValueError("calldata is not a vote() call")
    proposal_id, choice = abi_decode(["uint256", "uint8"], data[4:])
    return proposal_id, choice


# Solidity revert payloads
ERROR_SIGNATURE = "Error(string)"
PANIC_SIGNATURE = "Panic(uint256)"


def decode_revert_data(data: bytes) -> str:
    """
    Human-readable reason from revert returndata.

    Error(string) yields the message, Panic(uint256) the panic code;
    anything else is returned as hex.
    """
    data = bytes(data or b"")
    if not data:
        return "no revert reason"
    try:
        if data[:4] == selector(ERROR_SIGNATURE):
            return abi_decode(["string"], data[4:])[0]
        if data[:4] == selector(PANIC_SIGNATURE):
            return f"panic 0x{abi_decode(['uint256'], data[4:])[0]:02x}"
    except DecodingError:
        # Truncated payload
        return "0x" + data.hex()
    return "0x" + data.hex()
