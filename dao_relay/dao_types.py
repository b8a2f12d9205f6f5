"""
DAO Relay - Data Types

ForwardRequest, SigningDomain and Proposal records exchanged with the
forwarder and DAO contracts. All records are validated on construction,
so anything decoded from JSON or from a contract call is checked at the
boundary.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Sequence

from web3 import Web3

UINT256_MAX = 2 ** 256 - 1

# Largest calldata accepted for a relayed call (bytes)
MAX_DATA_BYTES = 32 * 1024

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class RequestValidationError(ValueError):
    """A request or record field is malformed."""


class VoteType(IntEnum):
    """Vote choice, same ordinals as the DAO contract."""
    FOR = 0
    AGAINST = 1
    ABSTAIN = 2


class ProposalStatus(Enum):
    """Derived lifecycle status of a proposal"""
    ACTIVE = "Active"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    EXECUTED = "Executed"


class NotEligible(Enum):
    """Reason the execution daemon skips a proposal"""
    NOT_FOUND = "not_found"
    ALREADY_EXECUTED = "already_executed"
    VOTING_OPEN = "voting_open"
    REJECTED = "rejected"
    DELAY_PENDING = "delay_pending"


# =============================================================================
# FIELD VALIDATION
# =============================================================================

def to_address(value: Any, field_name: str = "address") -> str:
    """Validate an address and return its checksummed form."""
    if isinstance(value, bytes) and len(value) == 20:
        value = "0x" + value.hex()
    if not isinstance(value, str) or not Web3.is_address(value):
        raise RequestValidationError(f"{field_name}: invalid address {value!r}")
    return Web3.to_checksum_address(value)


def to_uint(value: Any, field_name: str, positive: bool = False) -> int:
    """Validate an unsigned 256-bit integer (decimal/hex strings accepted)."""
    if isinstance(value, bool):
        raise RequestValidationError(f"{field_name}: expected integer, got bool")
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError:
            raise RequestValidationError(f"{field_name}: not an integer: {text!r}")
    if not isinstance(value, int):
        raise RequestValidationError(f"{field_name}: expected integer, got {type(value).__name__}")
    if value < 0:
        raise RequestValidationError(f"{field_name}: must be non-negative, got {value}")
    if positive and value == 0:
        raise RequestValidationError(f"{field_name}: must be positive")
    if value > UINT256_MAX:
        raise RequestValidationError(f"{field_name}: exceeds uint256")
    return value


def to_data(value: Any) -> bytes:
    """Validate calldata given as bytes or 0x-prefixed hex."""
    if isinstance(value, (bytes, bytearray)):
        data = bytes(value)
    elif isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        if len(text) % 2:
            raise RequestValidationError("data: odd-length hex string")
        try:
            data = bytes.fromhex(text)
        except ValueError:
            raise RequestValidationError(f"data: not hex: {value[:20]!r}")
    else:
        raise RequestValidationError(f"data: expected bytes or hex, got {type(value).__name__}")
    if len(data) > MAX_DATA_BYTES:
        raise RequestValidationError(f"data: {len(data)} bytes exceeds limit of {MAX_DATA_BYTES}")
    return data


# =============================================================================
# FORWARD REQUEST
# =============================================================================

@dataclass(frozen=True)
class ForwardRequest:
    """
    Meta-transaction relayed on behalf of `from_`.

    Field order matches the forwarder's struct:
      from, to, value, gas, nonce, data

    A request is signed once and submitted once. The forwarder advances the
    principal's nonce on acceptance, so the same request can never run twice.
    """
    from_: str
    to: str
    value: int
    gas: int
    nonce: int
    data: bytes

    def __post_init__(self):
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "from_", to_address(self.from_, "from"))
        object.__setattr__(self, "to", to_address(self.to, "to"))
        object.__setattr__(self, "value", to_uint(self.value, "value"))
        object.__setattr__(self, "gas", to_uint(self.gas, "gas", positive=True))
        object.__setattr__(self, "nonce", to_uint(self.nonce, "nonce"))
        object.__setattr__(self, "data", to_data(self.data))

    def as_tuple(self) -> tuple:
        """Struct tuple for contract calls."""
        return (self.from_, self.to, self.value, self.gas, self.nonce, self.data)

    def message(self) -> Dict[str, Any]:
        """EIP-712 message body."""
        return {
            "from": self.from_,
            "to": self.to,
            "value": self.value,
            "gas": self.gas,
            "nonce": self.nonce,
            "data": self.data,
        }

    def to_dict(self) -> dict:
        """JSON form (integers as decimal strings, data as 0x hex)."""
        return {
            "from": self.from_,
            "to": self.to,
            "value": str(self.value),
            "gas": str(self.gas),
            "nonce": str(self.nonce),
            "data": "0x" + self.data.hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ForwardRequest":
        """Decode and validate a request received over the wire."""
        if not isinstance(data, dict):
            raise RequestValidationError("request: expected an object")
        missing = [k for k in ("from", "to", "gas", "nonce", "data") if k not in data]
        if missing:
            raise RequestValidationError(f"request: missing fields {missing}")
        return cls(
            from_=data["from"],
            to=data["to"],
            value=data.get("value", 0),
            gas=data["gas"],
            nonce=data["nonce"],
            data=data["data"],
        )


# =============================================================================
# SIGNING DOMAIN
# =============================================================================

@dataclass(frozen=True)
class SigningDomain:
    """EIP-712 domain of the forwarder contract."""
    name: str
    version: str
    chain_id: int
    verifying_contract: str

    def __post_init__(self):
        if not isinstance(self.name, str) or not isinstance(self.version, str):
            raise RequestValidationError("domain: name and version must be strings")
        object.__setattr__(self, "chain_id", to_uint(self.chain_id, "chainId", positive=True))
        object.__setattr__(self, "verifying_contract",
                           to_address(self.verifying_contract, "verifyingContract"))

    def as_eip712(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": str(self.chain_id),
            "verifyingContract": self.verifying_contract,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SigningDomain":
        try:
            return cls(
                name=data["name"],
                version=data["version"],
                chain_id=data["chainId"],
                verifying_contract=data["verifyingContract"],
            )
        except KeyError as e:
            raise RequestValidationError(f"domain: missing field {e}")

    @classmethod
    def from_eip5267(cls, result: Sequence) -> "SigningDomain":
        """
        Decode the return of eip712Domain():
        (fields, name, version, chainId, verifyingContract, salt, extensions)
        """
        if len(result) < 5:
            raise RequestValidationError(f"domain: unexpected eip712Domain() shape ({len(result)} items)")
        return cls(
            name=result[1],
            version=result[2],
            chain_id=result[3],
            verifying_contract=result[4],
        )


# =============================================================================
# PROPOSAL
# =============================================================================

# Order of the getProposal() struct
PROPOSAL_FIELDS = (
    "id", "name", "recipient", "amount", "deadline", "proposer",
    "votesFor", "votesAgainst", "votesAbstain", "executed", "executionTime",
)


@dataclass(frozen=True)
class Proposal:
    """
    Governance proposal as stored by the DAO contract.

    The contract is the sole owner; this is a read-only snapshot. A record
    with id == 0 means the proposal does not exist.
    """
    id: int
    name: str
    recipient: str
    amount: int
    deadline: int
    proposer: str
    votes_for: int = 0
    votes_against: int = 0
    votes_abstain: int = 0
    executed: bool = False
    execution_time: int = 0

    def __post_init__(self):
        object.__setattr__(self, "id", to_uint(self.id, "id"))
        object.__setattr__(self, "recipient", to_address(self.recipient, "recipient"))
        object.__setattr__(self, "proposer", to_address(self.proposer, "proposer"))
        for attr in ("amount", "deadline", "votes_for", "votes_against",
                     "votes_abstain", "execution_time"):
            object.__setattr__(self, attr, to_uint(getattr(self, attr), attr))
        if not isinstance(self.executed, bool):
            raise RequestValidationError("executed: expected bool")
        if not isinstance(self.name, str):
            raise RequestValidationError("name: expected string")

    @property
    def exists(self) -> bool:
        return self.id != 0

    @classmethod
    def from_tuple(cls, values: Sequence) -> "Proposal":
        """Decode the getProposal() struct tuple."""
        if len(values) != len(PROPOSAL_FIELDS):
            raise RequestValidationError(
                f"proposal: expected {len(PROPOSAL_FIELDS)} fields, got {len(values)}")
        return cls.from_dict(dict(zip(PROPOSAL_FIELDS, values)))

    @classmethod
    def from_dict(cls, data: dict) -> "Proposal":
        try:
            return cls(
                id=data["id"],
                name=data["name"],
                recipient=data["recipient"],
                amount=data["amount"],
                deadline=data["deadline"],
                proposer=data["proposer"],
                votes_for=data.get("votesFor", 0),
                votes_against=data.get("votesAgainst", 0),
                votes_abstain=data.get("votesAbstain", 0),
                executed=data.get("executed", False),
                execution_time=data.get("executionTime", 0),
            )
        except KeyError as e:
            raise RequestValidationError(f"proposal: missing field {e}")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "recipient": self.recipient,
            "amount": str(self.amount),
            "deadline": self.deadline,
            "proposer": self.proposer,
            "votesFor": str(self.votes_for),
            "votesAgainst": str(self.votes_against),
            "votesAbstain": str(self.votes_abstain),
            "executed": self.executed,
            "executionTime": self.execution_time,
        }


