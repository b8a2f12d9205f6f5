"""
DAO Relay - EIP-712 ForwardRequest codec

Canonical typed-data encoding of a ForwardRequest. The forwarder contract
re-derives the same digest in verify(), so field names, order and types
here must match its struct exactly:

    ForwardRequest(address from,address to,uint256 value,uint256 gas,uint256 nonce,bytes data)

Everything in this module is pure: no RPC calls.
"""

from typing import Any, Dict, Union

from eth_abi import encode as abi_encode
from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from web3 import Web3

from .abi import FORWARD_REQUEST_COMPONENTS
from .dao_types import ForwardRequest, RequestValidationError, SigningDomain

# Gas budget for a relayed call (original frontend default)
DEFAULT_GAS = 500_000

PRIMARY_TYPE = "ForwardRequest"

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

TYPE_STRING = "ForwardRequest(" + ",".join(
    f"{f['type']} {f['name']}" for f in FORWARD_REQUEST_COMPONENTS
) + ")"


def type_hash() -> bytes:
    """keccak256 of the ForwardRequest type string."""
    return bytes(Web3.keccak(text=TYPE_STRING))


def build_request(from_: str, to: str, data: Union[str, bytes], nonce: int,
                  value: int = 0, gas: int = DEFAULT_GAS) -> ForwardRequest:
    """
    Build a validated ForwardRequest.

    Args:
        from_: principal authorising the call
        to: target contract
        data: encoded call (selector + args)
        nonce: principal's current forwarder nonce
        value: wei to forward with the call
        gas: gas budget for the forwarded call

    Raises:
        RequestValidationError on any malformed field
    """
    return ForwardRequest(from_=from_, to=to, value=value, gas=gas, nonce=nonce, data=data)


def typed_data(request: ForwardRequest, domain: SigningDomain) -> Dict[str, Any]:
    """Full EIP-712 message for eth_signTypedData_v4."""
    if not isinstance(request, ForwardRequest):
        raise RequestValidationError(f"expected ForwardRequest, got {type(request).__name__}")
    return {
        "types": {
            "EIP712Domain": list(EIP712_DOMAIN_TYPE),
            PRIMARY_TYPE: list(FORWARD_REQUEST_COMPONENTS),
        },
        "primaryType": PRIMARY_TYPE,
        "domain": domain.as_eip712(),
        "message": request.message(),
    }


def encode_request(request: ForwardRequest) -> bytes:
    """
    ABI-encode the struct body: (from, to, value, gas, nonce, keccak(data)).

    Dynamic `bytes` members are hashed before encoding, per EIP-712.
    """
    return abi_encode(
        ["address", "address", "uint256", "uint256", "uint256", "bytes32"],
        [request.from_, request.to, request.value, request.gas, request.nonce,
         bytes(Web3.keccak(request.data))],
    )


def struct_hash(request: ForwardRequest) -> bytes:
    return bytes(Web3.keccak(type_hash() + encode_request(request)))


def signable_message(request: ForwardRequest, domain: SigningDomain) -> SignableMessage:
    return encode_typed_data(full_message=typed_data(request, domain))


def digest(request: ForwardRequest, domain: SigningDomain) -> bytes:
    """The 32-byte hash that gets signed: keccak(0x19 0x01 domainSeparator structHash)."""
    message = signable_message(request, domain)
    return bytes(Web3.keccak(b"\x19" + message.version + message.header + message.body))


def recover_signer(request: ForwardRequest, domain: SigningDomain,
                   signature: Union[str, bytes]) -> str:
    """Address that produced `signature` over the request under `domain`."""
    return Account.recover_message(signable_message(request, domain), signature=signature)


def sign_request(request: ForwardRequest, domain: SigningDomain, private_key: str) -> str:
    """
    Sign a request locally (development and tests).

    Production signatures come from the user's wallet; the relay never
    holds user keys.
    """
    signed = Account.sign_message(signable_message(request, domain), private_key=private_key)
    return "0x" + bytes(signed.signature).hex()
