import pytest

from dao_relay.dao_types import (
    MAX_DATA_BYTES,
    UINT256_MAX,
    ForwardRequest,
    Proposal,
    RequestValidationError,
    SigningDomain,
    to_address,
    to_uint,
)

from conftest import DAO, FORWARDER, RECIPIENT


def wire_request(**changes):
    data = {
        "from": RECIPIENT.lower(),
        "to": DAO,
        "value": "0",
        "gas": "500000",
        "nonce": "3",
        "data": "0x1234",
    }
    data.update(changes)
    return data


class TestForwardRequest:

    def test_from_dict_normalises_fields(self):
        req = ForwardRequest.from_dict(wire_request())
        assert req.from_ == RECIPIENT
        assert req.gas == 500000
        assert req.nonce == 3
        assert req.data == b"\x12\x34"

    def test_to_dict_uses_decimal_strings(self):
        req = ForwardRequest.from_dict(wire_request(nonce="0x10"))
        out = req.to_dict()
        assert out["nonce"] == "16"
        assert out["data"] == "0x1234"
        assert ForwardRequest.from_dict(out) == req

    def test_value_defaults_to_zero(self):
        body = wire_request()
        del body["value"]
        assert ForwardRequest.from_dict(body).value == 0

    def test_missing_field(self):
        body = wire_request()
        del body["nonce"]
        with pytest.raises(RequestValidationError, match="nonce"):
            ForwardRequest.from_dict(body)

    @pytest.mark.parametrize("changes", [
        {"from": "0x1234"},
        {"to": "not an address"},
        {"gas": "0"},
        {"nonce": "-1"},
        {"nonce": True},
        {"value": str(UINT256_MAX + 1)},
        {"data": "0x123"},
        {"data": "0xzz"},
        {"data": "0x" + "00" * (MAX_DATA_BYTES + 1)},
    ])
    def test_rejects_malformed(self, changes):
        with pytest.raises(RequestValidationError):
            ForwardRequest.from_dict(wire_request(**changes))

    def test_data_at_limit_accepted(self):
        req = ForwardRequest.from_dict(wire_request(data="0x" + "ab" * MAX_DATA_BYTES))
        assert len(req.data) == MAX_DATA_BYTES

    def test_not_an_object(self):
        with pytest.raises(RequestValidationError):
            ForwardRequest.from_dict(["not", "a", "dict"])

    def test_message_keys(self):
        req = ForwardRequest.from_dict(wire_request())
        assert list(req.message()) == ["from", "to", "value", "gas", "nonce", "data"]
        assert req.as_tuple()[0] == RECIPIENT


class TestValidators:

    def test_to_uint_hex_and_decimal(self):
        assert to_uint("0xff", "x") == 255
        assert to_uint(" 42 ", "x") == 42

    def test_to_uint_rejects_float(self):
        with pytest.raises(RequestValidationError):
            to_uint(1.5, "x")

    def test_to_address_checksums(self):
        assert to_address(DAO.lower()) == DAO


class TestSigningDomain:

    def test_from_eip5267(self):
        result = (b"\x0f", "MinimalForwarder", "0.0.1", 31337, FORWARDER.lower(), b"\x00" * 32, [])
        domain = SigningDomain.from_eip5267(result)
        assert domain.verifying_contract == FORWARDER
        assert domain.to_dict() == {
            "name": "MinimalForwarder",
            "version": "0.0.1",
            "chainId": "31337",
            "verifyingContract": FORWARDER,
        }

    def test_from_dict_round_trip(self, domain):
        assert SigningDomain.from_dict(domain.to_dict()) == domain

    def test_from_dict_missing(self):
        with pytest.raises(RequestValidationError):
            SigningDomain.from_dict({"name": "MinimalForwarder"})

    def test_zero_chain_id_rejected(self):
        with pytest.raises(RequestValidationError):
            SigningDomain("MinimalForwarder", "0.0.1", 0, FORWARDER)


class TestProposal:

    def test_from_tuple(self):
        values = (7, "Grant", RECIPIENT, 10, 1000, RECIPIENT, 5, 2, 1, False, 0)
        p = Proposal.from_tuple(values)
        assert p.id == 7
        assert p.votes_for == 5 and p.votes_against == 2 and p.votes_abstain == 1
        assert p.exists

    def test_from_tuple_wrong_shape(self):
        with pytest.raises(RequestValidationError):
            Proposal.from_tuple((1, "Grant"))

    def test_id_zero_does_not_exist(self):
        p = Proposal(id=0, name="", recipient=RECIPIENT, amount=0, deadline=0, proposer=RECIPIENT)
        assert not p.exists

    def test_to_dict(self):
        p = Proposal(id=1, name="Grant", recipient=RECIPIENT, amount=10 ** 18, deadline=1000,
                     proposer=RECIPIENT, votes_for=3)
        out = p.to_dict()
        assert out["amount"] == str(10 ** 18)
        assert out["votesFor"] == "3"
        assert out["deadline"] == 1000
        assert Proposal.from_dict(out) == p
