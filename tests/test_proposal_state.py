import pytest

from dao_relay.config import EXECUTION_DELAY
from dao_relay.dao_types import NotEligible, Proposal, ProposalStatus
from dao_relay.proposal_state import (
    can_create_proposal,
    classify,
    eligibility,
    is_approved,
    is_executable,
    min_proposal_balance,
    time_until_executable,
)

from conftest import RECIPIENT, T0

DEADLINE = T0 + 3600


def make(votes_for=0, votes_against=0, executed=False, proposal_id=1, deadline=DEADLINE):
    return Proposal(id=proposal_id, name="Grant", recipient=RECIPIENT, amount=10,
                    deadline=deadline, proposer=RECIPIENT, votes_for=votes_for,
                    votes_against=votes_against, executed=executed)


class TestClassify:

    def test_active_until_deadline_inclusive(self):
        p = make(votes_for=5)
        assert classify(p, DEADLINE - 1) is ProposalStatus.ACTIVE
        assert classify(p, DEADLINE) is ProposalStatus.ACTIVE
        assert classify(p, DEADLINE + 1) is ProposalStatus.APPROVED

    def test_tie_rejects(self):
        assert classify(make(votes_for=4, votes_against=4), DEADLINE + 1) is ProposalStatus.REJECTED

    def test_no_votes_rejects(self):
        assert classify(make(), DEADLINE + 1) is ProposalStatus.REJECTED

    def test_executed_overrides_time(self):
        p = make(votes_for=1, executed=True)
        assert classify(p, DEADLINE - 100) is ProposalStatus.EXECUTED
        assert classify(p, DEADLINE + EXECUTION_DELAY * 2) is ProposalStatus.EXECUTED

    def test_closed_status_does_not_change_with_time(self):
        approved = make(votes_for=2, votes_against=1)
        rejected = make(votes_for=1, votes_against=2)
        for now in (DEADLINE + 1, DEADLINE + EXECUTION_DELAY, DEADLINE + 10 * EXECUTION_DELAY):
            assert classify(approved, now) is ProposalStatus.APPROVED
            assert classify(rejected, now) is ProposalStatus.REJECTED

    def test_id_zero_cannot_be_classified(self):
        with pytest.raises(ValueError):
            classify(make(proposal_id=0), DEADLINE)

    def test_status_values(self):
        assert [s.value for s in ProposalStatus] == ["Active", "Approved", "Rejected", "Executed"]


class TestExecutable:

    def test_approved_but_inside_delay(self):
        p = make(votes_for=3)
        now = DEADLINE + EXECUTION_DELAY - 1
        assert is_approved(p, now)
        assert not is_executable(p, now)

    def test_gate_opens_exactly_at_delay(self):
        assert is_executable(make(votes_for=3), DEADLINE + EXECUTION_DELAY)

    def test_rejected_never_executable(self):
        assert not is_executable(make(votes_for=1, votes_against=1), DEADLINE + 10 * EXECUTION_DELAY)

    def test_executed_never_executable(self):
        assert not is_executable(make(votes_for=3, executed=True), DEADLINE + EXECUTION_DELAY)

    def test_custom_delay(self):
        p = make(votes_for=3)
        assert is_executable(p, DEADLINE + 1, delay=0)
        assert not is_executable(p, DEADLINE, delay=0)

    def test_time_until_executable(self):
        p = make(votes_for=3)
        assert time_until_executable(p, DEADLINE) == EXECUTION_DELAY
        assert time_until_executable(p, DEADLINE + EXECUTION_DELAY + 5) == 0


class TestEligibility:

    @pytest.mark.parametrize("proposal, now, reason", [
        (None, DEADLINE, NotEligible.NOT_FOUND),
        (make(proposal_id=0), DEADLINE, NotEligible.NOT_FOUND),
        (make(votes_for=3, executed=True), DEADLINE + EXECUTION_DELAY, NotEligible.ALREADY_EXECUTED),
        (make(votes_for=3), DEADLINE, NotEligible.VOTING_OPEN),
        (make(votes_for=1, votes_against=1), DEADLINE + EXECUTION_DELAY, NotEligible.REJECTED),
        (make(votes_for=3), DEADLINE + EXECUTION_DELAY - 1, NotEligible.DELAY_PENDING),
        (make(votes_for=3), DEADLINE + EXECUTION_DELAY, None),
    ])
    def test_reasons(self, proposal, now, reason):
        assert eligibility(proposal, now) is reason


class TestThreshold:

    def test_min_balance_is_ten_percent(self):
        assert min_proposal_balance(1000) == 100
        assert min_proposal_balance(0) == 0

    def test_can_create(self):
        assert can_create_proposal(100, 1000)
        assert not can_create_proposal(99, 1000)
        assert can_create_proposal(1, 1000, threshold_bps=0)
