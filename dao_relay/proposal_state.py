"""
Proposal State Machine

Status is derived from stored fields and the current time on every
query; nothing is stored or mutated.

States:
  ACTIVE    - voting open (now <= deadline)
  APPROVED  - voting closed, votesFor > votesAgainst
  REJECTED  - voting closed, votesFor <= votesAgainst (ties reject)
  EXECUTED  - executed flag set (terminal, overrides everything)

Approval and executability are separate gates: an APPROVED proposal can
only be executed once `deadline + execution_delay` has passed.
"""

from typing import Optional

from .config import EXECUTION_DELAY, PROPOSAL_THRESHOLD_BPS
from .dao_types import NotEligible, Proposal, ProposalStatus


def _require_existing(proposal: Proposal):
    if not proposal.exists:
        raise ValueError("proposal id 0 does not exist and cannot be classified")


def classify(proposal: Proposal, now: int) -> ProposalStatus:
    _require_existing(proposal)
    if proposal.executed:
        return ProposalStatus.EXECUTED
    if now <= proposal.deadline:
        return ProposalStatus.ACTIVE
    if proposal.votes_for > proposal.votes_against:
        return ProposalStatus.APPROVED
    return ProposalStatus.REJECTED


def is_approved(proposal: Proposal, now: int) -> bool:
    """Vote outcome gate: closed, not executed, more FOR than AGAINST."""
    return classify(proposal, now) is ProposalStatus.APPROVED


def is_executable(proposal: Proposal, now: int, delay: int = EXECUTION_DELAY) -> bool:
    """Approved and the execution delay after the deadline has elapsed."""
    return is_approved(proposal, now) and now >= proposal.deadline + delay


def eligibility(proposal: Optional[Proposal], now: int,
                delay: int = EXECUTION_DELAY) -> Optional[NotEligible]:
    """
    Screen a proposal for execution.

    Returns:
        None if executable now, otherwise the skip reason
    """
    if proposal is None or not proposal.exists:
        return NotEligible.NOT_FOUND
    status = classify(proposal, now)
    if status is ProposalStatus.EXECUTED:
        return NotEligible.ALREADY_EXECUTED
    if status is ProposalStatus.ACTIVE:
        return NotEligible.VOTING_OPEN
    if status is ProposalStatus.REJECTED:
        return NotEligible.REJECTED
    if now < proposal.deadline + delay:
        return NotEligible.DELAY_PENDING
    return None


def time_until_executable(proposal: Proposal, now: int, delay: int = EXECUTION_DELAY) -> int:
    """Seconds until the execution gate opens (0 if already open)."""
    _require_existing(proposal)
    return max(0, proposal.deadline + delay - now)


def min_proposal_balance(total_balance: int, threshold_bps: int = PROPOSAL_THRESHOLD_BPS) -> int:
    """Smallest member balance allowed to create a proposal."""
    return total_balance * threshold_bps // 10_000


def can_create_proposal(balance: int, total_balance: int,
                        threshold_bps: int = PROPOSAL_THRESHOLD_BPS) -> bool:
    """Client-side pre-check of the creation threshold (the DAO contract enforces it)."""
    return balance >= min_proposal_balance(total_balance, threshold_bps)
