#!/usr/bin/env python3
# Copyright (c) 2025 The DAO Relay developers
# Distributed under the MIT software license

"""
Execution Daemon - Automated execution of approved proposals

This daemon:
  1. Scans proposal ids 1..N in ascending order
  2. Skips proposals that are executed, still voting, rejected, or still
     inside the execution delay
  3. Calls executeProposal(id) from the relayer account for the rest
  4. Logs and records per-proposal failures without stopping the sweep

Each proposal executes at most once on-chain, so sweeps can be repeated
as often as needed.
"""

import argparse
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .config import Config
from .dao_types import NotEligible
from .errors import DAORelayError
from .ledger_client import LedgerClient
from .proposal_state import eligibility
from .utils import setup_logging

log = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one sweep"""
    timestamp: int
    executed: List[int] = field(default_factory=list)
    tx_hashes: Dict[int, str] = field(default_factory=dict)
    skipped: Dict[int, NotEligible] = field(default_factory=dict)
    failed: Dict[int, DAORelayError] = field(default_factory=dict)
    scanned: int = 0

    def to_dict(self) -> dict:
        return {
            "executed": [str(pid) for pid in self.executed],
            "txHashes": {str(pid): tx for pid, tx in self.tx_hashes.items()},
            "skipped": {str(pid): reason.value for pid, reason in self.skipped.items()},
            "failed": {str(pid): err.to_dict() for pid, err in self.failed.items()},
            "scanned": self.scanned,
            "timestamp": str(self.timestamp),
        }


class ExecutionDaemon:
    """
    Sweeps proposals and executes every eligible one.

    Usage:
        daemon = ExecutionDaemon(ledger, config)
        result = daemon.sweep()
        print(result.executed)
    """

    def __init__(self, ledger, config: Optional[Config] = None,
                 clock: Optional[Callable[[], float]] = None):
        """
        Args:
            ledger: LedgerClient (get_proposal / execute_proposal / proposal_count)
            config: daemon settings (execution delay, scan cap, poll interval)
            clock: current unix time source (defaults to time.time)
        """
        self.ledger = ledger
        self.config = config or Config()
        self.clock = clock or time.time
        self.running = False

    def _scan_bound(self) -> Tuple[int, bool]:
        """
        Highest id to scan, and whether to stop at the first missing id.

        With use_proposal_count the ledger's counter is authoritative and
        gaps are skipped instead of ending the scan.
        """
        if self.config.use_proposal_count:
            return self.ledger.proposal_count(), False
        return self.config.max_proposals, True

    def sweep(self, now: Optional[int] = None) -> SweepResult:
        """
        Run one pass over all proposals.

        Args:
            now: unix time to evaluate eligibility at (defaults to clock())

        Returns:
            SweepResult; `executed` lists ids executed in this pass, ascending

        Raises:
            LedgerUnavailable if proposals cannot be read
        """
        now = int(self.clock()) if now is None else int(now)
        delay = self.config.execution_delay
        bound, stop_at_gap = self._scan_bound()
        result = SweepResult(timestamp=now)

        for proposal_id in range(1, bound + 1):
            proposal = self.ledger.get_proposal(proposal_id)
            result.scanned += 1

            reason = eligibility(proposal, now, delay)
            if reason is NotEligible.NOT_FOUND and stop_at_gap:
                log.debug(f"Proposal {proposal_id} does not exist, stopping scan")
                break
            if reason is not None:
                result.skipped[proposal_id] = reason
                continue

            log.info(f"Executing proposal {proposal_id} ({proposal.name!r}, "
                     f"{proposal.votes_for} for / {proposal.votes_against} against)")
            try:
                tx_hash = self.ledger.execute_proposal(proposal_id)
            except DAORelayError as e:
                log.error(f"Failed to execute proposal {proposal_id}: {e.kind}: {e.message}")
                result.failed[proposal_id] = e
                continue

            result.executed.append(proposal_id)
            result.tx_hashes[proposal_id] = tx_hash
            log.info(f"Executed proposal {proposal_id}, tx: {tx_hash}")

        if bound and result.scanned == bound and stop_at_gap:
            log.warning(f"Scan reached the cap of {bound} proposals; later proposals were not checked")

        log.info(f"Sweep done: scanned={result.scanned} executed={len(result.executed)} "
                 f"failed={len(result.failed)}")
        return result

    def run(self):
        """Main daemon loop"""
        log.info("=" * 60)
        log.info("Execution daemon starting...")
        log.info(f"  RPC: {self.config.rpc_url}")
        log.info(f"  DAO: {self.config.dao_address}")
        log.info(f"  Execution delay: {self.config.execution_delay}s")
        log.info(f"  Poll interval: {self.config.poll_interval}s")
        log.info("=" * 60)

        self.running = True
        while self.running:
            try:
                self.sweep()
            except KeyboardInterrupt:
                log.info("Shutting down...")
                break
            except DAORelayError as e:
                log.error(f"Sweep aborted: {e.kind}: {e.message}")

            try:
                time.sleep(self.config.poll_interval)
            except KeyboardInterrupt:
                log.info("Shutting down...")
                break
        self.running = False

    def stop(self):
        self.running = False


# =============================================================================
# MAIN
# =============================================================================

def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Execute approved DAO proposals")
    parser.add_argument("--rpc-url", help="Ethereum JSON-RPC URL (env RPC_URL)")
    parser.add_argument("--dao", dest="dao_address", help="DAO contract address (env DAO_ADDRESS)")
    parser.add_argument("--forwarder", dest="forwarder_address",
                        help="MinimalForwarder address (env FORWARDER_ADDRESS)")
    parser.add_argument("--poll-interval", type=int, help="Poll interval in seconds")
    parser.add_argument("--max-proposals", type=int, help="Highest proposal id to scan")
    parser.add_argument("--use-proposal-count", action="store_true", default=None,
                        help="Bound the scan with proposalCount() instead of the cap")
    parser.add_argument("--chain-time", action="store_true",
                        help="Evaluate deadlines against the latest block timestamp")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--once", action="store_true", help="Run one sweep and exit")

    args = parser.parse_args(argv)

    config = Config.from_env(
        rpc_url=args.rpc_url,
        dao_address=args.dao_address,
        forwarder_address=args.forwarder_address,
        poll_interval=args.poll_interval,
        max_proposals=args.max_proposals,
        use_proposal_count=args.use_proposal_count,
        log_level=args.log_level,
    )
    setup_logging(config.log_level)
    config.validate()

    ledger = LedgerClient(config)
    clock = ledger.block_timestamp if args.chain_time else None
    daemon = ExecutionDaemon(ledger, config, clock=clock)

    if args.once:
        result = daemon.sweep()
        print(", ".join(str(pid) for pid in result.executed) or "nothing executed")
    else:
        daemon.run()


if __name__ == "__main__":
    main()
