"""
DAO Relay - Configuration

Defaults target a local anvil node. Addresses and the relayer key come
from the environment (NEVER commit keys).
"""

import os
from dataclasses import dataclass, fields
from typing import Optional

# =============================================================================
# PROTOCOL CONSTANTS
# =============================================================================

EXECUTION_DELAY = 24 * 60 * 60   # 1 day after deadline before executeProposal
MAX_PROPOSALS = 100              # Daemon scan cap
PROPOSAL_THRESHOLD_BPS = 1000    # 10% of treasury to create a proposal


@dataclass
class Config:
    # Chain
    rpc_url: str = "http://127.0.0.1:8545"
    chain_id: int = 31337
    rpc_timeout: int = 30

    # Contracts
    forwarder_address: str = ""
    dao_address: str = ""

    # Relayer hot wallet (pays gas for relayed calls and executions)
    relayer_private_key: str = ""

    # Relay
    default_gas: int = 500_000
    wait_for_receipt: bool = True
    receipt_timeout: int = 120

    # Daemon
    execution_delay: int = EXECUTION_DELAY
    max_proposals: int = MAX_PROPOSALS
    use_proposal_count: bool = False
    poll_interval: int = 30  # seconds

    # HTTP API
    http_host: str = "127.0.0.1"
    http_port: int = 8080

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "Config":
        """
        Build config from environment variables, then apply overrides.

        Recognised: RPC_URL, CHAIN_ID, FORWARDER_ADDRESS, DAO_ADDRESS,
        RELAYER_PRIVATE_KEY, EXECUTION_DELAY, MAX_PROPOSALS,
        USE_PROPOSAL_COUNT, POLL_INTERVAL, HTTP_PORT, LOG_LEVEL
        """
        env = os.environ if environ is None else environ
        config = cls()

        config.rpc_url = env.get("RPC_URL", config.rpc_url)
        config.chain_id = int(env.get("CHAIN_ID", config.chain_id))
        config.forwarder_address = env.get("FORWARDER_ADDRESS", config.forwarder_address)
        config.dao_address = env.get("DAO_ADDRESS", config.dao_address)
        config.relayer_private_key = env.get("RELAYER_PRIVATE_KEY", config.relayer_private_key)
        config.execution_delay = int(env.get("EXECUTION_DELAY", config.execution_delay))
        config.max_proposals = int(env.get("MAX_PROPOSALS", config.max_proposals))
        config.use_proposal_count = env.get("USE_PROPOSAL_COUNT", "").lower() in ("1", "true", "yes")
        config.poll_interval = int(env.get("POLL_INTERVAL", config.poll_interval))
        config.http_port = int(env.get("HTTP_PORT", config.http_port))
        config.log_level = env.get("LOG_LEVEL", config.log_level).upper()

        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise ValueError(f"Unknown config option: {key}")
            if value is not None:
                setattr(config, key, value)
        return config

    def validate(self, need_relayer: bool = True):
        """Fail fast if required settings are missing."""
        if not self.forwarder_address:
            raise ValueError("FORWARDER_ADDRESS is required")
        if not self.dao_address:
            raise ValueError("DAO_ADDRESS is required")
        if need_relayer and not self.relayer_private_key:
            raise ValueError("RELAYER_PRIVATE_KEY environment variable is required")
        if self.max_proposals <= 0:
            raise ValueError("max_proposals must be positive")
        if self.execution_delay < 0:
            raise ValueError("execution_delay must be non-negative")
