#!/usr/bin/env python3
"""
DAO Relay Server - REST API for gasless voting

Endpoints:
  POST /api/relay             - Verify and execute a signed ForwardRequest
  GET  /api/nonce?address=    - Current forwarder nonce for an address
  GET  /api/eip712-domain     - Forwarder signing domain
  GET  /api/daemon            - Run one execution sweep
  GET  /api/proposals/<id>    - Proposal with derived status
  GET  /api/status            - Relayer status
"""

import argparse
import logging
from typing import Callable, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from .config import Config
from .daemon import ExecutionDaemon
from .dao_types import ForwardRequest, RequestValidationError, to_address
from .errors import (
    DAORelayError,
    ExecutionReverted,
    InvalidSignature,
    LedgerUnavailable,
    RelayerFundsExhausted,
    StaleNonce,
)
from .ledger_client import LedgerClient
from .proposal_state import classify, is_executable, time_until_executable
from .relayer import Relayer
from .resolver import RequestResolver
from .utils import setup_logging, short_address

log = logging.getLogger(__name__)

# Error kind -> HTTP status
HTTP_STATUS = {
    InvalidSignature: 400,
    StaleNonce: 400,
    RelayerFundsExhausted: 402,
    ExecutionReverted: 422,
    LedgerUnavailable: 503,
}


def error_response(error: DAORelayError):
    status = HTTP_STATUS.get(type(error), 500)
    return jsonify(error.to_dict()), status


def bad_request(message: str):
    return jsonify({"error": message, "kind": "invalid_request", "retryable": False}), 400


# =============================================================================
# FLASK APP
# =============================================================================

def create_app(config: Optional[Config] = None, ledger=None,
               clock: Optional[Callable[[], float]] = None) -> Flask:
    """
    Build the relay API.

    Args:
        config: relay configuration (defaults to Config.from_env())
        ledger: ledger client (defaults to LedgerClient(config))
        clock: unix time source for status and sweeps (defaults to time.time)
    """
    config = config or Config.from_env()
    ledger = ledger or LedgerClient(config)

    resolver = RequestResolver(ledger, default_gas=config.default_gas)
    relayer = Relayer(ledger)
    daemon = ExecutionDaemon(ledger, config, clock=clock)

    app = Flask(__name__)
    CORS(app)  # Allow cross-origin for the voting frontend

    app.config["DAO_RELAY"] = {
        "ledger": ledger,
        "resolver": resolver,
        "relayer": relayer,
        "daemon": daemon,
    }

    @app.errorhandler(DAORelayError)
    def handle_relay_error(error: DAORelayError):
        return error_response(error)

    @app.errorhandler(RequestValidationError)
    def handle_validation_error(error: RequestValidationError):
        return bad_request(str(error))

    @app.route("/api/relay", methods=["POST"])
    def relay():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return bad_request("Request body must be a JSON object")
        forward_request = body.get("request")
        signature = body.get("signature")

        if not forward_request or not signature:
            return bad_request("Missing request or signature")

        req = ForwardRequest.from_dict(forward_request)
        tx_hash = relayer.submit(req, signature)
        return jsonify({"txHash": tx_hash})

    @app.route("/api/nonce", methods=["GET"])
    def nonce():
        address = request.args.get("address")
        if not address:
            return bad_request("Missing address")
        address = to_address(address, "address")
        return jsonify({"nonce": str(resolver.resolve_nonce(address))})

    @app.route("/api/eip712-domain", methods=["GET"])
    def eip712_domain():
        return jsonify(resolver.resolve_domain().to_dict())

    @app.route("/api/daemon", methods=["GET", "POST"])
    def run_daemon():
        result = daemon.sweep()
        return jsonify(result.to_dict())

    @app.route("/api/proposals/<int:proposal_id>", methods=["GET"])
    def proposal(proposal_id: int):
        found = ledger.get_proposal(proposal_id)
        if found is None:
            return jsonify({"error": f"Proposal {proposal_id} not found", "kind": "not_found",
                            "retryable": False}), 404
        now = int(daemon.clock())
        data = found.to_dict()
        data["status"] = classify(found, now).value
        data["executable"] = is_executable(found, now, config.execution_delay)
        data["secondsUntilExecutable"] = time_until_executable(found, now, config.execution_delay)
        return jsonify(data)

    @app.route("/api/status", methods=["GET"])
    def status():
        data = {
            "connected": ledger.is_connected(),
            "forwarder": config.forwarder_address,
            "dao": config.dao_address,
            "relayer": ledger.relayer_address,
        }
        if data["connected"]:
            data["chainId"] = str(ledger.chain_id())
            if ledger.relayer_address:
                data["relayerBalance"] = str(ledger.relayer_balance())
        return jsonify(data)

    log.info(f"Relay API ready: forwarder={short_address(config.forwarder_address)} "
             f"dao={short_address(config.dao_address)}")
    return app


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(description="DAO gasless relay API")
    parser.add_argument("--host", help="Bind address")
    parser.add_argument("--port", type=int, help="HTTP port")
    parser.add_argument("--rpc-url", help="Ethereum JSON-RPC URL (env RPC_URL)")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()

    config = Config.from_env(http_host=args.host, http_port=args.port,
                             rpc_url=args.rpc_url, log_level=args.log_level)
    setup_logging(config.log_level)
    config.validate()

    app = create_app(config)
    log.info(f"Serving on http://{config.http_host}:{config.http_port}")
    app.run(host=config.http_host, port=config.http_port)


if __name__ == "__main__":
    main()
