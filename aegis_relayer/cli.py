"""
Command line entry point: ``aegis-relayer``.

Starts the relayer engine against the configured vault (or an in-memory stub
chain with ``--stub``) and serves the status API.
"""
import argparse
import logging
import sys
import threading
from typing import List, Optional

import numpy as np
import uvicorn
from dotenv import load_dotenv

from .config import RelayerConfig
from .engine import RelayerEngine
from .exceptions import ConfigError
from .ledger import LedgerClient, StubLedger, VaultLedger
from .server import create_app
from .version import __version__

logger = logging.getLogger("aegis_relayer")

STUB_BALANCE_WEI = 100 * 10**18
STUB_BASE_FEE_WEI = 3 * 10**9


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aegis-relayer",
        description="Batch relayer with size and fee-confidence triggers",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--host", default="0.0.0.0", help="Status API bind address")
    parser.add_argument("--port", type=int, help="Status API port (env: PORT)")
    parser.add_argument("--threshold", type=int, dest="batch_size_threshold",
                        help="Pool size that forces a batch (env: BATCH_SIZE_THRESHOLD)")
    parser.add_argument("--cooldown", type=float, dest="cooldown_seconds",
                        help="Seconds to wait after a failed batch (env: COOLDOWN_SECONDS)")
    parser.add_argument("--stub", action="store_true",
                        help="Run against an in-memory chain instead of RPC_URL")
    parser.add_argument("--stub-block-time", type=float, default=3.0,
                        help="Seconds between simulated blocks in --stub mode")
    parser.add_argument("--env-file", default=None, help="Load variables from this .env file first")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def _run_stub_chain(ledger: StubLedger, stop_event: threading.Event, block_time: float, seed: Optional[int] = None):
    """Mine blocks with a random-walk base fee until stopped."""
    rng = np.random.default_rng(seed)
    base_fee = float(STUB_BASE_FEE_WEI)
    while not stop_event.wait(block_time):
        base_fee = max(1e8, base_fee * (1.0 + rng.normal(0.0, 0.08)))
        ledger.mine_block(base_fee=int(base_fee))


def build_ledger(config: RelayerConfig, stub: bool) -> LedgerClient:
    if stub:
        return StubLedger(balance=STUB_BALANCE_WEI)
    return VaultLedger(
        rpc_url=config.rpc_url,
        vault_address=config.vault_address,
        priv_key=config.relayer_private_key,
        gas_safety_margin=config.gas_safety_margin,
        confirmation_timeout=config.confirmation_timeout_seconds,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    load_dotenv(args.env_file)

    try:
        config = RelayerConfig.from_env(
            port=args.port,
            batch_size_threshold=args.batch_size_threshold,
            cooldown_seconds=args.cooldown_seconds,
        )
    except ConfigError as e:
        logger.error(str(e))
        return 2

    ledger = build_ledger(config, args.stub)
    engine = RelayerEngine(ledger, config)

    logger.info(f"Aegis relayer {__version__} starting")
    logger.info(f"   RPC:     {'in-memory stub' if args.stub else config.rpc_url}")
    logger.info(f"   Vault:   {config.vault_address}")
    logger.info(f"   Relayer: {ledger.executor_address}")

    stop_event = threading.Event()
    if args.stub:
        threading.Thread(
            target=_run_stub_chain,
            args=(ledger, stop_event, args.stub_block_time),
            name="aegis-stub-chain",
            daemon=True,
        ).start()

    engine.start()
    try:
        # uvicorn installs its own SIGINT/SIGTERM handlers and returns on shutdown
        uvicorn.run(create_app(engine, cors_origin=config.cors_origin), host=args.host, port=config.port)
    finally:
        stop_event.set()
        engine.stop()
        ledger.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
