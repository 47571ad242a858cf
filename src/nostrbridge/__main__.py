"""CLI entry point for the bridge.

Examples:
    ```bash
    python -m nostrbridge run
    python -m nostrbridge run --config config/bridge.yaml --log-level DEBUG
    python -m nostrbridge pubkey
    ```

Exit codes: 0 on success, 1 on failure, 130 when interrupted.
"""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from nostrbridge.core import start_metrics_server
from nostrbridge.core.exceptions import NostrBridgeError
from nostrbridge.core.logger import Logger, StructuredFormatter
from nostrbridge.core.yaml import load_yaml
from nostrbridge.services.bridge import Bridge, BridgeConfig


DEFAULT_CONFIG = Path("config") / "bridge.yaml"

logger = Logger("cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="nostrbridge",
        description="Nostr relay to inference bridge",
    )
    parser.add_argument(
        "command",
        choices=["run", "pubkey"],
        help="run: start the bridge; pubkey: print the configured identity",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Bridge config path (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Install a ``StructuredFormatter`` on the root handler."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


def load_config(path: Path) -> BridgeConfig:
    """Build the bridge configuration from *path* (defaults when missing)."""
    return BridgeConfig(**_load_yaml_dict(path))


def print_pubkey(config: BridgeConfig) -> None:
    public_key = config.keys.public_key()
    print(f"npub: {public_key.to_bech32()}")  # noqa: T201
    print(f"hex:  {public_key.to_hex()}")  # noqa: T201


async def run_bridge(bridge: Bridge) -> int:
    """Run the bridge until a shutdown signal arrives.

    Returns:
        Exit code: 0 for a clean shutdown, 1 for failure.
    """
    metrics_config = bridge.config.metrics
    metrics_server = await start_metrics_server(metrics_config)
    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        bridge.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with bridge:
            await bridge.run_forever()
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary
        logger.error("bridge_failed", error=str(e))
        return 1
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


async def main(argv: Sequence[str] | None = None) -> int:
    """Parse args, load configuration and dispatch the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = load_config(args.config)
    except (ValidationError, ValueError, NostrBridgeError, OSError) as e:
        logger.error("config_invalid", path=str(args.config), error=str(e))
        return 1

    if args.command == "pubkey":
        print_pubkey(config)
        return 0

    try:
        return await run_bridge(Bridge(config=config))
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    cli()
