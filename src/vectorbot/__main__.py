"""CLI entry point: run a bot with a small built-in command responder.

The responder answers ``!ping``, ``!echo <text>`` and ``!hello`` in direct
messages, and in groups when the message is directed to the bot. Messages
authored by the bot itself are ignored.

Examples:
    ```bash
    PRIVATE_KEY=nsec1... python -m vectorbot
    python -m vectorbot --config config/vectorbot.yaml --log-level DEBUG
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from vectorbot.core import start_metrics_server
from vectorbot.core.logger import Logger, StructuredFormatter
from vectorbot.core.yaml import load_yaml
from vectorbot.models.constants import MessageOrigin
from vectorbot.models.message import BotMessage
from vectorbot.services.client import VectorBotClient


DEFAULT_CONFIG = Path("config") / "vectorbot.yaml"

logger = Logger("cli")


def command_reply(message: BotMessage) -> str | None:
    """Reply text for a command message, or ``None`` when nothing applies."""
    if message.self_authored:
        return None
    if message.tags.is_group and not message.tags.directed_to_bot:
        return None

    text = message.content.strip()
    command, _, rest = text.partition(" ")
    command = command.lower()
    if command == "!ping":
        return "pong"
    if command == "!echo":
        return rest.strip() or None
    if command == "!hello":
        name = message.tags.display_name or message.sender[:8]
        return f"Hello, {name}!"
    return None


async def respond(client: VectorBotClient, message: BotMessage) -> None:
    reply = command_reply(message)
    if reply is None:
        return
    if message.tags.origin == MessageOrigin.GROUP and message.tags.group_id:
        await client.send_group_message(message.tags.group_id, reply)
    else:
        await client.send_message(message.sender, reply)


async def run_bot(client: VectorBotClient) -> int:
    """Connect, respond until a shutdown signal arrives, then close."""
    metrics_config = client.config.metrics
    metrics_server = await start_metrics_server(metrics_config)
    if metrics_config.enabled:
        logger.info("metrics_server_started", host=metrics_config.host, port=metrics_config.port)

    stop = asyncio.Event()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    client.on("message", lambda message: respond(client, message))
    client.on("error", lambda error: logger.warning("bot_error", error=str(error)))
    client.on("ready", lambda payload: logger.info("bot_ready", pubkey=payload["pubkey"]))
    client.on("disconnect", lambda payload: logger.warning("relay_down", relay=payload["relay"]))
    client.on("reconnect", lambda payload: logger.info("relay_up", relay=payload["relay"]))

    try:
        async with client:
            await stop.wait()
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary
        logger.error("bot_failed", error=str(e))
        return 1
    finally:
        await metrics_server.stop()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="vectorbot", description="Vector bot runner")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Bot config path (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    return parser.parse_args()


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
    return load_yaml(str(path))


async def main() -> int:
    args = parse_args()
    setup_logging(args.log_level)
    try:
        client = VectorBotClient.from_dict(_load_yaml_dict(args.config))
    except Exception as e:  # Intentionally broad: invalid config or missing key
        logger.error("config_invalid", error=str(e))
        return 1
    return await run_bot(client)


def cli() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
