"""Main entry point for relay-bot."""

import asyncio
import logging
import sys

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from relay_bot.config import ConfigError, load_config, load_legacy_env, validate_required
from relay_bot.service import RelayService


def setup_logging(debug: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from libraries
    logging.getLogger("pydle").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


async def async_main(
    config_path: str | None = None,
    debug: bool = False,
    debug_ai: bool = False,
) -> None:
    """Async main entry point."""
    setup_logging(debug)
    logger = logging.getLogger(__name__)

    # Load .env file if present
    load_dotenv()

    try:
        config = load_legacy_env(load_config(config_path))
        validate_required(config)
    except (ConfigError, ValidationError, yaml.YAMLError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if debug_ai:
        from relay_bot.core.logging import set_ai_debug
        set_ai_debug(True)
        logger.info("AI debug logging enabled - full upstream requests and responses will be logged")

    service = RelayService(config)

    logger.info("Starting relay-bot...")
    logger.info(f"Nick: {service.nickname}")
    logger.info(f"Channel: {service.channel}")
    logger.info(f"Model: {config.llm.model}")
    logger.info(f"Activity log: {config.relay.log_path}")

    try:
        await service.start()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)
    finally:
        await service.close()


def main() -> None:
    """Main entry point (sync wrapper)."""
    import argparse

    parser = argparse.ArgumentParser(
        description="relay-bot: answer addressed IRC messages with an LLM",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--debug-ai",
        action="store_true",
        help="Log full request and response bodies for every upstream call",
    )

    args = parser.parse_args()

    asyncio.run(async_main(
        config_path=args.config,
        debug=args.debug,
        debug_ai=args.debug_ai,
    ))


if __name__ == "__main__":
    main()
