"""Command-line entry point: load and check the configuration."""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Sequence

from txbot.aliases import AliasManager
from txbot.config import AppConfig, load_config
from txbot.toml_config import ConfigError

logger = logging.getLogger(__name__)


def _log_warnings(config: AppConfig) -> None:
    for warning in config.display_warnings():
        warning.log(logger)


def validate_config(config_path: str | os.PathLike[str]) -> AppConfig:
    """Load the config, log its warnings and return it; raises ConfigError if it is invalid."""
    config = load_config(config_path)
    _log_warnings(config)
    logger.info("Provided config is valid.")
    return config


def _prepare(config_path: str | os.PathLike[str]) -> AliasManager:
    config = load_config(config_path)
    _log_warnings(config)
    alias_manager = AliasManager(path=config.aliases_path, chains=config.chains)
    alias_manager.load()
    logger.info(
        "Loaded config with %d chain(s), %d reporter(s) and %d subscription(s)",
        len(config.chains),
        len(config.reporters),
        len(config.subscriptions),
    )
    return alias_manager


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cosmos-transactions-bot",
        description="Get notified on new transactions on different cosmos-sdk chains.",
    )
    parser.add_argument("--config", help="Config file path")
    commands = parser.add_subparsers(dest="command")
    validate = commands.add_parser("validate-config", help="Validate config.")
    validate.add_argument("--config", dest="command_config", help="Config file path")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    config_path = getattr(args, "command_config", None) or args.config
    if not config_path:
        parser.error('required flag "config" not set')

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    try:
        if args.command == "validate-config":
            validate_config(config_path)
        else:
            _prepare(config_path)
    except ConfigError as exc:
        logger.critical("Could not load config: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())