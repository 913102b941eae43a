"""Runtime application config: loading, conversion to and from the file layout, and warnings."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from datetime import UTC, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import tomli_w

from txbot.config_types import Chains, DisplayWarning, Reporter, Subscription
from txbot.toml_config import (
    ConfigError,
    LogSection,
    MetricsSection,
    TomlChain,
    TomlConfig,
    TomlReporter,
    TomlSubscription,
)


@dataclass
class LogConfig:
    """Logging settings."""

    log_level: str = ""
    json_output: bool = False


@dataclass
class MetricsConfig:
    """Metrics endpoint settings."""

    enabled: bool = False
    listen_addr: str = ""


def _load_timezone(name: str) -> tzinfo:
    if name in ("", "UTC"):
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return UTC


@dataclass
class AppConfig:
    """The validated configuration the application runs with."""

    aliases_path: str = ""
    log_config: LogConfig = field(default_factory=LogConfig)
    chains: Chains = field(default_factory=Chains)
    subscriptions: list[Subscription] = field(default_factory=list)
    reporters: list[Reporter] = field(default_factory=list)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    timezone: tzinfo = UTC

    def __post_init__(self) -> None:
        if not isinstance(self.chains, Chains):
            self.chains = Chains(self.chains)

    @classmethod
    def from_toml_config(cls, config: TomlConfig) -> AppConfig:
        """Build the runtime config from the file layout."""
        return cls(
            aliases_path=config.aliases_path,
            log_config=LogConfig(log_level=config.log.level, json_output=bool(config.log.json)),
            metrics=MetricsConfig(
                enabled=bool(config.metrics.enabled),
                listen_addr=config.metrics.listen_addr,
            ),
            chains=Chains(chain.to_app_config_chain() for chain in config.chains),
            reporters=[reporter.to_app_config_reporter() for reporter in config.reporters],
            subscriptions=[
                subscription.to_app_config_subscription() for subscription in config.subscriptions
            ],
            timezone=_load_timezone(config.timezone),
        )

    def to_toml_config(self) -> TomlConfig:
        """Convert back to the file layout."""
        return TomlConfig(
            aliases_path=self.aliases_path,
            log=LogSection(level=self.log_config.log_level, json=self.log_config.json_output),
            metrics=MetricsSection(enabled=self.metrics.enabled, listen_addr=self.metrics.listen_addr),
            chains=[TomlChain.from_app_config_chain(chain) for chain in self.chains],
            reporters=[TomlReporter.from_app_config_reporter(reporter) for reporter in self.reporters],
            subscriptions=[
                TomlSubscription.from_app_config_subscription(subscription)
                for subscription in self.subscriptions
            ],
            timezone=str(self.timezone),
        )

    def display_warnings(self) -> list[DisplayWarning]:
        """Collect warnings about settings that are valid but probably unintended."""
        warnings = [warning for chain in self.chains for warning in chain.display_warnings()]

        reporters_used = {subscription.reporter for subscription in self.subscriptions}
        chains_used = {
            chain_subscription.chain
            for subscription in self.subscriptions
            for chain_subscription in subscription.chain_subscriptions
        }

        warnings.extend(
            DisplayWarning(keys={"chain": chain.name}, text="Chain is not used in any subscriptions")
            for chain in self.chains
            if chain.name not in chains_used
        )
        warnings.extend(
            DisplayWarning(
                keys={"reporter": reporter.name},
                text="Reporter is not used in any subscriptions",
            )
            for reporter in self.reporters
            if reporter.name not in reporters_used
        )
        return warnings

    def config_as_string(self) -> str:
        """Render the config as TOML."""
        return tomli_w.dumps(self.to_toml_config().to_dict())


def load_config(path: str | os.PathLike[str]) -> AppConfig:
    """Read, default, validate and convert the config file at path."""
    try:
        with open(path, "rb") as handle:
            data = tomllib.load(handle)
    except OSError as exc:
        raise ConfigError(f"could not read config: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"could not parse config: {exc}") from exc

    toml_config = TomlConfig.from_dict(data)
    toml_config.validate()
    return AppConfig.from_toml_config(toml_config)