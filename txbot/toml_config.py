"""Configuration as it is written on disk: TOML layout, defaults, validation and conversion."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from txbot.config_types import (
    Chain,
    ChainSubscription,
    DenomInfo,
    DenomInfos,
    Explorer,
    Filters,
    MintscanExplorer,
    PingExplorer,
    Reporter,
    Subscription,
    TelegramConfig,
)
from txbot.constants import REPORTER_TYPE_TELEGRAM, get_reporter_types
from txbot.query import QueryError, parse_query

DEFAULT_QUERIES = ("tx.height > 1",)
DEFAULT_PING_BASE_URL = "https://ping.pub"
DEFAULT_DENOM_EXPONENT = 6
DEFAULT_REPORTER_TYPE = REPORTER_TYPE_TELEGRAM
DEFAULT_TIMEZONE = "Etc/GMT"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_LISTEN_ADDR = ":9580"


class ConfigError(ValueError):
    """Raised for a configuration that cannot be read or is not valid."""


_MISSING = object()


def _typed(data: Mapping[str, Any], key: str, kind: type, what: str) -> Any:
    value = data.get(key, _MISSING)
    if value is _MISSING:
        return None
    if (isinstance(value, bool) and kind is not bool) or not isinstance(value, kind):
        raise ConfigError(f"'{key}' must be {what}, got {value!r}")
    return value


def _str(data: Mapping[str, Any], key: str) -> str | None:
    return _typed(data, key, str, "a string")


def _int(data: Mapping[str, Any], key: str) -> int | None:
    return _typed(data, key, int, "an integer")


def _bool_or(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = _typed(data, key, bool, "a boolean")
    return default if value is None else value


def _list_of(data: Mapping[str, Any], key: str, kind: type, what: str) -> list[Any] | None:
    values = _typed(data, key, list, f"a list of {what}")
    if values is None:
        return None
    for value in values:
        if (isinstance(value, bool) and kind is not bool) or not isinstance(value, kind):
            raise ConfigError(f"'{key}' must be a list of {what}, got {value!r}")
    return list(values)


def _table(data: Mapping[str, Any], key: str) -> dict[str, Any] | None:
    return _typed(data, key, dict, "a table")


def _check_timezone(name: str) -> None:
    if name in ("", "UTC"):
        return
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"error parsing timezone: unknown time zone {name}") from exc


def _check_query(text: str, what: str, index: int) -> None:
    try:
        parse_query(text)
    except QueryError as exc:
        raise ConfigError(f"error in {what} {index}: {exc}") from exc


@dataclass
class TomlExplorer:
    """Custom explorer link patterns."""

    proposal_link_pattern: str = ""
    wallet_link_pattern: str = ""
    validator_link_pattern: str = ""
    transaction_link_pattern: str = ""
    block_link_pattern: str = ""

    def to_app_config_explorer(self) -> Explorer:
        return Explorer(
            proposal_link_pattern=self.proposal_link_pattern,
            wallet_link_pattern=self.wallet_link_pattern,
            validator_link_pattern=self.validator_link_pattern,
            transaction_link_pattern=self.transaction_link_pattern,
            block_link_pattern=self.block_link_pattern,
        )

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> TomlExplorer:
        return cls(
            proposal_link_pattern=_str(data, "proposal-link-pattern") or "",
            wallet_link_pattern=_str(data, "wallet-link-pattern") or "",
            validator_link_pattern=_str(data, "validator-link-pattern") or "",
            transaction_link_pattern=_str(data, "transaction-link-pattern") or "",
            block_link_pattern=_str(data, "block-link-pattern") or "",
        )

    def _to_dict(self) -> dict[str, Any]:
        return {
            "proposal-link-pattern": self.proposal_link_pattern,
            "wallet-link-pattern": self.wallet_link_pattern,
            "validator-link-pattern": self.validator_link_pattern,
            "transaction-link-pattern": self.transaction_link_pattern,
            "block-link-pattern": self.block_link_pattern,
        }


@dataclass
class TomlDenomInfo:
    """A denom as written in a chain's config."""

    denom: str = ""
    display_denom: str = ""
    denom_exponent: int = 0
    coingecko_currency: str = ""

    def validate(self) -> None:
        if not self.denom:
            raise ConfigError("denom is not set")
        if not self.display_denom:
            raise ConfigError("display denom is not set")

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> TomlDenomInfo:
        return cls(
            denom=_str(data, "denom") or "",
            display_denom=_str(data, "display-denom") or "",
            denom_exponent=_int(data, "denom-exponent") or DEFAULT_DENOM_EXPONENT,
            coingecko_currency=_str(data, "coingecko-currency") or "",
        )

    def _to_dict(self) -> dict[str, Any]:
        return {
            "denom": self.denom,
            "display-denom": self.display_denom,
            "denom-exponent": self.denom_exponent,
            "coingecko-currency": self.coingecko_currency,
        }


def denoms_to_app_config(denoms: list[TomlDenomInfo]) -> DenomInfos:
    """Convert written denoms to runtime denom infos."""
    return DenomInfos(
        DenomInfo(
            denom=info.denom,
            display_denom=info.display_denom,
            denom_exponent=info.denom_exponent,
            coingecko_currency=info.coingecko_currency,
        )
        for info in denoms
    )


def denoms_from_app_config(denoms: list[DenomInfo]) -> list[TomlDenomInfo]:
    """Convert runtime denom infos back to their written form."""
    return [
        TomlDenomInfo(
            denom=info.denom,
            display_denom=info.display_denom,
            denom_exponent=info.denom_exponent,
            coingecko_currency=info.coingecko_currency,
        )
        for info in denoms
    ]


@dataclass
class TomlChain:
    """A chain as written in the config."""

    name: str = ""
    pretty_name: str = ""
    chain_id: str = ""
    tendermint_nodes: list[str] = field(default_factory=list)
    api_nodes: list[str] = field(default_factory=list)
    queries: list[str] = field(default_factory=list)
    mintscan_prefix: str = ""
    ping_prefix: str = ""
    ping_base_url: str = ""
    explorer: TomlExplorer | None = None
    denoms: list[TomlDenomInfo] = field(default_factory=list)

    def validate(self) -> None:
        if not self.name:
            raise ConfigError("empty chain name")
        if not self.chain_id:
            raise ConfigError("empty chain ID")
        if not self.tendermint_nodes:
            raise ConfigError("no Tendermint nodes provided")
        if not self.api_nodes:
            raise ConfigError("no API nodes provided")
        if not self.queries:
            raise ConfigError("no queries provided")
        for index, query in enumerate(self.queries):
            _check_query(query, "query", index)
        for index, denom in enumerate(self.denoms):
            try:
                denom.validate()
            except ConfigError as exc:
                raise ConfigError(f"error in denom {index}: {exc}") from exc

    def to_app_config_chain(self) -> Chain:
        supported: MintscanExplorer | PingExplorer | None = None
        if self.mintscan_prefix:
            supported = MintscanExplorer(prefix=self.mintscan_prefix)
        elif self.ping_prefix:
            supported = PingExplorer(prefix=self.ping_prefix, base_url=self.ping_base_url)

        explorer: Explorer | None = None
        if supported is not None:
            explorer = supported.to_explorer()
        elif self.explorer is not None:
            explorer = self.explorer.to_app_config_explorer()

        return Chain(
            name=self.name,
            pretty_name=self.pretty_name,
            chain_id=self.chain_id,
            tendermint_nodes=list(self.tendermint_nodes),
            api_nodes=list(self.api_nodes),
            queries=[parse_query(query) for query in self.queries],
            explorer=explorer,
            supported_explorer=supported,
            denoms=denoms_to_app_config(self.denoms),
        )

    @classmethod
    def from_app_config_chain(cls, chain: Chain) -> TomlChain:
        result = cls(
            name=chain.name,
            pretty_name=chain.pretty_name,
            chain_id=chain.chain_id,
            tendermint_nodes=list(chain.tendermint_nodes),
            api_nodes=list(chain.api_nodes),
            queries=[str(query) for query in chain.queries],
            denoms=denoms_from_app_config(chain.denoms),
        )
        supported = chain.supported_explorer
        if supported is None and chain.explorer is not None:
            explorer = chain.explorer
            result.explorer = TomlExplorer(
                proposal_link_pattern=explorer.proposal_link_pattern,
                wallet_link_pattern=explorer.wallet_link_pattern,
                validator_link_pattern=explorer.validator_link_pattern,
                transaction_link_pattern=explorer.transaction_link_pattern,
                block_link_pattern=explorer.block_link_pattern,
            )
        elif isinstance(supported, MintscanExplorer):
            result.mintscan_prefix = supported.prefix
        elif isinstance(supported, PingExplorer):
            result.ping_prefix = supported.prefix
            result.ping_base_url = supported.base_url
        return result

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> TomlChain:
        queries = _list_of(data, "queries", str, "strings")
        explorer = _table(data, "explorer")
        denoms = _list_of(data, "denoms", dict, "tables") or []
        return cls(
            name=_str(data, "name") or "",
            pretty_name=_str(data, "pretty-name") or "",
            chain_id=_str(data, "chain-id") or "",
            tendermint_nodes=_list_of(data, "tendermint-nodes", str, "strings") or [],
            api_nodes=_list_of(data, "api-nodes", str, "strings") or [],
            queries=list(DEFAULT_QUERIES) if queries is None else queries,
            mintscan_prefix=_str(data, "mintscan-prefix") or "",
            ping_prefix=_str(data, "ping-prefix") or "",
            ping_base_url=_str(data, "ping-base-url") or DEFAULT_PING_BASE_URL,
            explorer=None if explorer is None else TomlExplorer._from_dict(explorer),
            denoms=[TomlDenomInfo._from_dict(denom) for denom in denoms],
        )

    def _to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "pretty-name": self.pretty_name,
            "chain-id": self.chain_id,
            "tendermint-nodes": list(self.tendermint_nodes),
            "api-nodes": list(self.api_nodes),
            "queries": list(self.queries),
            "mintscan-prefix": self.mintscan_prefix,
            "ping-prefix": self.ping_prefix,
            "ping-base-url": self.ping_base_url,
            "denoms": [denom._to_dict() for denom in self.denoms],
        }
        if self.explorer is not None:
            result["explorer"] = self.explorer._to_dict()
        return result


def validate_chains(chains: list[TomlChain]) -> None:
    """Validate every chain and check that chain names are unique."""
    for index, chain in enumerate(chains):
        try:
            chain.validate()
        except ConfigError as exc:
            raise ConfigError(f"error in chain {index}: {exc}") from exc

    names: set[str] = set()
    for chain in chains:
        if chain.name in names:
            raise ConfigError(f"duplicate chain name: {chain.name}")
        names.add(chain.name)


def has_chain_by_name(chains: list[TomlChain], name: str) -> bool:
    """Tell whether a chain with this name is configured."""
    return any(chain.name == name for chain in chains)


@dataclass
class TomlTelegramConfig:
    """Telegram settings as written in the config."""

    chat: int = 0
    token: str = ""
    admins: list[int] = field(default_factory=list)

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> TomlTelegramConfig:
        return cls(
            chat=_int(data, "chat") or 0,
            token=_str(data, "token") or "",
            admins=_list_of(data, "admins", int, "integers") or [],
        )

    def _to_dict(self) -> dict[str, Any]:
        return {"chat": self.chat, "token": self.token, "admins": list(self.admins)}


@dataclass
class TomlReporter:
    """A reporter as written in the config."""

    name: str = ""
    type: str = ""
    telegram_config: TomlTelegramConfig | None = None

    def validate(self) -> None:
        if not self.name:
            raise ConfigError("reporter name not provided")
        reporter_types = get_reporter_types()
        if self.type not in reporter_types:
            raise ConfigError(
                f"expected type to be one of {', '.join(reporter_types)}, but got {self.type}"
            )
        if self.type == REPORTER_TYPE_TELEGRAM and self.telegram_config is None:
            raise ConfigError("missing telegram-config for Telegram reporter")

    def to_app_config_reporter(self) -> Reporter:
        telegram = self.telegram_config
        return Reporter(
            name=self.name,
            type=self.type,
            telegram_config=None
            if telegram is None
            else TelegramConfig(chat=telegram.chat, token=telegram.token, admins=list(telegram.admins)),
        )

    @classmethod
    def from_app_config_reporter(cls, reporter: Reporter) -> TomlReporter:
        telegram = reporter.telegram_config
        return cls(
            name=reporter.name,
            type=reporter.type,
            telegram_config=None
            if telegram is None
            else TomlTelegramConfig(chat=telegram.chat, token=telegram.token, admins=list(telegram.admins)),
        )

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> TomlReporter:
        telegram = _table(data, "telegram-config")
        return cls(
            name=_str(data, "name") or "",
            type=_str(data, "type") or DEFAULT_REPORTER_TYPE,
            telegram_config=None if telegram is None else TomlTelegramConfig._from_dict(telegram),
        )

    def _to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "type": self.type}
        if self.telegram_config is not None:
            result["telegram-config"] = self.telegram_config._to_dict()
        return result


def validate_reporters(reporters: list[TomlReporter]) -> None:
    """Validate every reporter and check that reporter names are unique."""
    for index, reporter in enumerate(reporters):
        try:
            reporter.validate()
        except ConfigError as exc:
            raise ConfigError(f"error in reporter {index}: {exc}") from exc

    names: set[str] = set()
    for reporter in reporters:
        if reporter.name in names:
            raise ConfigError(f"duplicate reporter name: {reporter.name}")
        names.add(reporter.name)


def has_reporter_by_name(reporters: list[TomlReporter], name: str) -> bool:
    """Tell whether a reporter with this name is configured."""
    return any(reporter.name == name for reporter in reporters)


_CHAIN_SUBSCRIPTION_FLAGS = (
    ("log_unknown_messages", "log-unknown-messages", False),
    ("log_unparsed_messages", "log-unparsed-messages", True),
    ("log_failed_transactions", "log-failed-transactions", True),
    ("log_node_errors", "log-node-errors", True),
    ("filter_internal_messages", "filter-internal-messages", True),
)


@dataclass
class TomlChainSubscription:
    """A subscription to one chain as written in the config; unset flags are None."""

    chain: str = ""
    filters: list[str] = field(default_factory=list)
    log_unknown_messages: bool | None = None
    log_unparsed_messages: bool | None = None
    log_failed_transactions: bool | None = None
    log_node_errors: bool | None = None
    filter_internal_messages: bool | None = None

    def validate(self) -> None:
        if not self.chain:
            raise ConfigError("empty chain name")
        for index, query in enumerate(self.filters):
            _check_query(query, "filter", index)

    def to_app_config_chain_subscription(self) -> ChainSubscription:
        return ChainSubscription(
            chain=self.chain,
            filters=Filters(parse_query(query) for query in self.filters),
            log_unknown_messages=bool(self.log_unknown_messages),
            log_unparsed_messages=bool(self.log_unparsed_messages),
            log_failed_transactions=bool(self.log_failed_transactions),
            log_node_errors=bool(self.log_node_errors),
            filter_internal_messages=bool(self.filter_internal_messages),
        )

    @classmethod
    def from_app_config_chain_subscription(cls, subscription: ChainSubscription) -> TomlChainSubscription:
        return cls(
            chain=subscription.chain,
            filters=[str(query) for query in subscription.filters],
            log_unknown_messages=subscription.log_unknown_messages,
            log_unparsed_messages=subscription.log_unparsed_messages,
            log_failed_transactions=subscription.log_failed_transactions,
            log_node_errors=subscription.log_node_errors,
            filter_internal_messages=subscription.filter_internal_messages,
        )

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> TomlChainSubscription:
        flags = {attr: _bool_or(data, key, default) for attr, key, default in _CHAIN_SUBSCRIPTION_FLAGS}
        return cls(
            chain=_str(data, "name") or "",
            filters=_list_of(data, "filters", str, "strings") or [],
            **flags,
        )

    def _to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.chain, "filters": list(self.filters)}
        for attr, key, _ in _CHAIN_SUBSCRIPTION_FLAGS:
            value = getattr(self, attr)
            if value is not None:
                result[key] = value
        return result


@dataclass
class TomlSubscription:
    """A subscription as written in the config."""

    name: str = ""
    reporter: str = ""
    chain_subscriptions: list[TomlChainSubscription] = field(default_factory=list)

    def validate(self) -> None:
        if not self.name:
            raise ConfigError("empty subscription name")
        if not self.reporter:
            raise ConfigError("empty reporter name")
        for index, subscription in enumerate(self.chain_subscriptions):
            try:
                subscription.validate()
            except ConfigError as exc:
                raise ConfigError(f"error in subscription {index}: {exc}") from exc

    def to_app_config_subscription(self) -> Subscription:
        return Subscription(
            name=self.name,
            reporter=self.reporter,
            chain_subscriptions=[
                subscription.to_app_config_chain_subscription() for subscription in self.chain_subscriptions
            ],
        )

    @classmethod
    def from_app_config_subscription(cls, subscription: Subscription) -> TomlSubscription:
        return cls(
            name=subscription.name,
            reporter=subscription.reporter,
            chain_subscriptions=[
                TomlChainSubscription.from_app_config_chain_subscription(chain_subscription)
                for chain_subscription in subscription.chain_subscriptions
            ],
        )

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> TomlSubscription:
        chains = _list_of(data, "chains", dict, "tables") or []
        return cls(
            name=_str(data, "name") or "",
            reporter=_str(data, "reporter") or "",
            chain_subscriptions=[TomlChainSubscription._from_dict(chain) for chain in chains],
        )

    def _to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "reporter": self.reporter,
            "chains": [subscription._to_dict() for subscription in self.chain_subscriptions],
        }


def validate_subscriptions(subscriptions: list[TomlSubscription]) -> None:
    """Validate every subscription and check that subscription names are unique."""
    for index, subscription in enumerate(subscriptions):
        try:
            subscription.validate()
        except ConfigError as exc:
            raise ConfigError(f"error in subscription {index}: {exc}") from exc

    names: set[str] = set()
    for subscription in subscriptions:
        if subscription.name in names:
            raise ConfigError(f"duplicate subscription name: {subscription.name}")
        names.add(subscription.name)


@dataclass
class LogSection:
    """The [log] section."""

    level: str = ""
    json: bool | None = None


@dataclass
class MetricsSection:
    """The [metrics] section."""

    enabled: bool | None = None
    listen_addr: str = ""


@dataclass
class TomlConfig:
    """The whole config file."""

    aliases_path: str = ""
    log: LogSection = field(default_factory=LogSection)
    metrics: MetricsSection = field(default_factory=MetricsSection)
    chains: list[TomlChain] = field(default_factory=list)
    subscriptions: list[TomlSubscription] = field(default_factory=list)
    timezone: str = ""
    reporters: list[TomlReporter] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TomlConfig:
        """Build a config from decoded TOML, filling in defaults for unset values."""
        if not isinstance(data, Mapping):
            raise ConfigError("config must be a table")
        log = _table(data, "log") or {}
        metrics = _table(data, "metrics") or {}
        chains = _list_of(data, "chains", dict, "tables") or []
        subscriptions = _list_of(data, "subscriptions", dict, "tables") or []
        reporters = _list_of(data, "reporters", dict, "tables") or []
        return cls(
            aliases_path=_str(data, "aliases") or "",
            log=LogSection(
                level=_str(log, "level") or DEFAULT_LOG_LEVEL,
                json=_bool_or(log, "json", False),
            ),
            metrics=MetricsSection(
                enabled=_bool_or(metrics, "enabled", True),
                listen_addr=_str(metrics, "listen-addr") or DEFAULT_LISTEN_ADDR,
            ),
            chains=[TomlChain._from_dict(chain) for chain in chains],
            subscriptions=[TomlSubscription._from_dict(subscription) for subscription in subscriptions],
            timezone=_str(data, "timezone") or DEFAULT_TIMEZONE,
            reporters=[TomlReporter._from_dict(reporter) for reporter in reporters],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the config as a plain dictionary ready to be written as TOML."""
        log: dict[str, Any] = {"level": self.log.level}
        if self.log.json is not None:
            log["json"] = self.log.json
        metrics: dict[str, Any] = {"listen-addr": self.metrics.listen_addr}
        if self.metrics.enabled is not None:
            metrics["enabled"] = self.metrics.enabled
        return {
            "aliases": self.aliases_path,
            "log": log,
            "metrics": metrics,
            "chains": [chain._to_dict() for chain in self.chains],
            "subscriptions": [subscription._to_dict() for subscription in self.subscriptions],
            "timezone": self.timezone,
            "reporters": [reporter._to_dict() for reporter in self.reporters],
        }

    def validate(self) -> None:
        """Raise ConfigError if the config is not usable."""
        if not self.chains:
            raise ConfigError("no chains provided")

        _check_timezone(self.timezone)

        for what, check, items in (
            ("chains", validate_chains, self.chains),
            ("reporters", validate_reporters, self.reporters),
            ("subscriptions", validate_subscriptions, self.subscriptions),
        ):
            try:
                check(items)
            except ConfigError as exc:
                raise ConfigError(f"error in {what}: {exc}") from exc

        for index, subscription in enumerate(self.subscriptions):
            for chain_index, chain_subscription in enumerate(subscription.chain_subscriptions):
                if not has_chain_by_name(self.chains, chain_subscription.chain):
                    raise ConfigError(
                        f"error in subscription {index}: error in chain {chain_index}: "
                        f"no such chain '{chain_subscription.chain}'"
                    )
            if not has_reporter_by_name(self.reporters, subscription.reporter):
                raise ConfigError(
                    f"error in subscription {index}: no such reporter '{subscription.reporter}'"
                )