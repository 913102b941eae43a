"""Configuration model used at runtime: chains, explorers, denoms, reporters, subscriptions."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from txbot.query import EventValue, Query, events_to_map

_VERB = re.compile(r"%%|%s")


def _sprintf(pattern: str, value: str) -> str:
    """Substitute value for the first %s in pattern, the way the link patterns expect."""
    used = False

    def replace(found: re.Match[str]) -> str:
        nonlocal used
        if found.group() == "%%":
            return "%"
        if used:
            return "%!s(MISSING)"
        used = True
        return value

    result = _VERB.sub(replace, pattern)
    if not used:
        result += f"%!(EXTRA string={value})"
    return result


@dataclass
class Link:
    """A value with an optional explorer URL and display title."""

    href: str = ""
    title: str = ""
    value: str = ""


@dataclass
class DisplayWarning:
    """A configuration warning with context keys."""

    keys: dict[str, str] = field(default_factory=dict)
    text: str = ""

    def log(self, logger: logging.Logger) -> None:
        """Log the warning with its keys as key=value pairs."""
        parts = [self.text, *(f"{key}={value}" for key, value in self.keys.items())]
        logger.warning("%s", " ".join(part for part in parts if part))


@dataclass
class Explorer:
    """Link patterns of a block explorer; each holds one %s placeholder."""

    proposal_link_pattern: str = ""
    wallet_link_pattern: str = ""
    validator_link_pattern: str = ""
    transaction_link_pattern: str = ""
    block_link_pattern: str = ""

    def get_wallet_link(self, address: str) -> str:
        return _sprintf(self.wallet_link_pattern, address)

    def display_warnings(self, chain: Chain) -> list[DisplayWarning]:
        checks = [
            (self.proposal_link_pattern, "Proposal link pattern not set, proposals links won't be generated."),
            (self.wallet_link_pattern, "Wallet link pattern not set, wallets links won't be generated."),
            (self.validator_link_pattern, "Validator link pattern not set, validators links won't be generated."),
            (
                self.transaction_link_pattern,
                "Transaction link pattern not set, transactions links won't be generated.",
            ),
            (self.block_link_pattern, "Block link pattern not set, blocks links won't be generated."),
        ]
        return [
            DisplayWarning(keys={"chain": chain.name}, text=text)
            for pattern, text in checks
            if not pattern
        ]


@dataclass
class MintscanExplorer:
    """Mintscan explorer identified by its chain prefix."""

    prefix: str

    def to_explorer(self) -> Explorer:
        base = f"https://mintscan.io/{self.prefix}"
        return Explorer(
            proposal_link_pattern=f"{base}/proposals/%s",
            wallet_link_pattern=f"{base}/account/%s",
            validator_link_pattern=f"{base}/validators/%s",
            transaction_link_pattern=f"{base}/tx/%s",
            block_link_pattern=f"{base}/blocks/%s",
        )


@dataclass
class PingExplorer:
    """ping.pub-style explorer at a base URL with a chain prefix."""

    prefix: str
    base_url: str

    def to_explorer(self) -> Explorer:
        base = f"{self.base_url}/{self.prefix}"
        return Explorer(
            proposal_link_pattern=f"{base}/gov/%s",
            wallet_link_pattern=f"{base}/account/%s",
            validator_link_pattern=f"{base}/staking/%s",
            transaction_link_pattern=f"{base}/tx/%s",
            block_link_pattern=f"{base}/blocks/%s",
        )


SupportedExplorer = MintscanExplorer | PingExplorer


@dataclass
class DenomInfo:
    """How a base denom is displayed and priced."""

    denom: str = ""
    denom_exponent: int = 0
    display_denom: str = ""
    coingecko_currency: str = ""

    def display_warnings(self, chain: Chain) -> list[DisplayWarning]:
        if self.coingecko_currency:
            return []
        return [
            DisplayWarning(
                keys={"chain": chain.name},
                text="No denoms set, prices in USD won't be displayed.",
            )
        ]


class DenomInfos(list[DenomInfo]):
    """A list of denom infos."""

    def find(self, denom: str) -> DenomInfo | None:
        return next((info for info in self if info.denom == denom), None)


@dataclass
class Chain:
    """A chain the bot listens to."""

    name: str = ""
    pretty_name: str = ""
    chain_id: str = ""
    tendermint_nodes: list[str] = field(default_factory=list)
    api_nodes: list[str] = field(default_factory=list)
    queries: list[Query] = field(default_factory=list)
    explorer: Explorer | None = None
    supported_explorer: SupportedExplorer | None = None
    denoms: DenomInfos = field(default_factory=DenomInfos)

    def __post_init__(self) -> None:
        if not isinstance(self.denoms, DenomInfos):
            self.denoms = DenomInfos(self.denoms)

    def get_name(self) -> str:
        return self.pretty_name or self.name

    def get_wallet_link(self, address: str) -> Link:
        if self.explorer is None:
            return Link(value=address)
        return Link(href=self.explorer.get_wallet_link(address), value=address)

    def get_validator_link(self, address: str) -> Link:
        if self.explorer is None:
            return Link(value=address)
        return Link(href=_sprintf(self.explorer.validator_link_pattern, address), value=address)

    def get_proposal_link(self, proposal_id: str) -> Link:
        if self.explorer is None:
            return Link(value=proposal_id)
        return Link(href=_sprintf(self.explorer.proposal_link_pattern, proposal_id), value=proposal_id)

    def get_transaction_link(self, tx_hash: str) -> Link:
        if self.explorer is None:
            return Link(value=tx_hash)
        return Link(href=_sprintf(self.explorer.transaction_link_pattern, tx_hash), value=tx_hash)

    def get_block_link(self, height: int) -> Link:
        height_text = str(height)
        if self.explorer is None:
            return Link(value=height_text)
        return Link(href=_sprintf(self.explorer.block_link_pattern, height_text), value=height_text)

    def display_warnings(self) -> list[DisplayWarning]:
        warnings = [warning for denom in self.denoms for warning in denom.display_warnings(self)]

        if not self.chain_id:
            warnings.append(
                DisplayWarning(
                    keys={"chain": self.name},
                    text="chain-id is not set, multichain denom matching won't work.",
                )
            )

        if self.explorer is None:
            warnings.append(
                DisplayWarning(
                    keys={"chain": self.name},
                    text="Explorer config not set, links won't be generated.",
                )
            )
        else:
            warnings.extend(self.explorer.display_warnings(self))

        return warnings


class Chains(list[Chain]):
    """A list of chains with lookups."""

    def find_by_name(self, name: str) -> Chain | None:
        return next((chain for chain in self if chain.name == name), None)

    def find_by_chain_id(self, chain_id: str) -> Chain | None:
        return next((chain for chain in self if chain.chain_id == chain_id), None)

    def has_chain(self, name: str) -> bool:
        return any(chain.name == name for chain in self)


@dataclass
class TelegramConfig:
    chat: int = 0
    token: str = ""
    admins: list[int] = field(default_factory=list)


@dataclass
class Reporter:
    name: str = ""
    type: str = ""
    telegram_config: TelegramConfig | None = None


class Filters(list[Query]):
    """Queries of which at least one must match; an empty list matches everything."""

    def __str__(self) -> str:
        return ", ".join(str(query) for query in self)

    def matches(self, values: Iterable[EventValue]) -> bool:
        """Tell whether any filter matches; raises QueryError if a filter cannot be evaluated."""
        if not self:
            return True
        events = events_to_map(values)
        return any(query.matches(events) for query in self)


@dataclass
class ChainSubscription:
    chain: str = ""
    filters: Filters = field(default_factory=Filters)
    log_unknown_messages: bool = False
    log_unparsed_messages: bool = False
    log_failed_transactions: bool = False
    log_node_errors: bool = False
    filter_internal_messages: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.filters, Filters):
            self.filters = Filters(self.filters)


@dataclass
class Subscription:
    name: str = ""
    reporter: str = ""
    chain_subscriptions: list[ChainSubscription] = field(default_factory=list)