"""Wallet aliases per subscription and chain, persisted as TOML."""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import tomli_w

from txbot.config_types import Chain, Chains, Link

logger = logging.getLogger(__name__)


@dataclass
class ChainAliases:
    """Aliases of wallets on one chain."""

    chain: Chain | None = None
    aliases: dict[str, str] = field(default_factory=dict)


@dataclass
class ChainAliasesLinks:
    """Wallet links of one chain, titled with their aliases."""

    chain: Chain
    links: dict[str, Link] = field(default_factory=dict)


@dataclass
class AllAliases:
    """Aliases keyed by subscription, then chain name, then wallet."""

    subscriptions: dict[str, dict[str, ChainAliases]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.subscriptions)

    def __getitem__(self, subscription: str) -> dict[str, ChainAliases]:
        return self.subscriptions[subscription]

    def to_toml(self) -> dict[str, dict[str, dict[str, str]]]:
        """Return the aliases as nested plain dictionaries."""
        return {
            subscription: {chain: dict(chain_aliases.aliases) for chain, chain_aliases in chains.items()}
            for subscription, chains in self.subscriptions.items()
        }

    def set(self, subscription: str, chain: Chain, wallet: str, alias: str) -> None:
        """Set the alias of a wallet, creating missing levels."""
        chains = self.subscriptions.setdefault(subscription, {})
        chain_aliases = chains.setdefault(chain.name, ChainAliases(chain=chain))
        chain_aliases.aliases[wallet] = alias

    def get(self, subscription: str, chain: str, address: str) -> str:
        """Return the alias of a wallet, or an empty string if there is none."""
        chain_aliases = self.subscriptions.get(subscription, {}).get(chain)
        if chain_aliases is None:
            return ""
        return chain_aliases.aliases.get(address, "")

    def get_aliases_links(self, subscription: str) -> list[ChainAliasesLinks]:
        """Return wallet links titled with aliases, one entry per chain."""
        result = []
        for chain_aliases in self.subscriptions.get(subscription, {}).values():
            chain = chain_aliases.chain
            if chain is None:
                continue
            links = {}
            for wallet, alias in chain_aliases.aliases.items():
                link = chain.get_wallet_link(wallet)
                link.title = alias
                links[wallet] = link
            result.append(ChainAliasesLinks(chain=chain, links=links))
        return result


def toml_to_aliases(data: Mapping[str, Any], chains: Chains) -> AllAliases:
    """Build aliases from decoded TOML; raise LookupError for a chain that is not configured."""
    if not isinstance(chains, Chains):
        chains = Chains(chains)
    aliases = AllAliases()
    for subscription, subscription_data in data.items():
        if not isinstance(subscription_data, Mapping):
            raise ValueError(f"aliases of subscription '{subscription}' must be a table")
        chain_map: dict[str, ChainAliases] = {}
        for chain_name, wallets in subscription_data.items():
            if not isinstance(wallets, Mapping):
                raise ValueError(f"aliases of chain '{chain_name}' must be a table")
            chain = chains.find_by_name(chain_name)
            if chain is None:
                raise LookupError(f"Could not find chain '{chain_name}' when setting an alias")
            wallet_aliases = {}
            for wallet, alias in wallets.items():
                if not isinstance(alias, str):
                    raise ValueError(f"alias of wallet '{wallet}' must be a string")
                wallet_aliases[wallet] = alias
            chain_map[chain_name] = ChainAliases(chain=chain, aliases=wallet_aliases)
        aliases.subscriptions[subscription] = chain_map
    return aliases


@dataclass
class AliasManager:
    """Keeps aliases in memory and in the aliases file."""

    path: str | os.PathLike[str] = ""
    chains: Chains = field(default_factory=Chains)
    aliases: AllAliases = field(default_factory=AllAliases)

    def __post_init__(self) -> None:
        if not isinstance(self.chains, Chains):
            self.chains = Chains(self.chains)

    def enabled(self) -> bool:
        """Tell whether an aliases path is configured."""
        return os.fspath(self.path) != ""

    def load(self) -> None:
        """Load aliases from the file; read and decode errors are logged and leave aliases empty."""
        if not self.enabled():
            logger.warning("Aliases path not set, not loading aliases")
            return
        try:
            with open(self.path, "rb") as handle:
                data = tomllib.load(handle)
        except OSError as exc:
            logger.error("Could not load aliases: %s", exc)
            return
        except tomllib.TOMLDecodeError as exc:
            logger.error("Could not decode aliases: %s", exc)
            return
        try:
            self.aliases = toml_to_aliases(data, self.chains)
        except ValueError as exc:
            logger.error("Could not decode aliases: %s", exc)
            return
        logger.info("Aliases loaded")

    def save(self) -> None:
        """Write aliases to the file; raises OSError if that fails."""
        if not self.enabled():
            logger.warning("Aliases path not set, not saving aliases")
            return
        try:
            with open(self.path, "wb") as handle:
                tomli_w.dump(self.aliases.to_toml(), handle)
        except OSError as exc:
            logger.error("Could not save aliases: %s", exc)
            raise

    def get(self, subscription: str, chain: str, address: str) -> str:
        """Return the alias of a wallet, or an empty string."""
        return self.aliases.get(subscription, chain, address)

    def set(self, subscription: str, chain_name: str, address: str, alias: str) -> None:
        """Set an alias and save; raises LookupError for an unknown chain."""
        if not self.enabled():
            logger.warning("Aliases path not set, cannot set alias")
            return
        chain = self.chains.find_by_name(chain_name)
        if chain is None:
            raise LookupError(f"Could not find chain '{chain_name}' when setting an alias")
        self.aliases.set(subscription, chain, address, alias)
        self.save()

    def get_aliases_links(self, subscription: str) -> list[ChainAliasesLinks]:
        """Return alias-titled wallet links for a subscription."""
        return self.aliases.get_aliases_links(subscription)