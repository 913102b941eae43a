# txbot

The core of a notifier for new transactions on Cosmos SDK chains: the
configuration model and its TOML file format, the event query language used
by chain queries and subscription filters, wallet aliases stored in a TOML
file, and a small in-memory cache whose entries expire.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

Check a configuration file:

```
txbot validate-config --config config.toml
```

The file is read, defaults are filled in and every section is validated. On
success the command logs `Provided config is valid.` and a warning for each
setting that works but is probably not intended: a chain without a chain-id
or an explorer, an explorer with an empty link pattern, a denom without a
CoinGecko currency, a chain or reporter that no subscription uses. On an
invalid or unreadable file it logs the error and exits with status 1.

Load a configuration together with its aliases file:

```
txbot --config config.toml
```

This validates the file, logs its warnings, loads the aliases file (if
`aliases` is set) and logs how many chains, reporters and subscriptions were
configured, then exits. Leaving out `--config` is an error (exit status 2).

## What this package does not do

It does not connect to Tendermint or API nodes, does not decode transactions
or messages, does not fetch prices, validators or proposals, does not send
anything to Telegram and exposes no metrics endpoint. The `log`, `metrics`
and reporter settings are read, validated and kept in the config, but nothing
in the package acts on them; `txbot --config` only loads and checks.

## Configuration

```toml
aliases = "aliases.toml"   # optional; without it aliases are neither loaded nor saved
timezone = "Etc/GMT"       # default; must be a known time zone

[log]
level = "info"             # default
json = false               # default

[metrics]
enabled = true             # default
listen-addr = ":9580"      # default

[[chains]]
name = "cosmos"
pretty-name = "Cosmos Hub"
chain-id = "cosmoshub-4"
tendermint-nodes = ["https://rpc.example.com:443"]
api-nodes = ["https://api.example.com"]
queries = ["tx.height > 1"]  # default
mintscan-prefix = "cosmos"

[[chains.denoms]]
denom = "uatom"
display-denom = "atom"
denom-exponent = 6           # default
coingecko-currency = "cosmos"

[[reporters]]
name = "telegram-reporter"
type = "telegram"            # default, and the only supported type

[reporters.telegram-config]
chat = 1
token = "token"
admins = [123]

[[subscriptions]]
name = "my-subscription"
reporter = "telegram-reporter"

[[subscriptions.chains]]
name = "cosmos"
filters = ["message.action = '/cosmos.bank.v1beta1.MsgSend'"]
log-unknown-messages = false      # default
log-unparsed-messages = true      # default
log-failed-transactions = true    # default
log-node-errors = true            # default
filter-internal-messages = true   # default
```

A chain gets its explorer links from `mintscan-prefix` (links under
`https://mintscan.io/<prefix>/`), otherwise from `ping-prefix` with
`ping-base-url` (default `https://ping.pub`), otherwise from a custom
`[chains.explorer]` table whose patterns have `%s` replaced by the address,
hash, height or proposal id:

```toml
[chains.explorer]
proposal-link-pattern = "https://explorer.example.com/proposals/%s"
wallet-link-pattern = "https://explorer.example.com/account/%s"
validator-link-pattern = "https://explorer.example.com/validators/%s"
transaction-link-pattern = "https://explorer.example.com/tx/%s"
block-link-pattern = "https://explorer.example.com/blocks/%s"
```

A chain needs a name, a chain-id, at least one Tendermint node, one API node
and one query. Every denom needs `denom` and `display-denom`. Chain,
reporter and subscription names must be unique, and every subscription must
refer to an existing reporter and existing chains. Any violation, or a value
of the wrong type, raises `txbot.toml_config.ConfigError`.

## Queries and filters

`txbot.query.parse_query` parses conditions joined by `AND`:

```
tm.event = 'Tx' AND transfer.amount > 100 AND message.sender CONTAINS 'cosmos1'
block.time >= TIME 2023-01-01T00:00:00Z AND block.date < DATE 2023-06-01
message.memo EXISTS
```

Strings are compared with `=` or `CONTAINS`; numbers, `DATE` and `TIME`
values with `=`, `<`, `<=`, `>` and `>=`. A parse error raises `QueryError`.
`Query.matches` takes a mapping from attribute key to list of values (see
`events_to_map`); a condition holds if any value of its key satisfies it.
`Filters.matches` returns true if any filter matches, and always for an
empty list; an attribute value that cannot be compared raises `QueryError`.

## Using the library

```python
import logging

from txbot.config import load_config
from txbot.query import EventValue

config = load_config("config.toml")

for warning in config.display_warnings():
    warning.log(logging.getLogger("txbot"))

print(config.config_as_string())

chain = config.chains.find_by_name("cosmos")
print(chain.get_transaction_link("ABCDEF").href)

subscription = config.subscriptions[0].chain_subscriptions[0]
print(subscription.filters.matches([EventValue("message.action", "/cosmos.bank.v1beta1.MsgSend")]))
```

- `txbot.config`: `load_config`, `AppConfig` (`from_toml_config`,
  `to_toml_config`, `display_warnings`, `config_as_string`), `LogConfig`,
  `MetricsConfig`.
- `txbot.toml_config`: the file layout (`TomlConfig` with `from_dict`,
  `to_dict`, `validate`, and `TomlChain`, `TomlReporter`, `TomlSubscription`
  and friends).
- `txbot.config_types`: the runtime model (`Chain`, `Chains`, `Explorer`,
  `MintscanExplorer`, `PingExplorer`, `DenomInfo`, `DenomInfos`, `Link`,
  `DisplayWarning`, `Reporter`, `TelegramConfig`, `Subscription`,
  `ChainSubscription`, `Filters`).
- `txbot.aliases`: `AliasManager` keeps aliases for wallets per subscription
  and chain in a TOML file of the form
  `[subscription.chain] wallet = "alias"`. `load` logs read and decode errors
  and leaves the aliases empty; `set` raises `LookupError` for a chain that
  is not configured and saves the file; `save` raises `OSError` if the file
  cannot be written. `get_aliases_links` returns wallet links titled with
  their aliases.
- `txbot.cache`: `Cache.get` returns `(value, True)` for an entry stored less
  than ten minutes ago and `(None, False)` otherwise.
- `txbot.constants`: reporter types and the `EventFilterReason` and
  `ReporterQuery` enums.