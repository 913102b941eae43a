import tomllib

import pytest
import tomli_w

from txbot.config_types import (
    Chain,
    ChainSubscription,
    DenomInfo,
    Explorer,
    MintscanExplorer,
    PingExplorer,
    Reporter,
    Subscription,
    TelegramConfig,
)
from txbot.query import parse_query
from txbot.toml_config import (
    ConfigError,
    LogSection,
    MetricsSection,
    TomlChain,
    TomlChainSubscription,
    TomlConfig,
    TomlDenomInfo,
    TomlExplorer,
    TomlReporter,
    TomlSubscription,
    TomlTelegramConfig,
    denoms_from_app_config,
    denoms_to_app_config,
    has_chain_by_name,
    has_reporter_by_name,
    validate_chains,
    validate_reporters,
    validate_subscriptions,
)

QUERY = "event.key = 'value'"


def _chain(name="chain"):
    return TomlChain(
        name=name,
        chain_id="chain-id",
        tendermint_nodes=["node"],
        api_nodes=["node"],
        queries=[QUERY],
    )


def _telegram_reporter(name="test"):
    return TomlReporter(
        name=name,
        type="telegram",
        telegram_config=TomlTelegramConfig(chat=1, token="token", admins=[123]),
    )


# Chain


@pytest.mark.parametrize(
    ("chain", "message"),
    [
        (TomlChain(), "empty chain name"),
        (TomlChain(name="chain"), "empty chain ID"),
        (TomlChain(name="chain", chain_id="chain-id"), "no Tendermint nodes provided"),
        (
            TomlChain(name="chain", chain_id="chain-id", tendermint_nodes=["node"]),
            "no API nodes provided",
        ),
        (
            TomlChain(name="chain", chain_id="chain-id", tendermint_nodes=["node"], api_nodes=["node"]),
            "no queries provided",
        ),
        (
            TomlChain(
                name="chain",
                chain_id="chain-id",
                tendermint_nodes=["node"],
                api_nodes=["node"],
                queries=["query"],
            ),
            "error in query 0",
        ),
        (
            TomlChain(
                name="chain",
                chain_id="chain-id",
                tendermint_nodes=["node"],
                api_nodes=["node"],
                queries=[QUERY],
                denoms=[TomlDenomInfo()],
            ),
            "error in denom 0: denom is not set",
        ),
    ],
)
def test_chain_invalid(chain, message):
    with pytest.raises(ConfigError, match=message):
        chain.validate()


def test_chain_valid():
    chain = _chain()
    chain.validate()
    assert str(chain.to_app_config_chain().queries[0]) == QUERY


def test_chain_to_app_config_chain_basic():
    chain = TomlChain(
        name="chain",
        pretty_name="Chain",
        chain_id="chain-id",
        tendermint_nodes=["tendermint-node"],
        api_nodes=["api-node"],
        queries=[QUERY],
    )
    app_chain = chain.to_app_config_chain()
    assert app_chain.name == "chain"
    assert app_chain.pretty_name == "Chain"
    assert app_chain.chain_id == "chain-id"
    assert app_chain.tendermint_nodes == ["tendermint-node"]
    assert app_chain.api_nodes == ["api-node"]
    assert [str(query) for query in app_chain.queries] == [QUERY]
    assert app_chain.explorer is None
    assert app_chain.supported_explorer is None


def test_chain_to_app_config_chain_mintscan():
    chain = _chain()
    chain.mintscan_prefix = "chain"
    app_chain = chain.to_app_config_chain()
    assert app_chain.explorer is not None
    assert app_chain.explorer.validator_link_pattern == "https://mintscan.io/chain/validators/%s"
    assert app_chain.supported_explorer == MintscanExplorer(prefix="chain")


def test_chain_to_app_config_chain_ping():
    chain = _chain()
    chain.ping_prefix = "chain"
    chain.ping_base_url = "https://example.com"
    app_chain = chain.to_app_config_chain()
    assert app_chain.explorer is not None
    assert app_chain.explorer.validator_link_pattern == "https://example.com/chain/staking/%s"


def test_chain_to_app_config_chain_custom_explorer():
    chain = _chain()
    chain.explorer = TomlExplorer(validator_link_pattern="test/%s")
    app_chain = chain.to_app_config_chain()
    assert app_chain.explorer is not None
    assert app_chain.explorer.validator_link_pattern == "test/%s"
    assert app_chain.supported_explorer is None


def _app_chain(**kwargs):
    return Chain(
        name="chain",
        pretty_name="Chain",
        chain_id="chain-id",
        tendermint_nodes=["tendermint-node"],
        api_nodes=["api-node"],
        queries=[parse_query(QUERY)],
        **kwargs,
    )


def test_chain_from_app_config_basic():
    toml_chain = TomlChain.from_app_config_chain(_app_chain())
    assert toml_chain.name == "chain"
    assert toml_chain.pretty_name == "Chain"
    assert toml_chain.chain_id == "chain-id"
    assert toml_chain.tendermint_nodes == ["tendermint-node"]
    assert toml_chain.api_nodes == ["api-node"]
    assert toml_chain.queries == [QUERY]
    assert toml_chain.explorer is None


def test_chain_from_app_config_mintscan():
    toml_chain = TomlChain.from_app_config_chain(
        _app_chain(supported_explorer=MintscanExplorer(prefix="chain"))
    )
    assert toml_chain.mintscan_prefix == "chain"


def test_chain_from_app_config_ping():
    toml_chain = TomlChain.from_app_config_chain(
        _app_chain(supported_explorer=PingExplorer(prefix="chain", base_url="https://example.com"))
    )
    assert toml_chain.ping_prefix == "chain"
    assert toml_chain.ping_base_url == "https://example.com"


def test_chain_from_app_config_custom_explorer():
    toml_chain = TomlChain.from_app_config_chain(
        _app_chain(explorer=Explorer(validator_link_pattern="test/%s"))
    )
    assert toml_chain.explorer is not None
    assert toml_chain.explorer.validator_link_pattern == "test/%s"


def test_chains_invalid():
    with pytest.raises(ConfigError, match="error in chain 0"):
        validate_chains([TomlChain()])


def test_chains_duplicate_name():
    with pytest.raises(ConfigError, match="duplicate chain name: chain"):
        validate_chains([_chain(), _chain()])


def test_chains_valid():
    chains = [_chain("chain1"), _chain("chain2")]
    validate_chains(chains)
    assert has_chain_by_name(chains, "chain1")
    assert has_chain_by_name(chains, "chain2")


def test_has_chain_by_name():
    chains = [TomlChain(name="chain-1", tendermint_nodes=["node"], api_nodes=["node"], queries=[QUERY])]
    assert has_chain_by_name(chains, "chain-1") is True
    assert has_chain_by_name(chains, "chain-2") is False


# Denoms


def test_denom_no_name():
    with pytest.raises(ConfigError, match="denom is not set"):
        TomlDenomInfo().validate()


def test_denom_no_display_name():
    with pytest.raises(ConfigError, match="display denom is not set"):
        TomlDenomInfo(denom="udenom").validate()


def test_denom_valid():
    denom = TomlDenomInfo(denom="udenom", display_denom="denom")
    denom.validate()
    assert denoms_to_app_config([denom]).find("udenom").display_denom == "denom"


def test_denoms_to_app_config():
    denom = TomlDenomInfo(
        denom="udenom", display_denom="denom", denom_exponent=10, coingecko_currency="coingecko"
    )
    converted = denoms_to_app_config([denom])
    assert len(converted) == 1
    assert converted[0] == DenomInfo(
        denom="udenom", display_denom="denom", denom_exponent=10, coingecko_currency="coingecko"
    )


def test_denoms_from_app_config():
    denom = DenomInfo(
        denom="udenom", display_denom="denom", denom_exponent=10, coingecko_currency="coingecko"
    )
    converted = denoms_from_app_config([denom])
    assert converted == [
        TomlDenomInfo(denom="udenom", display_denom="denom", denom_exponent=10, coingecko_currency="coingecko")
    ]


# Explorer


def test_explorer_to_app_config_explorer():
    explorer = TomlExplorer(
        validator_link_pattern="test1",
        wallet_link_pattern="test2",
        proposal_link_pattern="test3",
        transaction_link_pattern="test4",
        block_link_pattern="test5",
    )
    app_explorer = explorer.to_app_config_explorer()
    assert app_explorer.validator_link_pattern == "test1"
    assert app_explorer.wallet_link_pattern == "test2"
    assert app_explorer.proposal_link_pattern == "test3"
    assert app_explorer.transaction_link_pattern == "test4"
    assert app_explorer.block_link_pattern == "test5"


# Reporters


def test_reporter_no_name():
    with pytest.raises(ConfigError, match="reporter name not provided"):
        TomlReporter().validate()


def test_reporter_unsupported_type():
    with pytest.raises(ConfigError, match="expected type to be one of telegram, but got unsupported"):
        TomlReporter(name="test", type="unsupported").validate()


def test_reporter_no_telegram_config():
    with pytest.raises(ConfigError, match="missing telegram-config"):
        TomlReporter(name="test", type="telegram").validate()


def test_reporter_valid_telegram():
    reporter = _telegram_reporter()
    reporter.validate()
    assert reporter.to_app_config_reporter().telegram_config.chat == 1


def test_reporters_invalid():
    with pytest.raises(ConfigError, match="error in reporter 0"):
        validate_reporters([TomlReporter()])


def test_reporters_duplicates():
    with pytest.raises(ConfigError, match="duplicate reporter name: test"):
        validate_reporters([_telegram_reporter(), _telegram_reporter()])


def test_reporters_valid():
    reporters = [_telegram_reporter()]
    validate_reporters(reporters)
    assert has_reporter_by_name(reporters, "test")


def test_has_reporter_by_name():
    reporters = [_telegram_reporter()]
    assert has_reporter_by_name(reporters, "test") is True
    assert has_reporter_by_name(reporters, "test-2") is False


def test_reporter_to_app_config_reporter():
    app_reporter = _telegram_reporter().to_app_config_reporter()
    assert app_reporter.name == "test"
    assert app_reporter.type == "telegram"
    assert app_reporter.telegram_config == TelegramConfig(chat=1, token="token", admins=[123])


def test_reporter_from_app_config_reporter():
    reporter = Reporter(
        name="test",
        type="telegram",
        telegram_config=TelegramConfig(chat=1, token="token", admins=[123]),
    )
    toml_reporter = TomlReporter.from_app_config_reporter(reporter)
    assert toml_reporter.name == "test"
    assert toml_reporter.type == "telegram"
    assert toml_reporter.telegram_config == TomlTelegramConfig(chat=1, token="token", admins=[123])


def test_reporter_without_telegram_config_converts_to_none():
    assert TomlReporter(name="x", type="telegram").to_app_config_reporter().telegram_config is None


# Subscriptions


def test_subscription_no_name():
    with pytest.raises(ConfigError, match="empty subscription name"):
        TomlSubscription().validate()


def test_subscription_no_reporter():
    with pytest.raises(ConfigError, match="empty reporter name"):
        TomlSubscription(name="name").validate()


def test_subscription_invalid_chain_subscription():
    subscription = TomlSubscription(
        name="name", reporter="reporter", chain_subscriptions=[TomlChainSubscription()]
    )
    with pytest.raises(ConfigError, match="error in subscription 0: empty chain name"):
        subscription.validate()


def test_subscription_valid():
    subscription = TomlSubscription(
        name="name", reporter="reporter", chain_subscriptions=[TomlChainSubscription(chain="chain")]
    )
    subscription.validate()
    assert subscription.to_app_config_subscription().chain_subscriptions[0].chain == "chain"


def test_chain_subscription_no_name():
    with pytest.raises(ConfigError, match="empty chain name"):
        TomlChainSubscription().validate()


def test_chain_subscription_invalid_filter():
    with pytest.raises(ConfigError, match="error in filter 0"):
        TomlChainSubscription(chain="chain", filters=["invalid"]).validate()


def test_chain_subscription_valid():
    subscription = TomlChainSubscription(chain="chain", filters=[QUERY])
    subscription.validate()
    assert str(subscription.to_app_config_chain_subscription().filters) == QUERY


def test_subscriptions_invalid_subscription():
    with pytest.raises(ConfigError, match="error in subscription 0"):
        validate_subscriptions([TomlSubscription()])


def test_subscriptions_duplicates():
    subscriptions = [
        TomlSubscription(name="name", reporter="reporter", chain_subscriptions=[TomlChainSubscription(chain="chain")]),
        TomlSubscription(name="name", reporter="reporter", chain_subscriptions=[TomlChainSubscription(chain="chain")]),
    ]
    with pytest.raises(ConfigError, match="duplicate subscription name: name"):
        validate_subscriptions(subscriptions)


def test_subscriptions_valid():
    subscriptions = [
        TomlSubscription(name="name", reporter="reporter", chain_subscriptions=[TomlChainSubscription(chain="chain")])
    ]
    validate_subscriptions(subscriptions)
    assert subscriptions[0].to_app_config_subscription().name == "name"


def test_subscription_to_app_config_subscription():
    subscription = TomlSubscription(
        name="name", reporter="reporter", chain_subscriptions=[TomlChainSubscription(chain="chain")]
    )
    app_subscription = subscription.to_app_config_subscription()
    assert app_subscription.name == "name"
    assert app_subscription.reporter == "reporter"
    assert len(app_subscription.chain_subscriptions) == 1
    assert app_subscription.chain_subscriptions[0].chain == "chain"


def test_subscription_from_app_config_subscription():
    subscription = Subscription(
        name="name", reporter="reporter", chain_subscriptions=[ChainSubscription(chain="chain")]
    )
    toml_subscription = TomlSubscription.from_app_config_subscription(subscription)
    assert toml_subscription.name == "name"
    assert toml_subscription.reporter == "reporter"
    assert len(toml_subscription.chain_subscriptions) == 1
    assert toml_subscription.chain_subscriptions[0].chain == "chain"


def test_chain_subscription_to_app_config():
    subscription = TomlChainSubscription(
        chain="chain",
        filters=[QUERY],
        log_unknown_messages=True,
        log_unparsed_messages=True,
        log_failed_transactions=True,
        log_node_errors=True,
        filter_internal_messages=True,
    )
    converted = subscription.to_app_config_chain_subscription()
    assert converted.chain == "chain"
    assert converted.log_unknown_messages is True
    assert converted.log_unparsed_messages is True
    assert converted.log_failed_transactions is True
    assert converted.log_node_errors is True
    assert converted.filter_internal_messages is True
    assert [str(query) for query in converted.filters] == [QUERY]


def test_chain_subscription_unset_flags_convert_to_false():
    converted = TomlChainSubscription(chain="chain").to_app_config_chain_subscription()
    assert converted.log_unparsed_messages is False
    assert converted.filter_internal_messages is False


def test_chain_subscription_from_app_config():
    subscription = ChainSubscription(
        chain="chain",
        filters=[parse_query(QUERY)],
        log_unknown_messages=True,
        log_unparsed_messages=True,
        log_failed_transactions=True,
        log_node_errors=True,
        filter_internal_messages=True,
    )
    converted = TomlChainSubscription.from_app_config_chain_subscription(subscription)
    assert converted.chain == "chain"
    assert converted.log_unknown_messages is True
    assert converted.log_unparsed_messages is True
    assert converted.log_failed_transactions is True
    assert converted.log_node_errors is True
    assert converted.filter_internal_messages is True
    assert converted.filters == [QUERY]


# Whole config


def test_toml_config_no_chains():
    with pytest.raises(ConfigError, match="no chains provided"):
        TomlConfig().validate()


def test_toml_config_invalid_timezone():
    with pytest.raises(ConfigError, match="error parsing timezone"):
        TomlConfig(chains=[TomlChain()], timezone="invalid").validate()


def test_toml_config_invalid_chain():
    with pytest.raises(ConfigError, match="error in chains"):
        TomlConfig(chains=[TomlChain()], timezone="Etc/UTC").validate()


def test_toml_config_invalid_reporter():
    config = TomlConfig(chains=[_chain()], reporters=[TomlReporter()], timezone="Etc/UTC")
    with pytest.raises(ConfigError, match="error in reporters"):
        config.validate()


def test_toml_config_invalid_subscription():
    config = TomlConfig(
        chains=[_chain()],
        reporters=[_telegram_reporter()],
        subscriptions=[TomlSubscription()],
        timezone="Etc/UTC",
    )
    with pytest.raises(ConfigError, match="error in subscriptions"):
        config.validate()


def test_toml_config_chain_subscription_chain_not_found():
    config = TomlConfig(
        chains=[_chain()],
        reporters=[_telegram_reporter()],
        subscriptions=[
            TomlSubscription(
                name="name",
                reporter="reporter",
                chain_subscriptions=[TomlChainSubscription(chain="nonexistent")],
            )
        ],
        timezone="Etc/UTC",
    )
    with pytest.raises(ConfigError, match="no such chain 'nonexistent'"):
        config.validate()


def test_toml_config_subscription_reporter_not_found():
    config = TomlConfig(
        chains=[_chain()],
        reporters=[_telegram_reporter()],
        subscriptions=[
            TomlSubscription(
                name="name",
                reporter="nonexistent",
                chain_subscriptions=[TomlChainSubscription(chain="chain")],
            )
        ],
        timezone="Etc/UTC",
    )
    with pytest.raises(ConfigError, match="no such reporter 'nonexistent'"):
        config.validate()


def _valid_config():
    return TomlConfig(
        chains=[_chain()],
        reporters=[_telegram_reporter()],
        subscriptions=[
            TomlSubscription(
                name="name",
                reporter="test",
                chain_subscriptions=[TomlChainSubscription(chain="chain")],
            )
        ],
        timezone="Etc/UTC",
    )


def test_toml_config_valid():
    config = _valid_config()
    config.validate()
    assert has_reporter_by_name(config.reporters, config.subscriptions[0].reporter)


def test_from_dict_applies_defaults():
    config = TomlConfig.from_dict(
        {
            "chains": [{"name": "chain", "denoms": [{"denom": "uatom", "display-denom": "atom"}]}],
            "subscriptions": [{"name": "sub", "reporter": "r", "chains": [{"name": "chain"}]}],
            "reporters": [{"name": "r"}],
        }
    )
    assert config.timezone == "Etc/GMT"
    assert config.log == LogSection(level="info", json=False)
    assert config.metrics == MetricsSection(enabled=True, listen_addr=":9580")
    chain = config.chains[0]
    assert chain.queries == ["tx.height > 1"]
    assert chain.ping_base_url == "https://ping.pub"
    assert chain.denoms[0].denom_exponent == 6
    assert config.reporters[0].type == "telegram"
    chain_subscription = config.subscriptions[0].chain_subscriptions[0]
    assert chain_subscription.log_unknown_messages is False
    assert chain_subscription.log_unparsed_messages is True
    assert chain_subscription.log_failed_transactions is True
    assert chain_subscription.log_node_errors is True
    assert chain_subscription.filter_internal_messages is True


def test_from_dict_keeps_explicit_values():
    config = TomlConfig.from_dict(
        {
            "timezone": "Etc/UTC",
            "log": {"level": "debug", "json": True},
            "metrics": {"enabled": False},
            "chains": [{"name": "chain", "queries": [], "denoms": [{"denom": "u", "denom-exponent": 18}]}],
            "subscriptions": [{"name": "s", "chains": [{"name": "chain", "log-node-errors": False}]}],
        }
    )
    assert config.timezone == "Etc/UTC"
    assert config.log == LogSection(level="debug", json=True)
    assert config.metrics.enabled is False
    assert config.chains[0].queries == []
    assert config.chains[0].denoms[0].denom_exponent == 18
    assert config.subscriptions[0].chain_subscriptions[0].log_node_errors is False


def test_from_dict_rejects_wrong_types():
    with pytest.raises(ConfigError, match="'chains'"):
        TomlConfig.from_dict({"chains": "oops"})
    with pytest.raises(ConfigError, match="'chain-id'"):
        TomlConfig.from_dict({"chains": [{"chain-id": 5}]})


def test_to_dict_round_trip_through_toml():
    config = _valid_config()
    config.log = LogSection(level="info", json=False)
    config.metrics = MetricsSection(enabled=True, listen_addr=":9580")
    config.chains[0].explorer = TomlExplorer(wallet_link_pattern="test/%s")
    config.chains[0].ping_base_url = "https://ping.pub"
    config.chains[0].denoms = [TomlDenomInfo(denom="u", display_denom="d", denom_exponent=6)]
    for attr in (
        "log_unknown_messages",
        "log_unparsed_messages",
        "log_failed_transactions",
        "log_node_errors",
        "filter_internal_messages",
    ):
        setattr(config.subscriptions[0].chain_subscriptions[0], attr, True)

    text = tomli_w.dumps(config.to_dict())
    again = TomlConfig.from_dict(tomllib.loads(text))
    assert again == config


def test_to_dict_uses_file_keys():
    data = _valid_config().to_dict()
    assert data["chains"][0]["chain-id"] == "chain-id"
    assert data["reporters"][0]["telegram-config"]["admins"] == [123]
    assert data["subscriptions"][0]["chains"][0]["name"] == "chain"
    assert "explorer" not in data["chains"][0]