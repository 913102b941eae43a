import pytest

from txbot.query import EventValue, QueryError, events_to_map, parse_query


@pytest.mark.parametrize(
    "text",
    [
        "event.key = 'value'",
        "tx.height > 1",
        "a.b CONTAINS 'x' AND c.d EXISTS",
        "tx.date < DATE 2017-01-01",
        "block.time >= TIME 2013-05-03T14:45:00Z",
        "tx.height <= 10.5 AND event.key = 'value'",
    ],
)
def test_round_trip(text):
    query = parse_query(text)
    assert str(query) == text
    assert parse_query(str(query)) == query


def test_whitespace_is_normalised():
    assert str(parse_query("event.key='value'")) == "event.key = 'value'"


@pytest.mark.parametrize(
    "text",
    [
        "query",
        "invalid",
        "",
        "a.b = 'unterminated",
        "a.b CONTAINS 5",
        "a.b < 'x'",
        "a.b = 1 OR c.d = 2",
        "a.b = DATE notadate",
        "a.b =",
        "a.b = 'x' AND",
        "(a.b = 'x')",
    ],
)
def test_invalid_queries(text):
    with pytest.raises(QueryError):
        parse_query(text)


def test_events_to_map_groups_values():
    values = [
        EventValue("a", "1"),
        EventValue("b", "2"),
        EventValue("a", "3"),
    ]
    assert events_to_map(values) == {"a": ["1", "3"], "b": ["2"]}


def test_string_equality_matches():
    query = parse_query("event.key = 'value'")
    assert query.matches(events_to_map([EventValue("event.key", "value")])) is True
    assert query.matches(events_to_map([EventValue("event.key", "value2")])) is False


def test_missing_tag_does_not_match():
    assert parse_query("event.key = 'value'").matches({}) is False


def test_number_comparison():
    query = parse_query("tx.height > 1")
    assert query.matches({"tx.height": ["5"]}) is True
    assert query.matches({"tx.height": ["1"]}) is False


def test_number_with_suffix_is_extracted():
    assert parse_query("transfer.amount >= 100").matches({"transfer.amount": ["100stake"]}) is True


def test_number_comparison_error():
    query = parse_query("event.key > 100")
    with pytest.raises(QueryError):
        query.matches({"event.key": ["value"]})


def test_exists_and_contains():
    query = parse_query("a.b EXISTS AND c.d CONTAINS 'ell'")
    assert query.matches({"a.b": ["x"], "c.d": ["hello"]}) is True
    assert query.matches({"c.d": ["hello"]}) is False
    assert query.matches({"a.b": ["x"], "c.d": ["world"]}) is False


def test_any_value_matches():
    query = parse_query("message.sender = 'b'")
    assert query.matches({"message.sender": ["a", "b"]}) is True


def test_date_and_time_comparison():
    date_query = parse_query("tx.date < DATE 2017-01-01")
    assert date_query.matches({"tx.date": ["2016-12-31"]}) is True
    assert date_query.matches({"tx.date": ["2017-01-02"]}) is False

    time_query = parse_query("block.time > TIME 2013-05-03T14:45:00Z")
    assert time_query.matches({"block.time": ["2013-05-03T15:00:00Z"]}) is True
    assert time_query.matches({"block.time": ["2013-05-03T14:00:00Z"]}) is False