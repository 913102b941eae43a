"""Constants shared across the bot."""

from __future__ import annotations

from enum import StrEnum

PROMETHEUS_METRICS_PREFIX = "cosmos_transactions_bot_"

REPORTER_TYPE_TELEGRAM = "telegram"


class EventFilterReason(StrEnum):
    """Why an event was not forwarded to a reporter."""

    TX_ERROR_NOT_LOGGED = "tx_error_not_logged"
    NODE_ERROR_NOT_LOGGED = "node_error_not_logged"
    UNSUPPORTED_MSG_TYPE_NOT_LOGGED = "unsupported_msg_type_not_logged"
    FAILED_TX_NOT_LOGGED = "failed_tx_not_logged"
    EMPTY_TX_NOT_LOGGED = "empty_tx_not_logged"


class ReporterQuery(StrEnum):
    """Queries a reporter can answer."""

    HELP = "help"
    GET_ALIASES = "get_aliases"
    SET_ALIAS = "set_alias"
    NODES_STATUS = "nodes_status"


def get_reporter_types() -> list[str]:
    """Return the reporter types that can be configured."""
    return [REPORTER_TYPE_TELEGRAM]