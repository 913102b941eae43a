"""Configuration, event queries, wallet aliases and cache for a Cosmos SDK transaction notifier."""

__version__ = "0.1.0"