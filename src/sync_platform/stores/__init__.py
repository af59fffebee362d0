"""Connector and persistence interfaces with in-memory and SQL implementations."""

from sync_platform.stores.base import (
    Connector,
    ConnectorRegistry,
    ConfigurationStore,
    ExecutionStore,
)
from sync_platform.stores.memory import InMemoryConfigurationStore, InMemoryExecutionStore
from sync_platform.stores.sql import SqlConfigurationStore, SqlExecutionStore

__all__ = [
    "Connector",
    "ConnectorRegistry",
    "ConfigurationStore",
    "ExecutionStore",
    "InMemoryConfigurationStore",
    "InMemoryExecutionStore",
    "SqlConfigurationStore",
    "SqlExecutionStore",
]
