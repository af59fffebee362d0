"""Pytest configuration and fixtures."""

import copy
from typing import Any, Dict, List, Optional

import pytest

from sync_platform.agents import PipelineAgent
from sync_platform.shared.message_bus import InMemoryMessageBus
from sync_platform.shared.models import (
    Connection,
    DataPayload,
    FieldMapping,
    Function,
    Schema,
    Transformer,
)
from sync_platform.stores import (
    Connector,
    ConnectorRegistry,
    InMemoryConfigurationStore,
    InMemoryExecutionStore,
)


class FakeConnector(Connector):
    """Connector double that records every call."""

    def __init__(
        self,
        records: Optional[List[DataPayload]] = None,
        schema: Optional[Schema] = None
    ):
        self.records = records or []
        self.schema = schema
        self.fetch_error: Optional[Exception] = None
        self.push_error: Optional[Exception] = None
        self.queries: List[Dict[str, Any]] = []
        self.pushed: List[List[DataPayload]] = []

    async def fetch(self, query: Dict[str, Any]) -> List[DataPayload]:
        self.queries.append(query)
        if self.fetch_error is not None:
            raise self.fetch_error
        return copy.deepcopy(self.records)

    async def push(self, records: List[DataPayload]) -> None:
        if self.push_error is not None:
            raise self.push_error
        self.pushed.append(records)

    def get_schema(self) -> Optional[Schema]:
        return self.schema


@pytest.fixture
def message_bus():
    """Provide an in-memory message bus for testing."""
    bus = InMemoryMessageBus()
    yield bus
    bus.close()


@pytest.fixture
def published(message_bus):
    """Collect every message published on the event topics."""
    received = []
    for topic in ("discovery.events", "mapping.events", "execution.events"):
        message_bus.subscribe(topic, received.append)
    return received


@pytest.fixture
def source_connector():
    return FakeConnector(records=[
        {"id": 7, "name": "Desk", "regular_price": "129.50", "sku": "desk-7"},
        {"id": 8, "name": "Chair", "regular_price": "49", "sku": "chair-8"},
    ])


@pytest.fixture
def target_connector():
    return FakeConnector()


@pytest.fixture
def connectors(source_connector, target_connector):
    registry = ConnectorRegistry()
    registry.register("shop", source_connector)
    registry.register("marketplace", target_connector)
    return registry


@pytest.fixture
def transformer():
    return Transformer(
        id="tr-products",
        name="Shop products to marketplace offers",
        mappings=[
            FieldMapping(source_field="name", target_field="title"),
            FieldMapping(source_field="regular_price", target_field="price", transform="parseFloat"),
        ],
        functions=[
            Function(name="uppercase", target_field="offer.code", args=["sku"]),
        ],
    )


@pytest.fixture
def connection():
    return Connection(
        id="conn-products",
        source_id="shop",
        target_id="marketplace",
        transformer_id="tr-products",
        query={"status": "publish"},
        schedule="1h",
        name="Products",
    )


@pytest.fixture
def config_store(connection, transformer):
    store = InMemoryConfigurationStore()
    store.save_connection(connection)
    store.save_transformer(transformer)
    return store


@pytest.fixture
def execution_store():
    return InMemoryExecutionStore()


@pytest.fixture
def pipeline(message_bus, config_store, execution_store, connectors):
    """Provide a Pipeline Agent wired to in-memory stores and fake connectors."""
    return PipelineAgent(
        message_bus=message_bus,
        config_store=config_store,
        execution_store=execution_store,
        connectors=connectors,
        agent_id="test-pipeline-agent",
    )
